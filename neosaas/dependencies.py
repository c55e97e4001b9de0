"""Shared FastAPI dependencies for process-wide services kept on app.state"""

from fastapi import Request

from .domain.billing.fallback_policy import BillingFallbackPolicy
from .domain.email.router_service import EmailRouterService


def get_email_router(request: Request) -> EmailRouterService:
    """The EmailRouterService built at startup"""
    return request.app.state.email_router


def get_billing_policy(request: Request) -> BillingFallbackPolicy:
    """The process-wide billing circuit breaker"""
    return request.app.state.billing_policy
