"""Checkout router - FastAPI endpoints for checkout and test payments"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_billing_policy, get_email_router
from ..billing.fallback_policy import BillingFallbackPolicy
from ..billing.gateway import BillingGateway
from ..email.router_service import EmailRouterService
from .schemas import CheckoutRequest, CheckoutResult
from .service import CheckoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["Checkout"])

# error_code -> HTTP status; anything else unsuccessful is a 400
ERROR_STATUS_CODES = {
    "ProductNotFound": 404,
    "CartEmptyOrNotFound": 404,
    "AppointmentNotFound": 404,
    "AlreadyPaid": 409,
    "TestModeDisabled": 403,
    "CheckoutFailed": 500,
}


def get_checkout_service(
    db: Session = Depends(get_db),
    email_router: EmailRouterService = Depends(get_email_router),
    billing_policy: BillingFallbackPolicy = Depends(get_billing_policy),
) -> CheckoutService:
    """Dependency injection for CheckoutService"""
    return CheckoutService(db, email_router, billing_gateway=BillingGateway(db, policy=billing_policy))


def _respond(result: CheckoutResult) -> JSONResponse:
    status_code = 200
    if not result.success:
        status_code = ERROR_STATUS_CODES.get(result.error_code, 400)
    return JSONResponse(status_code=status_code, content=result.model_dump())


@router.post("", response_model=CheckoutResult)
def process_checkout(
    body: CheckoutRequest,
    service: CheckoutService = Depends(get_checkout_service),
):
    """Check out a cart or book an appointment"""
    result = service.process_checkout(
        user_id=body.user_id,
        user_email=body.user_email,
        user_name=body.user_name,
        cart_id=body.cart_id,
        appointment_data=body.appointment_data,
        company_id=body.company_id,
    )
    return _respond(result)


@router.post("/appointments/{appointment_id}/simulate-payment", response_model=CheckoutResult)
def simulate_payment(
    appointment_id: str,
    service: CheckoutService = Depends(get_checkout_service),
):
    """Settle a pending appointment with a simulated payment (test mode only)"""
    return _respond(service.simulate_payment(appointment_id))
