"""Email admin router - FastAPI endpoints for email provider management"""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_email_router
from .repository import EmailConfigRepository, EmailLogRepository
from .router_service import EmailRouterService
from .schemas import (
    CREDENTIAL_MODELS,
    EmailHistoryPage,
    EmailLogEntry,
    EmailProvider,
    EmailProviderSettings,
    EmailStats,
    ProviderConnectionStatus,
    ProviderSummary,
    SaveProviderRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/email", tags=["Email Admin"])


def _parse_provider(provider: str) -> EmailProvider:
    try:
        return EmailProvider(provider)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown email provider: {provider}")


@router.get("/providers", response_model=list[ProviderSummary])
def list_providers(db: Session = Depends(get_db)):
    """List configured providers with masked credentials"""
    return [EmailConfigRepository.summarize(c) for c in EmailConfigRepository.get_all_configs(db)]


@router.put("/providers/{provider}", response_model=ProviderSummary)
def save_provider(
    provider: str,
    body: SaveProviderRequest,
    db: Session = Depends(get_db),
    email_router: EmailRouterService = Depends(get_email_router),
):
    """Create or replace a provider configuration"""
    name = _parse_provider(provider)
    try:
        credentials = CREDENTIAL_MODELS[name](**body.credentials)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))

    settings = EmailProviderSettings(
        provider=name,
        is_active=body.is_active,
        is_default=body.is_default,
        credentials=credentials,
    )
    EmailConfigRepository.save_config(db, settings)
    email_router.reset()
    return EmailConfigRepository.summarize(settings)


@router.delete("/providers/{provider}")
def delete_provider(
    provider: str,
    db: Session = Depends(get_db),
    email_router: EmailRouterService = Depends(get_email_router),
):
    """Delete a provider configuration"""
    name = _parse_provider(provider)
    if not EmailConfigRepository.delete_config(db, name):
        raise HTTPException(status_code=404, detail=f"Email provider {name.value} is not configured")
    email_router.reset()
    return {"success": True, "provider": name.value}


@router.post("/providers/test", response_model=dict[str, ProviderConnectionStatus])
def test_providers(email_router: EmailRouterService = Depends(get_email_router)):
    """Run a read-only health check against every loaded provider"""
    results = email_router.test_all_connections()
    return {name.value: status for name, status in results.items()}


# ============================================================================
# SEND HISTORY
# ============================================================================


@router.get("/history", response_model=EmailHistoryPage)
def email_history(
    provider: Optional[str] = None,
    status: Optional[Literal["sent", "failed"]] = None,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Search the send history, newest first"""
    return EmailLogRepository.search(
        db,
        provider=_parse_provider(provider) if provider else None,
        status=status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )


@router.get("/history/{log_id}", response_model=EmailLogEntry)
def email_history_entry(log_id: int, db: Session = Depends(get_db)):
    log = EmailLogRepository.get_by_id(db, log_id)
    if not log:
        raise HTTPException(status_code=404, detail="Email log entry not found")
    return log


@router.get("/stats", response_model=EmailStats)
def email_stats(
    provider: Optional[str] = None,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    db: Session = Depends(get_db),
):
    """Sent / failed totals, overall and per provider"""
    return EmailLogRepository.get_statistics(
        db,
        provider=_parse_provider(provider) if provider else None,
        date_from=date_from,
        date_to=date_to,
    )
