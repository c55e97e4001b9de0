"""
Team notifications - emails to the admin team for purchases and bookings

Recipients are the active admin users, or the configured fallback address
when there are none. Sends go through ``send_with_fallback``; the result is
returned as a ``{"success": ..., "error": ...}`` dict and never raised.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from ...email_templates import (
    format_datetime,
    format_price,
    team_appointment_booking_template,
    team_digital_purchase_template,
)
from ..email.router_service import EmailRouterService
from ..email.schemas import EmailMessage
from .repository import NotificationRepository
from .schemas import TeamNotification

logger = logging.getLogger(__name__)


def _send_team_email(
    db: Session,
    email_router: EmailRouterService,
    notification: TeamNotification,
    subject: str,
    html_content: str,
    text_content: str,
    tags: list[str],
) -> dict[str, Any]:
    try:
        recipients = NotificationRepository.get_team_recipients(db)
        if not recipients:
            logger.warning("⚠️ No recipients configured for team notifications")
            return {"success": False, "error": "No recipients configured"}

        result = email_router.send_with_fallback(
            EmailMessage(
                to=recipients,
                subject=subject,
                html_content=html_content,
                text_content=text_content,
                tags=tags,
            )
        )
    except Exception as e:
        logger.error(f"❌ Error sending team notification for #{notification.order_number}: {e}")
        return {"success": False, "error": str(e)}

    if result.success:
        logger.info(
            f"📧 Team notification sent for #{notification.order_number} "
            f"to {len(recipients)} recipient(s), message_id={result.message_id}"
        )
    else:
        logger.error(f"❌ Failed to send team notification for #{notification.order_number}: {result.error}")
    return {"success": result.success, "error": result.error}


def notify_team_digital_product_purchase(
    db: Session, email_router: EmailRouterService, notification: TeamNotification
) -> dict[str, Any]:
    items = [item.model_dump() for item in notification.items]
    total = format_price(notification.total_amount, notification.currency)
    return _send_team_email(
        db,
        email_router,
        notification,
        subject=f"[NeoSaaS] New digital product order #{notification.order_number}",
        html_content=team_digital_purchase_template(
            order_number=notification.order_number,
            customer_name=notification.customer_name,
            customer_email=notification.customer_email,
            items=items,
            total_amount=notification.total_amount,
            currency=notification.currency,
        ),
        text_content=(
            f"New digital product order #{notification.order_number} by "
            f"{notification.customer_name} ({notification.customer_email}). Total: {total}"
        ),
        tags=["team-notification", "digital-product", notification.order_number],
    )


def notify_team_appointment_booking(
    db: Session, email_router: EmailRouterService, notification: TeamNotification
) -> dict[str, Any]:
    details = notification.appointment_details
    if details is None:
        return {"success": False, "error": "Appointment details are required"}

    when = format_datetime(details.start_time, details.timezone)
    return _send_team_email(
        db,
        email_router,
        notification,
        subject=f"[NeoSaaS] New appointment booking #{notification.order_number}",
        html_content=team_appointment_booking_template(
            order_number=notification.order_number,
            customer_name=notification.customer_name,
            customer_email=notification.customer_email,
            items=[item.model_dump() for item in notification.items],
            total_amount=notification.total_amount,
            currency=notification.currency,
            start_time=details.start_time,
            end_time=details.end_time,
            tz_name=details.timezone,
            notes=details.notes,
        ),
        text_content=(
            f"New appointment booking #{notification.order_number} by "
            f"{notification.customer_name} ({notification.customer_email}). Date: {when}"
        ),
        tags=["team-notification", "appointment", notification.order_number],
    )
