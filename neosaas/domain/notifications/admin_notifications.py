"""
Admin notifications - alerts posted to the admin chat inbox

Each alert is a system message in an open (or pending) conversation of
the customer; a conversation is created when none exists.
"""

import logging
from datetime import datetime
from typing import Any, Literal, Optional

from sqlalchemy.orm import Session

from ...email_templates import format_price
from ...models import ChatConversation, ChatMessage

logger = logging.getLogger(__name__)

NotificationType = Literal["order", "appointment", "support", "system"]
Priority = Literal["low", "normal", "high", "urgent"]


def _find_open_conversation(
    db: Session, user_id: Optional[str], user_email: Optional[str]
) -> Optional[ChatConversation]:
    query = db.query(ChatConversation).filter(ChatConversation.status.in_(("open", "pending")))
    if user_id:
        query = query.filter(ChatConversation.user_id == user_id)
    elif user_email:
        query = query.filter(ChatConversation.guest_email == user_email)
    return query.order_by(ChatConversation.created_at).first()


def send_admin_notification(
    db: Session,
    subject: str,
    message: str,
    type: NotificationType,
    user_id: Optional[str] = None,
    user_email: Optional[str] = None,
    user_name: Optional[str] = None,
    priority: Priority = "normal",
    metadata: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    try:
        conversation = _find_open_conversation(db, user_id, user_email)
        if not conversation:
            conversation = ChatConversation(
                user_id=user_id,
                guest_email=user_email,
                guest_name=user_name,
                subject=f"[{type.upper()}] {subject}",
                status="open",
                priority=priority,
                last_message_at=datetime.utcnow(),
            )
            db.add(conversation)
            db.flush()

        db.add(
            ChatMessage(
                conversation_id=conversation.id,
                sender_type="system",
                content=message,
                message_type=type,
                is_read=False,
                message_metadata=metadata or {},
            )
        )
        conversation.last_message_at = datetime.utcnow()
        conversation.priority = priority
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to send admin notification '{subject}': {e}")
        return {"success": False, "error": str(e)}

    logger.info(f"✅ Admin notification sent: {type} '{subject}' (conversation {conversation.id})")
    return {"success": True, "conversation_id": conversation.id}


def notify_admin_new_order(
    db: Session,
    order_id: str,
    order_number: str,
    user_id: str,
    user_email: str,
    user_name: str,
    total_amount: int,
    currency: str,
) -> dict[str, Any]:
    message = (
        "📦 New order received!\n\n"
        f"**Order:** {order_number}\n"
        f"**Customer:** {user_name} ({user_email})\n"
        f"**Amount:** {format_price(total_amount, currency)}\n\n"
        f"Manage this order in the [admin dashboard](/admin/orders/{order_id})"
    )
    return send_admin_notification(
        db,
        subject=f"New order {order_number}",
        message=message,
        type="order",
        user_id=user_id,
        user_email=user_email,
        user_name=user_name,
        metadata={
            "order_id": order_id,
            "order_number": order_number,
            "total_amount": total_amount,
            "currency": currency,
        },
    )


def notify_admin_new_appointment(
    db: Session,
    appointment_id: str,
    user_id: str,
    user_email: str,
    user_name: str,
    product_title: str,
    start_time: datetime,
    end_time: datetime,
    attendee_name: str,
    attendee_email: str,
) -> dict[str, Any]:
    message = (
        "📅 New appointment booked!\n\n"
        f"**Service:** {product_title}\n"
        f"**Customer:** {user_name} ({user_email})\n"
        f"**Attendee:** {attendee_name} ({attendee_email})\n"
        f"**Start:** {start_time:%Y-%m-%d %H:%M}\n"
        f"**End:** {end_time:%Y-%m-%d %H:%M}\n\n"
        "Manage this appointment in [your calendar](/dashboard/calendar)"
    )
    return send_admin_notification(
        db,
        subject=f"New appointment - {product_title}",
        message=message,
        type="appointment",
        user_id=user_id,
        user_email=user_email,
        user_name=user_name,
        priority="high",
        metadata={
            "appointment_id": appointment_id,
            "product_title": product_title,
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "attendee_name": attendee_name,
            "attendee_email": attendee_email,
        },
    )
