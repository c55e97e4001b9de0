"""Unit tests for team and admin notifications."""

from datetime import datetime
from unittest.mock import patch

from neosaas.domain.email.schemas import EmailProvider, EmailSendResult
from neosaas.domain.notifications.admin_notifications import (
    notify_admin_new_appointment,
    send_admin_notification,
)
from neosaas.domain.notifications.repository import NotificationRepository
from neosaas.domain.notifications.schemas import AppointmentDetails, TeamNotification, TeamNotificationItem
from neosaas.domain.notifications.team_notifications import (
    notify_team_appointment_booking,
    notify_team_digital_product_purchase,
)
from neosaas.models import ChatConversation, ChatMessage
from tests.conftest import make_admin, set_platform_config


def _notification(**overrides):
    fields = {
        "type": "digital_product_purchase",
        "order_id": "order-1",
        "order_number": "ORD-20300101-0042",
        "customer_email": "jane@example.com",
        "customer_name": "Jane",
        "items": [TeamNotificationItem(name="Guide", type="digital", quantity=1, price=1000)],
        "total_amount": 1000,
    }
    fields.update(overrides)
    return TeamNotification(**fields)


class TestRecipients:
    """Admin recipient resolution."""

    def test_active_admins_deduplicated(self, db):
        admin = make_admin(db, "admin@neosaas.tech")
        make_admin(db, "inactive@neosaas.tech", is_active=False)
        make_admin(db, "root@neosaas.tech", role_name="super_admin")
        # same user holding both roles
        from neosaas.models import Role, UserRole

        super_admin = db.query(Role).filter(Role.name == "super_admin").one()
        db.add(UserRole(user_id=admin.id, role_id=super_admin.id))
        db.commit()

        emails = NotificationRepository.get_admin_emails(db)

        assert sorted(emails) == ["admin@neosaas.tech", "root@neosaas.tech"]

    def test_platform_config_fallback(self, db):
        set_platform_config(db, "notification_email", "team@neosaas.tech")
        assert NotificationRepository.get_team_recipients(db) == ["team@neosaas.tech"]

    def test_environment_fallback(self, db):
        with patch("neosaas.domain.notifications.repository.NOTIFICATION_EMAIL", "env@neosaas.tech"):
            assert NotificationRepository.get_team_recipients(db) == ["env@neosaas.tech"]

    def test_admins_take_precedence_over_fallback(self, db):
        make_admin(db, "admin@neosaas.tech")
        set_platform_config(db, "notification_email", "team@neosaas.tech")
        assert NotificationRepository.get_team_recipients(db) == ["admin@neosaas.tech"]


class TestTeamNotifications:
    def test_no_recipients(self, db, email_router):
        result = notify_team_digital_product_purchase(db, email_router, _notification())

        assert result == {"success": False, "error": "No recipients configured"}
        email_router.send_with_fallback.assert_not_called()

    def test_digital_purchase_email(self, db, email_router):
        make_admin(db, "admin@neosaas.tech")

        result = notify_team_digital_product_purchase(db, email_router, _notification())

        assert result["success"] is True
        message = email_router.send_with_fallback.call_args.args[0]
        assert message.to == ["admin@neosaas.tech"]
        assert message.subject == "[NeoSaaS] New digital product order #ORD-20300101-0042"
        assert "team-notification" in message.tags
        assert "Jane" in message.html_content
        assert "10.00 EUR" in message.text_content

    def test_send_failure_is_reported(self, db, email_router):
        make_admin(db, "admin@neosaas.tech")
        email_router.send_with_fallback.return_value = EmailSendResult(
            success=False, provider=EmailProvider.RESEND, error="quota exceeded"
        )

        result = notify_team_digital_product_purchase(db, email_router, _notification())

        assert result == {"success": False, "error": "quota exceeded"}

    def test_appointment_booking_email_uses_timezone(self, db, email_router):
        make_admin(db, "admin@neosaas.tech")
        notification = _notification(
            type="appointment_booking",
            appointment_details=AppointmentDetails(
                start_time=datetime(2030, 1, 7, 9, 0),
                end_time=datetime(2030, 1, 7, 10, 0),
                timezone="Europe/Paris",
                notes="Bring the contract",
            ),
        )

        result = notify_team_appointment_booking(db, email_router, notification)

        assert result["success"] is True
        message = email_router.send_with_fallback.call_args.args[0]
        # 09:00 UTC is 10:00 in Paris in winter
        assert "10:00" in message.text_content
        assert "Bring the contract" in message.html_content


class TestAdminNotifications:
    """Admin chat inbox alerts."""

    def test_creates_conversation_and_system_message(self, db, user):
        result = send_admin_notification(
            db,
            subject="New order ORD-1",
            message="📦 New order received!",
            type="order",
            user_id=user.id,
            user_email=user.email,
            metadata={"order_id": "o-1"},
        )

        assert result["success"] is True
        conversation = db.query(ChatConversation).one()
        assert conversation.subject == "[ORDER] New order ORD-1"
        assert conversation.status == "open"
        message = db.query(ChatMessage).one()
        assert message.conversation_id == conversation.id
        assert message.sender_type == "system"
        assert message.is_read is False
        assert message.message_metadata == {"order_id": "o-1"}

    def test_reuses_open_conversation(self, db, user):
        send_admin_notification(db, subject="First", message="1", type="order", user_id=user.id)
        send_admin_notification(db, subject="Second", message="2", type="order", user_id=user.id)

        assert db.query(ChatConversation).count() == 1
        assert db.query(ChatMessage).count() == 2

    def test_guest_conversation_matched_by_email(self, db):
        send_admin_notification(db, subject="First", message="1", type="support", user_email="guest@example.com")
        send_admin_notification(db, subject="Second", message="2", type="support", user_email="guest@example.com")

        conversation = db.query(ChatConversation).one()
        assert conversation.guest_email == "guest@example.com"

    def test_closed_conversation_is_not_reused(self, db, user):
        send_admin_notification(db, subject="First", message="1", type="order", user_id=user.id)
        db.query(ChatConversation).update({"status": "closed"})
        db.commit()

        send_admin_notification(db, subject="Second", message="2", type="order", user_id=user.id)

        assert db.query(ChatConversation).count() == 2

    def test_new_appointment_is_high_priority(self, db, user):
        result = notify_admin_new_appointment(
            db,
            appointment_id="apt-1",
            user_id=user.id,
            user_email=user.email,
            user_name=user.name,
            product_title="Consulting hour",
            start_time=datetime(2030, 1, 7, 9, 0),
            end_time=datetime(2030, 1, 7, 10, 0),
            attendee_name="Alex",
            attendee_email="alex@example.com",
        )

        assert result["success"] is True
        conversation = db.query(ChatConversation).one()
        assert conversation.priority == "high"
        assert db.query(ChatMessage).one().message_type == "appointment"

    def test_database_error_is_reported(self, db, user):
        with patch.object(db, "commit", side_effect=RuntimeError("db locked")):
            result = send_admin_notification(db, subject="X", message="x", type="order", user_id=user.id)

        assert result == {"success": False, "error": "db locked"}
