"""Notification recipient lookups"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...config import NOTIFICATION_EMAIL
from ...models import PlatformConfig, Role, User, UserRole

logger = logging.getLogger(__name__)

ADMIN_ROLE_NAMES = ("admin", "super_admin")


class NotificationRepository:
    """Repository for notification recipients"""

    @staticmethod
    def get_admin_emails(db: Session) -> list[str]:
        """Emails of active admin / super_admin users, deduplicated, in query order"""
        rows = (
            db.query(User.email)
            .join(UserRole, UserRole.user_id == User.id)
            .join(Role, Role.id == UserRole.role_id)
            .filter(Role.name.in_(ADMIN_ROLE_NAMES), User.is_active.is_(True))
            .all()
        )
        if not rows:
            logger.warning("⚠️ No active admin users found for team notifications")
        return list(dict.fromkeys(email for (email,) in rows if email))

    @staticmethod
    def get_notification_email(db: Session) -> Optional[str]:
        """Fallback recipient: platform_config notification_email, then NOTIFICATION_EMAIL"""
        row = db.query(PlatformConfig).filter(PlatformConfig.key == "notification_email").first()
        if row and row.value:
            return row.value
        return NOTIFICATION_EMAIL or None

    @staticmethod
    def get_team_recipients(db: Session) -> list[str]:
        admin_emails = NotificationRepository.get_admin_emails(db)
        if admin_emails:
            return admin_emails
        fallback = NotificationRepository.get_notification_email(db)
        return [fallback] if fallback else []
