"""Email repositories - encrypted provider configs and send history"""

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models_email import EmailLog, EmailProviderConfig
from .encryption import decrypt, encrypt, mask_sensitive_data
from .schemas import (
    CREDENTIAL_MODELS,
    EmailHistoryPage,
    EmailLogEntry,
    EmailProvider,
    EmailProviderSettings,
    EmailStats,
    ProviderSendCounts,
    ProviderSummary,
)

logger = logging.getLogger(__name__)

# Credential fields shown unmasked in admin listings
_PUBLIC_CREDENTIAL_FIELDS = {"region", "plan", "api_url", "verified_domains", "project_id"}


class EmailConfigRepository:
    """Repository for email provider configuration rows"""

    @staticmethod
    def _to_settings(row: EmailProviderConfig) -> Optional[EmailProviderSettings]:
        """Decrypt a row into typed settings; None when the row has no credentials"""
        blob = (row.config or {}).get("encrypted")
        if not blob:
            return None

        provider = EmailProvider(row.provider)
        credentials = json.loads(decrypt(blob))
        return EmailProviderSettings(
            provider=provider,
            is_active=row.is_active,
            is_default=row.is_default,
            credentials=CREDENTIAL_MODELS[provider](**credentials),
        )

    @staticmethod
    def get_row(db: Session, provider: EmailProvider) -> Optional[EmailProviderConfig]:
        return (
            db.query(EmailProviderConfig)
            .filter(EmailProviderConfig.provider == EmailProvider(provider).value)
            .first()
        )

    @staticmethod
    def get_config(db: Session, provider: EmailProvider) -> Optional[EmailProviderSettings]:
        """Get the decrypted configuration of one provider"""
        row = EmailConfigRepository.get_row(db, provider)
        if not row:
            return None
        return EmailConfigRepository._to_settings(row)

    @staticmethod
    def get_all_configs(db: Session, active_only: bool = False) -> list[EmailProviderSettings]:
        """Get every provider configuration; rows that fail to decrypt are skipped"""
        query = db.query(EmailProviderConfig)
        if active_only:
            query = query.filter(EmailProviderConfig.is_active.is_(True))

        result = []
        for row in query.order_by(EmailProviderConfig.created_at).all():
            try:
                settings = EmailConfigRepository._to_settings(row)
            except Exception as e:
                logger.error(f"❌ Could not decrypt credentials for provider {row.provider}: {e}")
                continue
            if settings:
                result.append(settings)
        return result

    @staticmethod
    def get_default_provider(db: Session) -> Optional[EmailProviderSettings]:
        """Get the active provider flagged as default, if any"""
        row = (
            db.query(EmailProviderConfig)
            .filter(
                EmailProviderConfig.is_default.is_(True),
                EmailProviderConfig.is_active.is_(True),
            )
            .first()
        )
        if not row:
            return None
        return EmailConfigRepository._to_settings(row)

    @staticmethod
    def save_config(db: Session, settings: EmailProviderSettings) -> EmailProviderConfig:
        """
        Encrypt and upsert a provider configuration.

        When the provider is saved as default, every other row loses its
        default flag in the same transaction.
        """
        provider = EmailProvider(settings.provider)
        credentials = settings.credentials.model_dump() if settings.credentials else {}
        encrypted = encrypt(json.dumps(credentials))

        row = EmailConfigRepository.get_row(db, provider)
        if row:
            row.is_active = settings.is_active
            row.is_default = settings.is_default
            row.config = {"encrypted": encrypted}
            row.updated_at = datetime.utcnow()
        else:
            row = EmailProviderConfig(
                provider=provider.value,
                is_active=settings.is_active,
                is_default=settings.is_default,
                config={"encrypted": encrypted},
            )
            db.add(row)

        if settings.is_default:
            db.query(EmailProviderConfig).filter(
                EmailProviderConfig.provider != provider.value
            ).update({EmailProviderConfig.is_default: False}, synchronize_session="fetch")

        db.commit()
        db.refresh(row)
        logger.info(f"✅ Saved email provider config: {provider.value} (default={row.is_default})")
        return row

    @staticmethod
    def delete_config(db: Session, provider: EmailProvider) -> bool:
        """Delete a provider configuration. Returns False when nothing was stored."""
        row = EmailConfigRepository.get_row(db, provider)
        if not row:
            return False
        db.delete(row)
        db.commit()
        logger.info(f"🗑️ Deleted email provider config: {row.provider}")
        return True

    @staticmethod
    def summarize(settings: EmailProviderSettings) -> ProviderSummary:
        """Settings with secret fields masked, for admin display"""
        masked = {}
        if settings.credentials:
            for key, value in settings.credentials.model_dump().items():
                if key in _PUBLIC_CREDENTIAL_FIELDS or value is None:
                    masked[key] = value
                else:
                    masked[key] = mask_sensitive_data(str(value))
        return ProviderSummary(
            provider=settings.provider,
            is_active=settings.is_active,
            is_default=settings.is_default,
            credentials=masked,
        )


class EmailLogRepository:
    """Repository for the email send history (email_logs)"""

    @staticmethod
    def record(
        db: Session,
        provider: Optional[EmailProvider],
        recipients: list[str],
        subject: str,
        success: bool,
        message_id: Optional[str] = None,
        error: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> EmailLog:
        log = EmailLog(
            provider=provider.value if provider else "none",
            recipients=recipients,
            subject=subject[:500],
            status="sent" if success else "failed",
            message_id=message_id,
            error_message=error,
            tags=tags,
        )
        db.add(log)
        db.commit()
        return log

    @staticmethod
    def _filtered(
        db: Session,
        provider: Optional[EmailProvider] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ):
        query = db.query(EmailLog)
        if provider:
            query = query.filter(EmailLog.provider == EmailProvider(provider).value)
        if date_from:
            query = query.filter(EmailLog.created_at >= date_from)
        if date_to:
            query = query.filter(EmailLog.created_at <= date_to)
        return query

    @staticmethod
    def get_by_id(db: Session, log_id: int) -> Optional[EmailLog]:
        return db.query(EmailLog).filter(EmailLog.id == log_id).first()

    @staticmethod
    def search(
        db: Session,
        provider: Optional[EmailProvider] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> EmailHistoryPage:
        """Newest first, with the total count of matching rows"""
        query = EmailLogRepository._filtered(db, provider, date_from, date_to)
        if status:
            query = query.filter(EmailLog.status == status)

        total = query.count()
        rows = query.order_by(EmailLog.created_at.desc(), EmailLog.id.desc()).offset(offset).limit(limit).all()
        return EmailHistoryPage(
            total=total,
            items=[EmailLogEntry.model_validate(row) for row in rows],
            limit=limit,
            offset=offset,
        )

    @staticmethod
    def get_statistics(
        db: Session,
        provider: Optional[EmailProvider] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> EmailStats:
        rows = (
            EmailLogRepository._filtered(db, provider, date_from, date_to)
            .with_entities(EmailLog.provider, EmailLog.status, func.count(EmailLog.id))
            .group_by(EmailLog.provider, EmailLog.status)
            .all()
        )

        by_provider: dict[str, ProviderSendCounts] = {}
        total = sent = failed = 0
        for provider_name, status, count in rows:
            counts = by_provider.setdefault(provider_name, ProviderSendCounts())
            total += count
            if status == "sent":
                counts.sent += count
                sent += count
            elif status == "failed":
                counts.failed += count
                failed += count

        return EmailStats(
            total=total,
            sent=sent,
            failed=failed,
            success_rate=round(sent / total * 100, 2) if total else 0.0,
            by_provider=by_provider,
        )
