"""Base interface shared by every email provider"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel

from ....shared.validators import is_valid_email
from ..schemas import EmailMessage, EmailProvider, EmailSendResult, ProviderConnectionStatus

logger = logging.getLogger(__name__)


class ProviderConfigError(ValueError):
    """Provider credentials are missing required fields"""


class ProviderNotInitializedError(RuntimeError):
    pass


class BaseEmailProvider(ABC):
    """
    Capability interface: initialize, send_email, test_connection, validate_email.

    Subclasses declare ``provider_name`` and ``required_fields`` and implement
    ``_configure``, ``_send`` and ``test_connection``. ``send_email`` never
    raises; provider errors come back as a failed ``EmailSendResult``.
    """

    provider_name: EmailProvider
    required_fields: tuple[str, ...] = ()

    def __init__(self):
        self.config: dict[str, Any] = {}
        self.initialized = False

    def initialize(self, config: Union[BaseModel, dict[str, Any]]) -> None:
        """Validate credentials and prepare the provider client"""
        data = config.model_dump() if isinstance(config, BaseModel) else dict(config or {})

        missing = [name for name in self.required_fields if not data.get(name)]
        if missing:
            raise ProviderConfigError(
                f"{self.provider_name.value} requires {', '.join(self.required_fields)} "
                f"(missing: {', '.join(missing)})"
            )

        self.config = data
        self._configure(data)
        self.initialized = True
        logger.info(f"✅ Email provider initialized: {self.provider_name.value}")

    def send_email(self, message: EmailMessage) -> EmailSendResult:
        """Send a message; failures are returned, not raised"""
        self.ensure_initialized()
        recipients = self.normalize_recipients(message.to)

        try:
            logger.info(
                f"📧 Sending email via {self.provider_name.value} to {', '.join(recipients)} "
                f"| subject: {message.subject}"
            )
            message_id = self._send(message, recipients)
        except Exception as e:
            logger.error(f"❌ {self.provider_name.value} send failed: {e}")
            return self.failure(str(e) or "Unknown error occurred")

        logger.info(f"✅ Email sent via {self.provider_name.value}: {message_id}")
        return EmailSendResult(
            success=True,
            provider=self.provider_name,
            message_id=message_id,
            sent_at=datetime.utcnow(),
        )

    @abstractmethod
    def _configure(self, config: dict[str, Any]) -> None:
        """Build SDK/HTTP client state from validated credentials"""

    @abstractmethod
    def _send(self, message: EmailMessage, recipients: list[str]) -> Optional[str]:
        """Perform the provider call and return its message id"""

    @abstractmethod
    def test_connection(self) -> ProviderConnectionStatus:
        """Lightweight read-only health call"""

    def validate_email(self, email: str) -> bool:
        """Basic syntax check, not deliverability"""
        return is_valid_email(email)

    def ensure_initialized(self) -> None:
        if not self.initialized:
            raise ProviderNotInitializedError(
                f"Provider {self.provider_name.value} is not initialized"
            )

    @staticmethod
    def normalize_recipients(to: Union[str, list[str]]) -> list[str]:
        return [to] if isinstance(to, str) else list(to)

    def failure(self, error: str) -> EmailSendResult:
        return EmailSendResult(success=False, provider=self.provider_name, error=error)

    def connection_failure(self, error: str) -> ProviderConnectionStatus:
        return ProviderConnectionStatus(
            provider=self.provider_name, is_connected=False, error=error
        )
