"""
Email router - routes messages to the configured providers

One EmailRouterService is built at application startup and shared through
``app.state``. Providers are loaded lazily from the config repository on
first use; ``send_with_fallback`` tries the default provider first, then the
others in load order, and returns on the first success.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...config import EMAIL_FROM_ADDRESS, EMAIL_FROM_NAME
from .providers import PROVIDER_CLASSES, BaseEmailProvider
from .repository import EmailConfigRepository, EmailLogRepository
from .schemas import EmailMessage, EmailProvider, EmailSendResult, ProviderConnectionStatus

logger = logging.getLogger(__name__)


class ProviderUnavailableError(RuntimeError):
    """The requested provider (or any provider) is not initialized"""


class EmailRouterService:
    """Multi-provider email dispatcher with ordered fallback"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        provider_classes: Optional[dict[EmailProvider, type[BaseEmailProvider]]] = None,
    ):
        self.session_factory = session_factory
        self.provider_classes = provider_classes or PROVIDER_CLASSES
        self.providers: dict[EmailProvider, BaseEmailProvider] = {}
        self.initialized = False

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Load active provider configs and initialize each provider.

        Cheap no-op once providers are loaded. A router that found no
        provider tries again on the next call, so configuring one in the
        admin takes effect without a restart.
        """
        if self.initialized and self.providers:
            return

        try:
            with self.session_factory() as db:
                configs = EmailConfigRepository.get_all_configs(db, active_only=True)
        except Exception as e:
            logger.error(f"❌ Failed to load email provider configs: {e}")
            return

        providers: dict[EmailProvider, BaseEmailProvider] = {}
        for config in configs:
            provider_cls = self.provider_classes.get(config.provider)
            if not provider_cls:
                logger.warning(f"⚠️ Unsupported email provider: {config.provider}")
                continue
            if not config.credentials:
                logger.warning(f"⚠️ Email provider {config.provider.value} has no credentials")
                continue

            provider = provider_cls()
            try:
                provider.initialize(config.credentials)
            except Exception as e:
                logger.warning(f"⚠️ Skipping email provider {config.provider.value}: {e}")
                continue
            providers[config.provider] = provider

        self.providers = providers
        self.initialized = True

        logger.info(f"📧 Email router initialized with {len(self.providers)} provider(s)")
        if not self.providers:
            logger.warning("⚠️ No email providers configured. Configure one via /admin/email/providers")

    def reset(self) -> None:
        """Drop loaded providers so the next call re-reads the configuration"""
        self.providers = {}
        self.initialized = False

    def get_available_providers(self) -> list[EmailProvider]:
        return list(self.providers.keys())

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def _with_default_sender(self, message: EmailMessage) -> EmailMessage:
        if message.from_address:
            return message
        return message.model_copy(
            update={"from_address": EMAIL_FROM_ADDRESS, "from_name": message.from_name or EMAIL_FROM_NAME}
        )

    def _default_provider_name(self) -> Optional[EmailProvider]:
        try:
            with self.session_factory() as db:
                default = EmailConfigRepository.get_default_provider(db)
        except Exception as e:
            logger.warning(f"⚠️ Could not read default email provider: {e}")
            return None
        return default.provider if default else None

    def send_email(
        self, message: EmailMessage, provider_name: Optional[EmailProvider] = None
    ) -> EmailSendResult:
        """
        Send through one provider: the named one, else the default, else the first loaded.

        Raises:
            ProviderUnavailableError: the named provider (or any provider) is not available
        """
        self.initialize()
        message = self._with_default_sender(message)

        if provider_name:
            provider = self.providers.get(EmailProvider(provider_name))
            if not provider:
                raise ProviderUnavailableError(f"Provider {provider_name} is not available")
        else:
            default_name = self._default_provider_name()
            provider = self.providers.get(default_name) if default_name else None
            if not provider:
                provider = next(iter(self.providers.values()), None)
            if not provider:
                raise ProviderUnavailableError("No email provider available")

        result = provider.send_email(message)
        self._log_send(message, result)
        return result

    def send_with_fallback(self, message: EmailMessage) -> EmailSendResult:
        """Try each provider once, default first; return the first success"""
        self.initialize()
        message = self._with_default_sender(message)

        providers = list(self.providers.values())
        if not providers:
            logger.error("❌ No email providers available, message not sent")
            return EmailSendResult(success=False, error="No email providers available")

        default_name = self._default_provider_name()
        if default_name:
            index = next(
                (i for i, p in enumerate(providers) if p.provider_name == default_name), None
            )
            if index:
                providers.insert(0, providers.pop(index))

        last_error: Optional[str] = None
        for provider in providers:
            name = provider.provider_name.value
            try:
                logger.info(f"📧 Attempting to send via {name}")
                result = provider.send_email(message)
            except Exception as e:
                logger.error(f"❌ Failed to send via {name}: {e}")
                last_error = str(e)
                continue

            if result.success:
                logger.info(f"✅ Email sent successfully via {name}")
                self._log_send(message, result)
                return result

            logger.warning(f"⚠️ {name} could not send: {result.error}")
            last_error = result.error or "Unknown error"

        logger.error(f"❌ All email providers failed: {last_error}")
        failure = EmailSendResult(
            success=False,
            provider=providers[0].provider_name,
            error=last_error or "All providers failed",
        )
        self._log_send(message, failure)
        return failure

    def test_all_connections(self) -> dict[EmailProvider, ProviderConnectionStatus]:
        self.initialize()

        results: dict[EmailProvider, ProviderConnectionStatus] = {}
        for name, provider in self.providers.items():
            try:
                results[name] = provider.test_connection()
            except Exception as e:
                results[name] = ProviderConnectionStatus(
                    provider=name, is_connected=False, error=str(e)
                )
        return results

    def _log_send(self, message: EmailMessage, result: EmailSendResult) -> None:
        """Record the outcome in email_logs; a logging failure never affects the send"""
        try:
            with self.session_factory() as db:
                EmailLogRepository.record(
                    db,
                    result.provider,
                    message.recipients(),
                    message.subject,
                    result.success,
                    message_id=result.message_id,
                    error=result.error,
                    tags=message.tags,
                )
        except Exception as e:
            logger.warning(f"⚠️ Failed to record email log: {e}")
