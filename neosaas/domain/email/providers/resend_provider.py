"""
Resend provider
Documentation: https://resend.com/docs
"""

import logging
from typing import Any, Optional

import resend

from ..schemas import EmailMessage, EmailProvider, ProviderConnectionStatus
from .base import BaseEmailProvider

logger = logging.getLogger(__name__)


class ResendProvider(BaseEmailProvider):
    provider_name = EmailProvider.RESEND
    required_fields = ("api_key",)

    def _configure(self, config: dict[str, Any]) -> None:
        self.api_key = config["api_key"]

    def _activate(self) -> None:
        # The SDK keeps the key at module level
        resend.api_key = self.api_key

    def _send(self, message: EmailMessage, recipients: list[str]) -> Optional[str]:
        self._activate()

        email_data: dict[str, Any] = {
            "from": message.sender(),
            "to": recipients,
            "subject": message.subject,
        }
        if message.html_content:
            email_data["html"] = message.html_content
        if message.text_content:
            email_data["text"] = message.text_content
        if message.cc:
            email_data["cc"] = message.cc
        if message.bcc:
            email_data["bcc"] = message.bcc
        if message.reply_to:
            email_data["reply_to"] = message.reply_to
        if message.custom_headers:
            email_data["headers"] = message.custom_headers
        if message.tags:
            # Resend tag names/values only allow ASCII letters, digits, '_' and '-'
            email_data["tags"] = [
                {"name": f"tag_{i}", "value": "".join(c if c.isalnum() or c in "_-" else "_" for c in tag)}
                for i, tag in enumerate(message.tags)
            ]
        if message.attachments:
            email_data["attachments"] = [
                {
                    "filename": a.filename,
                    "content": list(a.content) if isinstance(a.content, bytes) else a.content,
                }
                for a in message.attachments
            ]

        response = resend.Emails.send(email_data)
        return response.get("id") if isinstance(response, dict) else getattr(response, "id", None)

    def test_connection(self) -> ProviderConnectionStatus:
        try:
            self._activate()
            response = resend.Domains.list()
            domains = response.get("data", []) if isinstance(response, dict) else []
            verified = [d.get("name") for d in domains if d.get("status") == "verified"]
            return ProviderConnectionStatus(
                provider=self.provider_name,
                is_connected=True,
                details={"verified_domains": verified, "domain_count": len(domains)},
            )
        except Exception as e:
            logger.error(f"❌ Resend connection test failed: {e}")
            return self.connection_failure(str(e))
