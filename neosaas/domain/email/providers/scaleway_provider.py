"""
Scaleway Transactional Email (TEM) provider
Documentation: https://www.scaleway.com/en/developers/api/transactional-email/

Scaleway rejects senders on domains that are not verified for the project,
so the sender domain is checked locally before any network call.
"""

import logging
from typing import Any, Optional

import httpx

from ....shared.validators import extract_email_domain
from ..schemas import EmailMessage, EmailProvider, ProviderConnectionStatus
from .base import BaseEmailProvider

logger = logging.getLogger(__name__)

SCALEWAY_TEM_API_URL = "https://api.scaleway.com/transactional-email/v1alpha1"

# Daily sending quota per plan
PLAN_DAILY_QUOTAS = {"essential": 1_000, "scale": 100_000}


class UnverifiedSenderDomainError(ValueError):
    pass


class ScalewayTemProvider(BaseEmailProvider):
    provider_name = EmailProvider.SCALEWAY_TEM
    required_fields = ("project_id", "secret_key")

    def _configure(self, config: dict[str, Any]) -> None:
        self.project_id = config["project_id"]
        self.secret_key = config["secret_key"]
        self.region = config.get("region") or "fr-par"
        self.plan = config.get("plan") or "essential"
        self.api_url = (config.get("api_url") or SCALEWAY_TEM_API_URL).rstrip("/")
        self.verified_domains = [d.lower() for d in config.get("verified_domains") or []]
        if not self.verified_domains:
            logger.warning(
                "⚠️ Scaleway TEM has no verified domains configured: sender domains are not checked "
                "before sending. Add the verified domains to the provider settings."
            )

    @property
    def _headers(self) -> dict[str, str]:
        return {"X-Auth-Token": self.secret_key, "Content-Type": "application/json"}

    def check_sender_domain(self, sender: Optional[str]) -> None:
        """
        Raise when the sender domain is not one of the verified domains.

        No-op while no verified domains are configured.
        """
        if not self.verified_domains:
            return

        domain = extract_email_domain(sender or "")
        if not domain:
            raise UnverifiedSenderDomainError(
                f"Invalid sender address '{sender}': cannot determine its domain"
            )
        if domain not in self.verified_domains:
            raise UnverifiedSenderDomainError(
                f"Sender domain '{domain}' is not verified in Scaleway TEM. "
                f"Verify '{domain}' in the Scaleway console (SPF, DKIM and MX records) "
                f"or send from one of the verified domains: {', '.join(self.verified_domains)}"
            )

    def send_email(self, message: EmailMessage):
        self.ensure_initialized()
        try:
            self.check_sender_domain(message.from_address)
        except UnverifiedSenderDomainError as e:
            logger.error(f"❌ Scaleway TEM send rejected locally: {e}")
            return self.failure(str(e))
        return super().send_email(message)

    def _send(self, message: EmailMessage, recipients: list[str]) -> Optional[str]:
        payload: dict[str, Any] = {
            "from": {"email": message.from_address, "name": message.from_name or ""},
            "to": [{"email": email} for email in recipients],
            "subject": message.subject,
            "text": message.text_content or "",
            "html": message.html_content or "",
            "project_id": self.project_id,
        }
        if message.cc:
            payload["cc"] = [{"email": email} for email in message.cc]
        if message.bcc:
            payload["bcc"] = [{"email": email} for email in message.bcc]
        if message.custom_headers:
            payload["additional_headers"] = [
                {"key": key, "value": value} for key, value in message.custom_headers.items()
            ]

        with httpx.Client(timeout=30.0) as http_client:
            response = http_client.post(
                f"{self.api_url}/regions/{self.region}/emails",
                json=payload,
                headers=self._headers,
            )

        if response.status_code not in (200, 201):
            raise RuntimeError(f"Scaleway TEM API error {response.status_code}: {response.text}")

        emails = response.json().get("emails", [])
        if not emails:
            return None
        return emails[0].get("message_id") or emails[0].get("id")

    def test_connection(self) -> ProviderConnectionStatus:
        try:
            with httpx.Client(timeout=30.0) as http_client:
                response = http_client.get(
                    f"{self.api_url}/regions/{self.region}/domains",
                    params={"project_id": self.project_id},
                    headers=self._headers,
                )

            if response.status_code != 200:
                return self.connection_failure(
                    f"Scaleway TEM API error {response.status_code}: {response.text}"
                )

            domains = response.json().get("domains", [])
            verified = [d.get("name") for d in domains if d.get("status") == "checked"]
            return ProviderConnectionStatus(
                provider=self.provider_name,
                is_connected=True,
                details={
                    "verified_domains": verified,
                    "domain_count": len(domains),
                    "quotas": {"max24h": PLAN_DAILY_QUOTAS.get(self.plan, PLAN_DAILY_QUOTAS["essential"])},
                },
            )
        except Exception as e:
            logger.error(f"❌ Scaleway TEM connection test failed: {e}")
            return self.connection_failure(str(e))
