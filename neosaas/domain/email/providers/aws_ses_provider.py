"""
AWS SES provider
Documentation: https://docs.aws.amazon.com/ses/
"""

import logging
from typing import Any, Optional

import boto3

from ..schemas import EmailMessage, EmailProvider, ProviderConnectionStatus
from .base import BaseEmailProvider

logger = logging.getLogger(__name__)


class AwsSesProvider(BaseEmailProvider):
    provider_name = EmailProvider.AWS_SES
    required_fields = ("access_key_id", "secret_access_key", "region")

    def _configure(self, config: dict[str, Any]) -> None:
        self.region = config["region"]
        self.configuration_set = config.get("configuration_set")
        self.client = boto3.client(
            "ses",
            region_name=self.region,
            aws_access_key_id=config["access_key_id"],
            aws_secret_access_key=config["secret_access_key"],
        )

    def _send(self, message: EmailMessage, recipients: list[str]) -> Optional[str]:
        destination: dict[str, list[str]] = {"ToAddresses": recipients}
        if message.cc:
            destination["CcAddresses"] = message.cc
        if message.bcc:
            destination["BccAddresses"] = message.bcc

        body: dict[str, Any] = {}
        if message.html_content:
            body["Html"] = {"Data": message.html_content, "Charset": "UTF-8"}
        if message.text_content:
            body["Text"] = {"Data": message.text_content, "Charset": "UTF-8"}

        params: dict[str, Any] = {
            "Source": message.sender(),
            "Destination": destination,
            "Message": {
                "Subject": {"Data": message.subject, "Charset": "UTF-8"},
                "Body": body,
            },
        }
        if message.reply_to:
            params["ReplyToAddresses"] = [message.reply_to]
        if self.configuration_set:
            params["ConfigurationSetName"] = self.configuration_set

        response = self.client.send_email(**params)
        return response.get("MessageId")

    def test_connection(self) -> ProviderConnectionStatus:
        try:
            quota = self.client.get_send_quota()
            return ProviderConnectionStatus(
                provider=self.provider_name,
                is_connected=True,
                details={
                    "quotas": {
                        "sent24h": quota.get("SentLast24Hours"),
                        "max24h": quota.get("Max24HourSend"),
                        "max_per_second": quota.get("MaxSendRate"),
                    },
                    "region": self.region,
                },
            )
        except Exception as e:
            logger.error(f"❌ AWS SES connection test failed: {e}")
            return self.connection_failure(str(e))
