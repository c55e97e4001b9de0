"""Email domain schemas - Pydantic models for messages, results and provider configs"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EmailProvider(str, Enum):
    AWS_SES = "aws-ses"
    RESEND = "resend"
    SCALEWAY_TEM = "scaleway-tem"


class EmailAttachment(BaseModel):
    filename: str
    content: Union[str, bytes]
    content_type: Optional[str] = None


class EmailMessage(BaseModel):
    to: Union[str, list[str]]
    cc: Optional[list[str]] = None
    bcc: Optional[list[str]] = None
    from_address: Optional[str] = None
    from_name: Optional[str] = None
    reply_to: Optional[str] = None
    subject: str
    html_content: Optional[str] = None
    text_content: Optional[str] = None
    attachments: Optional[list[EmailAttachment]] = None
    tags: Optional[list[str]] = None
    custom_headers: Optional[dict[str, str]] = None

    def recipients(self) -> list[str]:
        """Recipients normalized to a list"""
        return [self.to] if isinstance(self.to, str) else list(self.to)

    def sender(self) -> str:
        """RFC 5322 style sender ("Name <addr>") when a display name is set"""
        if self.from_name and self.from_address:
            return f"{self.from_name} <{self.from_address}>"
        return self.from_address or ""


class EmailSendResult(BaseModel):
    success: bool
    provider: Optional[EmailProvider] = None  # None only when no provider is configured
    message_id: Optional[str] = None
    error: Optional[str] = None
    sent_at: Optional[datetime] = None


class ProviderConnectionStatus(BaseModel):
    provider: EmailProvider
    is_connected: bool
    last_checked: datetime = Field(default_factory=datetime.utcnow)
    error: Optional[str] = None
    details: Optional[dict[str, Any]] = None


# ============================================================================
# PROVIDER CREDENTIALS
# ============================================================================


class ResendConfig(BaseModel):
    api_key: str


class ScalewayTemConfig(BaseModel):
    project_id: str
    secret_key: str
    region: str = "fr-par"  # fr-par, nl-ams, pl-waw
    api_url: Optional[str] = None
    plan: str = "essential"  # essential, scale
    verified_domains: list[str] = Field(default_factory=list)

    @field_validator("verified_domains")
    @classmethod
    def normalize_domains(cls, v: list[str]) -> list[str]:
        return [d.strip().lower() for d in v if d and d.strip()]


class AwsSesConfig(BaseModel):
    access_key_id: str
    secret_access_key: str
    region: str
    configuration_set: Optional[str] = None


CREDENTIAL_MODELS = {
    EmailProvider.RESEND: ResendConfig,
    EmailProvider.SCALEWAY_TEM: ScalewayTemConfig,
    EmailProvider.AWS_SES: AwsSesConfig,
}


class EmailProviderSettings(BaseModel):
    """A provider row with its decrypted, typed credentials"""

    provider: EmailProvider
    is_active: bool = True
    is_default: bool = False
    credentials: Optional[Union[ResendConfig, ScalewayTemConfig, AwsSesConfig]] = None


class SaveProviderRequest(BaseModel):
    """Admin request to create or replace a provider configuration"""

    is_active: bool = True
    is_default: bool = False
    credentials: dict[str, Any]


class ProviderSummary(BaseModel):
    """Provider row as shown to admins (secrets masked)"""

    provider: EmailProvider
    is_active: bool
    is_default: bool
    credentials: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# SEND HISTORY
# ============================================================================


class EmailLogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider: str
    recipients: list[str]
    subject: str
    status: str
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    tags: Optional[list[str]] = None
    created_at: datetime


class EmailHistoryPage(BaseModel):
    total: int
    items: list[EmailLogEntry]
    limit: int
    offset: int


class ProviderSendCounts(BaseModel):
    sent: int = 0
    failed: int = 0


class EmailStats(BaseModel):
    total: int
    sent: int
    failed: int
    success_rate: float  # percent of sent over total, 0 when nothing was sent
    by_provider: dict[str, ProviderSendCounts] = Field(default_factory=dict)
