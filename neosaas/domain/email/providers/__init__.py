"""Email providers behind one capability interface"""

from ..schemas import EmailProvider
from .aws_ses_provider import AwsSesProvider
from .base import BaseEmailProvider, ProviderConfigError, ProviderNotInitializedError
from .resend_provider import ResendProvider
from .scaleway_provider import ScalewayTemProvider, UnverifiedSenderDomainError

PROVIDER_CLASSES: dict[EmailProvider, type[BaseEmailProvider]] = {
    EmailProvider.RESEND: ResendProvider,
    EmailProvider.SCALEWAY_TEM: ScalewayTemProvider,
    EmailProvider.AWS_SES: AwsSesProvider,
}

__all__ = [
    "PROVIDER_CLASSES",
    "AwsSesProvider",
    "BaseEmailProvider",
    "ProviderConfigError",
    "ProviderNotInitializedError",
    "ResendProvider",
    "ScalewayTemProvider",
    "UnverifiedSenderDomainError",
]
