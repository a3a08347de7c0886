"""
Email Provider Package
"""
from genie_gateway.infrastructure.providers.email.base import EmailProvider
from genie_gateway.infrastructure.providers.email.smtp import SMTPProvider
from genie_gateway.infrastructure.providers.email.gmail_smtp import GmailSMTPProvider
from genie_gateway.infrastructure.providers.email.zoho_campaigns import ZohoCampaignsProvider
from genie_gateway.infrastructure.providers.email.kit import KitProvider
from genie_gateway.infrastructure.providers.email.resend import ResendProvider

__all__ = [
    "EmailProvider",
    "SMTPProvider",
    "GmailSMTPProvider",
    "ZohoCampaignsProvider",
    "KitProvider",
    "ResendProvider",
]
