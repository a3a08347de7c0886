"""
SMTP Provider
Sends with the tenant's own mailbox credentials (Zoho Mail by default).

Credential document (zoho_mail_smtp):
    smtpHost: SMTP server hostname (default smtp.zoho.com)
    smtpPort: 587 for STARTTLS, 465 for implicit TLS (default 587)
    smtpEmail: Login and sender address
    smtpPassword: Mailbox or app password
    smtpFromName: Sender display name (optional)

smtplib is blocking, so delivery runs in a worker thread.
"""
import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Optional

from genie_gateway.core.config import get_config_manager
from genie_gateway.core.errors import (
    CredentialsNotConfiguredError,
    ProviderError,
    SMTPAuthError,
    SMTPQuotaError,
)
from genie_gateway.domain.models.email import OutboundEmail, SendResult
from genie_gateway.domain.models.lead import ConnectionTestResult
from genie_gateway.infrastructure.providers.base import ProviderFactory
from genie_gateway.infrastructure.providers.email.base import EmailProvider

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465
QUOTA_CODE = 550


@dataclass
class SMTPSettings:
    host: str
    port: int
    user: str
    password: str
    from_email: str
    from_name: str

    @property
    def sender(self) -> str:
        return formataddr((self.from_name, self.from_email))


def _smtp_code(error: Exception) -> Optional[int]:
    """SMTP reply code carried by an smtplib exception, if any."""
    code = getattr(error, "smtp_code", None)
    if code is not None:
        return code
    if isinstance(error, smtplib.SMTPRecipientsRefused):
        for refused_code, _ in error.recipients.values():
            return refused_code
    return None


class SMTPProvider(EmailProvider):
    """
    SMTP email provider for tenant-configured mailboxes.

    Unlike the API providers there is no HTTP transport; tests patch smtplib.
    """

    NOT_CONFIGURED_MESSAGE = "SMTP credentials not configured. Please configure email settings in integrations."
    INCOMPLETE_MESSAGE = "Incomplete SMTP configuration. Please check email settings."
    AUTH_FAILED_MESSAGE = "SMTP authentication failed. Please check your email password."
    QUOTA_MESSAGE = "SMTP server refused the message (sending limit reached or mailbox unavailable)."

    DEFAULT_HOST = "smtp.zoho.com"
    DEFAULT_PORT = 587

    @property
    def provider_name(self) -> str:
        return "zoho_mail_smtp"

    def _settings(self) -> SMTPSettings:
        """Resolve the credential document into connection settings."""
        if not self.credentials:
            raise CredentialsNotConfiguredError(self.NOT_CONFIGURED_MESSAGE, provider=self.provider_name)

        email = self.credentials.get("smtpEmail")
        password = self.credentials.get("smtpPassword")
        if not email or not password:
            raise CredentialsNotConfiguredError(self.INCOMPLETE_MESSAGE, provider=self.provider_name)

        try:
            port = int(self.credentials.get("smtpPort") or self.config_value("port", self.DEFAULT_PORT))
        except (TypeError, ValueError):
            port = self.DEFAULT_PORT

        return SMTPSettings(
            host=self.credentials.get("smtpHost") or self.config_value("host", self.DEFAULT_HOST),
            port=port,
            user=email,
            password=password,
            from_email=email,
            from_name=self.credentials.get("smtpFromName")
            or get_config_manager().get("email.default_from_name", "Marketing Campaign"),
        )

    def _build_message(self, settings: SMTPSettings, message: OutboundEmail) -> MIMEMultipart:
        mime = MIMEMultipart("alternative")
        mime.attach(MIMEText(message.plain_text, "plain", "utf-8"))
        mime.attach(MIMEText(message.html, "html", "utf-8"))

        from_name = message.from_name or settings.from_name
        mime["Subject"] = message.subject
        mime["From"] = formataddr((from_name, settings.from_email))
        mime["To"] = message.to
        mime["Message-ID"] = make_msgid(domain=settings.from_email.split("@")[-1])
        return mime

    @staticmethod
    def _open(settings: SMTPSettings) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if settings.port == IMPLICIT_TLS_PORT:
            return smtplib.SMTP_SSL(settings.host, settings.port, context=context, timeout=30)

        server = smtplib.SMTP(settings.host, settings.port, timeout=30)
        try:
            server.ehlo()
            server.starttls(context=context)
            server.ehlo()
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server

    def _deliver(self, settings: SMTPSettings, mime: MIMEMultipart, recipient: str) -> None:
        with self._open(settings) as server:
            server.login(settings.user, settings.password)
            server.sendmail(settings.from_email, [recipient], mime.as_string())

    def _classify(self, error: Exception) -> ProviderError:
        """Map smtplib failures onto gateway errors."""
        if isinstance(error, smtplib.SMTPAuthenticationError):
            return SMTPAuthError(self.AUTH_FAILED_MESSAGE, provider=self.provider_name)

        if _smtp_code(error) == QUOTA_CODE:
            return SMTPQuotaError(self.QUOTA_MESSAGE, provider=self.provider_name)

        return ProviderError(f"Failed to send email: {error}", provider=self.provider_name)

    async def send_email(self, message: OutboundEmail) -> SendResult:
        settings = self._settings()
        mime = self._build_message(settings, message)

        try:
            await asyncio.to_thread(self._deliver, settings, mime, message.to)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"{self.provider_name} send via {settings.host}:{settings.port} failed: {e}")
            raise self._classify(e)

        logger.info(f"Email sent via {self.provider_name} ({settings.host})")

        return SendResult(
            message_id=mime["Message-ID"],
            provider=self.provider_name,
            to=message.to,
            subject=message.subject,
            from_address=mime["From"],
            sent_at=datetime.now(timezone.utc),
        )

    def _check_login(self, settings: SMTPSettings) -> None:
        with self._open(settings) as server:
            server.login(settings.user, settings.password)

    async def test_connection(self) -> ConnectionTestResult:
        try:
            settings = self._settings()
            await asyncio.to_thread(self._check_login, settings)
        except CredentialsNotConfiguredError as e:
            return ConnectionTestResult(success=False, error=e.message)
        except (smtplib.SMTPException, OSError) as e:
            return ConnectionTestResult(success=False, error=self._classify(e).message)

        return ConnectionTestResult(
            success=True,
            message=f"Connected to {settings.host}",
            details={"email": settings.from_email, "host": settings.host},
        )


ProviderFactory.register("zoho_mail_smtp", SMTPProvider)
