"""
Gmail SMTP Provider
Gmail with an app password over smtp.gmail.com:587 (STARTTLS).

Credential document (gmail):
    email: Gmail address
    appPassword: 16-character app password, stored without spaces
    host / port: optional overrides
"""
from genie_gateway.core.errors import CredentialsNotConfiguredError
from genie_gateway.infrastructure.providers.base import ProviderFactory
from genie_gateway.infrastructure.providers.email.smtp import SMTPProvider, SMTPSettings


class GmailSMTPProvider(SMTPProvider):

    NOT_CONFIGURED_MESSAGE = (
        "Gmail SMTP credentials not configured. "
        "Please connect Gmail in Settings > Integrations."
    )
    INCOMPLETE_MESSAGE = NOT_CONFIGURED_MESSAGE
    AUTH_FAILED_MESSAGE = (
        "Gmail authentication failed. Check that 2-Step Verification is enabled "
        "and the app password is correct."
    )
    QUOTA_MESSAGE = "Gmail daily sending limit reached. Try again later."

    DEFAULT_HOST = "smtp.gmail.com"
    DEFAULT_PORT = 587

    @property
    def provider_name(self) -> str:
        return "gmail"

    def _settings(self) -> SMTPSettings:
        email = self.credentials.get("email")
        password = self.credentials.get("appPassword")
        if not email or not password:
            raise CredentialsNotConfiguredError(self.NOT_CONFIGURED_MESSAGE, provider=self.provider_name)

        try:
            port = int(self.credentials.get("port") or self.config_value("port", self.DEFAULT_PORT))
        except (TypeError, ValueError):
            port = self.DEFAULT_PORT

        return SMTPSettings(
            host=self.credentials.get("host") or self.config_value("host", self.DEFAULT_HOST),
            port=port,
            user=email,
            password=password.replace(" ", ""),
            from_email=email,
            from_name=self.credentials.get("fromName") or email.split("@")[0],
        )


ProviderFactory.register("gmail", GmailSMTPProvider)
