"""
Integration Credential Models
Per-tenant, per-provider credential documents (API keys, OAuth tokens, SMTP secrets).
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class IntegrationProvider(str, Enum):
    """Providers a tenant can connect"""
    # Lead enrichment
    PROSPEO = "prospeo"
    HUNTER = "hunter"
    VOILANORBERT = "voilanorbert"

    # Email sending
    GMAIL = "gmail"
    ZOHO_MAIL_SMTP = "zoho_mail_smtp"
    ZOHO_CAMPAIGNS = "zoho_campaigns"
    KIT = "kit"
    RESEND = "resend"


class CredentialStatus(str, Enum):
    CREDENTIALS_SAVED = "credentials_saved"  # OAuth flow not complete
    CONNECTED = "connected"
    EXPIRED = "expired"


# Fields encrypted at rest
SECRET_FIELDS = frozenset({
    "apiKey",
    "appPassword",
    "smtpPassword",
    "clientSecret",
    "accessToken",
    "refreshToken",
})


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (with or without Z) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class IntegrationCredential(BaseModel):
    """
    Decrypted credential document for exactly one (tenant, provider) pair.

    `data` keeps the provider's own field names (apiKey, accessToken,
    smtpEmail, ...) because each adapter reads a different shape.
    """
    tenant_id: str
    provider: str
    data: Dict[str, Any] = Field(default_factory=dict)
    status: str = CredentialStatus.CONNECTED.value
    version: int = 0
    connected_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def api_key(self) -> Optional[str]:
        return self.data.get("apiKey")

    @property
    def access_token(self) -> Optional[str]:
        return self.data.get("accessToken")

    @property
    def refresh_token(self) -> Optional[str]:
        return self.data.get("refreshToken")

    @property
    def expires_at(self) -> Optional[datetime]:
        return parse_timestamp(self.data.get("expiresAt"))

    def is_expired(self, now: Optional[datetime] = None, skew_seconds: int = 60) -> bool:
        """True once expiresAt has passed (minus a small clock skew allowance)."""
        expires_at = self.expires_at
        if expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= expires_at - timedelta(seconds=skew_seconds)

    def with_tokens(
        self,
        access_token: str,
        expires_at: datetime,
        refresh_token: Optional[str] = None,
        version: Optional[int] = None
    ) -> "IntegrationCredential":
        """Copy with refreshed token fields."""
        data = dict(self.data)
        data["accessToken"] = access_token
        data["expiresAt"] = expires_at.isoformat()
        if refresh_token:
            data["refreshToken"] = refresh_token
        return self.model_copy(update={
            "data": data,
            "status": CredentialStatus.CONNECTED.value,
            "version": self.version + 1 if version is None else version,
        })


@dataclass
class CredentialLookup:
    """Result of a credential read; success=False means "not found", never an exception."""
    success: bool
    credential: Optional[IntegrationCredential] = None
    error: Optional[str] = None
