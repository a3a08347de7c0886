"""
Gateway Errors
Typed exceptions that map onto the {success: false, error} response envelope.
"""
from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    code: Optional[str] = None

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        provider: Optional[str] = None
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.provider = provider
        super().__init__(self.message)

    def to_envelope(self) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {"success": False, "error": self.message}
        if self.code:
            envelope["code"] = self.code
        if self.provider:
            envelope["provider"] = self.provider
        return envelope


class ValidationFailedError(GatewayError):
    """Request is missing required fields or carries invalid values."""
    status_code = 400


class CredentialsNotConfiguredError(GatewayError):
    """Tenant has not connected the provider, or the stored credential is incomplete."""
    status_code = 400


class ReconnectRequiredError(GatewayError):
    """OAuth token could not be refreshed; the user must reconnect the account."""
    status_code = 400


class TenantAccessError(GatewayError):
    """Authenticated tenant does not match the tenant named in the request."""
    status_code = 403


class NotFoundError(GatewayError):
    status_code = 404


class ConflictError(GatewayError):
    """Request conflicts with current state (e.g. a send job is already active)."""
    status_code = 409


class ProviderError(GatewayError):
    """Upstream provider returned an error or an unusable response."""
    status_code = 500

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        upstream_status: Optional[int] = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None
    ):
        super().__init__(message, status_code=status_code, code=code, provider=provider)
        self.upstream_status = upstream_status


class ProviderAuthError(ProviderError):
    """Upstream rejected the access token."""


class SMTPAuthError(ProviderError):
    status_code = 401
    code = "SMTP_AUTH"


class SMTPQuotaError(ProviderError):
    status_code = 429
    code = "SMTP_QUOTA"
