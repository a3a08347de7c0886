"""
Resend Provider
Sends through the official `resend` SDK.

The SDK is synchronous and reads its API key from a module global, so every
call runs in a worker thread under one lock that sets the key for that call.

Credential document (resend):
    apiKey: re_... key
    fromEmail: verified sender address
    fromName: optional display name
"""
import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import resend
from resend.exceptions import ResendError

from genie_gateway.core.errors import CredentialsNotConfiguredError, ProviderError
from genie_gateway.domain.models.email import OutboundEmail, SendResult
from genie_gateway.domain.models.lead import ConnectionTestResult
from genie_gateway.infrastructure.providers.base import ProviderFactory
from genie_gateway.infrastructure.providers.email.base import EmailProvider

logger = logging.getLogger(__name__)

_sdk_lock = threading.Lock()


def _upstream_status(error: ResendError) -> Optional[int]:
    code = str(getattr(error, "code", "") or "")
    return int(code) if code.isdigit() else None


class ResendProvider(EmailProvider):

    NOT_CONFIGURED_MESSAGE = "Resend API key not configured. Please connect Resend in Settings > Integrations."
    NO_SENDER_MESSAGE = "Resend sender address not configured. Set fromEmail to an address on a verified domain."

    @property
    def provider_name(self) -> str:
        return "resend"

    def _api_key(self) -> str:
        api_key = self.credentials.get("apiKey")
        if not api_key:
            raise CredentialsNotConfiguredError(self.NOT_CONFIGURED_MESSAGE, provider=self.provider_name)
        return api_key

    def _sender(self, message: OutboundEmail) -> str:
        from_email = message.from_email or self.credentials.get("fromEmail")
        if not from_email:
            raise CredentialsNotConfiguredError(self.NO_SENDER_MESSAGE, provider=self.provider_name)
        from_name = message.from_name or self.credentials.get("fromName")
        return f"{from_name} <{from_email}>" if from_name else from_email

    async def _call(self, api_key: str, operation: Callable[..., Any], *args: Any) -> Any:
        def run() -> Any:
            with _sdk_lock:
                resend.api_key = api_key
                return operation(*args)

        return await asyncio.to_thread(run)

    async def send_email(self, message: OutboundEmail) -> SendResult:
        api_key = self._api_key()
        sender = self._sender(message)

        params: resend.Emails.SendParams = {
            "from": sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.plain_text,
        }
        try:
            data = await self._call(api_key, resend.Emails.send, params)
        except ResendError as e:
            logger.warning(f"Resend send failed ({e.code}): {e.message}")
            raise ProviderError(
                e.message or f"Resend API error: {e.code}",
                provider=self.provider_name,
                upstream_status=_upstream_status(e),
            )

        data = dict(data or {})
        return SendResult(
            message_id=data.get("id"),
            provider=self.provider_name,
            to=message.to,
            subject=message.subject,
            from_address=sender,
            sent_at=datetime.now(timezone.utc),
            raw=data,
        )

    async def test_connection(self) -> ConnectionTestResult:
        try:
            data = await self._call(self._api_key(), resend.Domains.list)
        except CredentialsNotConfiguredError as e:
            return ConnectionTestResult(success=False, error=e.message)
        except ResendError as e:
            return ConnectionTestResult(success=False, error=e.message or "Invalid Resend API key")

        domains = [d.get("name") for d in (data or {}).get("data") or [] if isinstance(d, dict)]
        return ConnectionTestResult(
            success=True,
            message="Resend connection successful!",
            details={"domains": domains},
        )


ProviderFactory.register("resend", ResendProvider)
