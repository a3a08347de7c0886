"""
Kit Provider (formerly ConvertKit), v4 API.

Kit has no single-recipient transactional send. A message is delivered by
upserting the recipient as a subscriber, creating a tag for this one message,
tagging the recipient with it and creating a broadcast filtered to that tag.
The per-message tag is what keeps one recipient's mail away from everyone
mailed before.

Credential document (kit):
    apiKey: v4 API key (X-Kit-Api-Key header)
    tagId: optional tenant tag also applied to every recipient, for segmenting in Kit
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from genie_gateway.core.errors import CredentialsNotConfiguredError, ProviderError
from genie_gateway.domain.models.email import Contact, OutboundEmail, SendResult
from genie_gateway.domain.models.lead import ConnectionTestResult
from genie_gateway.infrastructure.providers.base import ProviderCapability, ProviderFactory
from genie_gateway.infrastructure.providers.email.base import EmailProvider

logger = logging.getLogger(__name__)

SEND_TAG_PREFIX = "genie-send-"


def _error_message(data: Dict[str, Any], fallback: str) -> str:
    errors = data.get("errors")
    if isinstance(errors, list) and errors:
        return "; ".join(str(e) for e in errors)
    return data.get("error") or data.get("message") or fallback


class KitProvider(EmailProvider):

    DEFAULT_BASE_URL = "https://api.kit.com/v4"

    NOT_CONFIGURED_MESSAGE = "Kit API key not configured. Please connect Kit in Settings > Integrations."

    @property
    def provider_name(self) -> str:
        return "kit"

    @property
    def capabilities(self) -> List[ProviderCapability]:
        return [ProviderCapability.SEND_EMAIL, ProviderCapability.ADD_CONTACT]

    @property
    def base_url(self) -> str:
        return self.config_value("base_url", self.DEFAULT_BASE_URL).rstrip("/")

    def _headers(self) -> Dict[str, str]:
        api_key = self.credentials.get("apiKey")
        if not api_key:
            raise CredentialsNotConfiguredError(self.NOT_CONFIGURED_MESSAGE, provider=self.provider_name)
        return {"X-Kit-Api-Key": api_key, "Content-Type": "application/json"}

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        try:
            response = await client.request(method, f"{self.base_url}{path}", headers=self._headers(), json=body)
        except httpx.HTTPError as e:
            raise ProviderError(f"Kit request failed: {e}", provider=self.provider_name)

        data = self._json(response)
        if response.is_error:
            message = _error_message(data, f"Kit API error: {response.status_code}")
            logger.warning(f"Kit {method} {path} failed ({response.status_code}): {message}")
            raise ProviderError(message, provider=self.provider_name, upstream_status=response.status_code)
        return data

    async def upsert_subscriber(
        self,
        client: httpx.AsyncClient,
        email: str,
        first_name: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"email_address": email}
        if first_name:
            body["first_name"] = first_name
        data = await self._request(client, "POST", "/subscribers", body)
        return data.get("subscriber") or {}

    async def tag_subscriber(self, client: httpx.AsyncClient, tag_id: Any, email: str) -> None:
        await self._request(client, "POST", f"/tags/{tag_id}/subscribers", {"email_address": email})

    async def create_send_tag(self, client: httpx.AsyncClient) -> Any:
        """A fresh tag that only this message's recipient will ever carry."""
        data = await self._request(client, "POST", "/tags", {"name": f"{SEND_TAG_PREFIX}{uuid.uuid4().hex}"})
        tag_id = (data.get("tag") or {}).get("id")
        if tag_id is None:
            raise ProviderError("Kit did not return the created tag", provider=self.provider_name)
        return tag_id

    async def send_email(self, message: OutboundEmail) -> SendResult:
        self._headers()  # raises before any network call
        tenant_tag = self.credentials.get("tagId")

        async with self._client() as client:
            subscriber = await self.upsert_subscriber(client, message.to)
            send_tag = await self.create_send_tag(client)
            await self.tag_subscriber(client, send_tag, message.to)
            if tenant_tag:
                await self.tag_subscriber(client, tenant_tag, message.to)

            broadcast_body: Dict[str, Any] = {
                "subject": message.subject,
                "content": message.html,
                "public": False,
                "send_at": datetime.now(timezone.utc).isoformat(),
                "subscriber_filter": [{"all": [{"type": "tag", "ids": [send_tag]}]}],
            }
            if message.from_email:
                broadcast_body["email_address"] = message.from_email
            data = await self._request(client, "POST", "/broadcasts", broadcast_body)

        broadcast = data.get("broadcast") or {}
        logger.info(
            f"Kit broadcast {broadcast.get('id')} created for subscriber {subscriber.get('id')} (tag {send_tag})"
        )

        return SendResult(
            message_id=str(broadcast.get("id")) if broadcast.get("id") is not None else None,
            provider=self.provider_name,
            to=message.to,
            subject=message.subject,
            from_address=message.from_email,
            sent_at=datetime.now(timezone.utc),
            raw=data,
        )

    async def add_contact(self, list_id: Optional[str], contact: Contact) -> Dict[str, Any]:
        """Upsert a subscriber; Kit lists are tags, so `list_id` is a tag id."""
        self._headers()
        async with self._client() as client:
            subscriber = await self.upsert_subscriber(client, contact.email, contact.first_name or None)
            tag_id = list_id or self.credentials.get("tagId")
            if tag_id:
                await self.tag_subscriber(client, tag_id, contact.email)
        logger.info(f"Kit subscriber {subscriber.get('id')} saved (tag {tag_id or 'none'})")
        return {"subscriber": subscriber, "tagId": tag_id}

    async def test_connection(self) -> ConnectionTestResult:
        try:
            async with self._client() as client:
                data = await self._request(client, "GET", "/account")
        except (CredentialsNotConfiguredError, ProviderError) as e:
            return ConnectionTestResult(success=False, error=e.message or "Invalid Kit V4 API key")

        account = data.get("account") or {}
        user = data.get("user") or {}
        return ConnectionTestResult(
            success=True,
            message="Kit connection successful!",
            details={
                "name": account.get("name") or user.get("email") or "Kit Account",
                "email": user.get("email") or account.get("primary_email_address") or "Unknown",
            },
        )


ProviderFactory.register("kit", KitProvider)
