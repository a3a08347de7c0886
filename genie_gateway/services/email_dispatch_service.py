"""
Email Dispatch Service
Reads the tenant's credential for one provider, refreshes OAuth tokens when
needed, and hands the message to the provider adapter.

Sends are never deduplicated: the same payload submitted twice is sent twice.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx

from genie_gateway.core.errors import (
    CredentialsNotConfiguredError,
    ProviderAuthError,
    ValidationFailedError,
)
from genie_gateway.core.logging_config import short_id
from genie_gateway.domain.models.email import (
    MISSING_SEND_FIELDS_MESSAGE,
    Contact,
    OutboundEmail,
    SendEmailRequest,
    SendResult,
)
from genie_gateway.infrastructure.providers import EmailProvider, ProviderCapability, ProviderFactory
from genie_gateway.infrastructure.storage.credential_store import CredentialStore
from genie_gateway.services.token_refresh_service import TokenRefresher

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EmailDispatchService:
    """
    One send = one credential read, at most one token refresh, and one
    provider call (two for an OAuth provider whose token was rejected).
    """

    def __init__(
        self,
        store: CredentialStore,
        refresher: Optional[TokenRefresher] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.store = store
        self.refresher = refresher or TokenRefresher(store)
        self._transport = transport

    def _create_provider(
        self,
        provider: str,
        credentials: dict,
        capability: ProviderCapability = ProviderCapability.SEND_EMAIL
    ) -> EmailProvider:
        if not ProviderFactory.is_registered(provider):
            raise ValidationFailedError(f"Unknown email provider: {provider}")
        adapter = ProviderFactory.create(provider, credentials=credentials, transport=self._transport)
        if not adapter.has_capability(capability):
            raise ValidationFailedError(f"{provider} cannot {capability.value.replace('_', ' ')}")
        return adapter

    async def _with_adapter(
        self,
        tenant_id: str,
        provider: str,
        capability: ProviderCapability,
        operation: Callable[[EmailProvider], Awaitable[T]]
    ) -> T:
        """
        Build the tenant's adapter and run `operation` on it, refreshing an
        OAuth token first when due and once more if the provider rejects it.

        Raises:
            ValidationFailedError: unknown provider, or it lacks the capability
            CredentialsNotConfiguredError: nothing stored (no network call is made)
            ReconnectRequiredError: OAuth token expired and refresh failed
            ProviderError: upstream rejected the call
        """
        # Credential-less instance: validates the provider and supplies its "not configured" message
        unconfigured = self._create_provider(provider, {}, capability)

        lookup = await self.store.get_credentials(tenant_id, provider)
        if not lookup.success:
            logger.info(f"{capability.value} refused: {provider} not configured for tenant {short_id(tenant_id)}")
            raise CredentialsNotConfiguredError(
                getattr(unconfigured, "NOT_CONFIGURED_MESSAGE", None) or f"{provider} credentials not configured",
                provider=provider,
            )

        credential = lookup.credential
        refreshed = False
        if unconfigured.requires_oauth:
            result = await self.refresher.ensure_fresh(credential)
            credential, refreshed = result.credential, result.refreshed

        adapter = self._create_provider(provider, credential.data, capability)
        try:
            return await operation(adapter)
        except ProviderAuthError:
            if not unconfigured.requires_oauth or refreshed:
                raise
            logger.info(f"{provider} rejected token for tenant {short_id(tenant_id)}, refreshing once")
            result = await self.refresher.ensure_fresh(credential, force=True)
            adapter = self._create_provider(provider, result.credential.data, capability)
            return await operation(adapter)

    async def send_request(self, provider: str, request: SendEmailRequest) -> SendResult:
        """Validate a gateway request body, then send it."""
        if request.missing_fields():
            raise ValidationFailedError(MISSING_SEND_FIELDS_MESSAGE)
        return await self.send(request.tenant_id, provider, OutboundEmail.from_request(request))

    async def send(self, tenant_id: str, provider: str, message: OutboundEmail) -> SendResult:
        send_result = await self._with_adapter(
            tenant_id, provider, ProviderCapability.SEND_EMAIL,
            lambda adapter: adapter.send_email(message),
        )
        logger.info(
            f"Email sent via {provider} for tenant {short_id(tenant_id)} "
            f"(message {send_result.message_id})"
        )
        return send_result

    async def add_contact(
        self,
        tenant_id: str,
        provider: str,
        contact: Contact,
        list_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Subscribe a contact to one of the tenant's lists at `provider`."""
        result = await self._with_adapter(
            tenant_id, provider, ProviderCapability.ADD_CONTACT,
            lambda adapter: adapter.add_contact(list_id, contact),
        )
        logger.info(f"Contact added via {provider} for tenant {short_id(tenant_id)}")
        return result
