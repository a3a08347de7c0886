"""
OAuth Token Refresh Service

State machine per stored credential:

    valid --(expiresAt passed)--> refreshing --+--> valid   (new token persisted)
                                               +--> failed  (ReconnectRequiredError)

Refreshes for the same (tenant, provider) are serialized in-process by an
asyncio.Lock; across processes the version-conditional write in
CredentialStore.update_tokens decides the winner and the loser adopts the
stored token.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import httpx

from genie_gateway.core.errors import ReconnectRequiredError
from genie_gateway.core.logging_config import short_id
from genie_gateway.domain.models.credential import CredentialStatus, IntegrationCredential
from genie_gateway.infrastructure.oauth.zoho import ZohoOAuthClient, ZohoOAuthError
from genie_gateway.infrastructure.storage.credential_store import CredentialStore

logger = logging.getLogger(__name__)

RECONNECT_MESSAGE = (
    "Your Zoho access has expired and could not be refreshed. "
    "Please reconnect your Zoho account in Settings > Integrations."
)

_refresh_locks: Dict[Tuple[str, str], asyncio.Lock] = {}


def _lock_for(tenant_id: str, provider: str) -> asyncio.Lock:
    key = (tenant_id, provider)
    lock = _refresh_locks.get(key)
    if lock is None:
        lock = _refresh_locks[key] = asyncio.Lock()
    return lock


def default_oauth_client(credential: IntegrationCredential) -> ZohoOAuthClient:
    return ZohoOAuthClient(
        client_id=credential.data.get("clientId"),
        client_secret=credential.data.get("clientSecret"),
        domain=credential.data.get("domain") or "com",
    )


@dataclass
class TokenRefreshResult:
    credential: IntegrationCredential
    refreshed: bool = False  # a new access token was obtained during this call


class TokenRefresher:

    def __init__(
        self,
        store: CredentialStore,
        oauth_client_factory: Optional[Callable[[IntegrationCredential], ZohoOAuthClient]] = None
    ):
        self.store = store
        self.oauth_client_factory = oauth_client_factory or default_oauth_client

    async def ensure_fresh(
        self,
        credential: IntegrationCredential,
        force: bool = False
    ) -> TokenRefreshResult:
        """
        Return a credential whose access token is usable.

        While the token is valid (and force is False) the credential is
        returned untouched. Otherwise exactly one refresh is attempted and
        its result persisted before returning.

        Raises:
            ReconnectRequiredError: no refresh token, or the refresh failed
        """
        if not force and not credential.is_expired():
            return TokenRefreshResult(credential=credential)

        async with _lock_for(credential.tenant_id, credential.provider):
            current = await self._reread(credential)

            # Another request refreshed while we waited for the lock
            if current.access_token != credential.access_token and not current.is_expired():
                logger.info(f"Adopting token refreshed concurrently for tenant {short_id(credential.tenant_id)}")
                return TokenRefreshResult(credential=current, refreshed=True)

            return TokenRefreshResult(credential=await self._refresh(current), refreshed=True)

    async def _reread(self, credential: IntegrationCredential) -> IntegrationCredential:
        lookup = await self.store.get_credentials(credential.tenant_id, credential.provider)
        if not lookup.success:
            raise ReconnectRequiredError(RECONNECT_MESSAGE, provider=credential.provider)
        return lookup.credential

    async def _refresh(self, credential: IntegrationCredential) -> IntegrationCredential:
        tenant = short_id(credential.tenant_id)

        if not credential.refresh_token:
            logger.warning(f"No refresh token for {credential.provider}, tenant {tenant}")
            await self.store.mark_status(credential.tenant_id, credential.provider, CredentialStatus.EXPIRED.value)
            raise ReconnectRequiredError(RECONNECT_MESSAGE, provider=credential.provider)

        logger.info(f"Refreshing {credential.provider} token for tenant {tenant}")
        try:
            client = self.oauth_client_factory(credential)
            tokens = await client.refresh_tokens(credential.refresh_token)
        except (ValueError, ZohoOAuthError, httpx.HTTPError) as e:
            logger.error(f"{credential.provider} token refresh failed for tenant {tenant}: {e}")
            await self.store.mark_status(credential.tenant_id, credential.provider, CredentialStatus.EXPIRED.value)
            raise ReconnectRequiredError(RECONNECT_MESSAGE, provider=credential.provider)

        updated = await self.store.update_tokens(
            credential,
            access_token=tokens.access_token,
            expires_at=tokens.expires_at,
            refresh_token=tokens.refresh_token,
        )
        if updated is not None:
            return updated

        # Another process wrote first; its token is as good as ours
        return await self._reread(credential)
