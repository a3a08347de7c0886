"""
Tests for the Zoho OAuth client and OAuth state manager
"""
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from genie_gateway.infrastructure.oauth.state import OAuthStateError, OAuthStateManager
from genie_gateway.infrastructure.oauth.zoho import ZohoOAuthClient, ZohoOAuthError


class TestZohoOAuthClient:

    def test_requires_client_credentials(self):
        with pytest.raises(ValueError):
            ZohoOAuthClient(client_id="", client_secret="s")

    def test_authorize_url_uses_data_centre(self):
        """EU tenants authorize against accounts.zoho.eu with offline access"""
        client = ZohoOAuthClient("cid", "secret", domain="eu")

        url = urlparse(client.get_authorize_url("https://gw/cb", "state-1"))
        params = parse_qs(url.query)

        assert url.netloc == "accounts.zoho.eu"
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert params["state"] == ["state-1"]
        assert params["client_id"] == ["cid"]

    @pytest.mark.asyncio
    async def test_refresh_posts_refresh_grant(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"access_token": "new-token", "expires_in": 3600})

        client = ZohoOAuthClient("cid", "secret", transport=httpx.MockTransport(handler))
        tokens = await client.refresh_tokens("refresh-1")

        assert tokens.access_token == "new-token"
        assert seen["url"] == "https://accounts.zoho.com/oauth/v2/token"
        assert seen["body"]["grant_type"] == ["refresh_token"]
        assert seen["body"]["refresh_token"] == ["refresh-1"]

    @pytest.mark.asyncio
    async def test_error_payload_raises(self):
        """Zoho reports bad grants as 200 with an error field"""
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"error": "invalid_code"}))
        client = ZohoOAuthClient("cid", "secret", transport=transport)

        with pytest.raises(ZohoOAuthError):
            await client.refresh_tokens("refresh-1")

    @pytest.mark.asyncio
    async def test_exchange_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = parse_qs(request.content.decode())
            assert body["grant_type"] == ["authorization_code"]
            assert body["code"] == ["auth-code"]
            return httpx.Response(200, json={
                "access_token": "a", "refresh_token": "r", "expires_in": 3600,
            })

        client = ZohoOAuthClient("cid", "secret", transport=httpx.MockTransport(handler))
        tokens = await client.exchange_code("auth-code", "https://gw/cb")

        assert tokens.refresh_token == "r"


class TestOAuthStateManager:

    @pytest.mark.asyncio
    async def test_state_is_single_use(self):
        manager = OAuthStateManager(use_memory=True)
        state = await manager.create_state("T1", "u1", "zoho_campaigns", "https://gw/cb")

        data = await manager.validate_state(state)
        assert data["tenant_id"] == "T1"
        assert data["redirect_uri"] == "https://gw/cb"

        with pytest.raises(OAuthStateError):
            await manager.validate_state(state)

    @pytest.mark.asyncio
    async def test_tenant_mismatch_rejected(self):
        manager = OAuthStateManager(use_memory=True)
        state = await manager.create_state("T1", "u1", "zoho_campaigns", "https://gw/cb")

        with pytest.raises(OAuthStateError):
            await manager.validate_state(state, expected_tenant_id="T2")

    @pytest.mark.asyncio
    async def test_unknown_state_rejected(self):
        manager = OAuthStateManager(use_memory=True)

        with pytest.raises(OAuthStateError):
            await manager.validate_state("does-not-exist")
