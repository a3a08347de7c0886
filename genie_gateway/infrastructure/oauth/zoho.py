"""
Zoho OAuth Client
Authorization-code and refresh-token grants against accounts.zoho.{domain}.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ZOHO_CAMPAIGNS_SCOPES = [
    "ZohoCampaigns.campaign.ALL",
    "ZohoCampaigns.contact.ALL",
]

DEFAULT_EXPIRES_IN = 3600


class ZohoOAuthError(Exception):
    """Token endpoint rejected the grant or returned no access token."""
    pass


class OAuthTokens(BaseModel):
    """OAuth token response from Zoho"""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: int = DEFAULT_EXPIRES_IN
    expires_at: datetime
    scope: Optional[str] = None

    class Config:
        extra = "allow"


class ZohoOAuthClient:
    """
    One client per tenant credential: client id/secret and the data-centre
    domain (com, eu, in, com.au, ...) come from the stored document.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        domain: str = "com",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0
    ):
        if not client_id or not client_secret:
            raise ValueError("Zoho client_id and client_secret are required")
        self.client_id = client_id
        self.client_secret = client_secret
        self.domain = domain or "com"
        self._transport = transport
        self._timeout = timeout

    @property
    def accounts_url(self) -> str:
        return f"https://accounts.zoho.{self.domain}/oauth/v2"

    @property
    def token_url(self) -> str:
        return f"{self.accounts_url}/token"

    def get_authorize_url(
        self,
        redirect_uri: str,
        state: str,
        scopes: Optional[List[str]] = None
    ) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": ",".join(scopes or ZOHO_CAMPAIGNS_SCOPES),
            "redirect_uri": redirect_uri,
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self.accounts_url}/auth?{urlencode(params)}"

    async def _token_request(self, data: dict) -> OAuthTokens:
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            response = await client.post(self.token_url, data=data)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        # Zoho answers some failures with 200 and an "error" field
        if response.status_code != 200 or payload.get("error"):
            message = payload.get("error_description") or payload.get("error") or response.text
            logger.error(f"Zoho token request failed ({response.status_code}): {message}")
            raise ZohoOAuthError(f"Zoho token request failed: {message}")

        if not payload.get("access_token"):
            raise ZohoOAuthError("No access token received from Zoho")

        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN

        return OAuthTokens(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            token_type=payload.get("token_type") or "Bearer",
            expires_in=expires_in,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            scope=payload.get("scope"),
        )

    async def exchange_code(self, code: str, redirect_uri: str) -> OAuthTokens:
        """Exchange an authorization code for access + refresh tokens."""
        tokens = await self._token_request({
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": redirect_uri,
            "code": code,
        })
        logger.info(f"Zoho code exchange succeeded (refresh token: {bool(tokens.refresh_token)})")
        return tokens

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokens:
        """Refresh the access token. Zoho normally keeps the refresh token."""
        return await self._token_request({
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
        })
