"""
Zoho Campaigns Provider
Instant "quick campaign" sends and list subscriptions over the v1.1 JSON API.

Credential document (zoho_campaigns):
    clientId / clientSecret: OAuth client registered by the tenant
    domain: Zoho data centre (com, eu, in, com.au, ...)
    accessToken / refreshToken / expiresAt: written by the OAuth flow
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from genie_gateway.core.errors import (
    CredentialsNotConfiguredError,
    ProviderAuthError,
    ProviderError,
    ValidationFailedError,
)
from genie_gateway.domain.models.email import Contact, OutboundEmail, SendResult
from genie_gateway.domain.models.lead import ConnectionTestResult
from genie_gateway.infrastructure.providers.base import ProviderCapability, ProviderFactory
from genie_gateway.infrastructure.providers.email.base import EmailProvider

logger = logging.getLogger(__name__)

# Zoho reports a rejected token either as HTTP 401 or as one of these codes
INVALID_TOKEN_CODES = {"1007", "1030", "INVALID_OAUTHTOKEN", "INVALID_TOKEN"}


class ZohoCampaignsProvider(EmailProvider):

    requires_oauth = True

    NOT_CONFIGURED_MESSAGE = "No Zoho Campaigns credentials found. Please connect Zoho Campaigns in Settings > Integrations."

    @property
    def provider_name(self) -> str:
        return "zoho_campaigns"

    @property
    def capabilities(self) -> List[ProviderCapability]:
        return [ProviderCapability.SEND_EMAIL, ProviderCapability.ADD_CONTACT]

    @property
    def domain(self) -> str:
        return self.credentials.get("domain") or self.config_value("default_domain", "com")

    @property
    def api_url(self) -> str:
        return f"https://campaigns.zoho.{self.domain}/api/v1.1"

    def _headers(self) -> Dict[str, str]:
        access_token = self.credentials.get("accessToken")
        if not access_token:
            raise CredentialsNotConfiguredError(self.NOT_CONFIGURED_MESSAGE, provider=self.provider_name)
        return {
            "Authorization": f"Zoho-oauthtoken {access_token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _is_token_error(status_code: int, data: Dict[str, Any]) -> bool:
        if status_code == 401:
            return True
        code = str(data.get("code") or data.get("error_code") or "")
        return code in INVALID_TOKEN_CODES

    async def _call(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        failure_message: str = "Zoho Campaigns request failed"
    ) -> Dict[str, Any]:
        """One API call; returns the payload of a status=success response."""
        headers = self._headers()
        try:
            async with self._client() as client:
                response = await client.request(method, f"{self.api_url}{path}", headers=headers, json=body)
        except httpx.HTTPError as e:
            raise ProviderError(f"{failure_message}: {e}", provider=self.provider_name)

        data = self._json(response)

        if self._is_token_error(response.status_code, data):
            raise ProviderAuthError(
                data.get("message") or "Zoho access token rejected",
                provider=self.provider_name,
                upstream_status=response.status_code,
            )

        if response.is_error or data.get("status") != "success":
            message = data.get("message") or failure_message
            logger.warning(f"Zoho Campaigns {path} failed ({response.status_code}): {message}")
            raise ProviderError(
                message,
                provider=self.provider_name,
                upstream_status=response.status_code,
            )

        return data

    async def send_email(self, message: OutboundEmail) -> SendResult:
        data = await self._call("POST", "/json/campaigns/quickcampaign", {
            "campaignname": message.subject or "Market Genie Campaign",
            "fromname": message.from_name or "Market Genie",
            "subject": message.subject,
            "htmlcontent": message.html,
            "recipients": message.to,
            "campaigntype": "instant",
        }, failure_message="Failed to send email campaign")

        campaign_key = data.get("campaign_key") or data.get("campaignKey")
        logger.info(f"Zoho quick campaign sent (key {campaign_key})")

        return SendResult(
            message_id=campaign_key,
            provider=self.provider_name,
            to=message.to,
            subject=message.subject,
            from_address=message.from_name or "Market Genie",
            sent_at=datetime.now(timezone.utc),
            raw=data,
        )

    async def add_contact(self, list_id: Optional[str], contact: Contact) -> Dict[str, Any]:
        """Subscribe a contact to a Zoho mailing list (list key)."""
        if not list_id:
            raise ValidationFailedError("Zoho Campaigns list key is required", provider=self.provider_name)
        data = await self._call("POST", "/json/listsubscribe", {
            "listkey": list_id,
            "contactinfo": json.dumps([{
                "Contact Email": contact.email,
                "First Name": contact.first_name,
                "Last Name": contact.last_name,
                "Company": contact.company,
            }]),
        }, failure_message="Failed to add contact")
        logger.info(f"Zoho contact subscribed to list {list_id}")
        return data

    async def test_connection(self) -> ConnectionTestResult:
        try:
            data = await self._call("GET", "/getorganizationdetails", failure_message="Zoho Campaigns test failed")
        except (CredentialsNotConfiguredError, ProviderError) as e:
            return ConnectionTestResult(success=False, error=e.message)

        return ConnectionTestResult(
            success=True,
            message="Zoho Campaigns connection successful!",
            details={
                "organizationName": data.get("organization_name"),
                "industryType": data.get("industry_type"),
                "accountType": data.get("account_type"),
            },
        )


ProviderFactory.register("zoho_campaigns", ZohoCampaignsProvider)
