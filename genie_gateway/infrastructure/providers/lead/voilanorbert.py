"""
VoilaNorbert Provider
Name + domain search on the 2018-01-08 API, X-API-KEY auth.
"""
import logging

import httpx

from genie_gateway.core.logging_config import mask_secret
from genie_gateway.domain.models.lead import (
    ConnectionTestResult,
    LeadSearchData,
    LeadSearchResult,
)
from genie_gateway.infrastructure.providers.base import ProviderFactory
from genie_gateway.infrastructure.providers.lead.base import LeadEnrichmentProvider

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    401: "Invalid API key - please check your VoilaNorbert API key",
    403: "API access forbidden - please check your VoilaNorbert plan",
    429: "Rate limit exceeded - please try again later",
    400: "Bad request - please check the name and domain format",
}


class VoilaNorbertProvider(LeadEnrichmentProvider):
    """VoilaNorbert email finder."""

    DEFAULT_BASE_URL = "https://api.voilanorbert.com/2018-01-08"

    @property
    def provider_name(self) -> str:
        return "voilanorbert"

    async def find_contact(self, search_data: LeadSearchData) -> LeadSearchResult:
        name = f"{search_data.first_name or ''} {search_data.last_name or ''}".strip()
        logger.info(
            f"VoilaNorbert search for {search_data.clean_domain} "
            f"(key {mask_secret(self.api_key)})"
        )

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/search/name",
                    headers={"X-API-KEY": self.api_key},
                    json={"name": name, "domain": search_data.clean_domain},
                )
        except httpx.HTTPError as e:
            logger.error(f"VoilaNorbert request failed: {e}")
            return self.failed(f"VoilaNorbert request failed: {e}")

        data = self._json(response)
        if response.is_error:
            message = STATUS_MESSAGES.get(response.status_code) or data.get("message") \
                or f"VoilaNorbert API error: {response.status_code}"
            return self.failed(message)

        email = data.get("email") or {}
        account = data.get("account") or {}
        if isinstance(email, dict) and email.get("email"):
            return self.found({
                "email": email["email"],
                "confidence": email.get("score") or 85,
                "credits_remaining": account.get("search_left") or "Unknown",
                "source": "VoilaNorbert",
            })

        if account:
            # Valid key, nobody found
            return self.found({
                "email": None,
                "confidence": 0,
                "credits_remaining": account.get("search_left") or "Unknown",
                "source": "VoilaNorbert",
                "message": "No email found for this person",
            })

        return self.failed("No email found for this person")

    async def test_connection(self) -> ConnectionTestResult:
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}/account/info",
                    headers={"X-API-KEY": self.api_key}
                )
        except httpx.HTTPError:
            return ConnectionTestResult(success=False, error="Failed to connect to Voila Norbert")

        data = self._json(response)
        if response.is_success and data.get("credits") is not None:
            return ConnectionTestResult(
                success=True,
                message="Voila Norbert connection successful!",
                credits=data["credits"],
            )
        return ConnectionTestResult(
            success=False,
            error=data.get("error") or "Invalid API key or connection failed",
        )


ProviderFactory.register("voilanorbert", VoilaNorbertProvider)
