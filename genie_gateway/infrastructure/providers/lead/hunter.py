"""
Hunter.io Provider
Auth is the api_key query parameter, so request URLs are never logged.
"""
import logging
from typing import Any, Dict

import httpx

from genie_gateway.domain.models.lead import (
    ConnectionTestResult,
    LeadSearchData,
    LeadSearchResult,
)
from genie_gateway.infrastructure.providers.base import ProviderFactory
from genie_gateway.infrastructure.providers.lead.base import LeadEnrichmentProvider

logger = logging.getLogger(__name__)


def _first_error(data: Dict[str, Any]) -> str:
    errors = data.get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("details") or ""
    return ""


def _requests_left(data: Dict[str, Any]) -> Any:
    requests = data.get("requests") or {}
    if "left" in requests:
        return requests["left"]
    # v2 account payload nests counters per request kind
    return (requests.get("searches") or {}).get("available")


class HunterProvider(LeadEnrichmentProvider):
    """Hunter.io email finder."""

    DEFAULT_BASE_URL = "https://api.hunter.io/v2"

    @property
    def provider_name(self) -> str:
        return "hunter"

    async def find_contact(self, search_data: LeadSearchData) -> LeadSearchResult:
        params = {
            "domain": search_data.clean_domain,
            "first_name": search_data.first_name or "",
            "last_name": search_data.last_name or "",
            "api_key": self.api_key,
        }
        if search_data.company and not search_data.clean_domain:
            params["company"] = search_data.company

        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}/email-finder", params=params)
        except httpx.HTTPError as e:
            logger.error(f"Hunter API request failed: {e.__class__.__name__}")
            return self.failed(f"Hunter.io request failed: {e.__class__.__name__}")

        data = self._json(response)
        if response.is_error:
            message = _first_error(data) or data.get("message") or f"Hunter.io API error: {response.status_code}"
            logger.warning(f"Hunter API error {response.status_code}: {message}")
            return self.failed(message)

        found = data.get("data") or {}
        if not found.get("email"):
            return self.failed("No email found for this person")

        return self.found({
            "email": found["email"],
            "confidence": found.get("score") or found.get("confidence") or 85,
            "credits_remaining": ((data.get("meta") or {}).get("requests") or {}).get("left") or "Unknown",
            "source": "Hunter.io",
        })

    async def test_connection(self) -> ConnectionTestResult:
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}/account",
                    params={"api_key": self.api_key}
                )
        except httpx.HTTPError:
            return ConnectionTestResult(success=False, error="Failed to connect to Hunter.io")

        data = self._json(response)
        account = data.get("data")
        if response.is_success and account:
            return ConnectionTestResult(
                success=True,
                message="Hunter.io connection successful!",
                credits=_requests_left(account) or "Unknown",
            )
        return ConnectionTestResult(
            success=False,
            error=_first_error(data) or "Invalid API key or connection failed",
        )


ProviderFactory.register("hunter", HunterProvider)
