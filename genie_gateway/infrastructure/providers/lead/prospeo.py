"""
Prospeo Provider
Email finder (named person) and domain fallback via email-count.

Auth: X-KEY header.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from genie_gateway.core.logging_config import mask_secret
from genie_gateway.domain.models.lead import (
    ConnectionTestResult,
    LeadSearchData,
    LeadSearchResult,
)
from genie_gateway.infrastructure.providers.base import ProviderCapability, ProviderFactory
from genie_gateway.infrastructure.providers.lead.base import LeadEnrichmentProvider

logger = logging.getLogger(__name__)

NO_EMAIL_MESSAGE = "No email found for this person"

ERROR_MESSAGES = {
    "NO_RESULT": NO_EMAIL_MESSAGE,
    "INVALID_DOMAIN_NAME": "Invalid domain name provided",
    "NO_VALID_NAME": "Invalid name provided",
}

# Tried in order when only a domain is known
COMMON_NAMES = [
    ("John", "Smith"),
    ("Jane", "Doe"),
    ("Mike", "Johnson"),
    ("Sarah", "Wilson"),
    ("David", "Brown"),
]

DEFAULT_CONFIDENCE = 95
COMMON_NAME_CONFIDENCE = 85


class ProspeoError(Exception):
    """Prospeo returned a non-2xx status."""
    pass


class ProspeoProvider(LeadEnrichmentProvider):
    """Prospeo.io lead enrichment."""

    DEFAULT_BASE_URL = "https://api.prospeo.io"

    @property
    def provider_name(self) -> str:
        return "prospeo"

    @property
    def capabilities(self) -> List[ProviderCapability]:
        return [
            ProviderCapability.FIND_EMAIL,
            ProviderCapability.DOMAIN_SEARCH,
            ProviderCapability.ACCOUNT_INFO,
        ]

    @property
    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "X-KEY": self.api_key}

    async def _post(self, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(f"{self.base_url}{path}", headers=self.headers, json=body)

        data = self._json(response)
        if response.is_error:
            error = data.get("error")
            if isinstance(error, str) and error:
                raise ProspeoError(error)
            raise ProspeoError(data.get("message") or f"Prospeo API error: {response.status_code}")
        return data

    async def find_contact(self, search_data: LeadSearchData) -> LeadSearchResult:
        try:
            if search_data.has_person_name:
                return await self._find_person(search_data)
            return await self._search_domain(search_data)
        except (ProspeoError, httpx.HTTPError) as e:
            logger.error(f"Prospeo API error: {e}")
            return self.failed(str(e) or "Prospeo request failed")

    async def _find_person(self, search_data: LeadSearchData) -> LeadSearchResult:
        data = await self._post("/email-finder", {
            "first_name": search_data.first_name,
            "last_name": search_data.last_name,
            "company": search_data.company or search_data.domain,
        })

        if data.get("error") is True:
            code = data.get("message")
            return self.failed(ERROR_MESSAGES.get(code) or code or "Prospeo API returned an error")

        payload = data.get("response") or data
        if not isinstance(payload, dict) or not payload.get("email"):
            return self.failed(NO_EMAIL_MESSAGE)

        return self.found({
            "email": payload["email"],
            "first_name": payload.get("first_name") or search_data.first_name,
            "last_name": payload.get("last_name") or search_data.last_name,
            "domain": payload.get("domain") or search_data.domain,
            "email_status": payload.get("email_status"),
            "confidence": payload.get("confidence") or DEFAULT_CONFIDENCE,
            "source": "Prospeo.io",
        })

    async def _search_domain(self, search_data: LeadSearchData) -> LeadSearchResult:
        domain = search_data.clean_domain
        if not domain:
            return self.failed("A domain or a first and last name is required")

        count_data = await self._post("/email-count", {"domain": domain})
        count_payload = count_data.get("response") or {}
        count = count_payload.get("count") or 0

        if count <= 0:
            return self.failed(f"No emails found in database for domain: {domain}")

        logger.info(f"Prospeo found {count} emails for {domain}, trying common names")

        limit = int(self.config_value("domain_search_names", 2))
        contacts = []
        for first, last in COMMON_NAMES[:limit]:
            try:
                name_data = await self._post("/email-finder", {
                    "first_name": first,
                    "last_name": last,
                    "company": domain,
                })
            except (ProspeoError, httpx.HTTPError) as e:
                logger.info(f"Prospeo lookup for {first} {last} failed: {e}")
                continue

            response = name_data.get("response") or {}
            if not name_data.get("error") and response.get("email"):
                contacts.append({
                    "email": response["email"],
                    "first_name": first,
                    "last_name": last,
                    "company": domain,
                    "phone": response.get("mobile"),
                    "confidence": COMMON_NAME_CONFIDENCE,
                    "source": "Prospeo.io",
                })

        result: Dict[str, Any] = {
            "contacts": contacts,
            "credits_remaining": count_payload.get("credits") or "Unknown",
        }
        if not contacts:
            result["message"] = f"Domain has {count} emails but none found with common names"
        return self.found(result)

    async def test_connection(self) -> ConnectionTestResult:
        logger.info(f"Testing Prospeo API with key {mask_secret(self.api_key)}")
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/account-information",
                    headers=self.headers
                )
        except httpx.HTTPError as e:
            return ConnectionTestResult(success=False, error=f"Connection failed: {e}")

        data = self._json(response)
        if response.is_success and data.get("error") is False:
            return ConnectionTestResult(
                success=True,
                message="Prospeo.io connection successful!",
                credits=(data.get("response") or {}).get("remaining_credits") or "Unknown",
            )

        error = data.get("error")
        if error is True:
            message = data.get("message") or "Prospeo API returned an error"
        elif error:
            message = error if isinstance(error, str) else "API error"
        elif response.is_error:
            message = f"HTTP {response.status_code}: {response.reason_phrase}"
        else:
            message = "Connection failed"
        return ConnectionTestResult(success=False, error=message, details=data or None)


ProviderFactory.register("prospeo", ProspeoProvider)
