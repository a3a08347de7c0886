"""
Lead Search Service
Dispatches leadGenProxy lookups and account checks to the lead adapters.
The caller supplies the provider API key with each request.
"""
import logging
from typing import Optional

import httpx

from genie_gateway.core.errors import ValidationFailedError
from genie_gateway.core.logging_config import mask_secret
from genie_gateway.domain.models.lead import (
    ConnectionTestResult,
    LeadSearchData,
    LeadSearchResult,
)
from genie_gateway.infrastructure.providers import LeadEnrichmentProvider, ProviderFactory, ProviderType

logger = logging.getLogger(__name__)

LEAD_PROVIDERS = ("prospeo", "voilanorbert", "hunter")


class LeadSearchService:

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    def _provider(self, provider: str, api_key: str) -> LeadEnrichmentProvider:
        if provider not in ProviderFactory.list_providers(ProviderType.LEAD):
            raise ValidationFailedError("Invalid provider")
        return ProviderFactory.create(provider, credentials={"apiKey": api_key}, transport=self._transport)

    async def search(self, provider: str, api_key: str, search_data: LeadSearchData) -> LeadSearchResult:
        adapter = self._provider(provider, api_key)
        logger.info(f"Lead search via {provider} (key {mask_secret(api_key)})")
        result = await adapter.find_contact(search_data)
        if not result.success:
            logger.info(f"{provider} search unsuccessful: {result.error}")
        return result

    async def test_account(self, provider: str, api_key: str) -> ConnectionTestResult:
        adapter = self._provider(provider, api_key)
        return await adapter.test_connection()
