"""
Lead Enrichment Provider Base Class
"""
from abc import abstractmethod
from typing import List

from genie_gateway.domain.models.lead import LeadSearchData, LeadSearchResult
from genie_gateway.infrastructure.providers.base import (
    BaseProvider,
    ProviderCapability,
    ProviderType,
)


class LeadEnrichmentProvider(BaseProvider):
    """
    Extends BaseProvider with find_contact().

    Lead adapters never raise for upstream failures: every outcome is a
    LeadSearchResult, failed ones carrying a user-facing error.
    """

    PROVIDER_TYPE = ProviderType.LEAD
    DEFAULT_BASE_URL = ""

    @property
    def provider_type(self) -> ProviderType:
        return self.PROVIDER_TYPE

    @property
    def capabilities(self) -> List[ProviderCapability]:
        return [ProviderCapability.FIND_EMAIL, ProviderCapability.ACCOUNT_INFO]

    @property
    def api_key(self) -> str:
        return self.credentials.get("apiKey") or ""

    @property
    def base_url(self) -> str:
        return self.config_value("base_url", self.DEFAULT_BASE_URL).rstrip("/")

    @abstractmethod
    async def find_contact(self, search_data: LeadSearchData) -> LeadSearchResult:
        """Look up a person's email by name + company/domain."""
        pass

    def failed(self, error: str) -> LeadSearchResult:
        return LeadSearchResult.failed(self.provider_name, error)

    def found(self, data: dict) -> LeadSearchResult:
        return LeadSearchResult.found(self.provider_name, data)
