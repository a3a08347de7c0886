"""
Provider Infrastructure Package
Importing this package registers every adapter with ProviderFactory.
"""
from genie_gateway.infrastructure.providers.base import (
    BaseProvider,
    ProviderCapability,
    ProviderFactory,
    ProviderType,
)
from genie_gateway.infrastructure.providers.email import EmailProvider
from genie_gateway.infrastructure.providers.lead import LeadEnrichmentProvider

__all__ = [
    "BaseProvider",
    "ProviderCapability",
    "ProviderFactory",
    "ProviderType",
    "EmailProvider",
    "LeadEnrichmentProvider",
]
