"""
Lead Enrichment Provider Package
"""
from genie_gateway.infrastructure.providers.lead.base import LeadEnrichmentProvider
from genie_gateway.infrastructure.providers.lead.prospeo import ProspeoProvider
from genie_gateway.infrastructure.providers.lead.hunter import HunterProvider
from genie_gateway.infrastructure.providers.lead.voilanorbert import VoilaNorbertProvider

__all__ = ["LeadEnrichmentProvider", "ProspeoProvider", "HunterProvider", "VoilaNorbertProvider"]
