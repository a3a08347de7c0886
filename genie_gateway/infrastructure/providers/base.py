"""
Provider Base Classes and Factory
Every vendor integration (email sending or lead enrichment) is one
BaseProvider subclass, built from the tenant's credential document.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional, Type
import logging

import httpx

from genie_gateway.core.config import get_config_manager, get_settings
from genie_gateway.domain.models.lead import ConnectionTestResult

logger = logging.getLogger(__name__)


class ProviderCapability(str, Enum):
    """Actions a provider can perform"""
    SEND_EMAIL = "send_email"
    ADD_CONTACT = "add_contact"
    FIND_EMAIL = "find_email"
    DOMAIN_SEARCH = "domain_search"
    ACCOUNT_INFO = "account_info"


class ProviderType(str, Enum):
    EMAIL = "email"
    LEAD = "lead"


class BaseProvider(ABC):
    """
    Abstract base class for all providers.

    Providers are stateless apart from the credential they were built with;
    one instance serves one request.
    """

    def __init__(
        self,
        credentials: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            credentials: Decrypted credential document (provider's own field names)
            transport: Optional httpx transport, used to stub upstream calls
        """
        self.credentials: Dict[str, Any] = dict(credentials or {})
        self._transport = transport
        self.config: Dict[str, Any] = get_config_manager().get_provider_config(self.provider_name)

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier; matches IntegrationProvider values."""
        pass

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        pass

    @property
    @abstractmethod
    def capabilities(self) -> List[ProviderCapability]:
        pass

    @abstractmethod
    async def test_connection(self) -> ConnectionTestResult:
        """Check the credential against the provider's account endpoint."""
        pass

    def config_value(self, key: str, default: Any = None) -> Any:
        value = self.config.get(key)
        return default if value in (None, "") else value

    def _client(self, **kwargs) -> httpx.AsyncClient:
        """HTTP client for one upstream call."""
        kwargs.setdefault("timeout", get_settings().http_timeout_seconds)
        return httpx.AsyncClient(transport=self._transport, **kwargs)

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        """Response body as a dict; non-JSON bodies become {}."""
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {"data": payload}

    def has_capability(self, capability: ProviderCapability) -> bool:
        return capability in self.capabilities

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.provider_type.value})"


class ProviderFactory:
    """
    Registry of provider classes keyed by provider name.

    Adapters register themselves at import time; importing
    genie_gateway.infrastructure.providers loads all of them.
    """

    _providers: Dict[str, Type[BaseProvider]] = {}

    @classmethod
    def register(cls, provider: str, provider_class: Type[BaseProvider]) -> None:
        cls._providers[provider] = provider_class
        logger.debug(f"Registered provider: {provider}")

    @classmethod
    def create(
        cls,
        provider: str,
        credentials: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> BaseProvider:
        """
        Raises:
            ValueError: If provider is not registered
        """
        if provider not in cls._providers:
            available = ", ".join(sorted(cls._providers.keys())) if cls._providers else "None"
            raise ValueError(f"Unknown provider: {provider}. Available: {available}")

        return cls._providers[provider](credentials=credentials, transport=transport)

    @classmethod
    def list_providers(cls, provider_type: Optional[ProviderType] = None) -> List[str]:
        """Registered provider names, optionally only those of one type."""
        if provider_type is None:
            return list(cls._providers.keys())
        return [
            name for name, provider_class in cls._providers.items()
            if getattr(provider_class, "PROVIDER_TYPE", None) == provider_type
        ]

    @classmethod
    def is_registered(cls, provider: str) -> bool:
        return provider in cls._providers
