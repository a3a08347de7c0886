"""
Email Provider Base Class
Abstract interface for email sending integrations.
"""
from abc import abstractmethod
from typing import Any, Dict, List, Optional

from genie_gateway.core.errors import ProviderError
from genie_gateway.domain.models.email import Contact, OutboundEmail, SendResult
from genie_gateway.infrastructure.providers.base import (
    BaseProvider,
    ProviderCapability,
    ProviderType,
)


class EmailProvider(BaseProvider):
    """
    Extends BaseProvider with send_email().

    Implementations raise CredentialsNotConfiguredError before any network
    activity when the credential is incomplete, and ProviderError (or a
    subclass) when the upstream call fails.
    """

    PROVIDER_TYPE = ProviderType.EMAIL

    # OAuth providers have their access token refreshed before send_email()
    requires_oauth: bool = False

    @property
    def provider_type(self) -> ProviderType:
        return self.PROVIDER_TYPE

    @property
    def capabilities(self) -> List[ProviderCapability]:
        return [ProviderCapability.SEND_EMAIL]

    @abstractmethod
    async def send_email(self, message: OutboundEmail) -> SendResult:
        """
        Send one message to one recipient.

        Returns:
            SendResult with the provider's message ID
        """
        pass

    async def add_contact(self, list_id: Optional[str], contact: Contact) -> Dict[str, Any]:
        """
        Subscribe a contact to one of the provider's lists.

        Only providers advertising ProviderCapability.ADD_CONTACT override this.
        """
        raise ProviderError(f"{self.provider_name} does not manage contact lists", provider=self.provider_name)
