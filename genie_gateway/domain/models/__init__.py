"""
Domain Models
"""
from genie_gateway.domain.models.credential import (
    IntegrationProvider,
    CredentialStatus,
    IntegrationCredential,
    CredentialLookup,
    SECRET_FIELDS,
)
from genie_gateway.domain.models.email import (
    SendEmailRequest,
    OutboundEmail,
    SendResult,
    MISSING_SEND_FIELDS_MESSAGE,
)
from genie_gateway.domain.models.lead import (
    Lead,
    LeadNote,
    LeadSearchData,
    LeadSearchRequest,
    LeadSearchResult,
    ConnectionTestResult,
    MISSING_SEARCH_FIELDS_MESSAGE,
)
from genie_gateway.domain.models.campaign import (
    Campaign,
    CampaignStatus,
    CampaignJob,
    JobStatus,
)
from genie_gateway.domain.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentStats,
)
from genie_gateway.domain.models.tenant import (
    Tenant,
    TenantStatus,
    TenantRole,
    TenantClaims,
)

__all__ = [
    "IntegrationProvider",
    "CredentialStatus",
    "IntegrationCredential",
    "CredentialLookup",
    "SECRET_FIELDS",
    "SendEmailRequest",
    "OutboundEmail",
    "SendResult",
    "MISSING_SEND_FIELDS_MESSAGE",
    "Lead",
    "LeadNote",
    "LeadSearchData",
    "LeadSearchRequest",
    "LeadSearchResult",
    "ConnectionTestResult",
    "MISSING_SEARCH_FIELDS_MESSAGE",
    "Campaign",
    "CampaignStatus",
    "CampaignJob",
    "JobStatus",
    "Appointment",
    "AppointmentStatus",
    "AppointmentStats",
    "Tenant",
    "TenantStatus",
    "TenantRole",
    "TenantClaims",
]
