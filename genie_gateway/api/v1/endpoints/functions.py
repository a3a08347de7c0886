"""
Function Endpoints
Flat POST routes the Market Genie frontend calls directly: provider sends,
the lead enrichment proxy, and the tenant bootstrap callables.

Every response uses the {success, ...} envelope; errors are raised as
GatewayError subclasses and rendered by the app's exception handlers.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from genie_gateway.api.v1.dependencies import (
    CurrentUser,
    get_email_dispatch_service,
    get_lead_search_service,
    get_tenant_admin_service,
    require_super_admin,
)
from genie_gateway.core.errors import ProviderError, TenantAccessError, ValidationFailedError
from genie_gateway.core.logging_config import short_id
from genie_gateway.core.tenant_middleware import get_current_tenant
from genie_gateway.domain.models.credential import IntegrationProvider
from genie_gateway.domain.models.email import SendEmailRequest
from genie_gateway.domain.models.lead import MISSING_SEARCH_FIELDS_MESSAGE, LeadSearchRequest
from genie_gateway.services.email_dispatch_service import EmailDispatchService
from genie_gateway.services.lead_search_service import LeadSearchService
from genie_gateway.services.tenant_admin_service import TenantAdminService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Functions"])

API_KEY_REQUIRED_MESSAGE = "API key is required"


# =============================================================================
# Request Models
# =============================================================================

class ApiKeyRequest(BaseModel):
    api_key: Optional[str] = Field(None, alias="apiKey")

    class Config:
        populate_by_name = True


class SetUserTenantClaimsRequest(BaseModel):
    user_id: Optional[str] = Field(None, alias="userId")
    tenant_id: Optional[str] = Field(None, alias="tenantId")
    role: str = "user"

    class Config:
        populate_by_name = True


class CopyIntegrationsRequest(BaseModel):
    source_tenant_id: Optional[str] = Field(None, alias="sourceTenantId")

    class Config:
        populate_by_name = True


class FixUserClaimsRequest(BaseModel):
    user_id: Optional[str] = Field(None, alias="userId")

    class Config:
        populate_by_name = True


# =============================================================================
# Email sending
# =============================================================================

def _check_tenant(request: Request, body_tenant_id: Optional[str]) -> None:
    """A bearer token naming a tenant may only send for that tenant."""
    token_tenant_id = get_current_tenant(request)
    if token_tenant_id and body_tenant_id and token_tenant_id != body_tenant_id:
        logger.warning(
            f"Tenant mismatch: token {short_id(token_tenant_id)}, body {short_id(body_tenant_id)}"
        )
        raise TenantAccessError("Tenant mismatch: you may only send for your own tenant")


async def _send(
    provider: str,
    body: SendEmailRequest,
    request: Request,
    dispatch: EmailDispatchService
) -> dict:
    _check_tenant(request, body.tenant_id)
    result = await dispatch.send_request(provider, body)
    return result.to_dict()


@router.post("/sendEmailV2")
async def send_email_v2(
    body: SendEmailRequest,
    request: Request,
    dispatch: EmailDispatchService = Depends(get_email_dispatch_service)
):
    """Send one email through the tenant's Gmail SMTP connection."""
    return await _send(IntegrationProvider.GMAIL.value, body, request, dispatch)


@router.post("/sendCampaignEmail")
async def send_campaign_email(
    body: SendEmailRequest,
    request: Request,
    dispatch: EmailDispatchService = Depends(get_email_dispatch_service)
):
    """Send through the tenant's Zoho Mail SMTP account."""
    return await _send(IntegrationProvider.ZOHO_MAIL_SMTP.value, body, request, dispatch)


@router.post("/sendCampaignEmailFixed")
async def send_campaign_email_fixed(
    body: SendEmailRequest,
    request: Request,
    dispatch: EmailDispatchService = Depends(get_email_dispatch_service)
):
    """Zoho Campaigns quick campaign; upstream failures surface as 500."""
    return await _send(IntegrationProvider.ZOHO_CAMPAIGNS.value, body, request, dispatch)


@router.post("/sendCampaignEmailHTTP")
async def send_campaign_email_http(
    body: SendEmailRequest,
    request: Request,
    dispatch: EmailDispatchService = Depends(get_email_dispatch_service)
):
    """Zoho Campaigns quick campaign; the upstream HTTP status is passed through."""
    try:
        return await _send(IntegrationProvider.ZOHO_CAMPAIGNS.value, body, request, dispatch)
    except ProviderError as e:
        if e.upstream_status and e.upstream_status >= 400:
            return JSONResponse(status_code=e.upstream_status, content=e.to_envelope())
        raise


@router.post("/sendCampaignEmailKit")
async def send_campaign_email_kit(
    body: SendEmailRequest,
    request: Request,
    dispatch: EmailDispatchService = Depends(get_email_dispatch_service)
):
    return await _send(IntegrationProvider.KIT.value, body, request, dispatch)


@router.post("/sendCampaignEmailResend")
async def send_campaign_email_resend(
    body: SendEmailRequest,
    request: Request,
    dispatch: EmailDispatchService = Depends(get_email_dispatch_service)
):
    return await _send(IntegrationProvider.RESEND.value, body, request, dispatch)


@router.post("/sendCampaignEmailSMTP")
async def send_campaign_email_smtp(
    body: SendEmailRequest,
    request: Request,
    dispatch: EmailDispatchService = Depends(get_email_dispatch_service)
):
    """Gmail SMTP with an app password."""
    return await _send(IntegrationProvider.GMAIL.value, body, request, dispatch)


# =============================================================================
# Lead enrichment proxy
# =============================================================================

@router.post("/leadGenProxy")
async def lead_gen_proxy(
    body: LeadSearchRequest,
    search: LeadSearchService = Depends(get_lead_search_service)
):
    """
    Look up a contact with the caller's own provider API key.

    Always 200 once the provider was called: the adapter's
    {success, provider, data|error} result is returned as-is.
    """
    if not body.is_complete():
        raise ValidationFailedError(MISSING_SEARCH_FIELDS_MESSAGE)

    result = await search.search(body.provider, body.api_key, body.search_data)
    return result.to_dict()


@router.api_route("/leadGenProxy", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def lead_gen_proxy_method_not_allowed():
    return JSONResponse(status_code=405, content={"success": False, "error": "Method not allowed"})


@router.post("/leadGenProxy/api/prospeo-test")
async def prospeo_test(
    body: ApiKeyRequest,
    search: LeadSearchService = Depends(get_lead_search_service)
):
    if not body.api_key:
        raise ValidationFailedError(API_KEY_REQUIRED_MESSAGE)
    result = await search.test_account(IntegrationProvider.PROSPEO.value, body.api_key)
    return result.to_dict()


@router.post("/leadGenProxy/api/voila-account")
async def voila_account(
    body: ApiKeyRequest,
    search: LeadSearchService = Depends(get_lead_search_service)
):
    if not body.api_key:
        raise ValidationFailedError(API_KEY_REQUIRED_MESSAGE)
    result = await search.test_account(IntegrationProvider.VOILANORBERT.value, body.api_key)
    return result.to_dict()


@router.get("/leadGenProxy/api/hunter-account")
async def hunter_account(
    key: Optional[str] = Query(None),
    search: LeadSearchService = Depends(get_lead_search_service)
):
    if not key:
        raise ValidationFailedError("API key is required as query parameter")
    result = await search.test_account(IntegrationProvider.HUNTER.value, key)
    return result.to_dict()


# =============================================================================
# Tenant bootstrap callables (super-admin only)
# =============================================================================

@router.post("/setUserTenantClaims")
async def set_user_tenant_claims(
    body: SetUserTenantClaimsRequest,
    admin: CurrentUser = Depends(require_super_admin),
    service: TenantAdminService = Depends(get_tenant_admin_service)
):
    claims = await service.set_user_tenant_claims(body.user_id, body.tenant_id, body.role)
    logger.info(f"Admin {short_id(admin.id)} set tenant claims for {short_id(body.user_id)}")
    return {"success": True, "message": "Tenant claims updated", "claims": claims}


@router.post("/createFounderTenant")
async def create_founder_tenant(
    admin: CurrentUser = Depends(require_super_admin),
    service: TenantAdminService = Depends(get_tenant_admin_service)
):
    tenant = await service.create_founder_tenant()
    return {"success": True, "message": "Founder tenant ready", "tenant": tenant.model_dump(mode="json")}


@router.post("/copyIntegrationsToFounder")
async def copy_integrations_to_founder(
    body: CopyIntegrationsRequest,
    admin: CurrentUser = Depends(require_super_admin),
    service: TenantAdminService = Depends(get_tenant_admin_service)
):
    result = await service.copy_integrations_to_founder(body.source_tenant_id)
    return {"success": True, **result}


@router.post("/fixUserClaims")
async def fix_user_claims(
    body: FixUserClaimsRequest,
    admin: CurrentUser = Depends(require_super_admin),
    service: TenantAdminService = Depends(get_tenant_admin_service)
):
    claims = await service.fix_user_claims(body.user_id or admin.id)
    return {"success": True, "message": "User claims fixed", "claims": claims}
