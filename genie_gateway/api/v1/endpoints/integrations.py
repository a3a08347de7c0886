"""
Integration API Endpoints
Per-tenant provider credentials: save, status, test, disconnect, and the
Zoho Campaigns OAuth flow.

Secrets are encrypted by CredentialStore and never returned to the client.
"""
import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from genie_gateway.api.v1.dependencies import CurrentUser, get_credential_store, get_current_user
from genie_gateway.core.config import get_settings
from genie_gateway.core.errors import CredentialsNotConfiguredError, NotFoundError, ValidationFailedError
from genie_gateway.core.logging_config import short_id
from genie_gateway.domain.models.credential import (
    SECRET_FIELDS,
    CredentialStatus,
    IntegrationCredential,
    IntegrationProvider,
)
from genie_gateway.infrastructure.oauth.state import OAuthStateError, OAuthStateManager, get_oauth_state_manager
from genie_gateway.infrastructure.oauth.zoho import ZohoOAuthClient, ZohoOAuthError
from genie_gateway.infrastructure.providers import EmailProvider, ProviderFactory
from genie_gateway.infrastructure.storage.credential_store import CredentialStore
from genie_gateway.services.token_refresh_service import TokenRefresher, default_oauth_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["Integrations"])

ZOHO_CAMPAIGNS = IntegrationProvider.ZOHO_CAMPAIGNS.value
ZOHO_CALLBACK_PATH = "/api/v1/integrations/zoho-campaigns/callback"


# =============================================================================
# Request/Response Models
# =============================================================================

class SaveIntegrationRequest(BaseModel):
    """Credential fields use the provider's own names (apiKey, appPassword, ...)."""
    credentials: Dict[str, Any]
    test: bool = False


class IntegrationResponse(BaseModel):
    """Integration summary (no secret values)"""
    provider: str
    status: str
    connected: bool
    connected_at: Optional[str] = None
    updated_at: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)


class ProviderInfo(BaseModel):
    provider: str
    type: str
    name: str
    requires_oauth: bool = False
    capabilities: List[str] = Field(default_factory=list)


PROVIDER_NAMES = {
    "prospeo": "Prospeo.io",
    "hunter": "Hunter.io",
    "voilanorbert": "Voila Norbert",
    "gmail": "Gmail SMTP",
    "zoho_mail_smtp": "Zoho Mail SMTP",
    "zoho_campaigns": "Zoho Campaigns",
    "kit": "Kit",
    "resend": "Resend",
}


def get_oauth_client_factory() -> Callable[[IntegrationCredential], ZohoOAuthClient]:
    return default_oauth_client


def get_state_manager() -> OAuthStateManager:
    return get_oauth_state_manager()


def _summary(credential: IntegrationCredential) -> IntegrationResponse:
    return IntegrationResponse(
        provider=credential.provider,
        status=credential.status,
        connected=credential.status == CredentialStatus.CONNECTED.value,
        connected_at=credential.connected_at.isoformat() if credential.connected_at else None,
        updated_at=credential.updated_at.isoformat() if credential.updated_at else None,
        fields={
            k: v for k, v in credential.data.items()
            if k not in SECRET_FIELDS and k not in ("expiresAt", "connectedAt")
        },
    )


def _frontend_redirect(**params: str) -> RedirectResponse:
    """Back to the frontend integrations page; query values are URL-encoded."""
    return RedirectResponse(f"{get_settings().frontend_url}/integrations?{urlencode(params)}")


def _require_known(provider: str) -> None:
    if not ProviderFactory.is_registered(provider):
        raise NotFoundError(f"Unknown provider: {provider}")


def validate_gmail_credentials(data: Dict[str, Any]) -> Dict[str, Any]:
    """Gmail needs a @gmail.com address and a 16-character app password."""
    email = (data.get("email") or "").strip().lower()
    app_password = (data.get("appPassword") or "").replace(" ", "")

    if not email.endswith("@gmail.com"):
        raise ValidationFailedError("Please use a valid @gmail.com address")
    if len(app_password) != 16:
        raise ValidationFailedError(
            "Gmail app password must be 16 characters. "
            "Create one at myaccount.google.com > Security > App passwords."
        )
    return {**data, "email": email, "appPassword": app_password}


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/providers", response_model=List[ProviderInfo])
async def list_providers():
    """List every provider a tenant can connect."""
    providers = []
    for name in ProviderFactory.list_providers():
        adapter = ProviderFactory.create(name)
        providers.append(ProviderInfo(
            provider=name,
            type=adapter.provider_type.value,
            name=PROVIDER_NAMES.get(name, name),
            requires_oauth=bool(getattr(adapter, "requires_oauth", False)),
            capabilities=[c.value for c in adapter.capabilities],
        ))
    return providers


@router.get("", response_model=List[IntegrationResponse])
async def list_integrations(
    current_user: CurrentUser = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store)
):
    """List the tenant's integrations. Secret fields are never included."""
    credentials = await store.list_credentials(current_user.tenant_id)
    return [_summary(c) for c in credentials]


@router.get("/{provider}/status")
async def integration_status(
    provider: str,
    current_user: CurrentUser = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store)
):
    lookup = await store.get_credentials(current_user.tenant_id, provider)
    if not lookup.success:
        return {"success": True, "provider": provider, "connected": False, "status": "not_connected"}
    return {"success": True, **_summary(lookup.credential).model_dump()}


@router.put("/{provider}", response_model=IntegrationResponse)
async def save_integration(
    provider: str,
    body: SaveIntegrationRequest,
    current_user: CurrentUser = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store)
):
    """
    Save a provider credential for the tenant.

    With test=true the credential is checked against the provider before it
    is stored. Zoho Campaigns credentials are stored as credentials_saved
    until the OAuth flow completes.
    """
    _require_known(provider)
    data = dict(body.credentials)

    if provider == IntegrationProvider.GMAIL.value:
        data = validate_gmail_credentials(data)

    status = CredentialStatus.CONNECTED.value
    if provider == ZOHO_CAMPAIGNS:
        if not data.get("clientId") or not data.get("clientSecret"):
            raise ValidationFailedError("Zoho Campaigns requires clientId and clientSecret")
        if not data.get("accessToken"):
            status = CredentialStatus.CREDENTIALS_SAVED.value
    elif body.test:
        result = await ProviderFactory.create(provider, credentials=data).test_connection()
        if not result.success:
            raise ValidationFailedError(result.error or f"{provider} connection test failed")

    credential = await store.save_credentials(current_user.tenant_id, provider, data, status=status)
    return _summary(credential)


@router.delete("/{provider}")
async def disconnect_integration(
    provider: str,
    current_user: CurrentUser = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store)
):
    if not await store.delete_credentials(current_user.tenant_id, provider):
        raise NotFoundError(f"No {provider} integration to disconnect")
    return {"success": True, "message": f"{PROVIDER_NAMES.get(provider, provider)} disconnected"}


@router.post("/{provider}/test")
async def test_integration(
    provider: str,
    current_user: CurrentUser = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store)
):
    """Test the stored credential against the provider's account endpoint."""
    _require_known(provider)
    lookup = await store.get_credentials(current_user.tenant_id, provider)
    if not lookup.success:
        raise CredentialsNotConfiguredError(f"{PROVIDER_NAMES.get(provider, provider)} is not connected", provider=provider)

    credential = lookup.credential
    adapter = ProviderFactory.create(provider, credentials=credential.data)
    if isinstance(adapter, EmailProvider) and adapter.requires_oauth:
        credential = (await TokenRefresher(store).ensure_fresh(credential)).credential
        adapter = ProviderFactory.create(provider, credentials=credential.data)

    result = await adapter.test_connection()
    return result.to_dict()


# =============================================================================
# Zoho Campaigns OAuth
# =============================================================================

@router.post("/zoho-campaigns/authorize")
async def zoho_authorize(
    current_user: CurrentUser = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store),
    state_manager: OAuthStateManager = Depends(get_state_manager),
    client_factory: Callable[[IntegrationCredential], ZohoOAuthClient] = Depends(get_oauth_client_factory)
):
    """
    Start the Zoho OAuth flow.

    The tenant must have saved its Zoho API console clientId/clientSecret
    first; the returned URL sends the user to Zoho's consent page.
    """
    lookup = await store.get_credentials(current_user.tenant_id, ZOHO_CAMPAIGNS)
    if not lookup.success:
        raise CredentialsNotConfiguredError(
            "Save your Zoho Campaigns client ID and secret before connecting",
            provider=ZOHO_CAMPAIGNS,
        )

    try:
        client = client_factory(lookup.credential)
    except ValueError as e:
        raise CredentialsNotConfiguredError(str(e), provider=ZOHO_CAMPAIGNS)

    redirect_uri = f"{get_settings().public_base_url}{ZOHO_CALLBACK_PATH}"
    state = await state_manager.create_state(
        tenant_id=current_user.tenant_id,
        user_id=current_user.id,
        provider=ZOHO_CAMPAIGNS,
        redirect_uri=redirect_uri,
    )

    return {
        "success": True,
        "authorizationUrl": client.get_authorize_url(redirect_uri, state),
        "state": state,
    }


@router.get("/zoho-campaigns/callback")
async def zoho_callback(
    state: str = Query(...),
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    store: CredentialStore = Depends(get_credential_store),
    state_manager: OAuthStateManager = Depends(get_state_manager),
    client_factory: Callable[[IntegrationCredential], ZohoOAuthClient] = Depends(get_oauth_client_factory)
):
    """
    OAuth callback handler.

    Not authenticated: Zoho redirects the browser here. The tenant comes
    from the one-time state. Always redirects back to the frontend.
    """
    if error:
        logger.warning(f"Zoho OAuth error: {error}")
        return _frontend_redirect(error=error)

    if not code:
        logger.warning("Zoho OAuth callback missing code parameter")
        return _frontend_redirect(error="missing_code")

    try:
        state_data = await state_manager.validate_state(state)
        tenant_id = state_data["tenant_id"]

        lookup = await store.get_credentials(tenant_id, ZOHO_CAMPAIGNS)
        if not lookup.success:
            raise ValueError("Zoho client credentials disappeared during OAuth flow")

        client = client_factory(lookup.credential)
        tokens = await client.exchange_code(code, state_data["redirect_uri"])

        await store.save_credentials(tenant_id, ZOHO_CAMPAIGNS, {
            **lookup.credential.data,
            "accessToken": tokens.access_token,
            "refreshToken": tokens.refresh_token or lookup.credential.refresh_token,
            "expiresAt": tokens.expires_at.isoformat(),
            "connectedAt": None,
        })

        logger.info(f"Zoho Campaigns connected for tenant {short_id(tenant_id)}")
        return _frontend_redirect(success="true", provider=ZOHO_CAMPAIGNS)

    except OAuthStateError as e:
        logger.warning(f"OAuth state error: {e}")
        return _frontend_redirect(error="invalid_state")
    except (ZohoOAuthError, ValueError) as e:
        logger.error(f"Zoho OAuth callback error: {e}")
        return _frontend_redirect(error="callback_failed")
