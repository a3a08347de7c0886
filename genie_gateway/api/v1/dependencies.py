"""
API Dependencies
Shared dependencies for authentication, Supabase access, authorization and
service construction
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel
from supabase import Client, create_client

from genie_gateway.core.config import get_settings
from genie_gateway.core.logging_config import short_id
from genie_gateway.core.tenant_middleware import extract_tenant_id
from genie_gateway.domain.models.tenant import TenantRole
from genie_gateway.infrastructure.storage.credential_store import CredentialStore
from genie_gateway.services.appointment_service import AppointmentService
from genie_gateway.services.campaign_service import CampaignService
from genie_gateway.services.email_dispatch_service import EmailDispatchService
from genie_gateway.services.lead_search_service import LeadSearchService
from genie_gateway.services.lead_service import LeadService
from genie_gateway.services.tenant_admin_service import TenantAdminService

logger = logging.getLogger(__name__)

ADMIN_ROLES = {TenantRole.ADMIN.value, TenantRole.SUPER_ADMIN.value}


class CurrentUser(BaseModel):
    """Current authenticated user model"""
    id: str
    email: Optional[str] = None
    tenant_id: Optional[str] = None
    role: str = TenantRole.USER.value
    is_super_admin: bool = False

    @property
    def is_admin(self) -> bool:
        return self.is_super_admin or self.role in ADMIN_ROLES

    @property
    def is_platform_admin(self) -> bool:
        return self.is_super_admin or self.role == TenantRole.SUPER_ADMIN.value


def get_supabase() -> Client:
    """
    Get Supabase client with validation.

    Raises:
        RuntimeError: If Supabase URL or SERVICE_KEY is not configured
    """
    settings = get_settings()

    if not settings.supabase_url:
        raise RuntimeError(
            "SUPABASE_URL is not configured. "
            "Set SUPABASE_URL environment variable."
        )
    if not settings.supabase_service_key:
        raise RuntimeError(
            "SUPABASE_SERVICE_KEY is not configured. "
            "Set SUPABASE_SERVICE_KEY environment variable."
        )

    return create_client(settings.supabase_url, settings.supabase_service_key)


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Use: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return parts[1]


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    supabase: Client = Depends(get_supabase)
) -> CurrentUser:
    """
    Dependency to get the current authenticated user from a Supabase JWT.

    Tenant and role come from the auth user's app_metadata (written by the
    tenant claims admin calls), falling back to the user_profiles row.

    Raises:
        HTTPException: 401 if the token is invalid, 403 if the user has no tenant
    """
    token = _bearer_token(authorization)

    try:
        user_response = supabase.auth.get_user(token)

        if not user_response or not user_response.user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        auth_user = user_response.user
        metadata = {"app_metadata": auth_user.app_metadata or {}, "user_metadata": auth_user.user_metadata or {}}
        app_metadata = metadata["app_metadata"]

        tenant_id = extract_tenant_id(metadata)
        role = app_metadata.get("role")

        if not tenant_id or not role:
            profile_response = supabase.table("user_profiles").select(
                "tenant_id, role"
            ).eq("id", auth_user.id).limit(1).execute()
            profile = (profile_response.data or [{}])[0]
            tenant_id = tenant_id or profile.get("tenant_id")
            role = role or profile.get("role")

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not assigned to a tenant"
        )

    return CurrentUser(
        id=str(auth_user.id),
        email=auth_user.email,
        tenant_id=tenant_id,
        role=role or TenantRole.USER.value,
        is_super_admin=bool(app_metadata.get("is_super_admin")),
    )


async def require_super_admin(
    current_user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    """
    Dependency for platform-wide operations that cross tenant boundaries.

    A tenant admin is not enough; the caller must be a super-admin.

    Raises:
        HTTPException: If user is not a super-admin
    """
    if not current_user.is_platform_admin:
        logger.warning(
            f"User {short_id(current_user.id)} ({current_user.role}) denied super-admin operation"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super-admin access required"
        )
    return current_user


def get_credential_store(supabase: Client = Depends(get_supabase)) -> CredentialStore:
    return CredentialStore(supabase)


def get_email_dispatch_service(
    store: CredentialStore = Depends(get_credential_store)
) -> EmailDispatchService:
    return EmailDispatchService(store)


def get_lead_search_service() -> LeadSearchService:
    return LeadSearchService()


def get_campaign_service(supabase: Client = Depends(get_supabase)) -> CampaignService:
    return CampaignService(supabase)


def get_lead_service(supabase: Client = Depends(get_supabase)) -> LeadService:
    return LeadService(supabase)


def get_appointment_service(supabase: Client = Depends(get_supabase)) -> AppointmentService:
    return AppointmentService(supabase)


def get_tenant_admin_service(
    supabase: Client = Depends(get_supabase),
    store: CredentialStore = Depends(get_credential_store)
) -> TenantAdminService:
    return TenantAdminService(supabase, store=store)
