"""
Tenant Administration Service
Founder tenant bootstrap and user tenant claims.

Claims live in the Supabase auth user's app_metadata (read by
TenantMiddleware and get_current_user) and are mirrored in user_profiles.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client

from genie_gateway.core.config import Settings, get_settings
from genie_gateway.core.errors import NotFoundError, ValidationFailedError
from genie_gateway.core.logging_config import short_id
from genie_gateway.domain.models.tenant import (
    SUPER_ADMIN_PERMISSIONS,
    UNLIMITED_FEATURES,
    Tenant,
    TenantClaims,
    TenantRole,
    TenantStatus,
)
from genie_gateway.infrastructure.storage.credential_store import CredentialStore

logger = logging.getLogger(__name__)

TENANTS_TABLE = "tenants"
PROFILES_TABLE = "user_profiles"


class TenantAdminService:

    def __init__(
        self,
        supabase: Client,
        settings: Optional[Settings] = None,
        store: Optional[CredentialStore] = None
    ):
        self.supabase = supabase
        self.settings = settings or get_settings()
        self.store = store or CredentialStore(supabase)

    def _tenant_exists(self, tenant_id: str) -> bool:
        response = self.supabase.table(TENANTS_TABLE).select("id").eq("id", tenant_id).limit(1).execute()
        return bool(response.data)

    async def create_founder_tenant(self) -> Tenant:
        """Idempotent: upserts the founder tenant with unlimited features."""
        now = datetime.now(timezone.utc)
        tenant = Tenant(
            id=self.settings.founder_tenant_id,
            name=self.settings.founder_tenant_name,
            owner_id=self.settings.founder_owner_id,
            owner_email=self.settings.founder_owner_email,
            type="founder",
            plan="unlimited",
            features=dict(UNLIMITED_FEATURES),
            role=TenantRole.SUPER_ADMIN,
            status=TenantStatus.ACTIVE,
            updated_at=now,
        )
        row = tenant.model_dump(mode="json", exclude={"created_at"})
        self.supabase.table(TENANTS_TABLE).upsert(row, on_conflict="id").execute()

        logger.info(f"Founder tenant {tenant.id} ensured")
        return tenant

    async def _apply_claims(self, user_id: str, claims: TenantClaims) -> Dict[str, Any]:
        metadata = claims.to_app_metadata()
        self.supabase.auth.admin.update_user_by_id(user_id, {"app_metadata": metadata})
        self.supabase.table(PROFILES_TABLE).upsert({
            "id": user_id,
            "tenant_id": claims.tenant_id,
            "role": claims.role,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }, on_conflict="id").execute()
        return metadata

    async def set_user_tenant_claims(
        self,
        user_id: str,
        tenant_id: str,
        role: str = TenantRole.USER.value
    ) -> Dict[str, Any]:
        if not user_id or not tenant_id:
            raise ValidationFailedError("userId and tenantId are required")
        if role not in {r.value for r in TenantRole}:
            raise ValidationFailedError(f"Invalid role: {role}")
        if not self._tenant_exists(tenant_id):
            raise NotFoundError(f"Tenant not found: {tenant_id}")

        claims = TenantClaims(
            tenant_id=tenant_id,
            role=role,
            is_super_admin=role == TenantRole.SUPER_ADMIN.value,
        )
        metadata = await self._apply_claims(user_id, claims)
        logger.info(f"Set claims for user {short_id(user_id)}: tenant {short_id(tenant_id)}, role {role}")
        return metadata

    async def fix_user_claims(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        """Give a user (default: the founder owner) super-admin claims on the founder tenant."""
        user_id = user_id or self.settings.founder_owner_id
        if not user_id:
            raise ValidationFailedError("userId is required")

        claims = TenantClaims(
            tenant_id=self.settings.founder_tenant_id,
            role=TenantRole.SUPER_ADMIN.value,
            is_super_admin=True,
            is_founder=True,
            permissions=dict(SUPER_ADMIN_PERMISSIONS),
        )
        metadata = await self._apply_claims(user_id, claims)
        logger.info(f"Applied founder claims to user {short_id(user_id)}")
        return metadata

    async def copy_integrations_to_founder(self, source_tenant_id: str) -> Dict[str, Any]:
        """Copy every stored credential row of a tenant onto the founder tenant."""
        if not source_tenant_id:
            raise ValidationFailedError("sourceTenantId is required")

        target = self.settings.founder_tenant_id
        if source_tenant_id == target:
            raise ValidationFailedError("Source tenant is already the founder tenant")

        rows = await self.store.list_raw_rows(source_tenant_id)
        copied = []
        for row in rows:
            copy = {k: v for k, v in row.items() if k != "id"}
            copy["tenant_id"] = target
            copy["updated_at"] = datetime.now(timezone.utc).isoformat()
            await self.store.upsert_raw_row(copy)
            copied.append(row["provider"])

        logger.info(f"Copied {len(copied)} integration(s) from {short_id(source_tenant_id)} to {target}")
        return {"copied": copied, "count": len(copied), "targetTenantId": target}
