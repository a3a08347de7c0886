"""
Tenant Models
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TenantStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"  # Tenants are never hard-deleted


class TenantRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super-admin"


UNLIMITED_FEATURES: Dict[str, Any] = {
    "maxLeads": -1,
    "maxUsers": -1,
    "maxIntegrations": -1,
    "advancedFeatures": True,
}

SUPER_ADMIN_PERMISSIONS: Dict[str, bool] = {
    "canAccessAllTenants": True,
    "canManageUsers": True,
    "canManageSettings": True,
    "canViewAnalytics": True,
    "canManageBilling": True,
    "canManageIntegrations": True,
    "canExportData": True,
    "canDeleteData": True,
}


class Tenant(BaseModel):
    """A customer account; every other entity is scoped to one."""
    id: str
    name: str
    owner_id: Optional[str] = None
    owner_email: Optional[str] = None
    type: str = "standard"
    plan: str = "free"
    features: Dict[str, Any] = Field(default_factory=dict)
    billing: Dict[str, Any] = Field(default_factory=dict)
    role: TenantRole = TenantRole.USER
    status: TenantStatus = TenantStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        use_enum_values = True


class TenantClaims(BaseModel):
    """Claims written to a user's auth app_metadata."""
    tenant_id: str
    role: str = TenantRole.USER.value
    is_super_admin: bool = False
    is_founder: bool = False
    permissions: Dict[str, bool] = Field(default_factory=dict)

    def to_app_metadata(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "role": self.role,
            "is_super_admin": self.is_super_admin,
            "is_founder": self.is_founder,
            "permissions": self.permissions,
        }
