"""
Tenant Filter Utility
Shared helpers for scoping Supabase queries to one tenant
"""
from typing import Any


def apply_tenant_filter(query: Any, tenant_id: str, column: str = "tenant_id") -> Any:
    """
    Restrict a Supabase query to one tenant.

    Every read and write in this service is tenant-scoped, so a missing
    tenant_id is a programming error rather than "all tenants".

    Usage:
        query = supabase.table("leads").select("*")
        response = apply_tenant_filter(query, tenant_id).execute()
    """
    if not tenant_id:
        raise ValueError("tenant_id is required for tenant-scoped queries")
    return query.eq(column, tenant_id)


def exclude_deleted(query: Any, column: str = "deleted_at") -> Any:
    """Skip soft-deleted rows."""
    return query.is_(column, "null")


def verify_tenant_access(
    supabase: Any,
    table: str,
    record_id: str,
    tenant_id: str,
    tenant_column: str = "tenant_id"
) -> bool:
    """
    True if the record exists and belongs to the tenant.

    Usage:
        if not verify_tenant_access(supabase, "appointments", appointment_id, tenant_id):
            raise NotFoundError("Appointment not found")
    """
    if not tenant_id or not record_id:
        return False
    response = supabase.table(table).select("id").eq("id", record_id).eq(tenant_column, tenant_id).execute()
    return bool(response.data)
