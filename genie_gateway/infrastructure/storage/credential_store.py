"""
Credential Store
Per-tenant, per-provider integration credentials kept in the Supabase
`integrations` table, secret fields encrypted at rest.

Row layout:
    tenant_id, provider      -- unique pair
    credentials              -- JSON document, SECRET_FIELDS encrypted
    status, version          -- version bumps on every write
    connected_at, updated_at
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from genie_gateway.core.logging_config import short_id
from genie_gateway.domain.models.credential import (
    CredentialLookup,
    CredentialStatus,
    IntegrationCredential,
    parse_timestamp,
)
from genie_gateway.infrastructure.security.encryption import (
    CredentialEncryptionError,
    CredentialEncryptionService,
    get_encryption_service,
)

logger = logging.getLogger(__name__)

TABLE = "integrations"
NOT_FOUND_MESSAGE = "No credentials found"


class CredentialStore:
    """
    Reads and writes integration credentials.

    Every read goes to the database; nothing is cached, so a token refreshed
    by another process is visible on the next lookup.
    """

    def __init__(
        self,
        supabase: Client,
        encryption: Optional[CredentialEncryptionService] = None
    ):
        self.supabase = supabase
        self.encryption = encryption or get_encryption_service()

    def _to_credential(self, row: Dict[str, Any]) -> IntegrationCredential:
        data = self.encryption.decrypt_fields(row.get("credentials") or {})
        return IntegrationCredential(
            tenant_id=row["tenant_id"],
            provider=row["provider"],
            data=data,
            status=row.get("status") or CredentialStatus.CONNECTED.value,
            version=row.get("version") or 0,
            connected_at=parse_timestamp(row.get("connected_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )

    async def get_credentials(self, tenant_id: str, provider: str) -> CredentialLookup:
        """
        Fetch the credential for one (tenant, provider) pair.

        A missing row is reported through CredentialLookup(success=False),
        never raised.
        """
        if not tenant_id or not provider:
            return CredentialLookup(success=False, error=NOT_FOUND_MESSAGE)

        response = self.supabase.table(TABLE).select("*").eq(
            "tenant_id", tenant_id
        ).eq("provider", provider).limit(1).execute()

        if not response.data:
            logger.info(f"No {provider} credentials for tenant {short_id(tenant_id)}")
            return CredentialLookup(success=False, error=NOT_FOUND_MESSAGE)

        try:
            credential = self._to_credential(response.data[0])
        except CredentialEncryptionError as e:
            logger.error(f"Stored {provider} credentials unreadable for tenant {short_id(tenant_id)}: {e}")
            return CredentialLookup(success=False, error="Stored credentials could not be decrypted")

        return CredentialLookup(success=True, credential=credential)

    async def save_credentials(
        self,
        tenant_id: str,
        provider: str,
        data: Dict[str, Any],
        status: str = CredentialStatus.CONNECTED.value
    ) -> IntegrationCredential:
        """Create or replace the credential document; empty values are dropped."""
        if not tenant_id:
            raise ValueError("tenant_id is required")

        cleaned = {k: v for k, v in data.items() if v is not None and v != ""}
        now = datetime.now(timezone.utc)
        if status == CredentialStatus.CONNECTED.value:
            cleaned.setdefault("connectedAt", now.isoformat())

        existing = self.supabase.table(TABLE).select("version").eq(
            "tenant_id", tenant_id
        ).eq("provider", provider).limit(1).execute()
        version = ((existing.data or [{}])[0].get("version") or 0) + 1

        row = {
            "tenant_id": tenant_id,
            "provider": provider,
            "credentials": self.encryption.encrypt_fields(cleaned),
            "status": status,
            "version": version,
            "connected_at": cleaned.get("connectedAt"),
            "updated_at": now.isoformat(),
        }
        self.supabase.table(TABLE).upsert(row, on_conflict="tenant_id,provider").execute()

        logger.info(f"Saved {provider} credentials for tenant {short_id(tenant_id)} (v{version})")

        return IntegrationCredential(
            tenant_id=tenant_id,
            provider=provider,
            data=cleaned,
            status=status,
            version=version,
            connected_at=parse_timestamp(cleaned.get("connectedAt")),
            updated_at=now,
        )

    async def update_tokens(
        self,
        credential: IntegrationCredential,
        access_token: str,
        expires_at: datetime,
        refresh_token: Optional[str] = None
    ) -> Optional[IntegrationCredential]:
        """
        Persist refreshed OAuth tokens.

        The write only applies if the stored version still equals
        credential.version; returns the updated credential, or None when
        another writer got there first.
        """
        updated = credential.with_tokens(access_token, expires_at, refresh_token)

        response = self.supabase.table(TABLE).update({
            "credentials": self.encryption.encrypt_fields(updated.data),
            "status": updated.status,
            "version": updated.version,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("tenant_id", credential.tenant_id).eq(
            "provider", credential.provider
        ).eq("version", credential.version).execute()

        if not response.data:
            logger.info(
                f"Token update for {credential.provider} lost race "
                f"(tenant {short_id(credential.tenant_id)}, v{credential.version})"
            )
            return None

        return updated

    async def mark_status(self, tenant_id: str, provider: str, status: str) -> None:
        self.supabase.table(TABLE).update({
            "status": status,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("tenant_id", tenant_id).eq("provider", provider).execute()

    async def delete_credentials(self, tenant_id: str, provider: str) -> bool:
        """Disconnect: remove the credential row. Returns False if nothing was stored."""
        response = self.supabase.table(TABLE).delete().eq(
            "tenant_id", tenant_id
        ).eq("provider", provider).execute()

        deleted = bool(response.data)
        if deleted:
            logger.info(f"Deleted {provider} credentials for tenant {short_id(tenant_id)}")
        return deleted

    async def list_credentials(self, tenant_id: str) -> List[IntegrationCredential]:
        """All of a tenant's credentials; unreadable rows are skipped."""
        response = self.supabase.table(TABLE).select("*").eq(
            "tenant_id", tenant_id
        ).execute()

        credentials = []
        for row in response.data or []:
            try:
                credentials.append(self._to_credential(row))
            except CredentialEncryptionError as e:
                logger.warning(f"Skipping unreadable {row.get('provider')} credentials: {e}")
        return credentials

    async def list_raw_rows(self, tenant_id: str) -> List[Dict[str, Any]]:
        """Encrypted rows as stored, for copying between tenants."""
        response = self.supabase.table(TABLE).select("*").eq(
            "tenant_id", tenant_id
        ).execute()
        return response.data or []

    async def upsert_raw_row(self, row: Dict[str, Any]) -> None:
        self.supabase.table(TABLE).upsert(row, on_conflict="tenant_id,provider").execute()
