"""
Lead Service
Tenant CRM leads: CRUD, tagging, soft delete, CSV import and saving
enrichment results.
"""
import csv
import io
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from supabase import Client

from genie_gateway.core.errors import NotFoundError, ValidationFailedError
from genie_gateway.core.logging_config import short_id
from genie_gateway.domain.models.campaign import normalize_email
from genie_gateway.domain.models.lead import Lead, LeadSearchData
from genie_gateway.utils.tenant_filter import apply_tenant_filter, exclude_deleted

logger = logging.getLogger(__name__)

TABLE = "leads"

# Normalized CSV header -> lead field
HEADER_ALIASES = {
    "first_name": "first_name",
    "firstname": "first_name",
    "first": "first_name",
    "last_name": "last_name",
    "lastname": "last_name",
    "last": "last_name",
    "surname": "last_name",
    "email": "email",
    "e_mail": "email",
    "email_address": "email",
    "company": "company",
    "organization": "company",
    "company_name": "company",
    "phone": "phone",
    "phone_number": "phone",
    "mobile": "phone",
    "tags": "tags",
}

UPDATABLE_FIELDS = {"first_name", "last_name", "email", "company", "phone", "score", "tags"}


class ImportRowError(BaseModel):
    row: int
    error: str
    email: Optional[str] = None


class ImportResult(BaseModel):
    total_rows: int = 0
    imported: int = 0
    failed: int = 0
    duplicates_skipped: int = 0
    errors: List[ImportRowError] = []


def _normalize_header(header: str) -> str:
    return header.strip().lower().replace("-", "_").replace(" ", "_")


def decode_csv(content: bytes) -> str:
    for encoding in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ValidationFailedError("Unable to decode CSV file. Please use UTF-8 encoding.")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LeadService:

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _insert(self, lead: Lead) -> Lead:
        row = lead.model_dump(mode="json", exclude={"created_at", "updated_at", "deleted_at"})
        row["created_at"] = row["updated_at"] = _now()
        self.supabase.table(TABLE).insert(row).execute()
        return lead

    async def list_leads(self, tenant_id: str, tag: Optional[str] = None) -> List[Lead]:
        """Non-deleted leads, newest first."""
        query = self.supabase.table(TABLE).select("*")
        query = exclude_deleted(apply_tenant_filter(query, tenant_id))
        response = query.order("created_at", desc=True).execute()
        leads = [Lead(**row) for row in response.data or []]
        if tag:
            leads = [lead for lead in leads if tag in lead.tags]
        return leads

    async def get_lead(self, tenant_id: str, lead_id: str) -> Lead:
        query = self.supabase.table(TABLE).select("*").eq("id", lead_id)
        response = exclude_deleted(apply_tenant_filter(query, tenant_id)).limit(1).execute()
        if not response.data:
            raise NotFoundError("Lead not found")
        return Lead(**response.data[0])

    async def create_lead(self, tenant_id: str, data: Dict[str, Any]) -> Lead:
        if not data.get("email") and not data.get("phone"):
            raise ValidationFailedError("A lead needs an email or a phone number")

        lead = Lead(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            email=normalize_email(data["email"]) if data.get("email") else None,
            company=data.get("company"),
            phone=data.get("phone"),
            tags=data.get("tags") or [],
            score=data.get("score") or 0,
            source=data.get("source") or "manual",
        )
        self._insert(lead)
        logger.info(f"Created lead {lead.id} for tenant {short_id(tenant_id)} (source {lead.source})")
        return lead

    async def update_lead(self, tenant_id: str, lead_id: str, data: Dict[str, Any]) -> Lead:
        lead = await self.get_lead(tenant_id, lead_id)
        update = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS}
        if "email" in update and update["email"]:
            update["email"] = normalize_email(update["email"])
        if not update:
            return lead

        update["updated_at"] = _now()
        query = self.supabase.table(TABLE).update(update).eq("id", lead_id)
        apply_tenant_filter(query, tenant_id).execute()
        return await self.get_lead(tenant_id, lead_id)

    async def add_tags(self, tenant_id: str, lead_id: str, tags: List[str]) -> Lead:
        lead = await self.get_lead(tenant_id, lead_id)
        merged = list(lead.tags)
        for tag in tags:
            tag = tag.strip()
            if tag and tag not in merged:
                merged.append(tag)
        return await self.update_lead(tenant_id, lead_id, {"tags": merged})

    async def delete_lead(self, tenant_id: str, lead_id: str) -> None:
        """Soft delete: the row stays, marked with deleted_at."""
        await self.get_lead(tenant_id, lead_id)
        query = self.supabase.table(TABLE).update({"deleted_at": _now()}).eq("id", lead_id)
        apply_tenant_filter(query, tenant_id).execute()
        logger.info(f"Soft-deleted lead {lead_id} for tenant {short_id(tenant_id)}")

    async def _existing_emails(self, tenant_id: str) -> set:
        query = self.supabase.table(TABLE).select("email")
        response = exclude_deleted(apply_tenant_filter(query, tenant_id)).execute()
        return {normalize_email(row["email"]) for row in response.data or [] if row.get("email")}

    async def import_csv(self, tenant_id: str, text: str, source: str = "csv_import") -> ImportResult:
        """
        Import leads from CSV text.

        Headers are matched case-insensitively with common aliases
        (First Name, e-mail, phone_number, ...). Rows whose email already
        exists for the tenant, or repeats earlier in the file, are skipped.
        """
        reader = csv.DictReader(io.StringIO(text))
        if not reader.fieldnames:
            raise ValidationFailedError("CSV file is empty")

        columns = {
            name: HEADER_ALIASES[_normalize_header(name)]
            for name in reader.fieldnames
            if name and _normalize_header(name) in HEADER_ALIASES
        }
        if "email" not in columns.values() and "phone" not in columns.values():
            raise ValidationFailedError(
                f"CSV must have an email or phone column. Found: {', '.join(reader.fieldnames)}"
            )

        seen = await self._existing_emails(tenant_id)
        result = ImportResult()

        for row_num, row in enumerate(reader, start=2):
            result.total_rows += 1
            data: Dict[str, Any] = {}
            for header, field in columns.items():
                value = (row.get(header) or "").strip()
                if value:
                    data[field] = value

            email = normalize_email(data.get("email", ""))
            if not email and not data.get("phone"):
                result.errors.append(ImportRowError(row=row_num, error="Missing email and phone"))
                continue
            if email and "@" not in email:
                result.errors.append(ImportRowError(row=row_num, error="Invalid email", email=email))
                continue
            if email and email in seen:
                result.duplicates_skipped += 1
                continue

            if "tags" in data:
                data["tags"] = [t.strip() for t in data["tags"].replace(";", ",").split(",") if t.strip()]
            data["source"] = source

            await self.create_lead(tenant_id, data)
            if email:
                seen.add(email)
            result.imported += 1

        result.failed = len(result.errors)
        result.errors = result.errors[:50]
        logger.info(
            f"CSV import for tenant {short_id(tenant_id)}: {result.imported} imported, "
            f"{result.duplicates_skipped} duplicates, {result.failed} failed"
        )
        return result

    async def save_enrichment(
        self,
        tenant_id: str,
        provider: str,
        data: Dict[str, Any],
        search_data: Optional[LeadSearchData] = None
    ) -> List[Lead]:
        """
        Store a successful lead search as lead(s) with source=provider.

        Handles both single-person results and Prospeo domain results
        ({contacts: [...]}).
        """
        search_data = search_data or LeadSearchData()
        found = data.get("contacts") if isinstance(data.get("contacts"), list) else [data]

        leads = []
        for contact in found:
            if not contact.get("email"):
                continue
            leads.append(await self.create_lead(tenant_id, {
                "first_name": contact.get("first_name") or search_data.first_name,
                "last_name": contact.get("last_name") or search_data.last_name,
                "email": contact["email"],
                "company": contact.get("company") or search_data.company or search_data.clean_domain or None,
                "phone": contact.get("phone"),
                "score": int(contact.get("confidence") or 0),
                "source": provider,
            }))

        if not leads:
            raise ValidationFailedError("Result has no email to save")
        return leads
