"""
Leads API
Tenant CRM leads: CRUD, tags, CSV import, saving lead search results and
subscribing a lead to a list at a connected email provider.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import BaseModel, Field

from genie_gateway.api.v1.dependencies import (
    CurrentUser,
    get_current_user,
    get_email_dispatch_service,
    get_lead_service,
)
from genie_gateway.core.errors import ValidationFailedError
from genie_gateway.domain.models.email import Contact
from genie_gateway.domain.models.lead import LeadSearchData
from genie_gateway.services.email_dispatch_service import EmailDispatchService
from genie_gateway.services.lead_service import ImportResult, LeadService, decode_csv

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["leads"])

MAX_CSV_BYTES = 5 * 1024 * 1024


class LeadCreate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    company: Optional[str] = None
    phone: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    score: int = 0


class LeadUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    score: Optional[int] = None


class TagRequest(BaseModel):
    tags: List[str] = Field(..., min_length=1)


class EnrichmentSaveRequest(BaseModel):
    """A successful leadGenProxy result the user chose to keep."""
    provider: str
    data: Dict[str, Any]
    search_data: Optional[LeadSearchData] = Field(None, alias="searchData")

    class Config:
        populate_by_name = True


class SubscribeRequest(BaseModel):
    """Provider list to subscribe a lead to (Zoho list key or Kit tag id)."""
    provider: str
    list_id: Optional[str] = Field(None, alias="listId")

    class Config:
        populate_by_name = True


@router.get("")
async def list_leads(
    tag: Optional[str] = Query(None, description="Only leads carrying this tag"),
    current_user: CurrentUser = Depends(get_current_user),
    service: LeadService = Depends(get_lead_service)
):
    leads = await service.list_leads(current_user.tenant_id, tag=tag)
    return {"leads": [lead.model_dump(mode="json") for lead in leads], "total": len(leads)}


@router.post("", status_code=201)
async def create_lead(
    body: LeadCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: LeadService = Depends(get_lead_service)
):
    lead = await service.create_lead(current_user.tenant_id, body.model_dump())
    return {"lead": lead.model_dump(mode="json")}


@router.post("/import", response_model=ImportResult)
async def import_leads(
    file: UploadFile = File(...),
    current_user: CurrentUser = Depends(get_current_user),
    service: LeadService = Depends(get_lead_service)
):
    """
    Import leads from a CSV upload.

    Expects an email or phone column; duplicates of existing leads (by email)
    are skipped and reported.
    """
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise ValidationFailedError("File must be a CSV file (.csv extension)")

    content = await file.read()
    if len(content) > MAX_CSV_BYTES:
        raise ValidationFailedError("CSV file too large (max 5MB)")

    return await service.import_csv(current_user.tenant_id, decode_csv(content))


@router.post("/enrichment", status_code=201)
async def save_enrichment(
    body: EnrichmentSaveRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: LeadService = Depends(get_lead_service)
):
    leads = await service.save_enrichment(current_user.tenant_id, body.provider, body.data, body.search_data)
    return {"leads": [lead.model_dump(mode="json") for lead in leads]}


@router.get("/{lead_id}")
async def get_lead(
    lead_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: LeadService = Depends(get_lead_service)
):
    lead = await service.get_lead(current_user.tenant_id, lead_id)
    return {"lead": lead.model_dump(mode="json")}


@router.patch("/{lead_id}")
async def update_lead(
    lead_id: str,
    body: LeadUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: LeadService = Depends(get_lead_service)
):
    lead = await service.update_lead(current_user.tenant_id, lead_id, body.model_dump(exclude_none=True))
    return {"lead": lead.model_dump(mode="json")}


@router.post("/{lead_id}/tags")
async def tag_lead(
    lead_id: str,
    body: TagRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: LeadService = Depends(get_lead_service)
):
    lead = await service.add_tags(current_user.tenant_id, lead_id, body.tags)
    return {"lead": lead.model_dump(mode="json")}


@router.post("/{lead_id}/subscribe")
async def subscribe_lead(
    lead_id: str,
    body: SubscribeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: LeadService = Depends(get_lead_service),
    dispatch: EmailDispatchService = Depends(get_email_dispatch_service)
):
    """Add the lead as a contact on one of the tenant's provider lists."""
    lead = await service.get_lead(current_user.tenant_id, lead_id)
    if not lead.email:
        raise ValidationFailedError("Lead has no email address")

    contact = Contact(
        email=lead.email,
        first_name=lead.first_name or "",
        last_name=lead.last_name or "",
        company=lead.company or "",
    )
    await dispatch.add_contact(current_user.tenant_id, body.provider, contact, body.list_id)
    return {"success": True, "provider": body.provider, "listId": body.list_id}


@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: LeadService = Depends(get_lead_service)
):
    """Soft delete."""
    await service.delete_lead(current_user.tenant_id, lead_id)
    return {"success": True}
