"""
Campaigns API
Campaign CRUD and send jobs. Sending itself happens in the campaign worker;
these endpoints only queue, inspect and cancel jobs.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from genie_gateway.api.v1.dependencies import CurrentUser, get_campaign_service, get_current_user
from genie_gateway.services.campaign_service import CampaignService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


class CampaignCreate(BaseModel):
    name: Optional[str] = None
    subject: str = Field(..., min_length=1)
    email_content: str = Field(..., min_length=1)
    target_audience: str = "all"
    custom_segments: List[str] = Field(default_factory=list)
    batch_size: Optional[int] = Field(None, ge=1)
    provider: Optional[str] = None


class Recipient(BaseModel):
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None


class CampaignSendRequest(BaseModel):
    """Explicit recipients; when omitted the tenant's leads are used."""
    recipients: Optional[List[Recipient]] = None
    provider: Optional[str] = None


@router.get("")
async def list_campaigns(
    current_user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service)
):
    """List the tenant's campaigns, newest first"""
    campaigns = await service.list_campaigns(current_user.tenant_id)
    return {"campaigns": [c.model_dump(mode="json") for c in campaigns]}


@router.post("", status_code=201)
async def create_campaign(
    body: CampaignCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service)
):
    """Create a draft campaign; subject and content templates are validated."""
    campaign = await service.create_campaign(current_user.tenant_id, body.model_dump(exclude_none=True))
    return {"campaign": campaign.model_dump(mode="json")}


@router.get("/{campaign_id}")
async def get_campaign(
    campaign_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service)
):
    campaign = await service.get_campaign(current_user.tenant_id, campaign_id)
    return {"campaign": campaign.model_dump(mode="json")}


@router.post("/{campaign_id}/send", status_code=202)
async def send_campaign(
    campaign_id: str,
    body: Optional[CampaignSendRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service)
):
    """
    Queue a send job for the campaign.

    Returns 409 while another job for the same campaign is still active.
    Recipients the campaign already mailed are skipped by the worker.
    """
    body = body or CampaignSendRequest()
    recipients: Optional[List[Dict[str, Any]]] = None
    if body.recipients is not None:
        recipients = [r.model_dump(exclude_none=True) for r in body.recipients]

    job = await service.enqueue_send(
        current_user.tenant_id,
        campaign_id,
        recipients=recipients,
        provider=body.provider,
    )
    return {
        "success": True,
        "job_id": job.id,
        "status": job.status.value,
        "recipients": len(job.recipients),
    }


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service)
):
    job = await service.get_job(current_user.tenant_id, job_id)
    return {"job": job.model_dump(mode="json", exclude={"recipients"})}


@router.post("/jobs/{job_id}/cancel")
async def cancel_job(
    job_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service)
):
    """Pending jobs stop immediately; running jobs stop before their next send."""
    job = await service.request_cancel(current_user.tenant_id, job_id)
    return {"success": True, "job_id": job.id, "status": job.status.value}
