"""
Campaign Service
Campaign CRUD plus the durable send jobs the campaign worker executes.

Sending model:
- enqueue_send() writes a `campaign_jobs` row; a campaign has at most one
  active job (pending, running or cancel_requested)
- the worker claims a job with a conditional pending -> running update
- recipients already in campaign.sent_emails are skipped, and each
  successful send is merged into sent_emails and persisted before the next
  send, so a cancelled or crashed job resumes without duplicates
- sends are paced by a fixed delay; cancellation is checked before each send
"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from supabase import Client

from genie_gateway.core.config import Settings, get_settings
from genie_gateway.core.errors import (
    ConflictError,
    CredentialsNotConfiguredError,
    GatewayError,
    NotFoundError,
    ReconnectRequiredError,
    ValidationFailedError,
)
from genie_gateway.core.logging_config import short_id
from genie_gateway.domain.models.campaign import (
    ACTIVE_JOB_STATUSES,
    Campaign,
    CampaignJob,
    CampaignStatus,
    JobStatus,
    normalize_email,
)
from genie_gateway.domain.models.email import OutboundEmail
from genie_gateway.domain.services.campaign_content import (
    CampaignContentError,
    CampaignContentRenderer,
    get_campaign_content_renderer,
)
from genie_gateway.infrastructure.storage.credential_store import CredentialStore
from genie_gateway.services.email_dispatch_service import EmailDispatchService
from genie_gateway.utils.tenant_filter import apply_tenant_filter, exclude_deleted

logger = logging.getLogger(__name__)

CAMPAIGNS_TABLE = "campaigns"
JOBS_TABLE = "campaign_jobs"
LEADS_TABLE = "leads"

# Errors that will fail every remaining recipient the same way
FATAL_SEND_ERRORS = (CredentialsNotConfiguredError, ReconnectRequiredError, CampaignContentError)

_tenant_semaphores: Dict[str, asyncio.Semaphore] = {}


def _tenant_semaphore(tenant_id: str, limit: int) -> asyncio.Semaphore:
    semaphore = _tenant_semaphores.get(tenant_id)
    if semaphore is None:
        semaphore = _tenant_semaphores[tenant_id] = asyncio.Semaphore(max(1, limit))
    return semaphore


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CampaignService:

    def __init__(
        self,
        supabase: Client,
        dispatch: Optional[EmailDispatchService] = None,
        renderer: Optional[CampaignContentRenderer] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.supabase = supabase
        self.dispatch = dispatch or EmailDispatchService(CredentialStore(supabase))
        self.renderer = renderer or get_campaign_content_renderer()
        self.settings = settings or get_settings()
        self._sleep = sleep

    # Campaigns

    async def create_campaign(self, tenant_id: str, data: Dict[str, Any]) -> Campaign:
        try:
            self.renderer.validate(data.get("subject") or "", data.get("email_content") or "")
        except CampaignContentError as e:
            raise ValidationFailedError(f"{e.message}: {'; '.join(e.issues)}")

        campaign = Campaign(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            name=data.get("name") or data["subject"],
            subject=data["subject"],
            email_content=data["email_content"],
            target_audience=data.get("target_audience") or "all",
            custom_segments=data.get("custom_segments") or [],
            batch_size=data.get("batch_size") or self.settings.campaign_batch_size,
            provider=data.get("provider") or "gmail",
            status=CampaignStatus.DRAFT,
        )
        row = campaign.model_dump(mode="json", exclude={"created_at", "updated_at"})
        row["created_at"] = row["updated_at"] = _now()
        self.supabase.table(CAMPAIGNS_TABLE).insert(row).execute()

        logger.info(f"Created campaign {campaign.id} for tenant {short_id(tenant_id)}")
        return campaign

    async def get_campaign(self, tenant_id: str, campaign_id: str) -> Campaign:
        query = self.supabase.table(CAMPAIGNS_TABLE).select("*").eq("id", campaign_id)
        response = apply_tenant_filter(query, tenant_id).limit(1).execute()
        if not response.data:
            raise NotFoundError("Campaign not found")
        return Campaign(**response.data[0])

    async def list_campaigns(self, tenant_id: str) -> List[Campaign]:
        query = self.supabase.table(CAMPAIGNS_TABLE).select("*")
        response = apply_tenant_filter(query, tenant_id).order("created_at", desc=True).execute()
        return [Campaign(**row) for row in response.data or []]

    async def _save_campaign(self, campaign: Campaign, **fields: Any) -> None:
        update = {"status": campaign.status.value, "updated_at": _now(), **fields}
        query = self.supabase.table(CAMPAIGNS_TABLE).update(update).eq("id", campaign.id)
        apply_tenant_filter(query, campaign.tenant_id).execute()

    # Recipients

    async def resolve_recipients(
        self,
        campaign: Campaign,
        recipients: Optional[List[Dict[str, Any]]] = None
    ) -> List[Dict[str, Any]]:
        """Explicit recipients, or the tenant's leads (restricted to the campaign's segments)."""
        if recipients:
            return [r for r in recipients if normalize_email(r.get("email", ""))]

        query = self.supabase.table(LEADS_TABLE).select("*")
        response = exclude_deleted(apply_tenant_filter(query, campaign.tenant_id)).execute()

        segments = set(campaign.custom_segments)
        resolved = []
        for lead in response.data or []:
            if not lead.get("email"):
                continue
            if segments and not segments.intersection(lead.get("tags") or []):
                continue
            resolved.append({
                "email": lead["email"],
                "firstName": lead.get("first_name") or "",
                "lastName": lead.get("last_name") or "",
                "company": lead.get("company") or "",
                "leadId": lead.get("id"),
            })
        return resolved

    # Jobs

    async def _active_job(self, tenant_id: str, campaign_id: str) -> Optional[Dict[str, Any]]:
        query = self.supabase.table(JOBS_TABLE).select("*").eq("campaign_id", campaign_id)
        response = apply_tenant_filter(query, tenant_id).in_("status", sorted(ACTIVE_JOB_STATUSES)).execute()
        return (response.data or [None])[0]

    async def enqueue_send(
        self,
        tenant_id: str,
        campaign_id: str,
        recipients: Optional[List[Dict[str, Any]]] = None,
        provider: Optional[str] = None
    ) -> CampaignJob:
        """
        Queue a send job for the campaign.

        Raises:
            NotFoundError: unknown campaign
            ValidationFailedError: campaign finished, or nobody left to mail
            ConflictError: a job for this campaign is already active
        """
        campaign = await self.get_campaign(tenant_id, campaign_id)
        if campaign.is_terminal:
            raise ValidationFailedError(f"Campaign already {campaign.status.value.lower()}")

        if await self._active_job(tenant_id, campaign_id):
            raise ConflictError("A send job is already active for this campaign")

        resolved = await self.resolve_recipients(campaign, recipients)
        if not campaign.remaining(resolved):
            raise ValidationFailedError("No recipients left to send")

        job = CampaignJob(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            campaign_id=campaign_id,
            provider=provider or campaign.provider,
            recipients=resolved,
            status=JobStatus.PENDING,
        )
        row = job.model_dump(mode="json", exclude={"started_at", "finished_at"})
        row["created_at"] = _now()
        self.supabase.table(JOBS_TABLE).insert(row).execute()

        logger.info(
            f"Queued job {job.id} for campaign {campaign_id} "
            f"({len(resolved)} recipients, provider {job.provider})"
        )
        return job

    async def get_job(self, tenant_id: str, job_id: str) -> CampaignJob:
        query = self.supabase.table(JOBS_TABLE).select("*").eq("id", job_id)
        response = apply_tenant_filter(query, tenant_id).limit(1).execute()
        if not response.data:
            raise NotFoundError("Job not found")
        return CampaignJob(**response.data[0])

    async def request_cancel(self, tenant_id: str, job_id: str) -> CampaignJob:
        """Pending jobs are cancelled at once; running jobs stop before their next send."""
        job = await self.get_job(tenant_id, job_id)

        if job.status == JobStatus.PENDING:
            target = JobStatus.CANCELLED
        elif job.status in (JobStatus.RUNNING, JobStatus.CANCEL_REQUESTED):
            target = JobStatus.CANCEL_REQUESTED
        else:
            raise ConflictError(f"Job already {job.status.value}")

        update: Dict[str, Any] = {"status": target.value}
        if target == JobStatus.CANCELLED:
            update["finished_at"] = _now()

        query = self.supabase.table(JOBS_TABLE).update(update).eq("id", job_id).eq("status", job.status.value)
        response = apply_tenant_filter(query, tenant_id).execute()
        if not response.data:
            # Status moved underneath us; report what is stored now
            return await self.get_job(tenant_id, job_id)

        job.status = target
        logger.info(f"Cancellation for job {job_id}: {target.value}")
        return job

    async def next_pending_job(self) -> Optional[CampaignJob]:
        response = self.supabase.table(JOBS_TABLE).select("*").eq(
            "status", JobStatus.PENDING.value
        ).order("created_at").limit(1).execute()
        if not response.data:
            return None
        return CampaignJob(**response.data[0])

    async def claim_job(self, job: CampaignJob) -> bool:
        """pending -> running; False if another worker (or a cancel) got there first."""
        response = self.supabase.table(JOBS_TABLE).update({
            "status": JobStatus.RUNNING.value,
            "started_at": _now(),
        }).eq("id", job.id).eq("status", JobStatus.PENDING.value).execute()
        if not response.data:
            return False
        job.status = JobStatus.RUNNING
        return True

    async def _job_status(self, job: CampaignJob) -> JobStatus:
        response = self.supabase.table(JOBS_TABLE).select("status").eq("id", job.id).limit(1).execute()
        if not response.data:
            return JobStatus.CANCELLED
        return JobStatus(response.data[0]["status"])

    async def save_progress(self, job: CampaignJob) -> None:
        """Counters only; status is left alone so a concurrent cancel request survives."""
        self.supabase.table(JOBS_TABLE).update({
            "sent_count": job.sent_count,
            "failed_count": job.failed_count,
            "last_error": job.last_error,
        }).eq("id", job.id).execute()

    async def save_job(self, job: CampaignJob, **fields: Any) -> None:
        update = {
            "status": job.status.value,
            "sent_count": job.sent_count,
            "failed_count": job.failed_count,
            "last_error": job.last_error,
            **fields,
        }
        self.supabase.table(JOBS_TABLE).update(update).eq("id", job.id).execute()

    async def run_job(self, job: CampaignJob) -> CampaignJob:
        """Execute a claimed job under the tenant's concurrency cap."""
        semaphore = _tenant_semaphore(job.tenant_id, self.settings.campaign_max_jobs_per_tenant)
        async with semaphore:
            return await self._run(job)

    async def _run(self, job: CampaignJob) -> CampaignJob:
        try:
            campaign = await self.get_campaign(job.tenant_id, job.campaign_id)
        except NotFoundError:
            job.status = JobStatus.FAILED
            job.last_error = "Campaign not found"
            await self.save_job(job, finished_at=_now())
            return job

        campaign.transition(CampaignStatus.SENDING)
        await self._save_campaign(campaign)

        try:
            await self._send_pending(job, campaign)
        except Exception as e:
            # Never leave the campaign stuck in Sending
            logger.error(f"Job {job.id} crashed: {e}", exc_info=True)
            job.status = JobStatus.FAILED
            job.last_error = str(e)
            if campaign.can_transition(CampaignStatus.FAILED):
                campaign.transition(CampaignStatus.FAILED)
            await self._save_campaign(campaign)
            await self.save_job(job, finished_at=_now())
            raise

        await self._save_campaign(campaign)
        await self.save_job(job, finished_at=_now())

        logger.info(
            f"Job {job.id} finished: {job.status.value} "
            f"(sent {job.sent_count}, failed {job.failed_count}, campaign {campaign.status.value})"
        )
        return job

    async def _send_pending(self, job: CampaignJob, campaign: Campaign) -> None:
        """Send to every recipient not yet mailed and settle job and campaign status."""
        pending = campaign.remaining(job.recipients)
        delay = self.settings.campaign_send_delay_seconds
        logger.info(f"Job {job.id}: {len(pending)} of {len(job.recipients)} recipients left to send")

        cancelled = False
        fatal = False
        for index, recipient in enumerate(pending):
            if await self._job_status(job) == JobStatus.CANCEL_REQUESTED:
                cancelled = True
                break

            if index > 0 and delay > 0:
                await self._sleep(delay)

            try:
                rendered = self.renderer.render(campaign.subject, campaign.email_content, recipient)
                await self.dispatch.send(job.tenant_id, job.provider, OutboundEmail(
                    to=recipient["email"],
                    subject=rendered.subject,
                    html=rendered.html,
                ))
            except FATAL_SEND_ERRORS as e:
                job.failed_count += 1
                job.last_error = e.message
                fatal = True
                logger.error(f"Job {job.id} stopped: {e.message}")
                break
            except GatewayError as e:
                job.failed_count += 1
                job.last_error = e.message
                logger.warning(f"Job {job.id}: send to recipient {index + 1} failed: {e.message}")
                await self.save_progress(job)
                continue

            job.sent_count += 1
            sent = campaign.merge_sent([recipient["email"]])
            await self._save_campaign(campaign, sent_emails=sent)
            await self.save_progress(job)

        if cancelled:
            job.status = JobStatus.CANCELLED
            campaign.transition(CampaignStatus.PAUSED)
        elif fatal:
            job.status = JobStatus.FAILED
            campaign.transition(CampaignStatus.FAILED)
        else:
            job.status = JobStatus.COMPLETED
            campaign.transition(CampaignStatus.COMPLETED if job.failed_count else CampaignStatus.SENT)
