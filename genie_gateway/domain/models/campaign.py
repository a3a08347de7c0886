"""
Campaign Models
Email campaigns and the durable jobs that send them in paced batches.
"""
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, Field


class CampaignStatus(str, Enum):
    """Lifecycle of a campaign"""
    DRAFT = "Draft"
    SENDING = "Sending"
    PAUSED = "Paused"        # Job cancelled; resumable
    SENT = "Sent"            # Every recipient delivered
    COMPLETED = "Completed"  # Finished, some recipients failed
    FAILED = "Failed"        # Provider not configured / reconnect required


CAMPAIGN_TRANSITIONS: Dict[CampaignStatus, Set[CampaignStatus]] = {
    CampaignStatus.DRAFT: {CampaignStatus.SENDING},
    CampaignStatus.SENDING: {
        CampaignStatus.PAUSED,
        CampaignStatus.SENT,
        CampaignStatus.COMPLETED,
        CampaignStatus.FAILED,
    },
    CampaignStatus.PAUSED: {CampaignStatus.SENDING},
    CampaignStatus.FAILED: {CampaignStatus.SENDING},
    CampaignStatus.SENT: set(),
    CampaignStatus.COMPLETED: set(),
}


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class Campaign(BaseModel):
    """
    Email campaign.

    sent_emails only ever grows: merge_sent() unions new addresses in, which is
    what lets an interrupted send resume without mailing anyone twice.
    """
    id: Optional[str] = None
    tenant_id: str
    name: str
    subject: str
    email_content: str
    target_audience: str = "all"
    custom_segments: List[str] = Field(default_factory=list)
    batch_size: int = 50
    sent_emails: List[str] = Field(default_factory=list)
    status: CampaignStatus = CampaignStatus.DRAFT
    provider: str = "gmail"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    TERMINAL: ClassVar[Set[CampaignStatus]] = {CampaignStatus.SENT, CampaignStatus.COMPLETED}

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL

    def can_transition(self, target: CampaignStatus) -> bool:
        if target == self.status:
            return True
        return target in CAMPAIGN_TRANSITIONS.get(self.status, set())

    def transition(self, target: CampaignStatus) -> None:
        if not self.can_transition(target):
            raise ValueError(f"Invalid campaign transition: {self.status.value} -> {target.value}")
        self.status = target

    def has_sent(self, email: str) -> bool:
        return normalize_email(email) in {normalize_email(e) for e in self.sent_emails}

    def merge_sent(self, emails: Iterable[str]) -> List[str]:
        """Add addresses to sent_emails, preserving order and never removing any."""
        seen = {normalize_email(e) for e in self.sent_emails}
        merged = list(self.sent_emails)
        for email in emails:
            key = normalize_email(email)
            if key and key not in seen:
                seen.add(key)
                merged.append(key)
        self.sent_emails = merged
        return merged

    def remaining(self, recipients: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Recipients that have not been mailed yet, de-duplicated by address."""
        sent = {normalize_email(e) for e in self.sent_emails}
        pending: List[Dict[str, Any]] = []
        for recipient in recipients:
            key = normalize_email(recipient.get("email", ""))
            if key and key not in sent:
                sent.add(key)
                pending.append(recipient)
        return pending


class JobStatus(str, Enum):
    """Status of a campaign send job"""
    PENDING = "pending"
    RUNNING = "running"
    CANCEL_REQUESTED = "cancel_requested"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_JOB_STATUSES = {JobStatus.PENDING.value, JobStatus.RUNNING.value, JobStatus.CANCEL_REQUESTED.value}


class CampaignJob(BaseModel):
    """Persisted send job; the worker claims pending rows one at a time."""
    id: Optional[str] = None
    tenant_id: str
    campaign_id: str
    provider: str
    recipients: List[Dict[str, Any]] = Field(default_factory=list)
    status: JobStatus = JobStatus.PENDING
    sent_count: int = 0
    failed_count: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status.value in ACTIVE_JOB_STATUSES
