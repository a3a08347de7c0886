"""
Email Sending Models
Gateway request body and the provider-neutral outbound message.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

_TAG_PATTERN = re.compile(r"<[^>]*>")

MISSING_SEND_FIELDS_MESSAGE = "Missing required fields: to, subject, content, tenantId"


def strip_html(content: str) -> str:
    """Plain-text alternative for an HTML body."""
    return _TAG_PATTERN.sub("", content or "")


class SendEmailRequest(BaseModel):
    """
    Body accepted by every send endpoint.

    `to` and `email` are interchangeable; all fields are optional here so the
    endpoint can answer with the gateway's own 400 envelope.
    """
    to: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None
    tenant_id: Optional[str] = Field(None, alias="tenantId")
    from_name: Optional[str] = Field(None, alias="fromName")
    from_email: Optional[str] = Field(None, alias="fromEmail")

    class Config:
        populate_by_name = True
        extra = "allow"

    @property
    def recipient(self) -> Optional[str]:
        return self.to or self.email

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.recipient:
            missing.append("to")
        if not self.subject:
            missing.append("subject")
        if not self.content:
            missing.append("content")
        if not self.tenant_id:
            missing.append("tenantId")
        return missing


class OutboundEmail(BaseModel):
    """Provider-neutral message handed to an EmailProvider."""
    to: str
    subject: str
    html: str
    text: Optional[str] = None
    from_name: Optional[str] = None
    from_email: Optional[str] = None

    @property
    def plain_text(self) -> str:
        return self.text if self.text is not None else strip_html(self.html)

    @classmethod
    def from_request(cls, request: SendEmailRequest) -> "OutboundEmail":
        return cls(
            to=request.recipient,
            subject=request.subject,
            html=request.content,
            from_name=request.from_name,
            from_email=request.from_email,
        )


class Contact(BaseModel):
    """A person to subscribe to one of a provider's mailing lists."""
    email: str
    first_name: str = ""
    last_name: str = ""
    company: str = ""


@dataclass
class SendResult:
    """Normalized result of a successful provider send."""
    message_id: Optional[str]
    provider: str
    to: str
    subject: str
    from_address: Optional[str] = None
    sent_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "messageId": self.message_id,
            "provider": self.provider,
            "from": self.from_address,
            "to": self.to,
            "subject": self.subject,
        }
