"""
Lead Models
CRM leads plus the request/result shapes of the lead enrichment proxy.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

MISSING_SEARCH_FIELDS_MESSAGE = "Missing required fields: provider, apiKey, searchData"


class LeadNote(BaseModel):
    text: str
    created_at: Optional[datetime] = None


class Lead(BaseModel):
    """A tenant's contact. Soft-deleted via deleted_at."""
    id: Optional[str] = None
    tenant_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    score: int = 0
    source: str = "manual"
    notes: List[LeadNote] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class LeadSearchData(BaseModel):
    """Who to look up. Accepts the camelCase keys the frontend sends."""
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    company: Optional[str] = None
    domain: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "allow"

    @staticmethod
    def _present(value: Optional[str]) -> bool:
        # The frontend serialises missing names as the string "null"
        return bool(value) and value != "null"

    @property
    def has_person_name(self) -> bool:
        return self._present(self.first_name) and self._present(self.last_name)

    @property
    def clean_domain(self) -> str:
        return normalize_domain(self.domain or "")


class LeadSearchRequest(BaseModel):
    """Main leadGenProxy body."""
    provider: Optional[str] = None
    api_key: Optional[str] = Field(None, alias="apiKey")
    search_data: Optional[LeadSearchData] = Field(None, alias="searchData")

    class Config:
        populate_by_name = True

    def is_complete(self) -> bool:
        return bool(self.provider and self.api_key and self.search_data is not None)


def normalize_domain(domain: str) -> str:
    """Strip scheme and www. prefix the way users paste company websites."""
    return (
        domain.replace("www.", "")
        .replace("http://", "")
        .replace("https://", "")
        .strip()
        .strip("/")
    )


@dataclass
class LeadSearchResult:
    """Normalized enrichment result returned to the client as-is."""
    success: bool
    provider: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, provider: str, data: Dict[str, Any]) -> "LeadSearchResult":
        return cls(success=True, provider=provider, data=data)

    @classmethod
    def failed(cls, provider: str, error: str) -> "LeadSearchResult":
        return cls(success=False, provider=provider, error=error or "Unknown provider error")

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "provider": self.provider}
        if self.success:
            result["data"] = self.data or {}
        else:
            result["error"] = self.error
        return result


@dataclass
class ConnectionTestResult:
    """Outcome of an account/connection check."""
    success: bool
    message: Optional[str] = None
    credits: Any = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            result: Dict[str, Any] = {"success": True, "message": self.message}
            if self.credits is not None:
                result["credits"] = self.credits
            if self.details:
                result["data"] = self.details
            return result
        result = {"success": False, "error": self.error or "Connection failed"}
        if self.details:
            result["details"] = self.details
        return result
