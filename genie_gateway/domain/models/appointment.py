"""
Appointment Models
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    BOOKED = "booked"
    CANCELLED = "cancelled"


class Appointment(BaseModel):
    """Booked meeting with a client. Rescheduling mutates it; cancelling deletes it."""
    id: Optional[str] = None
    tenant_id: str
    client_name: str
    email: str
    start_time: datetime
    end_time: datetime
    meeting_type: str = "consultation"
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_time_range(self) -> "Appointment":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AppointmentStats(BaseModel):
    upcoming: int = 0
    booked: int = 0
    cancelled: int = 0
    total: int = 0
