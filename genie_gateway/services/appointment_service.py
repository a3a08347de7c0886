"""
Appointment Service
Booked meetings: create, list, reschedule, cancel (hard delete) and stats.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from supabase import Client

from genie_gateway.core.errors import NotFoundError, ValidationFailedError
from genie_gateway.core.logging_config import short_id
from genie_gateway.domain.models.appointment import Appointment, AppointmentStats, AppointmentStatus
from genie_gateway.domain.models.credential import parse_timestamp
from genie_gateway.utils.tenant_filter import apply_tenant_filter, verify_tenant_access

logger = logging.getLogger(__name__)

TABLE = "appointments"


class AppointmentService:

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def list_appointments(self, tenant_id: str) -> List[Appointment]:
        """Ordered by start time, earliest first."""
        query = self.supabase.table(TABLE).select("*")
        response = apply_tenant_filter(query, tenant_id).order("start_time").execute()
        return [Appointment(**row) for row in response.data or []]

    async def get_appointment(self, tenant_id: str, appointment_id: str) -> Appointment:
        query = self.supabase.table(TABLE).select("*").eq("id", appointment_id)
        response = apply_tenant_filter(query, tenant_id).limit(1).execute()
        if not response.data:
            raise NotFoundError("Appointment not found")
        return Appointment(**response.data[0])

    async def create_appointment(self, tenant_id: str, data: Dict[str, Any]) -> Appointment:
        try:
            appointment = Appointment(id=str(uuid.uuid4()), tenant_id=tenant_id, **data)
        except ValidationError as e:
            raise ValidationFailedError(f"Invalid appointment: {e.errors()[0]['msg']}")

        self.supabase.table(TABLE).insert(appointment.model_dump(mode="json")).execute()
        logger.info(f"Booked appointment {appointment.id} for tenant {short_id(tenant_id)}")
        return appointment

    async def reschedule(
        self,
        tenant_id: str,
        appointment_id: str,
        start_time: datetime,
        end_time: datetime,
        status: Optional[AppointmentStatus] = None
    ) -> Appointment:
        """Move an appointment in place."""
        appointment = await self.get_appointment(tenant_id, appointment_id)
        try:
            updated = Appointment(**{
                **appointment.model_dump(),
                "start_time": start_time,
                "end_time": end_time,
                "status": status or appointment.status,
            })
        except ValidationError as e:
            raise ValidationFailedError(f"Invalid appointment: {e.errors()[0]['msg']}")

        query = self.supabase.table(TABLE).update({
            "start_time": updated.start_time.isoformat(),
            "end_time": updated.end_time.isoformat(),
            "status": updated.status.value,
        }).eq("id", appointment_id)
        apply_tenant_filter(query, tenant_id).execute()
        return updated

    async def cancel(self, tenant_id: str, appointment_id: str) -> None:
        """Cancelling removes the appointment."""
        if not verify_tenant_access(self.supabase, TABLE, appointment_id, tenant_id):
            raise NotFoundError("Appointment not found")

        query = self.supabase.table(TABLE).delete().eq("id", appointment_id)
        apply_tenant_filter(query, tenant_id).execute()
        logger.info(f"Cancelled appointment {appointment_id} for tenant {short_id(tenant_id)}")

    async def stats(self, tenant_id: str, now: Optional[datetime] = None) -> AppointmentStats:
        now = now or datetime.now(timezone.utc)
        query = self.supabase.table(TABLE).select("status, start_time")
        rows = apply_tenant_filter(query, tenant_id).execute().data or []

        stats = AppointmentStats(total=len(rows))
        for row in rows:
            status = row.get("status")
            if status == AppointmentStatus.CANCELLED.value:
                stats.cancelled += 1
                continue
            if status in (AppointmentStatus.BOOKED.value, AppointmentStatus.CONFIRMED.value):
                stats.booked += 1
            start = parse_timestamp(row.get("start_time"))
            if start and start > now:
                stats.upcoming += 1
        return stats
