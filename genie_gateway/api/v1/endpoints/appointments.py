"""
Appointments API
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from genie_gateway.api.v1.dependencies import CurrentUser, get_appointment_service, get_current_user
from genie_gateway.domain.models.appointment import AppointmentStatus
from genie_gateway.services.appointment_service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["appointments"])


class AppointmentCreate(BaseModel):
    client_name: str
    email: str
    start_time: datetime
    end_time: datetime
    meeting_type: str = "consultation"
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: Optional[str] = None


class RescheduleRequest(BaseModel):
    start_time: datetime
    end_time: datetime
    status: Optional[AppointmentStatus] = None


@router.get("")
async def list_appointments(
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointments = await service.list_appointments(current_user.tenant_id)
    return {"appointments": [a.model_dump(mode="json") for a in appointments]}


@router.get("/stats")
async def appointment_stats(
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    stats = await service.stats(current_user.tenant_id)
    return stats.model_dump()


@router.post("", status_code=201)
async def create_appointment(
    body: AppointmentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.create_appointment(current_user.tenant_id, body.model_dump())
    return {"appointment": appointment.model_dump(mode="json")}


@router.put("/{appointment_id}")
async def reschedule_appointment(
    appointment_id: str,
    body: RescheduleRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.reschedule(
        current_user.tenant_id,
        appointment_id,
        body.start_time,
        body.end_time,
        status=body.status,
    )
    return {"appointment": appointment.model_dump(mode="json")}


@router.delete("/{appointment_id}")
async def cancel_appointment(
    appointment_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Cancelling deletes the appointment."""
    await service.cancel(current_user.tenant_id, appointment_id)
    return {"success": True}
