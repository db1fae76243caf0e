import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..application.scheduling.slots import display_time
from ..application.services.appointments_service import PatientInfo
from ..application.services.links_service import SchedulingLinksService
from ..models import User
from ..schemas.common.common import DoctorSummary, MessageResponse, NameSummary
from ..schemas.links.link import (
    LinkAppointmentSummary,
    LinkDetails,
    LinkGenerateRequest,
    LinkGenerateResponse,
    LinkInfoResponse,
    LinkScheduleRequest,
    LinkScheduleResponse,
    LinkSlotResponse,
    LinkSlotsResponse,
)
from .deps import get_links_service, request_context, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointment-links", tags=["Appointment Links"])


def _doctor_summary(d) -> Optional[DoctorSummary]:
    if not d:
        return None
    return DoctorSummary(id=d.id, first_name=d.first_name, last_name=d.last_name, specialization=d.specialization)


@router.post("/generate", response_model=LinkGenerateResponse)
def generate_link(
    data: LinkGenerateRequest,
    request: Request,
    staff: User = Depends(require_roles("admin", "receptionist")),
    links_service: SchedulingLinksService = Depends(get_links_service),
):
    generated = links_service.generate_link(
        doctor_id=data.doctor_id,
        max_uses=data.max_uses,
        expires_in_days=data.expires_in_days,
        context=request_context(request, staff.id),
    )
    return LinkGenerateResponse(
        link=generated.url,
        token=generated.link.token,
        expires_at=generated.link.expires_at,
        max_uses=generated.link.max_uses,
    )


@router.patch("/{link_id}/deactivate", response_model=MessageResponse)
def deactivate_link(
    link_id: str,
    request: Request,
    staff: User = Depends(require_roles("admin", "receptionist")),
    links_service: SchedulingLinksService = Depends(get_links_service),
):
    links_service.deactivate_link(link_id, context=request_context(request, staff.id))
    return MessageResponse(message="Link deactivated")


@router.get("/public/{token}", response_model=LinkInfoResponse)
def get_link_info(
    token: str,
    links_service: SchedulingLinksService = Depends(get_links_service),
):
    info = links_service.get_link_info(token)
    return LinkInfoResponse(
        link=LinkDetails(
            id=info.link.id,
            doctor_id=info.link.doctor_id,
            doctor=_doctor_summary(info.doctor),
            doctors=[_doctor_summary(d) for d in info.doctors],
            expires_at=info.link.expires_at,
            max_uses=info.link.max_uses,
            current_uses=info.link.current_uses,
        )
    )


@router.get("/public/{token}/slots", response_model=LinkSlotsResponse)
def get_link_slots(
    token: str,
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    appointment_date: Optional[date] = Query(None, alias="date"),
    links_service: SchedulingLinksService = Depends(get_links_service),
):
    slots = links_service.get_available_slots(token, doctor_id, appointment_date)
    return LinkSlotsResponse(
        available_slots=[
            LinkSlotResponse(start_time=s.start, end_time=s.end, display_time=display_time(s.start))
            for s in slots
        ]
    )


@router.post("/public/{token}/schedule", response_model=LinkScheduleResponse, status_code=201)
def schedule_via_link(
    token: str,
    data: LinkScheduleRequest,
    request: Request,
    links_service: SchedulingLinksService = Depends(get_links_service),
):
    patient_info = PatientInfo(**data.patient_info.model_dump()) if data.patient_info else None
    details = links_service.schedule_via_link(
        token,
        doctor_id=data.doctor_id,
        appointment_date=data.appointment_date,
        start_time=data.start_time,
        end_time=data.end_time,
        appointment_type=data.appointment_type,
        reason=data.reason,
        patient_info=patient_info,
        context=request_context(request),
    )
    a, p, d = details.appointment, details.patient, details.doctor
    return LinkScheduleResponse(
        message="Cita programada exitosamente",
        appointment=LinkAppointmentSummary(
            id=a.id,
            appointment_date=a.appointment_date,
            start_time=a.start_time,
            end_time=a.end_time,
            doctor=NameSummary(first_name=d.first_name, last_name=d.last_name) if d else None,
            patient=NameSummary(first_name=p.first_name, last_name=p.last_name) if p else None,
        ),
    )
