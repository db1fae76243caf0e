import logging
import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..application.ports.appointments_repo import AppointmentFilters
from ..application.services.appointments_service import AppointmentDetails, AppointmentsService
from ..models import User
from ..schemas.appointments.appointment import (
    AppointmentCreate,
    AppointmentEnvelope,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    AvailableSlotsResponse,
    PublicAppointmentCreate,
    PublicAppointmentResponse,
    PublicAppointmentSummary,
    RemindersResponse,
    ScheduleResponse,
    SlotResponse,
)
from ..schemas.common.common import DoctorSummary, MessageResponse, Pagination, PatientSummary
from .deps import get_appointments_service, get_current_staff, request_context, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

SCHEDULERS = ("admin", "receptionist", "doctor")
FRONT_DESK = ("admin", "receptionist")


def to_appointment_response(details: AppointmentDetails) -> AppointmentResponse:
    a, p, d = details.appointment, details.patient, details.doctor
    return AppointmentResponse(
        id=a.id,
        patient_id=a.patient_id,
        doctor_id=a.doctor_id,
        appointment_type=a.appointment_type,
        appointment_date=a.appointment_date,
        start_time=a.start_time,
        end_time=a.end_time,
        status=a.status,
        reason=a.reason,
        notes=a.notes,
        reminder_sent=a.reminder_sent,
        created_at=a.created_at,
        updated_at=a.updated_at,
        patient=PatientSummary(id=p.id, first_name=p.first_name, last_name=p.last_name, email=p.email, phone=p.phone) if p else None,
        doctor=DoctorSummary(id=d.id, first_name=d.first_name, last_name=d.last_name, specialization=d.specialization) if d else None,
    )


@router.post("/public", response_model=PublicAppointmentResponse, status_code=201)
def create_public_appointment(
    data: PublicAppointmentCreate,
    request: Request,
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    details = appt_service.create_public_appointment(
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        phone=data.phone,
        appointment_date=data.appointment_date,
        start_time=data.start_time,
        service=data.service,
        message=data.message,
        doctor_id=data.doctor_id,
        context=request_context(request),
    )
    a, p = details.appointment, details.patient
    return PublicAppointmentResponse(
        message="Cita agendada exitosamente. Nos pondremos en contacto para confirmar.",
        appointment=PublicAppointmentSummary(
            id=a.id,
            appointment_date=a.appointment_date,
            appointment_time=a.start_time,
            patient_name=p.full_name if p else f"{data.first_name} {data.last_name}",
        ),
    )


@router.post("", response_model=AppointmentEnvelope, status_code=201)
def create_appointment(
    data: AppointmentCreate,
    request: Request,
    staff: User = Depends(require_roles(*SCHEDULERS)),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    details = appt_service.create_appointment(
        patient_id=data.patient_id,
        doctor_id=data.doctor_id,
        appointment_type=data.appointment_type,
        appointment_date=data.appointment_date,
        start_time=data.start_time,
        end_time=data.end_time,
        reason=data.reason,
        context=request_context(request, staff.id),
    )
    return AppointmentEnvelope(appointment=to_appointment_response(details))


@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    appointment_date: Optional[date] = Query(None, alias="date"),
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    patient_id: Optional[str] = Query(None, alias="patientId"),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    staff: User = Depends(get_current_staff),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    filters = AppointmentFilters(
        appointment_date=appointment_date,
        doctor_id=doctor_id,
        patient_id=patient_id,
        status=status,
        offset=(page - 1) * limit,
        limit=limit,
    )
    # Doctors only see their own appointments
    restrict = staff.id if staff.role == "doctor" else None
    rows, total = appt_service.list_appointments(filters, restrict_to_doctor=restrict)
    return AppointmentListResponse(
        appointments=[to_appointment_response(d) for d in rows],
        pagination=Pagination(total=total, page=page, limit=limit, pages=math.ceil(total / limit)),
    )


@router.get("/available-slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    appointment_date: Optional[date] = Query(None, alias="date"),
    staff: User = Depends(get_current_staff),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    slots = appt_service.available_slots(doctor_id, appointment_date)
    return AvailableSlotsResponse(available_slots=[SlotResponse(start_time=s.start, end_time=s.end) for s in slots])


@router.get("/doctor/{doctor_id}/schedule", response_model=ScheduleResponse)
def get_doctor_schedule(
    doctor_id: str,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    staff: User = Depends(get_current_staff),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    schedule = appt_service.doctor_schedule(doctor_id, start_date, end_date)
    return ScheduleResponse(schedule=[to_appointment_response(d) for d in schedule])


@router.post("/reminders/send", response_model=RemindersResponse)
def send_reminders(
    appointment_date: date = Query(..., alias="date"),
    staff: User = Depends(require_roles(*FRONT_DESK)),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    return RemindersResponse(sent=appt_service.send_due_reminders(appointment_date))


@router.get("/{appointment_id}", response_model=AppointmentEnvelope)
def get_appointment(
    appointment_id: str,
    staff: User = Depends(get_current_staff),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    return AppointmentEnvelope(appointment=to_appointment_response(appt_service.get_appointment(appointment_id)))


@router.put("/{appointment_id}", response_model=AppointmentEnvelope)
def update_appointment(
    appointment_id: str,
    data: AppointmentUpdate,
    request: Request,
    staff: User = Depends(require_roles(*SCHEDULERS)),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    details = appt_service.update_appointment(
        appointment_id,
        data.model_dump(exclude_unset=True),
        context=request_context(request, staff.id),
    )
    return AppointmentEnvelope(appointment=to_appointment_response(details))


@router.patch("/{appointment_id}/cancel", response_model=MessageResponse)
def cancel_appointment(
    appointment_id: str,
    request: Request,
    staff: User = Depends(get_current_staff),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    appt_service.cancel_appointment(appointment_id, context=request_context(request, staff.id))
    return MessageResponse(message="Appointment cancelled successfully")


@router.patch("/{appointment_id}/status", response_model=AppointmentEnvelope)
def update_appointment_status(
    appointment_id: str,
    data: AppointmentStatusUpdate,
    request: Request,
    staff: User = Depends(require_roles(*SCHEDULERS)),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    details = appt_service.change_status(appointment_id, data.status, context=request_context(request, staff.id))
    return AppointmentEnvelope(appointment=to_appointment_response(details))
