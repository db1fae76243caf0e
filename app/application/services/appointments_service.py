import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Callable, Dict, List, Optional, Tuple

from ...email_templates import (
    appointment_cancelled_template,
    appointment_reminder_sms,
    appointment_reminder_template,
    appointment_scheduled_template,
)
from ...exceptions import NotFoundError, SlotConflictError, ValidationError
from ..ports.appointments_repo import (
    APPOINTMENT_STATUSES,
    APPOINTMENT_TYPES,
    AppointmentDto,
    AppointmentFilters,
    AppointmentsRepository,
    DoctorDto,
)
from ..ports.audit_logger import AuditLogger, RequestContext
from ..ports.lock_service import KeyedLock
from ..ports.notifier import Notifier
from ..ports.patient_repo import NewPatient, PatientDto, PatientRepository
from ..ports.unit_of_work import UnitOfWork
from ..scheduling.conflicts import ConflictChecker
from ..scheduling.intervals import TimeInterval
from ..scheduling.slots import SlotGenerator

logger = logging.getLogger(__name__)

# Website form service names -> appointment type
SERVICE_TYPE_MAP = {
    "Oftalmología General": "consultation",
    "Consulta Neuro-Oftalmológica": "consultation",
    "Diagnóstico": "eye_exam",
    "Procedimientos Quirúrgicos": "surgery",
    "Óptica": "eye_exam",
    "Seguimiento": "follow_up",
    "Urgencias": "emergency",
}

STATUS_TRANSITIONS = {
    "scheduled": {"confirmed", "in_progress", "cancelled", "no_show"},
    "confirmed": {"in_progress", "cancelled", "no_show"},
    "in_progress": {"completed"},
    "completed": set(),
    "cancelled": set(),
    "no_show": set(),
}

EDITABLE_FIELDS = {"appointment_type", "appointment_date", "start_time", "end_time", "reason", "notes", "doctor_id"}

# Placeholders for patients created from a booking form
DEFAULT_DATE_OF_BIRTH = date(1900, 1, 1)
DEFAULT_GENDER = "other"


def resolve_appointment_type(value: Optional[str]) -> str:
    if value in APPOINTMENT_TYPES:
        return value
    return "consultation"


def service_to_appointment_type(service: Optional[str]) -> str:
    if not service:
        return "consultation"
    return SERVICE_TYPE_MAP.get(service.strip(), "consultation")


def run_inline(task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    task(*args, **kwargs)


def slot_lock_key(doctor_id: str, appointment_date: date) -> str:
    return f"appointments:{doctor_id}:{appointment_date.isoformat()}"


def snapshot(appt: AppointmentDto) -> Dict[str, Any]:
    return {
        "id": appt.id,
        "patient_id": appt.patient_id,
        "doctor_id": appt.doctor_id,
        "appointment_type": appt.appointment_type,
        "appointment_date": appt.appointment_date.isoformat(),
        "start_time": appt.start_time.isoformat(),
        "end_time": appt.end_time.isoformat(),
        "status": appt.status,
        "reason": appt.reason,
        "notes": appt.notes,
    }


@dataclass
class PatientInfo:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


@dataclass
class AppointmentDetails:
    appointment: AppointmentDto
    patient: Optional[PatientDto]
    doctor: Optional[DoctorDto]


@dataclass
class AppointmentsService:
    repo: AppointmentsRepository
    patients: PatientRepository
    uow: UnitOfWork
    locks: KeyedLock
    notifier: Notifier
    audit: AuditLogger
    slot_generator: SlotGenerator = field(default_factory=SlotGenerator)
    public_appointment_minutes: int = 30
    clinic_name: str = "Eye Clinic Management System"
    # Runs post-commit notifications; the HTTP layer hands in BackgroundTasks.add_task
    dispatch: Callable[..., None] = field(default=run_inline)

    def __post_init__(self):
        self.conflicts = ConflictChecker(self.repo)

    # -- lookups ---------------------------------------------------------

    def require_active_doctor(self, doctor_id: str) -> DoctorDto:
        doctor = self.repo.get_doctor(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        if not doctor.is_active:
            raise ValidationError("Doctor is not available")
        return doctor

    def list_active_doctors(self) -> List[DoctorDto]:
        return self.repo.list_active_doctors()

    def find_or_create_patient(self, info: PatientInfo) -> PatientDto:
        """Match by e-mail, then phone; otherwise stage a new patient in the current transaction."""
        patient = None
        if info.email:
            patient = self.patients.get_by_email(info.email)
        if not patient and info.phone:
            patient = self.patients.get_by_phone(info.phone)
        if patient:
            return patient

        missing = [name for name, value in (("firstName", info.first_name), ("lastName", info.last_name), ("phone", info.phone)) if not value]
        if missing:
            raise ValidationError(f"Missing patient fields: {', '.join(missing)}")
        return self.patients.add(NewPatient(
            first_name=info.first_name,
            last_name=info.last_name,
            phone=info.phone,
            email=info.email,
            date_of_birth=info.date_of_birth or DEFAULT_DATE_OF_BIRTH,
            gender=info.gender or DEFAULT_GENDER,
            address=info.address,
            city=info.city,
            state=info.state,
            zip_code=info.zip_code,
        ))

    def _details(self, appt: AppointmentDto) -> AppointmentDetails:
        return AppointmentDetails(
            appointment=appt,
            patient=self.patients.get_by_id(appt.patient_id),
            doctor=self.repo.get_doctor(appt.doctor_id),
        )

    # -- core pipeline ---------------------------------------------------

    def schedule_appointment(
        self,
        patient_id: Optional[str],
        doctor_id: Optional[str],
        appointment_type: Optional[str],
        appointment_date: Optional[date],
        start_time: Optional[time],
        end_time: Optional[time],
        reason: Optional[str] = None,
        context: Optional[RequestContext] = None,
        before_commit: Optional[Callable[[AppointmentDto], None]] = None,
        announce: bool = True,
    ) -> AppointmentDetails:
        """Validate, conflict-check and persist a new appointment.

        The conflict check and the insert run under a lock keyed by
        (doctor, date) and inside one transaction. ``before_commit`` runs in
        that same transaction, so anything it writes commits or rolls back
        together with the appointment. Notifications and the audit entry are
        dispatched only after a successful commit and never fail the booking.
        Callers still holding locks pass ``announce=False`` and call
        ``after_scheduled`` themselves once the locks are released.
        """
        if not patient_id:
            raise ValidationError("Patient is required")
        if not doctor_id:
            raise ValidationError("Doctor is required")
        if appointment_date is None or start_time is None or end_time is None:
            raise ValidationError("Appointment date, start time and end time are required")
        interval = TimeInterval(start_time, end_time)
        resolved_type = resolve_appointment_type(appointment_type)

        with self.locks.hold(slot_lock_key(doctor_id, appointment_date)):
            try:
                if self.conflicts.has_conflict(doctor_id, appointment_date, interval):
                    raise SlotConflictError()
                appt = self.repo.add(
                    patient_id=patient_id,
                    doctor_id=doctor_id,
                    appointment_type=resolved_type,
                    appointment_date=appointment_date,
                    start_time=interval.start,
                    end_time=interval.end,
                    reason=reason,
                )
                if before_commit is not None:
                    before_commit(appt)
                self.uow.commit()
            except Exception:
                self.uow.rollback()
                raise

        logger.info(f"Appointment {appt.id} scheduled for doctor {doctor_id} on {appointment_date} {interval.start}-{interval.end}")
        details = self._details(appt)
        if announce:
            self.dispatch(self.after_scheduled, details, context)
        return details

    def after_scheduled(self, details: AppointmentDetails, context: Optional[RequestContext] = None) -> None:
        self._announce_scheduled(details)
        self._record("APPOINTMENT_CREATED", details.appointment.id, context, after=snapshot(details.appointment))

    def create_appointment(
        self,
        patient_id: str,
        doctor_id: str,
        appointment_type: Optional[str],
        appointment_date: date,
        start_time: time,
        end_time: time,
        reason: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> AppointmentDetails:
        """Staff entry point: patient and doctor must already exist."""
        if patient_id and not self.patients.get_by_id(patient_id):
            raise NotFoundError("Patient not found")
        if doctor_id:
            self.require_active_doctor(doctor_id)
        return self.schedule_appointment(
            patient_id, doctor_id, appointment_type, appointment_date, start_time, end_time, reason, context,
        )

    def create_public_appointment(
        self,
        first_name: Optional[str],
        last_name: Optional[str],
        email: Optional[str],
        phone: Optional[str],
        appointment_date: Optional[date],
        start_time: Optional[time],
        service: Optional[str] = None,
        message: Optional[str] = None,
        doctor_id: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> AppointmentDetails:
        """Website booking form: no staff identity, patient matched or created on the fly."""
        required = {
            "firstName": first_name,
            "lastName": last_name,
            "phone": phone,
            "appointmentDate": appointment_date,
            "startTime": start_time,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        if doctor_id:
            doctor = self.require_active_doctor(doctor_id)
        else:
            doctor = self.repo.first_active_doctor()
            if not doctor:
                raise NotFoundError("No doctors available")

        interval = TimeInterval.starting_at(start_time, self.public_appointment_minutes)
        try:
            patient = self.find_or_create_patient(PatientInfo(first_name=first_name, last_name=last_name, email=email, phone=phone))
            return self.schedule_appointment(
                patient.id,
                doctor.id,
                service_to_appointment_type(service),
                appointment_date,
                interval.start,
                interval.end,
                message,
                context,
            )
        except Exception:
            self.uow.rollback()
            raise

    # -- staff operations ------------------------------------------------

    def get_appointment(self, appointment_id: str) -> AppointmentDetails:
        appt = self.repo.get_by_id(appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        return self._details(appt)

    def list_appointments(self, filters: AppointmentFilters, restrict_to_doctor: Optional[str] = None) -> Tuple[List[AppointmentDetails], int]:
        if filters.status and filters.status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {list(APPOINTMENT_STATUSES)}")
        if restrict_to_doctor:
            filters.doctor_id = restrict_to_doctor
        rows, total = self.repo.search(filters)
        return [self._details(a) for a in rows], total

    def doctor_schedule(self, doctor_id: str, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[AppointmentDetails]:
        if not self.repo.get_doctor(doctor_id):
            raise NotFoundError("Doctor not found")
        if start_date and end_date and start_date > end_date:
            raise ValidationError("startDate must be on or before endDate")
        return [self._details(a) for a in self.repo.list_for_doctor_between(doctor_id, start_date, end_date)]

    def available_slots(self, doctor_id: str, appointment_date: date) -> List[TimeInterval]:
        if not doctor_id or not appointment_date:
            raise ValidationError("Doctor ID and date are required")
        if not self.repo.get_doctor(doctor_id):
            raise NotFoundError("Doctor not found")
        return self.conflicts.available_slots(doctor_id, appointment_date, self.slot_generator)

    def update_appointment(self, appointment_id: str, changes: Dict[str, Any], context: Optional[RequestContext] = None) -> AppointmentDetails:
        current = self.repo.get_by_id(appointment_id)
        if not current:
            raise NotFoundError("Appointment not found")
        # Only free-text fields may be cleared
        changes = {k: v for k, v in changes.items() if v is not None or k in ("reason", "notes")}
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if not STATUS_TRANSITIONS[current.status]:
            raise ValidationError(f"Cannot edit a {current.status} appointment")
        if "appointment_type" in changes and changes["appointment_type"] not in APPOINTMENT_TYPES:
            raise ValidationError(f"Invalid appointment type. Must be one of: {list(APPOINTMENT_TYPES)}")

        doctor_id = changes.get("doctor_id") or current.doctor_id
        appointment_date = changes.get("appointment_date") or current.appointment_date
        interval = TimeInterval(changes.get("start_time") or current.start_time, changes.get("end_time") or current.end_time)
        if doctor_id != current.doctor_id:
            self.require_active_doctor(doctor_id)

        timing_changed = any(k in changes for k in ("doctor_id", "appointment_date", "start_time", "end_time"))
        if timing_changed:
            with self.locks.hold(slot_lock_key(doctor_id, appointment_date)):
                updated = self._write(lambda: self._apply_timed_update(current, doctor_id, appointment_date, interval, changes))
        else:
            updated = self._write(lambda: self.repo.update_fields(appointment_id, changes))

        self._record("APPOINTMENT_UPDATED", appointment_id, context, before=snapshot(current), after=snapshot(updated))
        return self._details(updated)

    def _apply_timed_update(self, current: AppointmentDto, doctor_id: str, appointment_date: date, interval: TimeInterval, changes: Dict[str, Any]) -> AppointmentDto:
        if self.conflicts.has_conflict(doctor_id, appointment_date, interval, exclude_appointment_id=current.id):
            raise SlotConflictError()
        return self.repo.update_fields(current.id, changes)

    def change_status(self, appointment_id: str, status: str, context: Optional[RequestContext] = None) -> AppointmentDetails:
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {list(APPOINTMENT_STATUSES)}")
        current = self.repo.get_by_id(appointment_id)
        if not current:
            raise NotFoundError("Appointment not found")
        if current.status == status:
            raise ValidationError(f"Appointment is already {status}")
        if status not in STATUS_TRANSITIONS[current.status]:
            raise ValidationError(f"Cannot change appointment from {current.status} to {status}")

        updated = self._write(lambda: self.repo.update_fields(appointment_id, {"status": status}))
        details = self._details(updated)
        self.dispatch(self._after_status_change, details, snapshot(current), context)
        return details

    def _after_status_change(self, details: AppointmentDetails, before: Dict[str, Any], context: Optional[RequestContext]) -> None:
        appt = details.appointment
        if appt.status == "cancelled":
            self._announce_cancelled(details)
        action = "APPOINTMENT_CANCELLED" if appt.status == "cancelled" else "APPOINTMENT_STATUS_CHANGED"
        self._record(action, appt.id, context, before=before, after=snapshot(appt))

    def cancel_appointment(self, appointment_id: str, context: Optional[RequestContext] = None) -> AppointmentDetails:
        return self.change_status(appointment_id, "cancelled", context)

    def send_due_reminders(self, appointment_date: date) -> int:
        sent = 0
        for appt in self.repo.list_due_reminders(appointment_date):
            details = self._details(appt)
            patient, doctor = details.patient, details.doctor
            if not patient:
                continue
            when = appt.appointment_date.strftime("%B %d, %Y")
            at = appt.start_time.strftime("%H:%M")
            delivered = False
            try:
                if patient.email:
                    html = appointment_reminder_template(patient.full_name, doctor.full_name if doctor else "", when, at, self.clinic_name)
                    delivered = self.notifier.send_email(patient.email, "Appointment Reminder", html) or delivered
                if patient.phone:
                    delivered = self.notifier.send_sms(patient.phone, appointment_reminder_sms(patient.full_name, when, at, self.clinic_name)) or delivered
            except Exception as e:
                logger.error(f"Error sending reminder for appointment {appt.id}: {e}")
                continue
            if delivered:
                self._write(lambda: self.repo.update_fields(appt.id, {"reminder_sent": True}))
                sent += 1
        logger.info(f"Sent {sent} appointment reminders for {appointment_date}")
        return sent

    # -- helpers ---------------------------------------------------------

    def _write(self, operation: Callable[[], AppointmentDto]) -> AppointmentDto:
        try:
            result = operation()
            self.uow.commit()
            return result
        except Exception:
            self.uow.rollback()
            raise

    def _announce_scheduled(self, details: AppointmentDetails) -> None:
        appt, patient, doctor = details.appointment, details.patient, details.doctor
        patient_name = patient.full_name if patient else "patient"
        try:
            self.notifier.notify_staff(
                appt.doctor_id,
                "appointment_reminder",
                "New Appointment Scheduled",
                f"New appointment with {patient_name} on {appt.appointment_date.strftime('%b %d, %Y')} at {appt.start_time.strftime('%H:%M')}",
                link=f"/appointments/{appt.id}",
            )
        except Exception as e:
            logger.error(f"Error notifying doctor about appointment {appt.id}: {e}")

        if patient and patient.email:
            try:
                html = appointment_scheduled_template(
                    patient.full_name,
                    doctor.full_name if doctor else "",
                    appt.appointment_date.strftime("%B %d, %Y"),
                    appt.start_time.strftime("%H:%M"),
                    self.clinic_name,
                )
                self.notifier.send_email(patient.email, "Appointment Scheduled", html)
            except Exception as e:
                logger.error(f"Error sending confirmation email for appointment {appt.id}: {e}")

    def _announce_cancelled(self, details: AppointmentDetails) -> None:
        appt, patient = details.appointment, details.patient
        if not patient or not patient.email:
            return
        try:
            html = appointment_cancelled_template(
                patient.full_name,
                appt.appointment_date.strftime("%B %d, %Y"),
                appt.start_time.strftime("%H:%M"),
                self.clinic_name,
            )
            self.notifier.send_email(patient.email, "Appointment Cancelled", html)
        except Exception as e:
            logger.error(f"Error sending cancellation email for appointment {appt.id}: {e}")

    def _record(self, action: str, appointment_id: str, context: Optional[RequestContext], before: Optional[Dict[str, Any]] = None, after: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.audit.log(action, "Appointment", appointment_id, context or RequestContext(), before=before, after=after)
        except Exception as e:
            logger.error(f"Error recording audit entry {action} for appointment {appointment_id}: {e}")
