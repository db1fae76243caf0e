import logging
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, List, Optional

from ...exceptions import (
    LinkDoctorMismatchError,
    LinkExhaustedError,
    LinkExpiredError,
    LinkInactiveError,
    LinkNotFoundError,
    NotFoundError,
    ValidationError,
)
from ..ports.appointments_repo import AppointmentDto, DoctorDto
from ..ports.audit_logger import AuditLogger, RequestContext
from ..ports.links_repo import LinkDto, LinksRepository
from ..ports.lock_service import KeyedLock
from ..ports.unit_of_work import UnitOfWork
from ..scheduling.intervals import TimeInterval
from .appointments_service import AppointmentDetails, AppointmentsService, PatientInfo

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
DEFAULT_LINK_REASON = "Cita programada por el paciente"


@dataclass
class GeneratedLink:
    link: LinkDto
    url: str


@dataclass
class LinkInfo:
    link: LinkDto
    doctor: Optional[DoctorDto]
    doctors: List[DoctorDto]


@dataclass
class SchedulingLinksService:
    """Bearer links that let a patient book without a staff session.

    A link is usable while it is active, not past ``expires_at`` and below
    ``max_uses``. Once any of those fails it stays unusable.
    """
    links: LinksRepository
    appointments: AppointmentsService
    uow: UnitOfWork
    locks: KeyedLock
    audit: AuditLogger
    frontend_url: str = "https://eyeclinic.aledsystems.com"
    default_max_uses: int = 1
    default_expires_days: int = 90
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))

    def generate_link(self, doctor_id: Optional[str] = None, max_uses: Optional[int] = None, expires_in_days: Optional[int] = None, context: Optional[RequestContext] = None) -> GeneratedLink:
        max_uses = self.default_max_uses if max_uses is None else max_uses
        expires_in_days = self.default_expires_days if expires_in_days is None else expires_in_days
        if max_uses < 1:
            raise ValidationError("maxUses must be at least 1")
        if expires_in_days < 1:
            raise ValidationError("expiresInDays must be at least 1")
        if doctor_id and not self.appointments.repo.get_doctor(doctor_id):
            raise NotFoundError("Doctor not found")

        token = secrets.token_hex(TOKEN_BYTES)
        expires_at = self.clock() + timedelta(days=expires_in_days)
        try:
            link = self.links.add(token, doctor_id or None, max_uses, expires_at, context.actor_id if context else None)
            self.uow.commit()
        except Exception:
            self.uow.rollback()
            raise

        logger.info(f"Scheduling link {link.id} generated (doctor={doctor_id}, max_uses={max_uses}, expires_at={expires_at.isoformat()})")
        self._record("LINK_GENERATED", link.id, context, after={"doctor_id": doctor_id, "max_uses": max_uses, "expires_at": expires_at.isoformat()})
        return GeneratedLink(link=link, url=f"{self.frontend_url.rstrip('/')}/schedule-appointment/{token}")

    def resolve_link(self, token: str) -> LinkDto:
        """Return the link behind ``token`` or raise why it cannot be used.

        Checks run in a fixed order: not found, inactive, expired, exhausted.
        """
        link = self.links.get_by_token(token) if token else None
        if not link:
            raise LinkNotFoundError()
        if not link.is_active:
            raise LinkInactiveError()
        if link.expires_at and self.clock() > link.expires_at:
            raise LinkExpiredError()
        if link.current_uses >= link.max_uses:
            raise LinkExhaustedError()
        return link

    def get_link_info(self, token: str) -> LinkInfo:
        link = self.resolve_link(token)
        if link.doctor_id:
            return LinkInfo(link=link, doctor=self.appointments.repo.get_doctor(link.doctor_id), doctors=[])
        return LinkInfo(link=link, doctor=None, doctors=self.appointments.list_active_doctors())

    def get_available_slots(self, token: str, doctor_id: Optional[str], appointment_date: Optional[date]) -> List[TimeInterval]:
        link = self.resolve_link(token)
        if not doctor_id or not appointment_date:
            raise ValidationError("Doctor ID y fecha son requeridos")
        self._check_scope(link, doctor_id)
        return self.appointments.available_slots(doctor_id, appointment_date)

    def schedule_via_link(
        self,
        token: str,
        doctor_id: Optional[str],
        appointment_date: Optional[date],
        start_time: Optional[time],
        end_time: Optional[time],
        appointment_type: Optional[str] = None,
        reason: Optional[str] = None,
        patient_info: Optional[PatientInfo] = None,
        context: Optional[RequestContext] = None,
    ) -> AppointmentDetails:
        link = self.resolve_link(token)
        if not doctor_id:
            raise ValidationError("Doctor is required")
        self.appointments.require_active_doctor(doctor_id)
        self._check_scope(link, doctor_id)
        if patient_info is None:
            raise ValidationError("Información del paciente es requerida")

        def consume(appointment: AppointmentDto) -> None:
            if not self.links.increment_uses(link.id):
                raise LinkExhaustedError()

        # Link lock first, then the doctor/date lock inside the scheduler
        with self.locks.hold(f"links:{link.id}"):
            link = self.resolve_link(token)
            try:
                patient = self.appointments.find_or_create_patient(patient_info)
                details = self.appointments.schedule_appointment(
                    patient.id,
                    doctor_id,
                    appointment_type,
                    appointment_date,
                    start_time,
                    end_time,
                    reason or DEFAULT_LINK_REASON,
                    context,
                    before_commit=consume,
                    announce=False,
                )
            except Exception:
                self.uow.rollback()
                raise

        logger.info(f"Scheduling link {link.id} used for appointment {details.appointment.id} ({link.current_uses + 1}/{link.max_uses})")
        # Side effects run once both locks are released
        self.appointments.dispatch(self.appointments.after_scheduled, details, context)
        return details

    def deactivate_link(self, link_id: str, context: Optional[RequestContext] = None) -> None:
        link = self.links.get_by_id(link_id)
        if not link:
            raise LinkNotFoundError()
        if not link.is_active:
            raise LinkInactiveError()
        try:
            self.links.deactivate(link_id)
            self.uow.commit()
        except Exception:
            self.uow.rollback()
            raise
        self._record("LINK_DEACTIVATED", link_id, context, before={"is_active": True}, after={"is_active": False})

    def _check_scope(self, link: LinkDto, doctor_id: str) -> None:
        if link.doctor_id and link.doctor_id != doctor_id:
            raise LinkDoctorMismatchError()

    def _record(self, action: str, link_id: str, context: Optional[RequestContext], before=None, after=None) -> None:
        try:
            self.audit.log(action, "AppointmentLink", link_id, context or RequestContext(), before=before, after=after)
        except Exception as e:
            logger.error(f"Error recording audit entry {action} for link {link_id}: {e}")
