from datetime import date, time
from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy import func
from sqlmodel import Session, select

from .....models import Appointment, User
from .....utils import as_utc, utcnow
from .....application.ports.appointments_repo import (
    AppointmentsRepository,
    AppointmentDto,
    AppointmentFilters,
    DoctorDto,
)


class SqlAppointmentsRepository(AppointmentsRepository):
    def __init__(self, session: Session):
        self.session = session

    def _appt_to_dto(self, a: Appointment) -> AppointmentDto:
        return AppointmentDto(
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
            reminder_sent=bool(a.reminder_sent),
            created_at=as_utc(a.created_at),
            updated_at=as_utc(a.updated_at),
        )

    def _doctor_to_dto(self, d: User) -> DoctorDto:
        return DoctorDto(
            id=d.id,
            first_name=d.first_name,
            last_name=d.last_name,
            specialization=d.specialization,
            is_active=bool(d.is_active),
        )

    def get_doctor(self, doctor_id: str) -> Optional[DoctorDto]:
        d = self.session.exec(select(User).where(User.id == doctor_id).where(User.role == "doctor")).first()
        return self._doctor_to_dto(d) if d else None

    def first_active_doctor(self) -> Optional[DoctorDto]:
        d = self.session.exec(
            select(User)
            .where(User.role == "doctor")
            .where(User.is_active == True)  # noqa: E712
            .order_by(User.last_name, User.first_name, User.id)
        ).first()
        return self._doctor_to_dto(d) if d else None

    def list_active_doctors(self) -> List[DoctorDto]:
        rows = self.session.exec(
            select(User)
            .where(User.role == "doctor")
            .where(User.is_active == True)  # noqa: E712
            .order_by(User.last_name, User.first_name)
        ).all()
        return [self._doctor_to_dto(d) for d in rows]

    def list_for_doctor_on(self, doctor_id: str, appointment_date: date, exclude_statuses: Sequence[str]) -> List[AppointmentDto]:
        query = (
            select(Appointment)
            .where(Appointment.doctor_id == doctor_id)
            .where(Appointment.appointment_date == appointment_date)
        )
        if exclude_statuses:
            query = query.where(Appointment.status.not_in(list(exclude_statuses)))
        rows = self.session.exec(query.order_by(Appointment.start_time)).all()
        return [self._appt_to_dto(r) for r in rows]

    def add(self, patient_id: str, doctor_id: str, appointment_type: str, appointment_date: date, start_time: time, end_time: time, reason: Optional[str], notes: Optional[str] = None) -> AppointmentDto:
        appt = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            appointment_type=appointment_type,
            appointment_date=appointment_date,
            start_time=start_time,
            end_time=end_time,
            reason=reason,
            notes=notes,
            status="scheduled",
        )
        self.session.add(appt)
        self.session.flush()
        return self._appt_to_dto(appt)

    def get_by_id(self, appointment_id: str) -> Optional[AppointmentDto]:
        a = self.session.exec(select(Appointment).where(Appointment.id == appointment_id)).first()
        return self._appt_to_dto(a) if a else None

    def search(self, filters: AppointmentFilters) -> Tuple[List[AppointmentDto], int]:
        query = select(Appointment)
        if filters.appointment_date:
            query = query.where(Appointment.appointment_date == filters.appointment_date)
        if filters.doctor_id:
            query = query.where(Appointment.doctor_id == filters.doctor_id)
        if filters.patient_id:
            query = query.where(Appointment.patient_id == filters.patient_id)
        if filters.status:
            query = query.where(Appointment.status == filters.status)

        total = self.session.exec(select(func.count()).select_from(query.subquery())).one()
        rows = self.session.exec(
            query
            .order_by(Appointment.appointment_date, Appointment.start_time)
            .offset(filters.offset)
            .limit(filters.limit)
        ).all()
        return [self._appt_to_dto(r) for r in rows], int(total)

    def list_for_doctor_between(self, doctor_id: str, start_date: Optional[date], end_date: Optional[date]) -> List[AppointmentDto]:
        query = select(Appointment).where(Appointment.doctor_id == doctor_id)
        if start_date:
            query = query.where(Appointment.appointment_date >= start_date)
        if end_date:
            query = query.where(Appointment.appointment_date <= end_date)
        rows = self.session.exec(query.order_by(Appointment.appointment_date, Appointment.start_time)).all()
        return [self._appt_to_dto(r) for r in rows]

    def update_fields(self, appointment_id: str, changes: Dict[str, Any]) -> AppointmentDto:
        a = self.session.exec(select(Appointment).where(Appointment.id == appointment_id)).one()
        for key, value in changes.items():
            setattr(a, key, value)
        a.updated_at = utcnow()
        self.session.add(a)
        self.session.flush()
        return self._appt_to_dto(a)

    def list_due_reminders(self, appointment_date: date) -> List[AppointmentDto]:
        rows = self.session.exec(
            select(Appointment)
            .where(Appointment.appointment_date == appointment_date)
            .where(Appointment.status.in_(["scheduled", "confirmed"]))
            .where(Appointment.reminder_sent == False)  # noqa: E712
            .order_by(Appointment.start_time)
        ).all()
        return [self._appt_to_dto(r) for r in rows]
