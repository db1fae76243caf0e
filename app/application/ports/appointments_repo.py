from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from datetime import datetime, date, time

from ..scheduling.intervals import TimeInterval

APPOINTMENT_TYPES = ("consultation", "eye_exam", "surgery", "follow_up", "emergency")
APPOINTMENT_STATUSES = ("scheduled", "confirmed", "in_progress", "completed", "cancelled", "no_show")


@dataclass
class DoctorDto:
    id: str
    first_name: str
    last_name: str
    specialization: Optional[str]
    is_active: bool

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class AppointmentDto:
    id: str
    patient_id: str
    doctor_id: str
    appointment_type: str
    appointment_date: date
    start_time: time
    end_time: time
    status: str
    reason: Optional[str]
    notes: Optional[str]
    reminder_sent: bool
    created_at: datetime
    updated_at: datetime

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_time, self.end_time)


@dataclass
class AppointmentFilters:
    appointment_date: Optional[date] = None
    doctor_id: Optional[str] = None
    patient_id: Optional[str] = None
    status: Optional[str] = None
    offset: int = 0
    limit: int = 50


class AppointmentsRepository:
    def get_doctor(self, doctor_id: str) -> Optional[DoctorDto]:
        ...

    def first_active_doctor(self) -> Optional[DoctorDto]:
        ...

    def list_active_doctors(self) -> List[DoctorDto]:
        ...

    def list_for_doctor_on(self, doctor_id: str, appointment_date: date, exclude_statuses: Sequence[str]) -> List[AppointmentDto]:
        ...

    def add(self, patient_id: str, doctor_id: str, appointment_type: str, appointment_date: date, start_time: time, end_time: time, reason: Optional[str], notes: Optional[str] = None) -> AppointmentDto:
        """Stage a new appointment in the current transaction without committing."""
        ...

    def get_by_id(self, appointment_id: str) -> Optional[AppointmentDto]:
        ...

    def search(self, filters: AppointmentFilters) -> Tuple[List[AppointmentDto], int]:
        ...

    def list_for_doctor_between(self, doctor_id: str, start_date: Optional[date], end_date: Optional[date]) -> List[AppointmentDto]:
        ...

    def update_fields(self, appointment_id: str, changes: Dict[str, Any]) -> AppointmentDto:
        ...

    def list_due_reminders(self, appointment_date: date) -> List[AppointmentDto]:
        ...
