from datetime import date
from typing import AbstractSet, Iterable, List, Optional

from ..ports.appointments_repo import AppointmentsRepository, AppointmentDto
from .intervals import TimeInterval

# Appointments in these states no longer occupy their slot
NON_BLOCKING_STATUSES = frozenset({"cancelled", "no_show"})


class ConflictChecker:
    """Decides whether a doctor's interval on a date is free.

    Bookings are always re-read from the repository, never cached between calls.
    """

    def __init__(self, repo: AppointmentsRepository, excluded_statuses: AbstractSet[str] = NON_BLOCKING_STATUSES):
        self.repo = repo
        self.excluded_statuses = frozenset(excluded_statuses)

    def _bookings(self, doctor_id: str, appointment_date: date, exclude_appointment_id: Optional[str] = None) -> List[AppointmentDto]:
        rows = self.repo.list_for_doctor_on(doctor_id, appointment_date, sorted(self.excluded_statuses))
        return [
            a for a in rows
            if a.status not in self.excluded_statuses and a.id != exclude_appointment_id
        ]

    def find_conflicts(self, doctor_id: str, appointment_date: date, interval: TimeInterval, exclude_appointment_id: Optional[str] = None) -> List[AppointmentDto]:
        return [
            a for a in self._bookings(doctor_id, appointment_date, exclude_appointment_id)
            if a.interval.overlaps(interval)
        ]

    def has_conflict(self, doctor_id: str, appointment_date: date, interval: TimeInterval, exclude_appointment_id: Optional[str] = None) -> bool:
        return bool(self.find_conflicts(doctor_id, appointment_date, interval, exclude_appointment_id))

    def available_slots(self, doctor_id: str, appointment_date: date, slots: Iterable[TimeInterval]) -> List[TimeInterval]:
        booked = [a.interval for a in self._bookings(doctor_id, appointment_date)]
        return [s for s in slots if not any(s.overlaps(b) for b in booked)]
