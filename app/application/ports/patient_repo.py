from dataclasses import dataclass
from typing import Optional
from datetime import date


@dataclass
class PatientDto:
    id: str
    first_name: str
    last_name: str
    email: Optional[str]
    phone: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class NewPatient:
    first_name: str
    last_name: str
    phone: str
    date_of_birth: date
    gender: str = "other"
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class PatientRepository:
    def get_by_id(self, patient_id: str) -> Optional[PatientDto]:
        ...

    def get_by_email(self, email: str) -> Optional[PatientDto]:
        ...

    def get_by_phone(self, phone: str) -> Optional[PatientDto]:
        ...

    def add(self, patient: NewPatient) -> PatientDto:
        """Stage a new patient in the current transaction without committing."""
        ...
