from typing import Optional
from sqlmodel import Session, select

from .....models import Patient
from .....application.ports.patient_repo import PatientRepository, PatientDto, NewPatient


class SqlPatientRepository(PatientRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, p: Patient) -> PatientDto:
        return PatientDto(
            id=p.id,
            first_name=p.first_name,
            last_name=p.last_name,
            email=p.email,
            phone=p.phone,
        )

    def get_by_id(self, patient_id: str) -> Optional[PatientDto]:
        p = self.session.exec(select(Patient).where(Patient.id == patient_id)).first()
        return self._to_dto(p) if p else None

    def get_by_email(self, email: str) -> Optional[PatientDto]:
        p = self.session.exec(select(Patient).where(Patient.email == email)).first()
        return self._to_dto(p) if p else None

    def get_by_phone(self, phone: str) -> Optional[PatientDto]:
        p = self.session.exec(select(Patient).where(Patient.phone == phone)).first()
        return self._to_dto(p) if p else None

    def add(self, patient: NewPatient) -> PatientDto:
        p = Patient(
            first_name=patient.first_name,
            last_name=patient.last_name,
            date_of_birth=patient.date_of_birth,
            gender=patient.gender,
            email=patient.email,
            phone=patient.phone,
            address=patient.address,
            city=patient.city,
            state=patient.state,
            zip_code=patient.zip_code,
        )
        self.session.add(p)
        self.session.flush()
        return self._to_dto(p)
