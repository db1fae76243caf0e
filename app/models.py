# app/models.py
from typing import Optional, List
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, date, time
import uuid

from .utils import utcnow

# Timestamps are stored as timezone-aware UTC
UTC_DATETIME = DateTime(timezone=True)


def _uuid() -> str:
    return str(uuid.uuid4())


class User(SQLModel, table=True):
    """Staff account. Doctors are users with role 'doctor'."""
    __tablename__ = "users"

    id: str = Field(default_factory=_uuid, primary_key=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    email: str = Field(max_length=150, unique=True, index=True)
    role: str = Field(max_length=20, default="receptionist")  # admin, doctor, receptionist, nurse
    specialization: Optional[str] = Field(max_length=100, default=None)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)

    appointments: List["Appointment"] = Relationship(back_populates="doctor")


class Patient(SQLModel, table=True):
    __tablename__ = "patients"

    id: str = Field(default_factory=_uuid, primary_key=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    date_of_birth: date
    gender: str = Field(max_length=10, default="other")  # male, female, other
    email: Optional[str] = Field(max_length=150, default=None, index=True)
    phone: str = Field(max_length=30, index=True)
    address: Optional[str] = None
    city: Optional[str] = Field(max_length=100, default=None)
    state: Optional[str] = Field(max_length=100, default=None)
    zip_code: Optional[str] = Field(max_length=20, default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)

    appointments: List["Appointment"] = Relationship(back_populates="patient")


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"

    id: str = Field(default_factory=_uuid, primary_key=True)
    patient_id: str = Field(foreign_key="patients.id", index=True)
    doctor_id: str = Field(foreign_key="users.id", index=True)
    appointment_type: str = Field(max_length=20, default="consultation")
    appointment_date: date = Field(index=True)
    start_time: time
    end_time: time
    status: str = Field(max_length=20, default="scheduled")  # scheduled, confirmed, in_progress, completed, cancelled, no_show
    reason: Optional[str] = None
    notes: Optional[str] = None
    reminder_sent: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)

    patient: Optional[Patient] = Relationship(back_populates="appointments")
    doctor: Optional[User] = Relationship(back_populates="appointments")


class AppointmentLink(SQLModel, table=True):
    __tablename__ = "appointment_links"

    id: str = Field(default_factory=_uuid, primary_key=True)
    token: str = Field(max_length=128, unique=True, index=True)
    doctor_id: Optional[str] = Field(default=None, foreign_key="users.id")
    is_active: bool = Field(default=True)
    expires_at: datetime = Field(sa_type=UTC_DATETIME)
    max_uses: int = Field(default=1)
    current_uses: int = Field(default=0)
    created_by: Optional[str] = Field(default=None, max_length=36)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    type: str  # appointment_reminder, appointment_cancelled, system
    title: str
    message: str
    link: Optional[str] = None
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[str] = Field(default=None, max_length=36)
    action: str = Field(max_length=50)
    entity_type: str = Field(max_length=50)
    entity_id: Optional[str] = Field(default=None, max_length=36)
    changes: Optional[str] = None  # JSON string with before/after
    ip_address: Optional[str] = Field(max_length=45, default=None)
    user_agent: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)
