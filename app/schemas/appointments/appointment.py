# app/schemas/appointments/appointment.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime, time

from ..common.common import CamelModel, DoctorSummary, PatientSummary, Pagination

class AppointmentCreate(CamelModel):
    patient_id: str
    doctor_id: str
    appointment_type: Optional[str] = None
    appointment_date: date
    start_time: time
    end_time: time
    reason: Optional[str] = None

class PublicAppointmentCreate(CamelModel):
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=150)
    phone: Optional[str] = Field(default=None, max_length=30)
    appointment_date: Optional[date] = None
    start_time: Optional[time] = None
    service: Optional[str] = None
    message: Optional[str] = None
    doctor_id: Optional[str] = None

class AppointmentUpdate(CamelModel):
    doctor_id: Optional[str] = None
    appointment_type: Optional[str] = None
    appointment_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None
    notes: Optional[str] = None

class AppointmentStatusUpdate(CamelModel):
    status: str

class AppointmentResponse(CamelModel):
    id: str
    patient_id: str
    doctor_id: str
    appointment_type: str
    appointment_date: date
    start_time: time
    end_time: time
    status: str
    reason: Optional[str] = None
    notes: Optional[str] = None
    reminder_sent: bool = False
    created_at: datetime
    updated_at: datetime
    patient: Optional[PatientSummary] = None
    doctor: Optional[DoctorSummary] = None

class AppointmentEnvelope(BaseModel):
    success: bool = True
    appointment: AppointmentResponse

class AppointmentListResponse(BaseModel):
    success: bool = True
    appointments: List[AppointmentResponse]
    pagination: Pagination

class ScheduleResponse(BaseModel):
    success: bool = True
    schedule: List[AppointmentResponse]

class SlotResponse(CamelModel):
    start_time: time
    end_time: time

class AvailableSlotsResponse(CamelModel):
    success: bool = True
    available_slots: List[SlotResponse]

class PublicAppointmentSummary(CamelModel):
    id: str
    appointment_date: date = Field(alias="date")
    appointment_time: time = Field(alias="time")
    patient_name: str

class PublicAppointmentResponse(BaseModel):
    success: bool = True
    message: str
    appointment: PublicAppointmentSummary

class RemindersResponse(BaseModel):
    success: bool = True
    sent: int
