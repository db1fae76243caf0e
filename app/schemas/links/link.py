# app/schemas/links/link.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime, time

from ..common.common import CamelModel, DoctorSummary, NameSummary, PatientInfo

class LinkGenerateRequest(CamelModel):
    doctor_id: Optional[str] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    expires_in_days: Optional[int] = Field(default=None, ge=1)

class LinkGenerateResponse(CamelModel):
    success: bool = True
    link: str
    token: str
    expires_at: datetime
    max_uses: int

class LinkDetails(CamelModel):
    id: str
    doctor_id: Optional[str] = None
    doctor: Optional[DoctorSummary] = None
    doctors: List[DoctorSummary] = []
    expires_at: datetime
    max_uses: int
    current_uses: int

class LinkInfoResponse(BaseModel):
    success: bool = True
    link: LinkDetails

class LinkSlotResponse(CamelModel):
    start_time: time
    end_time: time
    display_time: str

class LinkSlotsResponse(CamelModel):
    success: bool = True
    available_slots: List[LinkSlotResponse]

class LinkScheduleRequest(CamelModel):
    doctor_id: Optional[str] = None
    appointment_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    appointment_type: Optional[str] = None
    reason: Optional[str] = None
    patient_info: Optional[PatientInfo] = None

class LinkAppointmentSummary(CamelModel):
    id: str
    appointment_date: date
    start_time: time
    end_time: time
    doctor: Optional[NameSummary] = None
    patient: Optional[NameSummary] = None

class LinkScheduleResponse(BaseModel):
    success: bool = True
    message: str
    appointment: LinkAppointmentSummary
