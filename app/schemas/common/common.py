# app/schemas/common/common.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import date

class CamelModel(BaseModel):
    """Accepts and emits camelCase JSON while keeping snake_case attributes."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: str

class MessageResponse(BaseModel):
    success: bool = True
    message: str

class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

class DoctorSummary(CamelModel):
    id: str
    first_name: str
    last_name: str
    specialization: Optional[str] = None

class PatientSummary(CamelModel):
    id: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

class NameSummary(CamelModel):
    first_name: str
    last_name: str

class PatientInfo(CamelModel):
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=150)
    phone: Optional[str] = Field(default=None, max_length=30)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(default=None, pattern="^(male|female|other)$")
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
