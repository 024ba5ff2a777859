"""Patient schemas for request/response validation."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field


class PatientBase(BaseModel):
    """Base schema for patient."""

    birth_date: date | None = None
    gender: str | None = Field(None, max_length=20)
    blood_type: str | None = Field(None, pattern=r"^(A|B|AB|O)[+-]$")
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = Field(None, max_length=20)
    insurance_provider: str | None = None
    insurance_number: str | None = Field(None, max_length=100)
    medical_history: str | None = None


class PatientCreate(PatientBase):
    """Schema for creating a patient profile for an existing user."""

    user_id: UUID


class PatientUpdate(PatientBase):
    """Schema for updating a patient."""


class PatientResponse(PatientBase):
    """Patient response."""

    id: UUID
    user_id: UUID
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PatientListResponse(BaseModel):
    """Paginated patient list."""

    total: int
    page: int
    page_size: int
    items: list[PatientResponse]
