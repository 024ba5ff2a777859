"""Clinic schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

# ============================================================================
# Clinic Base Schemas
# ============================================================================


class ClinicBase(BaseModel):
    """Base schema for clinic."""

    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, description="Full address")
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal_code: str | None = Field(None, max_length=20)
    phone: str | None = Field(None, max_length=20)
    email: EmailStr | None = None
    opening_hours: dict | None = Field(
        None, description="Opening hours by day: {day: {open: time, close: time}}"
    )


class ClinicCreate(ClinicBase):
    """Schema for creating a clinic."""


class ClinicUpdate(BaseModel):
    """Schema for updating a clinic."""

    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = Field(None, min_length=1)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal_code: str | None = Field(None, max_length=20)
    phone: str | None = Field(None, max_length=20)
    email: EmailStr | None = None
    opening_hours: dict | None = None


# ============================================================================
# Response Schemas
# ============================================================================


class ClinicDoctorSummary(BaseModel):
    """Public summary of a doctor working at a clinic."""

    id: UUID
    first_name: str
    last_name: str
    specialty_name: str | None = None
    consultation_duration_minutes: int


class ClinicResponse(BaseModel):
    """
    Clinic response.

    Anonymous and patient callers receive the public subset only; the
    remaining fields are left unset and dropped from the payload.
    """

    id: UUID
    name: str
    address: str
    city: str | None = None
    state: str | None = None
    phone: str | None = None
    opening_hours: dict | None = None
    total_doctors: int | None = None
    doctors: list[ClinicDoctorSummary] | None = None
    # Staff only
    postal_code: str | None = None
    email: str | None = None
    is_active: bool | None = None
    appointments_today: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ClinicListResponse(BaseModel):
    """Paginated clinic list."""

    total: int
    page: int
    page_size: int
    items: list[ClinicResponse]


class ClinicStats(BaseModel):
    """Clinic activity statistics (staff only)."""

    clinic_id: UUID
    total_doctors: int
    total_patients: int
    appointments_today: int
    upcoming_appointments: int
    completed_appointments: int
    cancelled_appointments: int
