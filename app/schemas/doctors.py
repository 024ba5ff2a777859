"""Doctor schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.schedules import ScheduleEntryResponse


class DoctorBase(BaseModel):
    """Base schema for doctor."""

    clinic_id: UUID
    specialty_id: UUID
    license_number: str = Field(..., min_length=1, max_length=100)
    consultation_duration_minutes: int = Field(default=30, gt=0, le=480)


class DoctorCreate(DoctorBase):
    """Schema for creating a doctor profile for an existing user."""

    user_id: UUID


class DoctorUpdate(BaseModel):
    """Schema for updating a doctor."""

    clinic_id: UUID | None = None
    specialty_id: UUID | None = None
    license_number: str | None = Field(None, min_length=1, max_length=100)
    consultation_duration_minutes: int | None = Field(None, gt=0, le=480)


class DoctorStats(BaseModel):
    """Appointment counters of a doctor."""

    total_appointments: int = 0
    completed_appointments: int = 0
    cancelled_appointments: int = 0
    upcoming_appointments: int = 0


class DoctorResponse(BaseModel):
    """
    Doctor response.

    Non-staff callers only receive the public subset of fields.
    """

    id: UUID
    clinic_id: UUID
    specialty_id: UUID
    consultation_duration_minutes: int
    first_name: str | None = None
    last_name: str | None = None
    specialty_name: str | None = None
    # Staff only
    user_id: UUID | None = None
    license_number: str | None = None
    email: str | None = None
    phone: str | None = None
    clinic_name: str | None = None
    is_active: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    schedules: list[ScheduleEntryResponse] | None = None
    stats: DoctorStats | None = None

    model_config = {"from_attributes": True}


class DoctorListResponse(BaseModel):
    """Paginated doctor list."""

    total: int
    page: int
    page_size: int
    items: list[DoctorResponse]


class SpecialtyResponse(BaseModel):
    """Medical specialty."""

    id: UUID
    name: str
    description: str | None = None

    model_config = {"from_attributes": True}
