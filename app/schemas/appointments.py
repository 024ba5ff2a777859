"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.scheduling.state_machine import AppointmentStatus

__all__ = [
    "AppointmentCancel",
    "AppointmentComplete",
    "AppointmentCreate",
    "AppointmentFilters",
    "AppointmentHistoryResponse",
    "AppointmentListResponse",
    "AppointmentReschedule",
    "AppointmentResponse",
    "AppointmentStats",
    "AppointmentStatus",
    "AppointmentStatusUpdate",
    "AppointmentUpdate",
    "StatsPeriod",
]


class StatsPeriod(str, Enum):
    """Look-back window for appointment statistics."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


def _whole_minutes(value: time | None) -> time | None:
    """Appointments start on a minute boundary."""
    if value is not None and (value.second or value.microsecond):
        raise ValueError("Appointment time must be a whole minute")
    return value


class AppointmentCreate(BaseModel):
    """
    Schema for booking an appointment.

    Patients book for themselves and may omit ``patient_id``; staff must set it.
    """

    patient_id: UUID | None = None
    doctor_id: UUID
    clinic_id: UUID
    appointment_date: date
    appointment_time: time
    duration_minutes: int | None = Field(None, gt=0, le=480)
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: time) -> time:
        """Validate the start time has no seconds."""
        return _whole_minutes(v)


class AppointmentUpdate(BaseModel):
    """Schema for updating an appointment; a date/time change is a reschedule."""

    appointment_date: date | None = None
    appointment_time: time | None = None
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: time | None) -> time | None:
        return _whole_minutes(v)


class AppointmentReschedule(BaseModel):
    """Move an appointment to a new date and time."""

    appointment_date: date
    appointment_time: time

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: time) -> time:
        return _whole_minutes(v)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    reason: str | None = Field(None, max_length=500, description="Cancellation or change reason")
    notes: str | None = Field(None, max_length=1000, description="Closing notes when completing")


class AppointmentCancel(BaseModel):
    """Cancellation payload."""

    reason: str | None = Field(None, max_length=500)


class AppointmentComplete(BaseModel):
    """Completion payload."""

    notes: str | None = Field(None, max_length=1000)


class AppointmentHistoryResponse(BaseModel):
    """One audit trail entry."""

    id: UUID
    previous_status: AppointmentStatus | None = None
    new_status: AppointmentStatus
    change_reason: str | None = None
    changed_by: UUID | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    clinic_id: UUID
    appointment_date: date
    appointment_time: time
    duration_minutes: int
    status: AppointmentStatus
    reason: str
    notes: str
    cancellation_reason: str | None = None
    created_by: UUID | None = None
    cancelled_by: UUID | None = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None
    # Joined display fields
    patient_name: str | None = None
    doctor_name: str | None = None
    clinic_name: str | None = None
    specialty_name: str | None = None
    history: list[AppointmentHistoryResponse] | None = None

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    clinic_id: UUID | None = None
    date_from: date | None = None
    date_to: date | None = None
    order_by: Literal["appointment_date", "created_at", "status"] = "appointment_date"
    order_dir: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class DailyStats(BaseModel):
    """Per-day counters."""

    date: date
    total: int
    completed: int
    cancelled: int


class AppointmentStats(BaseModel):
    """Appointment statistics."""

    period: StatsPeriod
    total_appointments: int
    by_status: dict[AppointmentStatus, int]
    today: int
    upcoming: int
    daily_stats: list[DailyStats]
