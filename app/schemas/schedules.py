"""Schedule and availability schemas."""

from datetime import date, time
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


class ScheduleEntryCreate(BaseModel):
    """One weekly window; day_of_week uses 1 = Sunday ... 7 = Saturday."""

    day_of_week: int = Field(..., ge=1, le=7)
    start_time: time
    end_time: time
    is_active: bool = True

    @model_validator(mode="after")
    def validate_range(self) -> "ScheduleEntryCreate":
        """Validate start time is before end time."""
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be earlier than end_time")
        return self


class ScheduleReplace(BaseModel):
    """Full replacement of a doctor's weekly schedule."""

    schedules: list[ScheduleEntryCreate]


class ScheduleEntryResponse(BaseModel):
    """Stored schedule window."""

    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool

    model_config = {"from_attributes": True}


class SlotResponse(BaseModel):
    """A free slot."""

    time: time
    end_time: time
    duration: int

    @field_validator("time", "end_time", mode="before")
    @classmethod
    def strip_seconds(cls, v: Any) -> Any:
        """Slots are minute-aligned."""
        if isinstance(v, time):
            return v.replace(second=0, microsecond=0)
        return v


class AvailabilityResponse(BaseModel):
    """Free slots of a doctor on a date."""

    doctor_id: UUID
    date: date
    day_of_week: int
    consultation_duration: int
    available_slots: list[SlotResponse]
