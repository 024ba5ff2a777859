"""Weekly recurring schedule windows of a doctor."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, time
from typing import Any

from app.core.exceptions import ValidationException

# 1 = Sunday ... 7 = Saturday
SUNDAY = 1
SATURDAY = 7


def weekday_index(day: date) -> int:
    """
    Map a calendar date to its schedule weekday index.

    Schedules use 1 = Sunday through 7 = Saturday, so Monday is 2.
    """
    return day.isoweekday() % 7 + 1


def validate_weekday(day_of_week: int) -> int:
    """Reject weekday indexes outside 1..7."""
    if not SUNDAY <= day_of_week <= SATURDAY:
        raise ValidationException(f"day_of_week must be between {SUNDAY} and {SATURDAY}")
    return day_of_week


@dataclass(frozen=True)
class ScheduleWindow:
    """A recurring weekly interval during which a doctor accepts appointments."""

    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool = True

    def __post_init__(self) -> None:
        validate_weekday(self.day_of_week)
        if self.start_time >= self.end_time:
            raise ValidationException("Schedule start_time must be earlier than end_time")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ScheduleWindow":
        """Build a window from a ``doctor_schedules`` row mapping."""
        return cls(
            day_of_week=row["day_of_week"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            is_active=row.get("is_active", True),
        )


def windows_for_date(entries: Iterable[ScheduleWindow], day: date) -> list[ScheduleWindow]:
    """
    Select the active windows that apply on the given date.

    Args:
        entries: All schedule entries of a doctor (any weekday)
        day: Target calendar date

    Returns:
        Matching windows ordered by start time; empty when the doctor
        does not work that day
    """
    weekday = weekday_index(day)
    return sorted(
        (entry for entry in entries if entry.is_active and entry.day_of_week == weekday),
        key=lambda entry: (entry.start_time, entry.end_time),
    )
