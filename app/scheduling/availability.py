"""Free slot computation for a doctor on a given day."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import time
from typing import Any
from uuid import UUID

from app.core.exceptions import ValidationException
from app.scheduling.intervals import Interval, from_minutes, to_minutes
from app.scheduling.schedule import ScheduleWindow

DEFAULT_CONSULTATION_MINUTES = 30

CANCELLED = "cancelled"


@dataclass(frozen=True)
class Slot:
    """A computed candidate appointment interval."""

    time: time
    duration: int

    @property
    def end_time(self) -> time:
        """Slot end as a time of day."""
        return from_minutes(to_minutes(self.time) + self.duration)


@dataclass(frozen=True)
class Booking:
    """An existing appointment as seen by the availability check."""

    start_time: time
    duration: int
    status: str = "scheduled"
    appointment_id: UUID | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Booking":
        """Build a booking from an ``appointments`` row mapping."""
        return cls(
            start_time=row["appointment_time"],
            duration=row["duration_minutes"],
            status=row["status"],
            appointment_id=row.get("id"),
        )

    @property
    def interval(self) -> Interval:
        """Occupied minute range of this booking."""
        return Interval.covering(self.start_time, self.duration)

    @property
    def occupies(self) -> bool:
        """Cancelled bookings release their time."""
        return self.status != CANCELLED


def resolve_duration(
    explicit: int | None,
    doctor_default: int | None,
    fallback: int = DEFAULT_CONSULTATION_MINUTES,
) -> int:
    """
    Pick the effective appointment duration.

    Explicit value first, then the doctor's consultation duration, then the fallback.
    """
    if explicit is not None:
        duration = explicit
    else:
        duration = doctor_default or fallback
    ensure_positive_duration(duration)
    return duration


def ensure_positive_duration(duration: int) -> None:
    """Reject zero or negative durations."""
    if duration <= 0:
        raise ValidationException("Duration must be a positive number of minutes")


def occupied_intervals(bookings: Iterable[Booking]) -> list[Interval]:
    """Intervals held by non-cancelled bookings."""
    return [booking.interval for booking in bookings if booking.occupies]


def find_conflict(
    start: time,
    duration: int,
    bookings: Iterable[Booking],
    exclude_id: UUID | None = None,
) -> Booking | None:
    """
    Find the first booking that overlaps the requested interval.

    Args:
        start: Requested start time
        duration: Requested duration in minutes
        bookings: Existing bookings of the doctor on the same day
        exclude_id: Appointment being moved, ignored in the check

    Returns:
        The conflicting booking, or None when the interval is free
    """
    ensure_positive_duration(duration)
    requested = Interval.from_start(start, duration)
    for booking in bookings:
        if not booking.occupies:
            continue
        if exclude_id is not None and booking.appointment_id == exclude_id:
            continue
        if requested.overlaps(booking.interval):
            return booking
    return None


def compute_available_slots(
    windows: Iterable[ScheduleWindow],
    bookings: Iterable[Booking],
    duration: int,
    deduplicate: bool = False,
) -> list[Slot]:
    """
    Compute the free slots of a doctor for one day.

    Each window is walked from its start in steps of ``duration``; a slot is
    offered only when it fits entirely inside the window and does not overlap
    any non-cancelled booking. Overlapping windows yield the same start time
    more than once unless ``deduplicate`` is set.

    Args:
        windows: Schedule windows applicable on the day
        bookings: Existing bookings on the day
        duration: Slot length in minutes
        deduplicate: Collapse repeated start times and sort the result

    Returns:
        Free slots, in window order and chronological within each window
    """
    ensure_positive_duration(duration)
    windows = list(windows)
    if not windows:
        return []

    occupied = occupied_intervals(bookings)
    slots: list[Slot] = []

    for window in windows:
        cursor = to_minutes(window.start_time)
        window_end = to_minutes(window.end_time)
        while cursor + duration <= window_end:
            candidate = Interval(cursor, cursor + duration)
            if not any(candidate.overlaps(busy) for busy in occupied):
                slots.append(Slot(time=from_minutes(cursor), duration=duration))
            cursor += duration

    if deduplicate:
        unique = {slot.time: slot for slot in reversed(slots)}
        slots = sorted(unique.values(), key=lambda slot: slot.time)

    return slots
