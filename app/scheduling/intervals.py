"""Minute-of-day interval arithmetic shared by the scheduling modules."""

from dataclasses import dataclass
from datetime import time

MINUTES_PER_DAY = 24 * 60


def to_minutes(value: time) -> int:
    """Convert a time of day to minutes since midnight (seconds are ignored)."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """
    Convert minutes since midnight back to a time of day.

    Raises:
        ValueError: If the value falls outside a single day
    """
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """
    Check whether half-open intervals [start_a, end_a) and [start_b, end_b) overlap.

    Touching endpoints are not an overlap.
    """
    return start_a < end_b and end_a > start_b


@dataclass(frozen=True)
class Interval:
    """Half-open [start, end) range in minutes since midnight."""

    start: int
    end: int

    @classmethod
    def from_start(cls, start: time, duration_minutes: int) -> "Interval":
        """Build an interval from a start time and a duration."""
        begin = to_minutes(start)
        return cls(begin, begin + duration_minutes)

    @classmethod
    def covering(cls, start: time, duration_minutes: int) -> "Interval":
        """Smallest whole-minute interval containing a booking that may start mid-minute."""
        begin = to_minutes(start)
        partial = bool(start.second or start.microsecond)
        return cls(begin, begin + duration_minutes + partial)

    def overlaps(self, other: "Interval") -> bool:
        """Check overlap with another interval."""
        return overlaps(self.start, self.end, other.start, other.end)

    @property
    def crosses_midnight(self) -> bool:
        """True when the interval ends after the end of the day."""
        return self.end > MINUTES_PER_DAY
