"""Tests for weekly schedule windows."""

from datetime import date, time

import pytest

from app.core.exceptions import ValidationException
from app.scheduling.schedule import (
    ScheduleWindow,
    validate_weekday,
    weekday_index,
    windows_for_date,
)


@pytest.mark.parametrize(
    ("day", "expected"),
    [
        (date(2026, 10, 18), 1),  # Sunday
        (date(2026, 10, 19), 2),  # Monday
        (date(2026, 10, 23), 6),  # Friday
        (date(2026, 10, 24), 7),  # Saturday
    ],
)
def test_weekday_index(day, expected):
    assert weekday_index(day) == expected


@pytest.mark.parametrize("value", [0, 8, -1])
def test_validate_weekday_rejects_out_of_range(value):
    with pytest.raises(ValidationException):
        validate_weekday(value)


def test_window_requires_start_before_end():
    with pytest.raises(ValidationException):
        ScheduleWindow(2, time(12, 0), time(12, 0))

    with pytest.raises(ValidationException):
        ScheduleWindow(2, time(13, 0), time(12, 0))


def test_window_from_row_defaults_to_active():
    window = ScheduleWindow.from_row(
        {"day_of_week": 3, "start_time": time(8, 0), "end_time": time(9, 0)}
    )

    assert window.is_active
    assert window.day_of_week == 3


def test_windows_for_date_filters_weekday_and_inactive():
    entries = [
        ScheduleWindow(2, time(14, 0), time(16, 0)),
        ScheduleWindow(2, time(9, 0), time(12, 0)),
        ScheduleWindow(2, time(18, 0), time(19, 0), is_active=False),
        ScheduleWindow(3, time(9, 0), time(12, 0)),
    ]

    monday = windows_for_date(entries, date(2026, 10, 19))

    assert [(w.start_time, w.end_time) for w in monday] == [
        (time(9, 0), time(12, 0)),
        (time(14, 0), time(16, 0)),
    ]


def test_windows_for_date_without_schedule():
    entries = [ScheduleWindow(2, time(9, 0), time(12, 0))]

    assert windows_for_date(entries, date(2026, 10, 18)) == []
