"""Tests for the retry around storage-level overlap rejections."""

from datetime import date
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.core.exceptions import ConcurrencyConflictException, SlotUnavailableException
from app.services.appointment_service import AppointmentService

DAY = date(2026, 10, 19)


def _overlap_error() -> IntegrityError:
    return IntegrityError(
        "INSERT INTO appointments ...",
        {},
        Exception('conflicting key value violates exclusion constraint "appointments_no_overlap"'),
    )


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


async def test_write_is_committed(db):
    service = AppointmentService(db)
    write = AsyncMock(return_value="ok")

    result = await service._write_guarded(write, uuid4(), DAY)

    assert result == "ok"
    db.commit.assert_awaited_once()
    db.rollback.assert_not_awaited()


async def test_overlap_violation_is_retried(db, monkeypatch):
    monkeypatch.setattr(settings, "booking_conflict_retries", 1)
    service = AppointmentService(db)
    write = AsyncMock(side_effect=[_overlap_error(), "ok"])

    result = await service._write_guarded(write, uuid4(), DAY)

    assert result == "ok"
    assert write.await_count == 2
    db.rollback.assert_awaited_once()


async def test_repeated_overlap_becomes_concurrency_conflict(db, monkeypatch):
    monkeypatch.setattr(settings, "booking_conflict_retries", 1)
    service = AppointmentService(db)
    write = AsyncMock(side_effect=_overlap_error())

    with pytest.raises(ConcurrencyConflictException) as exc_info:
        await service._write_guarded(write, uuid4(), DAY)

    assert exc_info.value.status_code == 409
    assert exc_info.value.category == "concurrency_conflict"
    assert write.await_count == 2


async def test_other_integrity_errors_propagate(db):
    service = AppointmentService(db)
    error = IntegrityError("INSERT", {}, Exception('violates foreign key "fk_patient"'))
    write = AsyncMock(side_effect=error)

    with pytest.raises(IntegrityError):
        await service._write_guarded(write, uuid4(), DAY)

    assert write.await_count == 1
    db.rollback.assert_awaited_once()


async def test_domain_errors_roll_back_without_retry(db):
    service = AppointmentService(db)
    write = AsyncMock(side_effect=SlotUnavailableException())

    with pytest.raises(SlotUnavailableException):
        await service._write_guarded(write, uuid4(), DAY)

    assert write.await_count == 1
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()
