"""Weekly recurring availability windows of doctors."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    SmallInteger,
    Table,
    Time,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

from app.models.metadata import metadata

doctor_schedules = Table(
    "doctor_schedules",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "doctor_id",
        UUID(as_uuid=True),
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # 1 = Sunday ... 7 = Saturday
    Column("day_of_week", SmallInteger, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    CheckConstraint("day_of_week BETWEEN 1 AND 7", name="doctor_schedules_day_check"),
    CheckConstraint("start_time < end_time", name="doctor_schedules_range_check"),
)

Index(
    "idx_doctor_schedules_doctor_day",
    doctor_schedules.c.doctor_id,
    doctor_schedules.c.day_of_week,
)
