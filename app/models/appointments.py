"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Computed,
    Date,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    Time,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, TSRANGE, UUID, ExcludeConstraint

from app.models.metadata import metadata

OVERLAP_CONSTRAINT = "appointments_no_overlap"

# Half-open occupied range, used by the overlap exclusion constraint
SLOT_RANGE_SQL = (
    "tsrange(appointment_date + appointment_time, "
    "appointment_date + appointment_time + make_interval(mins => duration_minutes), '[)')"
)

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    # Ownership / references
    Column(
        "patient_id",
        UUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
    Column(
        "doctor_id",
        UUID(as_uuid=True),
        ForeignKey("doctors.id", ondelete="RESTRICT"),
        nullable=False,
    ),
    Column(
        "clinic_id",
        UUID(as_uuid=True),
        ForeignKey("clinics.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    ),
    # Appointment details
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", Time, nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    Column("reason", Text, nullable=False, server_default=text("''")),
    Column("notes", Text, nullable=False, server_default=text("''")),
    # Status management
    Column(
        "status",
        Text,
        nullable=False,
        server_default="scheduled",
    ),
    Column("cancellation_reason", Text, nullable=True),
    # Audit fields
    Column("created_by", UUID(as_uuid=True), ForeignKey("users.id"), nullable=True),
    Column("cancelled_by", UUID(as_uuid=True), ForeignKey("users.id"), nullable=True),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("cancelled_at", TIMESTAMP(timezone=True), nullable=True),
    # Soft delete (healthcare compliance)
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("deleted_at", TIMESTAMP(timezone=True), nullable=True),
    Column("slot_range", TSRANGE, Computed(SLOT_RANGE_SQL, persisted=True)),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'cancelled', 'completed', 'no_show')",
        name="appointments_status_check",
    ),
    CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
    # Requires the btree_gist extension for the uuid equality operator
    ExcludeConstraint(
        ("doctor_id", "="),
        ("slot_range", "&&"),
        name=OVERLAP_CONSTRAINT,
        using="gist",
        where=text("status <> 'cancelled' AND is_active"),
    ),
)

Index(
    "idx_appointments_doctor_date",
    appointments.c.doctor_id,
    appointments.c.appointment_date,
)
