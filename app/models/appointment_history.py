"""Append-only audit trail of appointment status changes."""

from sqlalchemy import Column, ForeignKey, Table, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from app.models.metadata import metadata

appointment_history = Table(
    "appointment_history",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "appointment_id",
        UUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # NULL for the entry written when the appointment is created
    Column("previous_status", Text, nullable=True),
    Column("new_status", Text, nullable=False),
    Column("change_reason", Text),
    Column("changed_by", UUID(as_uuid=True), ForeignKey("users.id"), nullable=True),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
)
