"""Appointment model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Index, Integer, String, text
from clinic_backend.database import Base, UTCDateTime

APPOINTMENT_PENDING = 'PENDING'
APPOINTMENT_CONFIRMED = 'CONFIRMED'
APPOINTMENT_CANCELLED = 'CANCELLED'
APPOINTMENT_COMPLETED = 'COMPLETED'
ACTIVE_APPOINTMENT_STATUSES = (APPOINTMENT_PENDING, APPOINTMENT_CONFIRMED)
CLOSED_APPOINTMENT_STATUSES = (APPOINTMENT_CANCELLED, APPOINTMENT_COMPLETED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Appointment(Base):
    """Represents a scheduled appointment."""
    __tablename__ = "appointments"
    __table_args__ = (
        # Cancelled rows keep their slot id for history, so only live rows are unique.
        Index(
            'uq_appointments_live_slot',
            'time_slot_id',
            unique=True,
            sqlite_where=text("status != 'CANCELLED'"),
            postgresql_where=text("status != 'CANCELLED'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id"), nullable=False)
    service_name = Column(String, nullable=False)
    service_price_cents = Column(Integer, default=0, nullable=False)
    reason = Column(String, nullable=False)
    notes = Column(String, nullable=True)
    status = Column(String, default=APPOINTMENT_PENDING, nullable=False)
    created_at = Column(UTCDateTime, default=_utcnow)
    updated_at = Column(UTCDateTime, default=_utcnow, onupdate=_utcnow)
    reminder_sent_at = Column(UTCDateTime, nullable=True)
