"""Availability model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String, Time
from clinic_backend.database import Base, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityRule(Base):
    """Recurring weekly (or any RFC 5545) window of open time."""
    __tablename__ = "availability_rules"

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    rrule = Column(String, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    timezone = Column(String, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=_utcnow)


class AvailabilityException(Base):
    """Date-specific override of a professional's rules."""
    __tablename__ = "availability_exceptions"

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False)
    date = Column(Date, nullable=False)
    is_available = Column(Boolean, default=False, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    reason = Column(String, nullable=True)
    created_at = Column(UTCDateTime, default=_utcnow)


class ClinicHoliday(Base):
    """Clinic-wide closed date."""
    __tablename__ = "clinic_holidays"

    id = Column(Integer, primary_key=True)
    date = Column(Date, unique=True, nullable=False)
    name = Column(String, nullable=False)
