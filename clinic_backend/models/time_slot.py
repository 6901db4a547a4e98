"""Time slot model definitions."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, UniqueConstraint
from clinic_backend.database import Base, UTCDateTime

SLOT_AVAILABLE = 'AVAILABLE'
SLOT_BOOKED = 'BOOKED'
SLOT_BREAK = 'BREAK'


class TimeSlot(Base):
    """The atomic bookable unit of a professional's time."""
    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint('professional_id', 'start_at', 'end_at', name='uq_time_slots_professional_window'),
        CheckConstraint('start_at < end_at', name='ck_time_slots_window'),
    )

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False)
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    status = Column(String, default=SLOT_AVAILABLE, nullable=False)
