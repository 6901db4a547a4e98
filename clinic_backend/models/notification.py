"""Notification model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, String
from clinic_backend.database import Base, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Notification(Base):
    """In-app notification addressed to one user."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    body = Column(String, nullable=True)
    entity_type = Column(String, nullable=True)
    entity_id = Column(Integer, nullable=True)
    created_at = Column(UTCDateTime, default=_utcnow)
    read_at = Column(UTCDateTime, nullable=True)
