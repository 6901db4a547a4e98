"""Clinic service model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from clinic_backend.database import Base


class Service(Base):
    """A bookable service offered by the clinic."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    specialty = Column(String, nullable=True)
    price_cents = Column(Integer, default=0, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
