"""User and profile model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from clinic_backend.database import Base

PATIENT_ROLE = 'patient'
PROFESSIONAL_ROLE = 'professional'
RECEPTIONIST_ROLE = 'receptionist'
ADMIN_ROLE = 'admin'
STAFF_ROLES = frozenset({RECEPTIONIST_ROLE, ADMIN_ROLE})


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    role = Column(String)  # patient/professional/receptionist/admin


class Patient(Base):
    """Patient profile attached to a user."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True)
    full_name = Column(String)
    phone = Column(String)


class Professional(Base):
    """Professional whose time patients book."""
    __tablename__ = "professionals"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True)
    full_name = Column(String)
    specialty = Column(String)
    slot_duration_minutes = Column(Integer, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
