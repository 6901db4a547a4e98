import os
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_backend.auth.context import CallerContext  # noqa: E402
from clinic_backend.core.config import SchedulingSettings  # noqa: E402
from clinic_backend.database import Base  # noqa: E402
from clinic_backend.models import appointment, availability, notification, service, time_slot, user  # noqa: E402,F401
from clinic_backend.models.service import Service  # noqa: E402
from clinic_backend.models.time_slot import SLOT_AVAILABLE, TimeSlot  # noqa: E402
from clinic_backend.models.user import (  # noqa: E402
    ADMIN_ROLE,
    PATIENT_ROLE,
    PROFESSIONAL_ROLE,
    RECEPTIONIST_ROLE,
    Patient,
    Professional,
    User,
)


@pytest.fixture
def db_session():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def settings() -> SchedulingSettings:
    return SchedulingSettings(buffer_minutes=10, time_zone='America/Bogota')


@pytest.fixture
def clinic(db_session):
    """Two patients, two professionals, reception, an admin and two services."""
    users = {
        'patient': User(email='ana@example.com', hashed_password='', role=PATIENT_ROLE),
        'other_patient': User(email='luis@example.com', hashed_password='', role=PATIENT_ROLE),
        'professional': User(email='dr.ruiz@clinic.example', hashed_password='', role=PROFESSIONAL_ROLE),
        'other_professional': User(email='dr.mora@clinic.example', hashed_password='', role=PROFESSIONAL_ROLE),
        'receptionist': User(email='front@clinic.example', hashed_password='', role=RECEPTIONIST_ROLE),
        'admin': User(email='admin@clinic.example', hashed_password='', role=ADMIN_ROLE),
    }
    db_session.add_all(users.values())
    db_session.flush()

    patient = Patient(user_id=users['patient'].id, full_name='Ana Gomez', phone='3000000001')
    other_patient = Patient(user_id=users['other_patient'].id, full_name='Luis Perez', phone='3000000002')
    professional = Professional(
        user_id=users['professional'].id,
        full_name='Dr. Ruiz',
        specialty='general',
        slot_duration_minutes=30,
        active=True,
    )
    other_professional = Professional(
        user_id=users['other_professional'].id,
        full_name='Dr. Mora',
        specialty='dermatology',
        slot_duration_minutes=None,
        active=True,
    )
    consultation = Service(name='General consultation', specialty='general', price_cents=50000, active=True)
    retired_service = Service(name='Legacy checkup', specialty='general', price_cents=10000, active=False)
    db_session.add_all([patient, other_patient, professional, other_professional, consultation, retired_service])
    db_session.commit()

    return SimpleNamespace(
        users=users,
        patient=patient,
        other_patient=other_patient,
        professional=professional,
        other_professional=other_professional,
        service=consultation,
        retired_service=retired_service,
        patient_caller=CallerContext(user_id=users['patient'].id, role=PATIENT_ROLE, patient_id=patient.id),
        other_patient_caller=CallerContext(
            user_id=users['other_patient'].id, role=PATIENT_ROLE, patient_id=other_patient.id,
        ),
        professional_caller=CallerContext(
            user_id=users['professional'].id, role=PROFESSIONAL_ROLE, professional_id=professional.id,
        ),
        other_professional_caller=CallerContext(
            user_id=users['other_professional'].id,
            role=PROFESSIONAL_ROLE,
            professional_id=other_professional.id,
        ),
        receptionist_caller=CallerContext(user_id=users['receptionist'].id, role=RECEPTIONIST_ROLE),
        admin_caller=CallerContext(user_id=users['admin'].id, role=ADMIN_ROLE),
    )


@pytest.fixture
def make_slot(db_session):
    def _make_slot(professional_id: int, start_at: datetime, minutes: int = 30, status: str = SLOT_AVAILABLE):
        slot = TimeSlot(
            professional_id=professional_id,
            start_at=start_at,
            end_at=start_at + timedelta(minutes=minutes),
            status=status,
        )
        db_session.add(slot)
        db_session.commit()
        db_session.refresh(slot)
        return slot

    return _make_slot
