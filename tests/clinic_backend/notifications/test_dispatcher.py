import pytest

from clinic_backend.models.notification import Notification
from clinic_backend.models.user import RECEPTIONIST_ROLE, User
from clinic_backend.notifications.dispatcher import create_reception_notifications, dispatch_events
from clinic_backend.scheduling.events import APPOINTMENT_CREATED, AppointmentEvent

EVENT = AppointmentEvent(type=APPOINTMENT_CREATED, appointment_id=7, title='Appointment booked', body='Booked.')


def test_create_reception_notifications_addresses_every_receptionist(db_session, clinic) -> None:
    db_session.add(User(email='second.front@clinic.example', hashed_password='', role=RECEPTIONIST_ROLE))
    db_session.commit()

    assert create_reception_notifications(db_session, EVENT) == 2
    db_session.commit()

    notifications = db_session.query(Notification).all()
    assert len(notifications) == 2
    assert {notification.entity_id for notification in notifications} == {7}
    assert {notification.type for notification in notifications} == {APPOINTMENT_CREATED}


def test_dispatch_events_counts_delivered_events(db_session, clinic) -> None:
    assert dispatch_events(db_session, [EVENT, EVENT]) == 2
    assert db_session.query(Notification).count() == 2


def test_dispatch_events_swallows_delivery_failures(
    db_session,
    clinic,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def _explode(db, event):
        raise RuntimeError('mail server down')

    monkeypatch.setattr('clinic_backend.notifications.dispatcher.create_reception_notifications', _explode)

    assert dispatch_events(db_session, [EVENT]) == 0
    assert 'Failed to dispatch appointment_created notification for appointment 7' in caplog.text
