"""Day-ahead appointment reminders, triggered by an external cron."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from sqlalchemy.orm import Session

from clinic_backend.models.appointment import ACTIVE_APPOINTMENT_STATUSES, Appointment
from clinic_backend.models.time_slot import TimeSlot
from clinic_backend.scheduling.events import APPOINTMENT_REMINDER, AppointmentEvent

logger = logging.getLogger(__name__)

REMINDER_WINDOW_START = timedelta(hours=23)
REMINDER_WINDOW_END = timedelta(hours=25)


def due_reminders(db: Session, now: datetime) -> list[Appointment]:
    return db.query(Appointment).join(TimeSlot, TimeSlot.id == Appointment.time_slot_id).filter(
        Appointment.reminder_sent_at.is_(None),
        Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
        TimeSlot.start_at >= now + REMINDER_WINDOW_START,
        TimeSlot.start_at < now + REMINDER_WINDOW_END,
    ).order_by(TimeSlot.start_at.asc()).all()


def send_due_reminders(
    db: Session,
    dispatcher: Callable[[Session, Iterable[AppointmentEvent]], int],
    now: datetime | None = None,
) -> tuple[int, int]:
    """Remind appointments starting in roughly a day; returns (processed, sent)."""
    now = now or datetime.now(timezone.utc)
    appointments = due_reminders(db, now)

    sent = 0
    for appointment in appointments:
        appointment_id = appointment.id
        service_name = appointment.service_name

        # Overlapping runs skip rows that are already claimed.
        claimed = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.reminder_sent_at.is_(None),
        ).update({Appointment.reminder_sent_at: now}, synchronize_session=False)
        db.commit()
        if not claimed:
            continue

        event = AppointmentEvent(
            type=APPOINTMENT_REMINDER,
            appointment_id=appointment_id,
            title='Appointment reminder',
            body=f'Appointment {appointment_id} ({service_name}) starts within a day.',
        )
        if dispatcher(db, [event]):
            sent += 1
            continue

        logger.warning('Reminder for appointment %s was not delivered; releasing it for the next run', appointment_id)
        db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.reminder_sent_at == now,
        ).update({Appointment.reminder_sent_at: None}, synchronize_session=False)
        db.commit()

    logger.info('Reminder run processed %s appointments, sent %s', len(appointments), sent)
    return len(appointments), sent
