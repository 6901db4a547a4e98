"""Post-commit dispatch of appointment events to reception staff.

Dispatch is best effort: a failure here is logged and never reaches the
caller of the booking, reschedule or status change that produced the event.
"""

import logging
from typing import Iterable

from sqlalchemy.orm import Session

from clinic_backend.models.notification import Notification
from clinic_backend.models.user import RECEPTIONIST_ROLE, User
from clinic_backend.scheduling.events import AppointmentEvent

logger = logging.getLogger(__name__)


def create_reception_notifications(db: Session, event: AppointmentEvent) -> int:
    recipients = db.query(User.id).filter(User.role == RECEPTIONIST_ROLE).all()
    for (user_id,) in recipients:
        db.add(Notification(
            user_id=user_id,
            type=event.type,
            title=event.title,
            body=event.body,
            entity_type='appointment',
            entity_id=event.appointment_id,
        ))
    return len(recipients)


def dispatch_events(db: Session, events: Iterable[AppointmentEvent]) -> int:
    """Deliver events; returns how many were delivered."""
    delivered = 0
    for event in events:
        try:
            create_reception_notifications(db, event)
            db.commit()
            delivered += 1
        except Exception:
            logger.exception(
                'Failed to dispatch %s notification for appointment %s', event.type, event.appointment_id,
            )
            db.rollback()
    return delivered
