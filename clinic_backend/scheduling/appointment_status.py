"""Status transitions of an existing appointment (confirm, cancel, complete)."""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from clinic_backend.auth.context import CallerContext
from clinic_backend.core.config import SchedulingSettings
from clinic_backend.core.errors import (
    ConflictError,
    NotFoundError,
    SchedulingValidationError,
    UnauthorizedError,
)
from clinic_backend.models.appointment import (
    ACTIVE_APPOINTMENT_STATUSES,
    APPOINTMENT_CANCELLED,
    APPOINTMENT_COMPLETED,
    APPOINTMENT_CONFIRMED,
    APPOINTMENT_PENDING,
    Appointment,
)
from clinic_backend.models.time_slot import SLOT_AVAILABLE, SLOT_BOOKED, TimeSlot
from clinic_backend.scheduling.booking import transition_slot
from clinic_backend.scheduling.events import (
    APPOINTMENT_CANCELLED as CANCELLED_EVENT,
    APPOINTMENT_COMPLETED as COMPLETED_EVENT,
    APPOINTMENT_CONFIRMED as CONFIRMED_EVENT,
    AppointmentEvent,
    BookingResult,
)
from clinic_backend.scheduling.reschedule import authorize_appointment_change

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    APPOINTMENT_PENDING: {APPOINTMENT_CONFIRMED, APPOINTMENT_CANCELLED},
    APPOINTMENT_CONFIRMED: {APPOINTMENT_CANCELLED, APPOINTMENT_COMPLETED},
    APPOINTMENT_CANCELLED: set(),
    APPOINTMENT_COMPLETED: set(),
}
PROFESSIONAL_STATUSES = {APPOINTMENT_CONFIRMED, APPOINTMENT_COMPLETED}
EVENT_BY_STATUS = {
    APPOINTMENT_CANCELLED: (CANCELLED_EVENT, 'Appointment cancelled'),
    APPOINTMENT_CONFIRMED: (CONFIRMED_EVENT, 'Appointment confirmed'),
    APPOINTMENT_COMPLETED: (COMPLETED_EVENT, 'Appointment completed'),
}


def _apply_status(db: Session, appointment: Appointment, new_status: str, notes: str | None) -> None:
    values = {Appointment.status: new_status}
    if notes is not None:
        values[Appointment.notes] = notes

    try:
        updated = db.query(Appointment).filter(
            Appointment.id == appointment.id,
            Appointment.status == appointment.status,
        ).update(values, synchronize_session=False)
        if updated != 1:
            raise ConflictError('The appointment changed while updating its status.')

        # Cancelling releases the slot; the appointment row stays for history.
        if new_status == APPOINTMENT_CANCELLED:
            if not transition_slot(db, appointment.time_slot_id, SLOT_BOOKED, SLOT_AVAILABLE):
                raise ConflictError('The time slot changed while cancelling.')

        db.commit()
    except Exception:
        db.rollback()
        raise


def change_appointment_status(
    db: Session,
    caller: CallerContext,
    appointment_id: int,
    new_status: str,
    settings: SchedulingSettings,
    notes: str | None = None,
    now: datetime | None = None,
) -> BookingResult:
    now = now or datetime.now(timezone.utc)
    new_status = (new_status or '').strip().upper()
    if new_status not in ALLOWED_TRANSITIONS:
        raise SchedulingValidationError('Invalid appointment status.')

    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFoundError('Appointment not found.')

    slot = db.query(TimeSlot).filter(TimeSlot.id == appointment.time_slot_id).first()
    if not slot:
        raise NotFoundError('Time slot not found.')

    if caller.is_patient and new_status != APPOINTMENT_CANCELLED:
        raise UnauthorizedError('Patients can only cancel their appointments.')
    if caller.is_professional and new_status not in PROFESSIONAL_STATUSES:
        raise UnauthorizedError('Professionals can only confirm or complete appointments.')
    action = 'cancel' if new_status == APPOINTMENT_CANCELLED else 'update'
    authorize_appointment_change(caller, appointment, slot, settings, now, action)

    if new_status == appointment.status:
        return BookingResult(appointment=appointment, events=[])
    if new_status not in ALLOWED_TRANSITIONS.get(appointment.status, set()):
        raise SchedulingValidationError(
            f'Cannot change an appointment from {appointment.status} to {new_status}.'
        )

    previous_status = appointment.status
    _apply_status(db, appointment, new_status, notes)
    db.refresh(appointment)

    logger.info('Appointment %s moved from %s to %s', appointment_id, previous_status, new_status)
    event_type, title = EVENT_BY_STATUS[new_status]
    return BookingResult(
        appointment=appointment,
        events=[
            AppointmentEvent(
                type=event_type,
                appointment_id=appointment_id,
                title=title,
                body=f'Appointment {appointment_id} is now {new_status.lower()}.',
            )
        ],
    )


def list_upcoming_appointments(
    db: Session,
    caller: CallerContext,
    now: datetime | None = None,
    limit: int = 20,
) -> list[Appointment]:
    now = now or datetime.now(timezone.utc)
    query = db.query(Appointment).join(TimeSlot, TimeSlot.id == Appointment.time_slot_id).filter(
        TimeSlot.start_at >= now,
        Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
    )

    if caller.is_patient:
        query = query.filter(Appointment.patient_id == caller.patient_id)
    elif caller.is_professional:
        query = query.filter(Appointment.professional_id == caller.professional_id)
    elif not caller.is_staff:
        return []

    return query.order_by(TimeSlot.start_at.asc()).limit(limit).all()
