"""Reschedule transaction: move an appointment from one slot to another.

The old slot is released and the new one reserved inside a single store
transaction. Every step is a conditional update; if any of them loses its
row the whole transaction is rolled back, so the old slot is never left
AVAILABLE when the new reservation fails.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from clinic_backend.auth.context import CallerContext
from clinic_backend.core.config import SchedulingSettings
from clinic_backend.core.errors import (
    ConflictError,
    NotFoundError,
    SchedulingValidationError,
    SlotUnavailableError,
    UnauthorizedError,
)
from clinic_backend.models.appointment import CLOSED_APPOINTMENT_STATUSES, Appointment
from clinic_backend.models.time_slot import SLOT_AVAILABLE, SLOT_BOOKED, TimeSlot
from clinic_backend.scheduling.booking import transition_slot
from clinic_backend.scheduling.events import APPOINTMENT_RESCHEDULED, AppointmentEvent, BookingResult
from clinic_backend.scheduling.slot_generation import slots_between
from clinic_backend.scheduling.slots import filter_bookable

logger = logging.getLogger(__name__)


def authorize_appointment_change(
    caller: CallerContext,
    appointment: Appointment,
    current_slot: TimeSlot,
    settings: SchedulingSettings,
    now: datetime,
    action: str,
    enforce_notice: bool = True,
) -> None:
    if caller.is_staff:
        return

    if caller.is_patient:
        if caller.patient_id != appointment.patient_id:
            raise UnauthorizedError(f'Patients can only {action} their own appointments.')
        notice = timedelta(hours=settings.patient_change_notice_hours)
        if enforce_notice and current_slot.start_at - now < notice:
            raise SchedulingValidationError(
                'Appointments can only be changed at least '
                f'{settings.patient_change_notice_hours} hours in advance.'
            )
        return

    if caller.is_professional:
        if caller.professional_id != appointment.professional_id:
            raise UnauthorizedError(f'Professionals can only {action} their own appointments.')
        return

    raise UnauthorizedError(f'Not authorized to {action} appointments.')


def suggest_alternative_slots(
    db: Session,
    professional_id: int,
    near: datetime,
    settings: SchedulingSettings,
    now: datetime,
    exclude_slot_id: int | None = None,
) -> list[TimeSlot]:
    """Open slots of the professional closest to ``near``, buffer rule applied."""
    if settings.reschedule_suggestion_limit <= 0:
        return []

    window = timedelta(days=settings.reschedule_suggestion_days)
    range_start = max(near - window, now)
    range_end = near + window
    if range_start >= range_end:
        return []

    candidates = [
        slot
        for slot in slots_between(db, professional_id, range_start, range_end, (SLOT_AVAILABLE,))
        if slot.id != exclude_slot_id and slot.start_at > now
    ]
    buffer = timedelta(minutes=settings.buffer_minutes)
    booked = slots_between(db, professional_id, range_start - buffer, range_end + buffer, (SLOT_BOOKED,))
    bookable = filter_bookable(candidates, booked, settings.buffer_minutes)
    bookable.sort(key=lambda slot: (abs(slot.start_at - near), slot.start_at))
    return bookable[:settings.reschedule_suggestion_limit]


def move_appointment(db: Session, appointment: Appointment, old_slot_id: int, new_slot: TimeSlot) -> None:
    """Transactional body of a reschedule. Commits, or rolls back and raises."""
    try:
        if not transition_slot(db, old_slot_id, SLOT_BOOKED, SLOT_AVAILABLE):
            raise ConflictError('The current time slot changed while rescheduling.')

        if not transition_slot(db, new_slot.id, SLOT_AVAILABLE, SLOT_BOOKED):
            raise SlotUnavailableError()

        repointed = db.query(Appointment).filter(
            Appointment.id == appointment.id,
            Appointment.time_slot_id == old_slot_id,
            Appointment.status.notin_(CLOSED_APPOINTMENT_STATUSES),
        ).update(
            {
                Appointment.time_slot_id: new_slot.id,
                Appointment.professional_id: new_slot.professional_id,
            },
            synchronize_session=False,
        )
        if repointed != 1:
            raise ConflictError('The appointment changed while rescheduling.')

        db.commit()
    except Exception:
        db.rollback()
        raise


def reschedule_appointment(
    db: Session,
    caller: CallerContext,
    appointment_id: int,
    target_slot_id: int,
    settings: SchedulingSettings,
    now: datetime | None = None,
) -> BookingResult:
    now = now or datetime.now(timezone.utc)

    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFoundError('Appointment not found.')

    if appointment.status in CLOSED_APPOINTMENT_STATUSES:
        raise SchedulingValidationError('Cancelled or completed appointments cannot be rescheduled.')

    current_slot = db.query(TimeSlot).filter(TimeSlot.id == appointment.time_slot_id).first()
    if not current_slot:
        raise NotFoundError('Current time slot not found.')

    target_slot = db.query(TimeSlot).filter(TimeSlot.id == target_slot_id).first()
    if not target_slot:
        raise NotFoundError('Time slot not found.')

    # Re-submitting the slot the appointment already holds is a no-op.
    already_there = appointment.time_slot_id == target_slot.id
    authorize_appointment_change(
        caller, appointment, current_slot, settings, now, 'reschedule', enforce_notice=not already_there,
    )
    if already_there:
        return BookingResult(appointment=appointment, events=[])

    if caller.is_professional and caller.professional_id != target_slot.professional_id:
        raise UnauthorizedError('Professionals can only move appointments within their own schedule.')

    old_slot_id = appointment.time_slot_id
    target_start = target_slot.start_at
    target_professional_id = target_slot.professional_id

    if target_slot.status != SLOT_AVAILABLE:
        raise SlotUnavailableError(
            alternatives=suggest_alternative_slots(
                db, target_professional_id, target_start, settings, now, exclude_slot_id=target_slot_id,
            ),
        )

    try:
        move_appointment(db, appointment, old_slot_id, target_slot)
    except SlotUnavailableError as exc:
        logger.warning('Slot %s was taken before appointment %s could move to it', target_slot_id, appointment_id)
        exc.alternatives = suggest_alternative_slots(
            db, target_professional_id, target_start, settings, now, exclude_slot_id=target_slot_id,
        )
        raise
    except ConflictError as exc:
        logger.warning('Reschedule of appointment %s aborted: %s', appointment_id, exc.message)
        raise

    db.refresh(appointment)
    logger.info('Rescheduled appointment %s from slot %s to slot %s', appointment_id, old_slot_id, target_slot_id)
    return BookingResult(
        appointment=appointment,
        events=[
            AppointmentEvent(
                type=APPOINTMENT_RESCHEDULED,
                appointment_id=appointment_id,
                title='Appointment rescheduled',
                body=f'Appointment {appointment_id} was moved to a new time slot.',
            )
        ],
    )
