"""Booking transaction: reserve a slot and create its appointment atomically."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_backend.auth.context import CallerContext
from clinic_backend.core.errors import (
    NotFoundError,
    SchedulingValidationError,
    SlotUnavailableError,
    UnauthorizedError,
)
from clinic_backend.models.appointment import APPOINTMENT_PENDING, Appointment
from clinic_backend.models.service import Service
from clinic_backend.models.time_slot import SLOT_AVAILABLE, SLOT_BOOKED, TimeSlot
from clinic_backend.models.user import Patient
from clinic_backend.scheduling.events import APPOINTMENT_CREATED, AppointmentEvent, BookingResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    time_slot_id: int
    service_id: int
    patient_id: int
    professional_id: int | None = None
    reason: str | None = None
    notes: str | None = None


def transition_slot(db: Session, slot_id: int, expected_status: str, new_status: str) -> bool:
    """Compare-and-set a slot's status; True when this caller won the row."""
    updated = db.query(TimeSlot).filter(
        TimeSlot.id == slot_id,
        TimeSlot.status == expected_status,
    ).update({TimeSlot.status: new_status}, synchronize_session=False)
    return updated == 1


def authorize_patient_access(caller: CallerContext, patient_id: int, slot: TimeSlot) -> None:
    if caller.is_staff:
        return
    if caller.is_patient:
        if caller.patient_id != patient_id:
            raise UnauthorizedError('Patients can only book appointments for themselves.')
        return
    if caller.is_professional:
        if caller.professional_id != slot.professional_id:
            raise UnauthorizedError('Professionals can only book on their own schedule.')
        return
    raise UnauthorizedError('Not authorized to book appointments.')


def reserve_slot_and_create_appointment(
    db: Session,
    slot: TimeSlot,
    service: Service,
    patient_id: int,
    reason: str,
    notes: str | None,
) -> Appointment:
    """Transactional body of a booking. Commits, or rolls back and raises."""
    try:
        if not transition_slot(db, slot.id, SLOT_AVAILABLE, SLOT_BOOKED):
            raise SlotUnavailableError()

        appointment = Appointment(
            patient_id=patient_id,
            professional_id=slot.professional_id,
            service_id=service.id,
            time_slot_id=slot.id,
            service_name=service.name,
            service_price_cents=service.price_cents or 0,
            reason=reason,
            notes=notes,
            status=APPOINTMENT_PENDING,
        )
        db.add(appointment)
        db.flush()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SlotUnavailableError() from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    return appointment


def book_appointment(db: Session, caller: CallerContext, request: BookingRequest) -> BookingResult:
    slot = db.query(TimeSlot).filter(TimeSlot.id == request.time_slot_id).first()
    if not slot:
        raise NotFoundError('Time slot not found.')

    service = db.query(Service).filter(Service.id == request.service_id).first()
    if not service:
        raise NotFoundError('Service not found.')
    if not service.active:
        raise SchedulingValidationError('Service is not active.')

    if request.professional_id is not None and request.professional_id != slot.professional_id:
        raise SchedulingValidationError('The time slot belongs to a different professional.')

    patient = db.query(Patient).filter(Patient.id == request.patient_id).first()
    if not patient:
        raise NotFoundError('Patient not found.')

    authorize_patient_access(caller, patient.id, slot)

    if slot.status != SLOT_AVAILABLE:
        raise SlotUnavailableError()

    reason = (request.reason or '').strip() or service.name
    try:
        appointment = reserve_slot_and_create_appointment(db, slot, service, patient.id, reason, request.notes)
    except SlotUnavailableError:
        logger.warning('Slot %s was taken before patient %s could book it', request.time_slot_id, request.patient_id)
        raise

    logger.info('Booked appointment %s on slot %s for patient %s', appointment.id, slot.id, patient.id)
    return BookingResult(
        appointment=appointment,
        events=[
            AppointmentEvent(
                type=APPOINTMENT_CREATED,
                appointment_id=appointment.id,
                title='Appointment booked',
                body=f'Appointment {appointment.id} was booked for {service.name}.',
            )
        ],
    )
