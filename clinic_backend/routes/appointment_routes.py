import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.context import CallerContext
from clinic_backend.auth.dependencies import get_current_caller
from clinic_backend.core import config
from clinic_backend.core.config import SchedulingSettings, get_scheduling_settings
from clinic_backend.core.errors import SchedulingError
from clinic_backend.database import get_db
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.time_slot import TimeSlot
from clinic_backend.notifications.dispatcher import dispatch_events
from clinic_backend.routes.http_errors import database_unavailable, ensure_database_ready, to_http_exception
from clinic_backend.routes.slot_routes import serialize_slot
from clinic_backend.scheduling.appointment_status import change_appointment_status, list_upcoming_appointments
from clinic_backend.scheduling.booking import BookingRequest, book_appointment
from clinic_backend.scheduling.reminders import send_due_reminders
from clinic_backend.scheduling.reschedule import reschedule_appointment

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_APPOINTMENT_NOTES_LENGTH = 600
MAX_APPOINTMENT_REASON_LENGTH = 200


def _normalize_optional_text(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    time_slot_id: int
    service_id: int
    patient_id: int | None = None
    professional_id: int | None = None
    reason: str | None = None
    notes: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_APPOINTMENT_REASON_LENGTH, 'Reason')

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_APPOINTMENT_NOTES_LENGTH, 'Notes')


class RescheduleRequest(BaseModel):
    time_slot_id: int


class StatusChangeRequest(BaseModel):
    status: str
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not normalized:
            raise ValueError('Status is required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_APPOINTMENT_NOTES_LENGTH, 'Notes')


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    professional_id: int
    service_id: int
    time_slot_id: int
    service_name: str
    service_price_cents: int
    reason: str
    notes: str | None = None
    status: str
    start_at: datetime | None = None
    end_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    reminder_sent_at: datetime | None = None


class ReminderRunResponse(BaseModel):
    processed: int
    sent: int


def to_appointment_response(db: Session, appointment: Appointment) -> AppointmentResponse:
    slot = db.query(TimeSlot).filter(TimeSlot.id == appointment.time_slot_id).first()
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        professional_id=appointment.professional_id,
        service_id=appointment.service_id,
        time_slot_id=appointment.time_slot_id,
        service_name=appointment.service_name,
        service_price_cents=appointment.service_price_cents or 0,
        reason=appointment.reason,
        notes=appointment.notes,
        status=appointment.status,
        start_at=slot.start_at if slot else None,
        end_at=slot.end_at if slot else None,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
        reminder_sent_at=appointment.reminder_sent_at,
    )


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    try:
        appointments = list_upcoming_appointments(db, caller)
        return [to_appointment_response(db, appointment) for appointment in appointments]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    patient_id = data.patient_id if data.patient_id is not None else caller.patient_id
    if patient_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Patient is required.')

    ensure_database_ready()

    try:
        result = book_appointment(
            db,
            caller,
            BookingRequest(
                time_slot_id=data.time_slot_id,
                service_id=data.service_id,
                patient_id=patient_id,
                professional_id=data.professional_id,
                reason=data.reason,
                notes=data.notes,
            ),
        )
    except SchedulingError as exc:
        raise to_http_exception(exc, serialize_slot) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    dispatch_events(db, result.events)
    return to_appointment_response(db, result.appointment)


@router.post('/reminders/run', response_model=ReminderRunResponse)
def run_reminders(
    authorization: str | None = Header(default=None),
    x_cron_key: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    if not is_authorized_cron(authorization, x_cron_key):
        logger.warning('Rejected unauthorized reminder run')
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Not authorized.')

    ensure_database_ready()

    try:
        processed, sent = send_due_reminders(db, dispatch_events)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return ReminderRunResponse(processed=processed, sent=sent)


@router.post('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule(
    appointment_id: int,
    data: RescheduleRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    settings: SchedulingSettings = Depends(get_scheduling_settings),
):
    ensure_database_ready()

    try:
        result = reschedule_appointment(db, caller, appointment_id, data.time_slot_id, settings)
    except SchedulingError as exc:
        raise to_http_exception(exc, serialize_slot) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    dispatch_events(db, result.events)
    return to_appointment_response(db, result.appointment)


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_status(
    appointment_id: int,
    data: StatusChangeRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    settings: SchedulingSettings = Depends(get_scheduling_settings),
):
    ensure_database_ready()

    try:
        result = change_appointment_status(db, caller, appointment_id, data.status, settings, notes=data.notes)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    dispatch_events(db, result.events)
    return to_appointment_response(db, result.appointment)


def is_authorized_cron(authorization: str | None, cron_key: str | None) -> bool:
    secret = config.CRON_SECRET
    if not secret:
        return True

    header = (authorization or '').strip()
    if header.startswith('Bearer '):
        return header[len('Bearer '):] == secret

    return (cron_key or '').strip() == secret
