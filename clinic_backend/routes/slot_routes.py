from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.context import CallerContext
from clinic_backend.auth.dependencies import get_current_caller
from clinic_backend.core.config import SchedulingSettings, get_scheduling_settings
from clinic_backend.core.errors import SchedulingError
from clinic_backend.database import get_db
from clinic_backend.models.time_slot import TimeSlot
from clinic_backend.models.user import Professional
from clinic_backend.routes.http_errors import (
    as_instant,
    database_unavailable,
    ensure_database_ready,
    require_staff_or_owner,
    to_http_exception,
)
from clinic_backend.scheduling.slot_generation import (
    generate_slots_for_window,
    generate_slots_from_rules,
    list_bookable_slots,
    resolve_slot_duration,
)

router = APIRouter(tags=['slots'])

MAX_GENERATION_DAYS = 92


class SlotResponse(BaseModel):
    id: int
    professional_id: int
    start_at: datetime
    end_at: datetime
    status: str

    class Config:
        from_attributes = True


class BookableSlotsResponse(BaseModel):
    date: str
    slots: list[SlotResponse]


class GenerateSlotsRequest(BaseModel):
    start_at: datetime
    end_at: datetime
    slot_duration_minutes: int | None = None
    from_rules: bool = True

    @field_validator('slot_duration_minutes')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError('Slot duration must be a positive number of minutes.')
        return value


class GenerateSlotsResponse(BaseModel):
    created: int


def serialize_slot(slot: TimeSlot) -> dict:
    return SlotResponse.model_validate(slot).model_dump(mode='json')


@router.get('', response_model=BookableSlotsResponse, dependencies=[Depends(get_current_caller)])
def list_slots(
    day: date = Query(..., alias='date'),
    professional_id: int | None = Query(default=None),
    service_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    settings: SchedulingSettings = Depends(get_scheduling_settings),
):
    ensure_database_ready()

    try:
        slots = list_bookable_slots(
            db,
            day,
            settings,
            professional_id=professional_id,
            service_id=service_id,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return BookableSlotsResponse(
        date=day.isoformat(),
        slots=[SlotResponse.model_validate(slot) for slot in slots],
    )


@router.get('/professionals/{professional_id}', response_model=list[SlotResponse])
def list_professional_slots(
    professional_id: int,
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    settings: SchedulingSettings = Depends(get_scheduling_settings),
):
    require_staff_or_owner(caller, professional_id, 'Only staff or the professional can view these slots.')
    ensure_database_ready()

    try:
        query = db.query(TimeSlot).filter(TimeSlot.professional_id == professional_id)
        if start is not None:
            query = query.filter(TimeSlot.start_at >= as_instant(start, settings.time_zone))
        if end is not None:
            query = query.filter(TimeSlot.start_at < as_instant(end, settings.time_zone))
        return query.order_by(TimeSlot.start_at.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post(
    '/professionals/{professional_id}/generate',
    response_model=GenerateSlotsResponse,
    status_code=status.HTTP_201_CREATED,
)
def generate_slots(
    professional_id: int,
    data: GenerateSlotsRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    settings: SchedulingSettings = Depends(get_scheduling_settings),
):
    if not caller.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only staff can generate time slots.',
        )

    start_at = as_instant(data.start_at, settings.time_zone)
    end_at = as_instant(data.end_at, settings.time_zone)
    if start_at >= end_at:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid date range.')
    if (end_at - start_at).days > MAX_GENERATION_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Slots can be generated for at most {MAX_GENERATION_DAYS} days at a time.',
        )

    ensure_database_ready()

    try:
        professional = db.query(Professional).filter(Professional.id == professional_id).first()
        if not professional:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Professional not found.')

        duration = data.slot_duration_minutes or resolve_slot_duration(professional, settings)
        if data.from_rules:
            created = generate_slots_from_rules(db, professional, start_at, end_at, duration)
        else:
            created = generate_slots_for_window(db, professional, start_at, end_at, duration)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return GenerateSlotsResponse(created=created)
