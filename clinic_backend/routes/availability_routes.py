from datetime import date, datetime, time, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.context import CallerContext
from clinic_backend.auth.dependencies import get_current_caller
from clinic_backend.core.config import SchedulingSettings, get_scheduling_settings
from clinic_backend.database import get_db
from clinic_backend.models.availability import AvailabilityException, AvailabilityRule, ClinicHoliday
from clinic_backend.routes.http_errors import database_unavailable, ensure_database_ready
from clinic_backend.scheduling.recurrence import anchor_recurrence, parse_recurrence
from clinic_backend.scheduling.slot_generation import expand_professional_availability
from clinic_backend.scheduling.zoned_dates import resolve_time_zone, zoned_date

router = APIRouter(tags=['availability'])

MAX_HOLIDAY_NAME_LENGTH = 120
MAX_EXCEPTION_REASON_LENGTH = 200


class CreateRuleRequest(BaseModel):
    rrule: str
    start_time: time
    end_time: time
    timezone: str | None = None

    @field_validator('rrule')
    @classmethod
    def validate_rrule(cls, value: str) -> str:
        normalized = value.strip()
        parse_recurrence(normalized)
        return normalized

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        resolve_time_zone(value)
        return value.strip()

    @model_validator(mode='after')
    def validate_window(self):
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class CreateExceptionRequest(BaseModel):
    date: date
    is_available: bool = False
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        normalized = value.strip()
        if len(normalized) > MAX_EXCEPTION_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_EXCEPTION_REASON_LENGTH} characters or fewer.')
        return normalized

    @model_validator(mode='after')
    def validate_window(self):
        if not self.is_available and (self.start_time or self.end_time):
            raise ValueError('An unavailable date cannot carry a substitute window.')
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class CreateHolidayRequest(BaseModel):
    date: date
    name: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Holiday name is required.')
        if len(normalized) > MAX_HOLIDAY_NAME_LENGTH:
            raise ValueError(f'Holiday name must be {MAX_HOLIDAY_NAME_LENGTH} characters or fewer.')
        return normalized


class RuleResponse(BaseModel):
    id: int
    professional_id: int
    rrule: str
    start_time: time
    end_time: time
    timezone: str
    active: bool

    class Config:
        from_attributes = True


class ExceptionResponse(BaseModel):
    id: int
    professional_id: int
    date: date
    is_available: bool
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = None

    class Config:
        from_attributes = True


class HolidayResponse(BaseModel):
    id: int
    date: date
    name: str

    class Config:
        from_attributes = True


class WindowResponse(BaseModel):
    start_at: datetime
    end_at: datetime
    rule_id: int | None = None

    class Config:
        from_attributes = True


class AvailabilityOverviewResponse(BaseModel):
    rules: list[RuleResponse]
    exceptions: list[ExceptionResponse]
    windows: list[WindowResponse]


def require_professional(caller: CallerContext) -> int:
    if not caller.is_professional or caller.professional_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only professionals can manage their availability.',
        )
    return caller.professional_id


def require_admin(caller: CallerContext, detail: str) -> None:
    if not caller.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


@router.get('', response_model=AvailabilityOverviewResponse)
def get_my_availability(
    days: int = Query(default=30, ge=1),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    settings: SchedulingSettings = Depends(get_scheduling_settings),
):
    professional_id = require_professional(caller)
    ensure_database_ready()

    range_start = datetime.now(timezone.utc)
    range_end = range_start + timedelta(days=min(days, settings.availability_range_max_days))

    try:
        rules = db.query(AvailabilityRule).filter(
            AvailabilityRule.professional_id == professional_id,
        ).order_by(AvailabilityRule.id.asc()).all()
        exceptions = db.query(AvailabilityException).filter(
            AvailabilityException.professional_id == professional_id,
            AvailabilityException.date >= range_start.date() - timedelta(days=1),
        ).order_by(AvailabilityException.date.asc()).all()
        windows = expand_professional_availability(db, professional_id, range_start, range_end)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AvailabilityOverviewResponse(
        rules=[RuleResponse.model_validate(rule) for rule in rules],
        exceptions=[ExceptionResponse.model_validate(exception) for exception in exceptions],
        windows=[WindowResponse.model_validate(window) for window in windows],
    )


@router.post('/rules', response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
def create_rule(
    data: CreateRuleRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    settings: SchedulingSettings = Depends(get_scheduling_settings),
):
    professional_id = require_professional(caller)
    ensure_database_ready()

    time_zone = data.timezone or settings.time_zone
    created_on = zoned_date(datetime.now(timezone.utc), time_zone)

    try:
        rule = AvailabilityRule(
            professional_id=professional_id,
            rrule=anchor_recurrence(data.rrule, created_on),
            start_time=data.start_time,
            end_time=data.end_time,
            timezone=time_zone,
            active=True,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/rules/{rule_id}/deactivate', response_model=RuleResponse)
def deactivate_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    try:
        rule = db.query(AvailabilityRule).filter(AvailabilityRule.id == rule_id).first()
        if not rule:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Availability rule not found.')

        if not caller.is_admin and caller.professional_id != rule.professional_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the owning professional can disable this rule.',
            )

        rule.active = False
        db.commit()
        db.refresh(rule)
        return rule
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/exceptions', response_model=ExceptionResponse, status_code=status.HTTP_201_CREATED)
def create_exception(
    data: CreateExceptionRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    professional_id = require_professional(caller)
    ensure_database_ready()

    try:
        exception = AvailabilityException(
            professional_id=professional_id,
            date=data.date,
            is_available=data.is_available,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
        )
        db.add(exception)
        db.commit()
        db.refresh(exception)
        return exception
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/holidays', response_model=list[HolidayResponse])
def list_holidays(
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    if not caller.is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Only staff can view clinic holidays.')

    ensure_database_ready()

    try:
        return db.query(ClinicHoliday).order_by(ClinicHoliday.date.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/holidays', response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
def create_holiday(
    data: CreateHolidayRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    require_admin(caller, 'Only admins can declare clinic holidays.')
    ensure_database_ready()

    try:
        existing = db.query(ClinicHoliday).filter(ClinicHoliday.date == data.date).first()
        if existing:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail='This holiday already exists.')

        holiday = ClinicHoliday(date=data.date, name=data.name)
        db.add(holiday)
        db.commit()
        db.refresh(holiday)
        return holiday
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail='This holiday already exists.') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
