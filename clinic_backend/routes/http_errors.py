from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from clinic_backend.core.errors import (
    ConflictError,
    NotFoundError,
    SchedulingError,
    SchedulingValidationError,
    UnauthorizedError,
)
from clinic_backend.database import ensure_scheduling_schema
from clinic_backend.scheduling.zoned_dates import ZonedDateParts, from_zoned_parts

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def ensure_database_ready() -> None:
    try:
        ensure_scheduling_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def database_unavailable() -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE_DETAIL)


def to_http_exception(exc: SchedulingError, serialize_slot=None) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, ConflictError):
        alternatives = [serialize_slot(slot) for slot in exc.alternatives] if serialize_slot else []
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={'message': exc.message, 'alternatives': alternatives},
        )
    if isinstance(exc, SchedulingValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, UnauthorizedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


def as_instant(value: datetime, time_zone: str) -> datetime:
    """Aware instants pass through; naive ones are read as clinic wall-clock time."""
    if value.tzinfo is not None:
        return value
    return from_zoned_parts(
        ZonedDateParts(value.year, value.month, value.day, value.hour, value.minute, value.second),
        time_zone,
    )


def require_staff_or_owner(caller, professional_id: int, message: str) -> None:
    if caller.is_staff:
        return
    if caller.is_professional and caller.professional_id == professional_id:
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)
