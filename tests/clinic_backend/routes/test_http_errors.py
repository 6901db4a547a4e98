from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from clinic_backend.core.errors import (
    ConflictError,
    NotFoundError,
    SchedulingValidationError,
    SlotUnavailableError,
    UnauthorizedError,
)
from clinic_backend.routes import http_errors
from clinic_backend.routes.http_errors import as_instant, require_staff_or_owner, to_http_exception


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (NotFoundError('Appointment not found.'), 404),
        (SchedulingValidationError('Invalid date range.'), 400),
        (UnauthorizedError('Not yours.'), 403),
    ],
)
def test_to_http_exception_maps_error_kinds(error, status_code: int) -> None:
    http_exception = to_http_exception(error)

    assert http_exception.status_code == status_code
    assert http_exception.detail == error.message


def test_conflict_carries_serialized_alternatives() -> None:
    error = SlotUnavailableError(alternatives=['slot-a', 'slot-b'])

    http_exception = to_http_exception(error, serialize_slot=str.upper)

    assert http_exception.status_code == 409
    assert http_exception.detail == {
        'message': 'This time slot is no longer available.',
        'alternatives': ['SLOT-A', 'SLOT-B'],
    }


def test_conflict_without_serializer_has_no_alternatives() -> None:
    http_exception = to_http_exception(ConflictError('Retry later.', alternatives=['slot-a']))

    assert http_exception.detail == {'message': 'Retry later.', 'alternatives': []}


def test_as_instant_reads_naive_values_as_clinic_wall_clock() -> None:
    assert as_instant(datetime(2026, 3, 2, 9, 0), 'America/Bogota') == datetime(2026, 3, 2, 14, 0, tzinfo=timezone.utc)

    aware = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    assert as_instant(aware, 'America/Bogota') is aware


def test_require_staff_or_owner(clinic) -> None:
    require_staff_or_owner(clinic.receptionist_caller, clinic.professional.id, 'nope')
    require_staff_or_owner(clinic.professional_caller, clinic.professional.id, 'nope')

    with pytest.raises(HTTPException) as exception_info:
        require_staff_or_owner(clinic.other_professional_caller, clinic.professional.id, 'nope')

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'nope'


def test_ensure_database_ready_maps_schema_failures_to_503(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail() -> None:
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    monkeypatch.setattr(http_errors, 'ensure_scheduling_schema', _fail)

    with pytest.raises(HTTPException) as exception_info:
        http_errors.ensure_database_ready()

    assert exception_info.value.status_code == 503
    assert exception_info.value.detail == http_errors.DATABASE_UNAVAILABLE_DETAIL
