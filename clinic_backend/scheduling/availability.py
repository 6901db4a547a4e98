"""Expansion of availability rules into concrete open windows."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from clinic_backend.scheduling.recurrence import RecurrenceExpander, default_recurrence
from clinic_backend.scheduling.zoned_dates import combine_zoned


@dataclass(frozen=True)
class AvailabilityWindow:
    start_at: datetime
    end_at: datetime
    rule_id: int | None = None


def _latest_exception_by_date(exceptions: Iterable) -> dict[date, object]:
    latest: dict[date, object] = {}
    ordered = sorted(
        exceptions,
        key=lambda exception: (
            exception.created_at is not None,
            exception.created_at or datetime.min,
            exception.id or 0,
        ),
    )
    for exception in ordered:
        latest[exception.date] = exception
    return latest


def _overlaps(start_at: datetime, end_at: datetime, commitment) -> bool:
    return start_at < commitment.end_at and end_at > commitment.start_at


def expand_availability(
    rules: Iterable,
    exceptions: Iterable,
    holidays: Iterable,
    commitments: Iterable,
    range_start: datetime,
    range_end: datetime,
    recurrence: RecurrenceExpander | None = None,
) -> list[AvailabilityWindow]:
    """Open windows of one professional inside [range_start, range_end).

    Holidays suppress a date outright. Otherwise the most recent exception
    for the date either closes it (``is_available`` false) or replaces the
    rule's time of day; missing substitute bounds fall back to the rule's.
    Windows crossing the range boundary are dropped whole, as are windows
    that intersect a booked commitment. Overlapping windows from different
    rules are kept independently.
    """
    recurrence = recurrence or default_recurrence
    holiday_dates = {holiday.date for holiday in holidays}
    exception_by_date = _latest_exception_by_date(exceptions)
    blocking = list(commitments)
    windows: list[AvailabilityWindow] = []

    for rule in rules:
        if not rule.active:
            continue

        fired = recurrence.fired_dates(rule.rrule, range_start, range_end, rule.timezone)
        for fired_date in fired:
            if fired_date in holiday_dates:
                continue

            start_time = rule.start_time
            end_time = rule.end_time
            exception = exception_by_date.get(fired_date)
            if exception is not None:
                if not exception.is_available:
                    continue
                if exception.start_time is not None:
                    start_time = exception.start_time
                if exception.end_time is not None:
                    end_time = exception.end_time

            start_at = combine_zoned(fired_date, start_time, rule.timezone)
            end_at = combine_zoned(fired_date, end_time, rule.timezone)

            if end_at <= start_at:
                continue
            if start_at < range_start or end_at > range_end:
                continue
            if any(_overlaps(start_at, end_at, commitment) for commitment in blocking):
                continue

            windows.append(AvailabilityWindow(start_at=start_at, end_at=end_at, rule_id=rule.id))

    return sorted(windows, key=lambda window: (window.start_at, window.end_at))
