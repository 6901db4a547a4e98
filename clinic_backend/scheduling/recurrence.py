"""Recurrence expression handling for availability rules."""

from datetime import date, datetime, time
from typing import Protocol

from dateutil.rrule import rrulestr

from clinic_backend.scheduling.zoned_dates import resolve_time_zone

# Fallback anchor (a Monday) for expressions stored without DTSTART.
RECURRENCE_EPOCH = datetime(2000, 1, 3)


class RecurrenceExpander(Protocol):
    def fired_dates(
        self,
        expression: str,
        range_start: datetime,
        range_end: datetime,
        time_zone: str,
    ) -> list[date]:
        ...


class RRuleRecurrence:
    """RFC 5545 recurrence rules (``FREQ=WEEKLY;BYDAY=MO,WE,FR``) via dateutil.

    Occurrences are computed on wall-clock time in the rule's zone. An
    expression without ``DTSTART`` is anchored at ``RECURRENCE_EPOCH``, so
    the dates it fires on never depend on the queried range.
    """

    def fired_dates(
        self,
        expression: str,
        range_start: datetime,
        range_end: datetime,
        time_zone: str,
    ) -> list[date]:
        zone = resolve_time_zone(time_zone)
        local_start = range_start.astimezone(zone).replace(tzinfo=None)
        local_end = range_end.astimezone(zone).replace(tzinfo=None)
        first_midnight = datetime.combine(local_start.date(), time.min)

        rule = parse_recurrence(expression, dtstart=RECURRENCE_EPOCH)
        occurrences = rule.between(first_midnight, local_end, inc=True)
        return sorted({occurrence.date() for occurrence in occurrences if occurrence < local_end})


def parse_recurrence(expression: str, dtstart: datetime | None = None):
    """Parse an expression, raising ``ValueError`` when it is malformed."""
    normalized = (expression or '').strip()
    if not normalized:
        raise ValueError('Recurrence expression is required.')
    try:
        return rrulestr(normalized, dtstart=dtstart, ignoretz=True)
    except (KeyError, ValueError, TypeError) as exc:
        raise ValueError(f'Invalid recurrence expression: {expression!r}') from exc


def anchor_recurrence(expression: str, anchor_day: date) -> str:
    """Pin ``expression`` to local midnight of ``anchor_day`` unless it has a DTSTART."""
    normalized = expression.strip()
    if 'DTSTART' in normalized.upper():
        return normalized
    if not normalized.upper().startswith('RRULE:'):
        normalized = f'RRULE:{normalized}'
    return f'DTSTART:{anchor_day:%Y%m%d}T000000\n{normalized}'


default_recurrence = RRuleRecurrence()
