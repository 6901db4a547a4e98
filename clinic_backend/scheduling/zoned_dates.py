"""Wall-clock <-> instant conversions in the clinic's time zone.

Every helper takes an aware instant and a zone identifier and does its
arithmetic on wall-clock parts in that zone, so "add one day" keeps 09:00 at
09:00 across offset changes. Results are aware datetimes in UTC.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta


@dataclass(frozen=True)
class ZonedDateParts:
    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: int = 0


def resolve_time_zone(time_zone: str) -> ZoneInfo:
    if not time_zone or not time_zone.strip():
        raise ValueError('A time zone identifier is required.')
    try:
        return ZoneInfo(time_zone.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise ValueError(f'Unknown time zone: {time_zone!r}') from exc


def _require_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        raise ValueError('Expected a timezone-aware datetime.')
    return instant


def get_zoned_parts(instant: datetime, time_zone: str) -> ZonedDateParts:
    local = _require_aware(instant).astimezone(resolve_time_zone(time_zone))
    return ZonedDateParts(local.year, local.month, local.day, local.hour, local.minute, local.second)


def from_zoned_parts(parts: ZonedDateParts, time_zone: str) -> datetime:
    zone = resolve_time_zone(time_zone)
    local = datetime(parts.year, parts.month, parts.day, parts.hour, parts.minute, parts.second, tzinfo=zone)
    return local.astimezone(timezone.utc)


def combine_zoned(day: date, wall_time, time_zone: str) -> datetime:
    """Instant at which ``day`` reads ``wall_time`` on clocks in ``time_zone``."""
    return from_zoned_parts(
        ZonedDateParts(day.year, day.month, day.day, wall_time.hour, wall_time.minute, wall_time.second),
        time_zone,
    )


def start_of_zoned_day(instant: datetime, time_zone: str) -> datetime:
    parts = get_zoned_parts(instant, time_zone)
    return from_zoned_parts(replace(parts, hour=0, minute=0, second=0), time_zone)


def start_of_zoned_week(instant: datetime, time_zone: str) -> datetime:
    day_start = start_of_zoned_day(instant, time_zone)
    local_day = day_start.astimezone(resolve_time_zone(time_zone))
    return add_days_zoned(day_start, -local_day.weekday(), time_zone)


def start_of_zoned_month(instant: datetime, time_zone: str) -> datetime:
    parts = get_zoned_parts(instant, time_zone)
    return from_zoned_parts(replace(parts, day=1, hour=0, minute=0, second=0), time_zone)


def start_of_zoned_year(instant: datetime, time_zone: str) -> datetime:
    parts = get_zoned_parts(instant, time_zone)
    return from_zoned_parts(replace(parts, month=1, day=1, hour=0, minute=0, second=0), time_zone)


def add_days_zoned(instant: datetime, days: int, time_zone: str) -> datetime:
    parts = get_zoned_parts(instant, time_zone)
    shifted = date(parts.year, parts.month, parts.day) + timedelta(days=days)
    return from_zoned_parts(replace(parts, year=shifted.year, month=shifted.month, day=shifted.day), time_zone)


def add_months_zoned(instant: datetime, months: int, time_zone: str) -> datetime:
    # relativedelta clamps to the last day of a shorter month (Jan 31 + 1 month -> Feb 28/29).
    parts = get_zoned_parts(instant, time_zone)
    shifted = date(parts.year, parts.month, parts.day) + relativedelta(months=months)
    return from_zoned_parts(replace(parts, year=shifted.year, month=shifted.month, day=shifted.day), time_zone)


def zoned_day_bounds(day: date, time_zone: str) -> tuple[datetime, datetime]:
    """[start, end) instants of a calendar day in ``time_zone``."""
    start = from_zoned_parts(ZonedDateParts(day.year, day.month, day.day), time_zone)
    return start, add_days_zoned(start, 1, time_zone)


def zoned_date(instant: datetime, time_zone: str) -> date:
    parts = get_zoned_parts(instant, time_zone)
    return date(parts.year, parts.month, parts.day)


def format_date_input(instant: datetime, time_zone: str) -> str:
    return zoned_date(instant, time_zone).isoformat()
