from datetime import date, datetime, time, timezone
from types import SimpleNamespace

from clinic_backend.scheduling.availability import AvailabilityWindow, expand_availability

BOGOTA = 'America/Bogota'
WEEK_START = datetime(2026, 3, 2, 5, 0, tzinfo=timezone.utc)
WEEK_END = datetime(2026, 3, 9, 5, 0, tzinfo=timezone.utc)


def _rule(rule_id=1, rrule='FREQ=WEEKLY;BYDAY=MO,WE,FR', start=time(9, 0), end=time(12, 0), active=True):
    return SimpleNamespace(
        id=rule_id,
        rrule=rrule,
        start_time=start,
        end_time=end,
        timezone=BOGOTA,
        active=active,
    )


def _exception(day, is_available=False, start=None, end=None, created_at=None, exception_id=1):
    return SimpleNamespace(
        id=exception_id,
        date=day,
        is_available=is_available,
        start_time=start,
        end_time=end,
        created_at=created_at or datetime(2026, 2, 1, tzinfo=timezone.utc),
    )


def _utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


def _starts(windows) -> list[datetime]:
    return [window.start_at for window in windows]


def test_weekly_rule_expands_into_one_window_per_fired_date() -> None:
    windows = expand_availability([_rule()], [], [], [], WEEK_START, WEEK_END)

    assert windows == [
        AvailabilityWindow(start_at=_utc(2, 14), end_at=_utc(2, 17), rule_id=1),
        AvailabilityWindow(start_at=_utc(4, 14), end_at=_utc(4, 17), rule_id=1),
        AvailabilityWindow(start_at=_utc(6, 14), end_at=_utc(6, 17), rule_id=1),
    ]


def test_holiday_suppresses_the_date() -> None:
    holidays = [SimpleNamespace(date=date(2026, 3, 4))]

    windows = expand_availability([_rule()], [], holidays, [], WEEK_START, WEEK_END)

    assert _starts(windows) == [_utc(2, 14), _utc(6, 14)]


def test_unavailable_exception_closes_the_whole_day() -> None:
    # Staff meeting on Wednesday: nothing is offered that day.
    exceptions = [_exception(date(2026, 3, 4), start=time(10, 0), end=time(11, 0))]

    windows = expand_availability([_rule()], exceptions, [], [], WEEK_START, WEEK_END)

    assert _starts(windows) == [_utc(2, 14), _utc(6, 14)]


def test_available_exception_replaces_the_rule_window() -> None:
    exceptions = [_exception(date(2026, 3, 4), is_available=True, start=time(13, 0), end=time(15, 0))]

    windows = expand_availability([_rule()], exceptions, [], [], WEEK_START, WEEK_END)

    assert windows[1] == AvailabilityWindow(start_at=_utc(4, 18), end_at=_utc(4, 20), rule_id=1)


def test_exception_without_start_keeps_the_rule_start() -> None:
    exceptions = [_exception(date(2026, 3, 4), is_available=True, end=time(10, 0))]

    windows = expand_availability([_rule()], exceptions, [], [], WEEK_START, WEEK_END)

    assert windows[1] == AvailabilityWindow(start_at=_utc(4, 14), end_at=_utc(4, 15), rule_id=1)


def test_most_recent_exception_for_a_date_wins() -> None:
    exceptions = [
        _exception(
            date(2026, 3, 4),
            is_available=True,
            start=time(10, 0),
            end=time(11, 0),
            created_at=datetime(2026, 2, 20, tzinfo=timezone.utc),
            exception_id=2,
        ),
        _exception(date(2026, 3, 4), created_at=datetime(2026, 2, 10, tzinfo=timezone.utc), exception_id=1),
    ]

    windows = expand_availability([_rule()], exceptions, [], [], WEEK_START, WEEK_END)

    assert windows[1] == AvailabilityWindow(start_at=_utc(4, 15), end_at=_utc(4, 16), rule_id=1)


def test_holiday_takes_precedence_over_an_available_exception() -> None:
    exceptions = [_exception(date(2026, 3, 4), is_available=True, start=time(13, 0), end=time(15, 0))]
    holidays = [SimpleNamespace(date=date(2026, 3, 4))]

    windows = expand_availability([_rule()], exceptions, holidays, [], WEEK_START, WEEK_END)

    assert _utc(4, 18) not in _starts(windows)
    assert len(windows) == 2


def test_inactive_rule_is_ignored() -> None:
    assert expand_availability([_rule(active=False)], [], [], [], WEEK_START, WEEK_END) == []


def test_window_crossing_range_start_is_dropped() -> None:
    windows = expand_availability([_rule()], [], [], [], _utc(2, 15), WEEK_END)

    assert _starts(windows) == [_utc(4, 14), _utc(6, 14)]


def test_window_crossing_range_end_is_dropped() -> None:
    windows = expand_availability([_rule()], [], [], [], WEEK_START, _utc(6, 16))

    assert _starts(windows) == [_utc(2, 14), _utc(4, 14)]


def test_commitment_overlapping_a_window_drops_it() -> None:
    commitments = [SimpleNamespace(start_at=_utc(2, 15), end_at=_utc(2, 15, 30))]

    windows = expand_availability([_rule()], [], [], commitments, WEEK_START, WEEK_END)

    assert _starts(windows) == [_utc(4, 14), _utc(6, 14)]


def test_commitment_touching_a_window_keeps_it() -> None:
    commitments = [SimpleNamespace(start_at=_utc(2, 13, 30), end_at=_utc(2, 14))]

    windows = expand_availability([_rule()], [], [], commitments, WEEK_START, WEEK_END)

    assert _utc(2, 14) in _starts(windows)


def test_overlapping_rules_are_kept_independently() -> None:
    rules = [_rule(), _rule(rule_id=2, rrule='FREQ=WEEKLY;BYDAY=MO', start=time(10, 0), end=time(13, 0))]

    windows = expand_availability(rules, [], [], [], WEEK_START, WEEK_END)

    monday = [window for window in windows if window.start_at.day == 2]
    assert monday == [
        AvailabilityWindow(start_at=_utc(2, 14), end_at=_utc(2, 17), rule_id=1),
        AvailabilityWindow(start_at=_utc(2, 15), end_at=_utc(2, 18), rule_id=2),
    ]


def test_exception_that_inverts_the_window_yields_nothing() -> None:
    exceptions = [_exception(date(2026, 3, 4), is_available=True, start=time(12, 0))]

    windows = expand_availability([_rule()], exceptions, [], [], WEEK_START, WEEK_END)

    assert _starts(windows) == [_utc(2, 14), _utc(6, 14)]


def test_custom_recurrence_expander_is_used() -> None:
    class FixedDates:
        def fired_dates(self, expression, range_start, range_end, time_zone):
            return [date(2026, 3, 3)]

    windows = expand_availability([_rule()], [], [], [], WEEK_START, WEEK_END, recurrence=FixedDates())

    assert _starts(windows) == [_utc(3, 14)]
