from datetime import datetime, timezone

import pytest

from clinic_backend.scheduling.slots import SlotWindow, filter_bookable, has_buffer_conflict, tile_window


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


BOOKED = [SlotWindow(start_at=_at(10), end_at=_at(10, 30))]


def test_tile_window_emits_back_to_back_slots_and_drops_partial_tail() -> None:
    tiles = tile_window(_at(9), _at(10, 45), 30)

    assert tiles == [
        SlotWindow(start_at=_at(9), end_at=_at(9, 30)),
        SlotWindow(start_at=_at(9, 30), end_at=_at(10)),
        SlotWindow(start_at=_at(10), end_at=_at(10, 30)),
    ]


def test_tile_window_shorter_than_duration_is_empty() -> None:
    assert tile_window(_at(9), _at(9, 20), 30) == []


@pytest.mark.parametrize('duration', [0, -15])
def test_tile_window_rejects_non_positive_duration(duration: int) -> None:
    with pytest.raises(ValueError):
        tile_window(_at(9), _at(10), duration)


@pytest.mark.parametrize(
    ('start', 'end', 'expected'),
    [
        (_at(10, 30), _at(11), True),
        (_at(10, 40), _at(11, 10), True),
        (_at(10, 41), _at(11, 11), False),
        (_at(9, 20), _at(9, 50), True),
        (_at(9, 19), _at(9, 49), False),
        (_at(10, 15), _at(10, 45), True),
    ],
)
def test_buffer_conflict_requires_gap_larger_than_buffer(start, end, expected) -> None:
    candidate = SlotWindow(start_at=start, end_at=end)

    assert has_buffer_conflict(candidate, BOOKED, 10) is expected


@pytest.mark.parametrize(
    ('start', 'end', 'expected'),
    [
        (_at(10, 30), _at(11), False),
        (_at(9, 30), _at(10), False),
        (_at(10, 15), _at(10, 45), True),
    ],
)
def test_zero_buffer_only_rejects_overlap(start, end, expected) -> None:
    candidate = SlotWindow(start_at=start, end_at=end)

    assert has_buffer_conflict(candidate, BOOKED, 0) is expected


def test_filter_bookable_keeps_candidate_order() -> None:
    candidates = tile_window(_at(9), _at(12), 30)

    bookable = filter_bookable(candidates, BOOKED, 10)

    assert [slot.start_at for slot in bookable] == [_at(9), _at(11), _at(11, 30)]


def test_filter_bookable_without_bookings_keeps_everything() -> None:
    candidates = tile_window(_at(9), _at(10), 30)

    assert filter_bookable(candidates, [], 10) == candidates
