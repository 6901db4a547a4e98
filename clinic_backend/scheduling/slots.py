"""Slot tiling and the buffer rule applied when offering slots."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable


@dataclass(frozen=True)
class SlotWindow:
    start_at: datetime
    end_at: datetime


def tile_window(start_at: datetime, end_at: datetime, duration_minutes: int) -> list[SlotWindow]:
    """Back-to-back tiles of ``duration_minutes`` starting at ``start_at``.

    A trailing tile that would run past ``end_at`` is dropped. No buffer is
    left between tiles; the buffer is enforced against booked slots when
    slots are offered (see ``has_buffer_conflict``).
    """
    if duration_minutes <= 0:
        raise ValueError('Slot duration must be a positive number of minutes.')

    duration = timedelta(minutes=duration_minutes)
    slots: list[SlotWindow] = []
    cursor = start_at

    while cursor + duration <= end_at:
        slots.append(SlotWindow(start_at=cursor, end_at=cursor + duration))
        cursor += duration

    return slots


def has_buffer_conflict(candidate, booked_slots: Iterable, buffer_minutes: int) -> bool:
    """Whether ``candidate`` sits too close to any booked slot.

    With a positive buffer the gap on either side must be strictly larger
    than the buffer. With no buffer this is plain interval overlap.
    """
    buffer = timedelta(minutes=max(0, buffer_minutes))

    for booked in booked_slots:
        if buffer:
            if candidate.start_at <= booked.end_at + buffer and candidate.end_at + buffer >= booked.start_at:
                return True
        elif candidate.start_at < booked.end_at and candidate.end_at > booked.start_at:
            return True

    return False


def filter_bookable(candidates: Iterable, booked_slots: Iterable, buffer_minutes: int) -> list:
    booked = list(booked_slots)
    return [candidate for candidate in candidates if not has_buffer_conflict(candidate, booked, buffer_minutes)]
