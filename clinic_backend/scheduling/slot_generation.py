"""Materializing time slots and listing the ones a patient may book."""

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_backend.core.config import SchedulingSettings
from clinic_backend.core.errors import ConflictError, NotFoundError, SchedulingValidationError
from clinic_backend.models.availability import AvailabilityException, AvailabilityRule, ClinicHoliday
from clinic_backend.models.service import Service
from clinic_backend.models.time_slot import SLOT_AVAILABLE, SLOT_BOOKED, SLOT_BREAK, TimeSlot
from clinic_backend.models.user import Professional
from clinic_backend.scheduling.availability import expand_availability
from clinic_backend.scheduling.slots import SlotWindow, filter_bookable, tile_window
from clinic_backend.scheduling.zoned_dates import zoned_day_bounds

logger = logging.getLogger(__name__)

BLOCKING_SLOT_STATUSES = (SLOT_BOOKED, SLOT_BREAK)


def resolve_slot_duration(professional: Professional, settings: SchedulingSettings) -> int:
    return professional.slot_duration_minutes or settings.default_slot_duration_minutes


def slots_between(
    db: Session,
    professional_id: int,
    range_start: datetime,
    range_end: datetime,
    statuses: tuple[str, ...],
) -> list[TimeSlot]:
    return db.query(TimeSlot).filter(
        TimeSlot.professional_id == professional_id,
        TimeSlot.status.in_(statuses),
        TimeSlot.start_at < range_end,
        TimeSlot.end_at > range_start,
    ).order_by(TimeSlot.start_at.asc()).all()


def expand_professional_availability(
    db: Session,
    professional_id: int,
    range_start: datetime,
    range_end: datetime,
):
    # Calendar dates are compared in each rule's own zone, so pad the date lookups by a day.
    first_day = range_start.date() - timedelta(days=1)
    last_day = range_end.date() + timedelta(days=1)

    rules = db.query(AvailabilityRule).filter(
        AvailabilityRule.professional_id == professional_id,
        AvailabilityRule.active.is_(True),
    ).all()
    exceptions = db.query(AvailabilityException).filter(
        AvailabilityException.professional_id == professional_id,
        AvailabilityException.date >= first_day,
        AvailabilityException.date <= last_day,
    ).all()
    holidays = db.query(ClinicHoliday).filter(
        ClinicHoliday.date >= first_day,
        ClinicHoliday.date <= last_day,
    ).all()
    commitments = slots_between(db, professional_id, range_start, range_end, BLOCKING_SLOT_STATUSES)

    return expand_availability(rules, exceptions, holidays, commitments, range_start, range_end)


def _persist_tiles(db: Session, professional_id: int, tiles: list[SlotWindow]) -> int:
    if not tiles:
        return 0

    existing = {
        (slot.start_at, slot.end_at)
        for slot in db.query(TimeSlot).filter(
            TimeSlot.professional_id == professional_id,
            TimeSlot.start_at >= tiles[0].start_at,
            TimeSlot.start_at <= max(tile.start_at for tile in tiles),
        ).all()
    }

    created = 0
    for tile in tiles:
        key = (tile.start_at, tile.end_at)
        if key in existing:
            continue
        existing.add(key)
        db.add(TimeSlot(
            professional_id=professional_id,
            start_at=tile.start_at,
            end_at=tile.end_at,
            status=SLOT_AVAILABLE,
        ))
        created += 1

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning('Concurrent slot generation detected for professional %s', professional_id)
        raise ConflictError('Slots were generated concurrently. Please retry.') from exc

    return created


def generate_slots_from_rules(
    db: Session,
    professional: Professional,
    range_start: datetime,
    range_end: datetime,
    duration_minutes: int,
) -> int:
    """Tile every open window of the professional and store the missing slots."""
    if range_start >= range_end:
        raise SchedulingValidationError('Invalid date range.')

    windows = expand_professional_availability(db, professional.id, range_start, range_end)
    tiles: list[SlotWindow] = []
    for window in windows:
        tiles.extend(tile_window(window.start_at, window.end_at, duration_minutes))
    tiles.sort(key=lambda tile: (tile.start_at, tile.end_at))

    created = _persist_tiles(db, professional.id, tiles)
    if created:
        logger.info('Generated %s slots for professional %s from rules', created, professional.id)
    return created


def generate_slots_for_window(
    db: Session,
    professional: Professional,
    start_at: datetime,
    end_at: datetime,
    duration_minutes: int,
) -> int:
    if start_at >= end_at:
        raise SchedulingValidationError('Invalid date range.')

    created = _persist_tiles(db, professional.id, tile_window(start_at, end_at, duration_minutes))
    logger.info('Generated %s slots for professional %s from an explicit window', created, professional.id)
    return created


def list_bookable_slots(
    db: Session,
    day: date,
    settings: SchedulingSettings,
    professional_id: int | None = None,
    service_id: int | None = None,
    now: datetime | None = None,
) -> list[TimeSlot]:
    """AVAILABLE slots on ``day`` (clinic zone) that respect the buffer policy.

    Slots for the day are materialized from the professionals' rules first,
    so a day nobody generated in advance is still offered.
    """
    now = now or datetime.now(timezone.utc)
    day_start, day_end = zoned_day_bounds(day, settings.time_zone)

    professionals_query = db.query(Professional).filter(Professional.active.is_(True))
    if professional_id is not None:
        professionals_query = professionals_query.filter(Professional.id == professional_id)

    if service_id is not None:
        service = db.query(Service).filter(Service.id == service_id).first()
        if not service:
            raise NotFoundError('Service not found.')
        if not service.active:
            raise SchedulingValidationError('Service is not active.')
        if service.specialty:
            professionals_query = professionals_query.filter(Professional.specialty == service.specialty)

    professionals = professionals_query.order_by(Professional.id.asc()).all()
    if professional_id is not None and not professionals:
        raise NotFoundError('Professional not found.')

    buffer = timedelta(minutes=settings.buffer_minutes)
    bookable: list[TimeSlot] = []

    for professional in professionals:
        try:
            generate_slots_from_rules(
                db, professional, day_start, day_end, resolve_slot_duration(professional, settings),
            )
        except ConflictError:
            # Another request materialized the same day first; its rows are committed.
            logger.info('Slots for professional %s on %s were generated concurrently', professional.id, day)
        candidates = [
            slot
            for slot in slots_between(db, professional.id, day_start, day_end, (SLOT_AVAILABLE,))
            if slot.start_at >= day_start and slot.end_at <= day_end and slot.start_at > now
        ]
        booked = slots_between(db, professional.id, day_start - buffer, day_end + buffer, (SLOT_BOOKED,))
        bookable.extend(filter_bookable(candidates, booked, settings.buffer_minutes))

    return sorted(bookable, key=lambda slot: (slot.start_at, slot.professional_id))
