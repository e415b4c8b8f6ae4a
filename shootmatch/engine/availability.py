"""
Per-photographer slot calendar.

A slot is a fixed start time from the photographer's weekly template.
Candidate slots are filtered against existing bookings and approved
time-off using half-open intervals, so a session ending at 16:00 does not
collide with a booking starting at 16:00. Schedules are single-day: an
interval reaching midnight is never valid.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from shootmatch.config import settings
from shootmatch.errors import ValidationError
from shootmatch.schemas.party_schema import WEEKDAYS, Photographer, TimeOff, weekday_name
from shootmatch.utils import MINUTES_PER_DAY, minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)


def candidate_slots(photographer: Photographer, day: date) -> list[str]:
    """Template start times for the weekday of ``day``; empty when the day is off."""
    return list(photographer.availability.get(weekday_name(day), []))


def set_day_enabled(
    photographer: Photographer,
    weekday: str,
    enabled: bool,
    template: Optional[Iterable[str]] = None,
) -> Photographer:
    """Toggle a weekday on or off, returning the updated photographer.

    Turning a day off clears its slot list. Turning it back on restores the
    default template rather than whatever was there before.
    """
    key = weekday.strip().lower()
    if key not in WEEKDAYS:
        raise ValidationError(f"Unknown weekday {weekday!r}", code="BAD_WEEKDAY")

    slots = list(template or settings.schedule.default_day_template) if enabled else []
    availability = {**photographer.availability, key: slots}
    return Photographer.model_validate({**photographer.model_dump(), "availability": availability})


def slot_interval(slot_start: str, duration_minutes: int) -> tuple[int, int]:
    """Return ``(start, end)`` minutes for a slot, rejecting negative durations."""
    if duration_minutes < 0:
        raise ValidationError(
            f"Duration must be >= 0, got {duration_minutes}", code="BAD_DURATION"
        )
    start = time_to_minutes(slot_start)
    return start, start + duration_minutes


def crosses_midnight(slot_start: str, duration_minutes: int) -> bool:
    _, end = slot_interval(slot_start, duration_minutes)
    return end >= MINUTES_PER_DAY


def end_time_for(slot_start: str, duration_minutes: int) -> str:
    """Compute the "HH:MM" end of a session, refusing ones that reach midnight."""
    _, end = slot_interval(slot_start, duration_minutes)
    if end >= MINUTES_PER_DAY:
        raise ValidationError(
            f"Session starting {slot_start} for {duration_minutes} min crosses midnight",
            code="CROSSES_MIDNIGHT",
        )
    return minutes_to_time(end)


def _naive(moment: datetime) -> datetime:
    # Time-off is kept in the photographer's wall-clock time.
    return moment.replace(tzinfo=None) if moment.tzinfo is not None else moment


def _time_off_overlaps(time_off: TimeOff, day: date, start: int, end: int) -> bool:
    if not time_off.approved:
        return False
    midnight = datetime.combine(day, datetime.min.time())
    slot_start = midnight + timedelta(minutes=start)
    slot_end = midnight + timedelta(minutes=end)
    return slot_start < _naive(time_off.end) and _naive(time_off.start) < slot_end


def has_conflict(
    photographer: Photographer,
    day: date,
    slot_start: str,
    duration_minutes: int,
    exclude_booking_id: Optional[str] = None,
) -> bool:
    """True if the interval overlaps a live booking or an approved time-off."""
    start, end = slot_interval(slot_start, duration_minutes)

    for booked in photographer.bookings:
        if booked.cancelled or booked.date != day:
            continue
        if exclude_booking_id is not None and booked.booking_id == exclude_booking_id:
            continue
        b_start = time_to_minutes(booked.start_time)
        b_end = time_to_minutes(booked.end_time)
        if start < b_end and b_start < end:
            return True

    return any(_time_off_overlaps(t, day, start, end) for t in photographer.time_offs)


def is_slot_free(
    photographer: Photographer,
    day: date,
    slot_start: str,
    duration_minutes: int,
    exclude_booking_id: Optional[str] = None,
) -> bool:
    """
    Check whether a template slot can host a session of ``duration_minutes``.

    Ad hoc start times outside the weekday template are never free, even
    on an empty calendar.
    """
    if slot_start not in candidate_slots(photographer, day):
        return False
    if crosses_midnight(slot_start, duration_minutes):
        return False
    return not has_conflict(photographer, day, slot_start, duration_minutes, exclude_booking_id)


def available_slots(
    photographer: Photographer,
    day: date,
    duration_minutes: int,
    not_before_minutes: int = 0,
    exclude_booking_id: Optional[str] = None,
) -> list[str]:
    """Template slots on ``day`` that fit ``duration_minutes``, ascending.

    ``not_before_minutes`` drops slots starting earlier than that many
    minutes after midnight (used by same-day searches).
    """
    free = [
        slot
        for slot in candidate_slots(photographer, day)
        if time_to_minutes(slot) >= not_before_minutes
        and is_slot_free(photographer, day, slot, duration_minutes, exclude_booking_id)
    ]
    logger.debug(
        "Photographer %s has %d free slot(s) on %s for %d min",
        photographer.id, len(free), day.isoformat(), duration_minutes,
    )
    return free
