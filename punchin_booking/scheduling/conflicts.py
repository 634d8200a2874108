"""
Conflict detection between a candidate window and availability entries or bookings.

Absolute entries are compared as date ranges. Recurring entries are compared
on the candidate's weekday using minutes since midnight in the schedule's
zone. Bookings conflict when they share the studio and either the room or
the engineer, are live, and their effective windows overlap.
"""

import logging
from datetime import datetime, tzinfo
from typing import Iterable, Optional

from punchin_booking.schemas.availability_schema import (
    AbsoluteWindow,
    AvailabilityEntry,
    RecurringWindow,
)
from punchin_booking.schemas.booking_schema import Booking
from punchin_booking.scheduling.intervals import minutes_from_midnight, weekday_of

logger = logging.getLogger(__name__)


def is_blocking(entry: AvailabilityEntry) -> bool:
    return entry.is_blocking


def blocking_entries(
    entries: Iterable[AvailabilityEntry],
    room_id: Optional[str] = None,
    exclude_source_booking_id: Optional[str] = None,
) -> list[AvailabilityEntry]:
    """Blocking entries that apply to ``room_id``.

    Entries without a room restriction apply to every room. Holds created
    for ``exclude_source_booking_id`` are left out so a booking never
    conflicts with its own reservation.
    """
    result = []
    for entry in entries:
        if not entry.is_blocking:
            continue
        if room_id is not None and entry.room_id is not None and entry.room_id != room_id:
            continue
        if exclude_source_booking_id is not None and entry.source_booking_id == exclude_source_booking_id:
            continue
        result.append(entry)
    return result


def entry_overlaps(entry: AvailabilityEntry, start: datetime, end: datetime, tz: tzinfo) -> bool:
    """Whether ``[start, end)`` intersects the entry's window."""
    window = entry.window
    if isinstance(window, AbsoluteWindow):
        return max(window.start_date, start) < min(window.end_date, end)

    if isinstance(window, RecurringWindow):
        if weekday_of(start, tz) != window.weekday:
            return False
        request_start = minutes_from_midnight(start, tz)
        request_end = minutes_from_midnight(end, tz)
        return request_start < window.end_time_minutes and request_end > window.start_time_minutes

    return False


def is_conflict_free(
    entries: Iterable[AvailabilityEntry],
    start: datetime,
    end: datetime,
    tz: tzinfo,
) -> bool:
    """True when no entry overlaps ``[start, end)``. Stops at the first overlap."""
    for entry in entries:
        if entry_overlaps(entry, start, end, tz):
            logger.debug("Window %s-%s overlaps availability entry %s", start, end, entry.id)
            return False
    return True


def conflicting_booking(
    bookings: Iterable[Booking],
    studio_id: str,
    room_id: str,
    engineer_id: str,
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[str] = None,
) -> Optional[Booking]:
    """First live booking that collides with the candidate window, if any."""
    for booking in bookings:
        if not booking.is_live:
            continue
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        if booking.studio_id != studio_id:
            continue
        if booking.room_id != room_id and booking.engineer_id != engineer_id:
            continue
        if max(booking.effective_start, start) < min(booking.effective_end, end):
            return booking
    return None


def booking_conflicts(
    bookings: Iterable[Booking],
    studio_id: str,
    room_id: str,
    engineer_id: str,
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[str] = None,
) -> bool:
    found = conflicting_booking(
        bookings, studio_id, room_id, engineer_id, start, end, exclude_booking_id
    )
    if found is not None:
        logger.debug("Window %s-%s overlaps booking %s", start, end, found.id)
    return found is not None
