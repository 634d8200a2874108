"""
Interval arithmetic over concrete ``[start, end)`` datetime ranges.

Turns a studio's weekly operating schedule into concrete windows for a
calendar day, clamps bookings and availability entries to a day, and
provides the subtract/merge set algebra used to compute free time.

All functions are pure. Weekdays are normalized to 0=Sunday through
``normalize_weekday`` and nowhere else.

Usage:
    tz = resolve_timezone(schedule.time_zone_identifier)
    day_start, day_end = day_bounds(day, tz)
    free = base_windows(schedule, day_start, day_end, tz)
    for busy in merge_overlapping(busy_intervals):
        free = subtract(free, busy)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from punchin_booking.config import settings
from punchin_booking.schemas.availability_schema import (
    AbsoluteWindow,
    AvailabilityEntry,
    RecurringWindow,
    StudioOperatingSchedule,
)
from punchin_booking.schemas.booking_schema import Booking

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class Interval:
    """Half-open ``[start, end)`` datetime range."""
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    def overlaps(self, other: "Interval") -> bool:
        return max(self.start, other.start) < min(self.end, other.end)


def resolve_timezone(identifier: Optional[str]) -> tzinfo:
    """Resolve an IANA zone name, falling back to the configured default zone."""
    if identifier:
        try:
            return ZoneInfo(identifier)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "Unknown time zone %r, falling back to %s",
                identifier, settings.booking.default_timezone,
            )
    return ZoneInfo(settings.booking.default_timezone)


def normalize_weekday(platform_weekday: int) -> int:
    """Map Python's Monday=0 weekday numbering onto the Sunday=0 convention."""
    return (platform_weekday + 1) % 7


def weekday_of(moment: datetime, tz: tzinfo) -> int:
    """Sunday=0 weekday of ``moment`` as seen in ``tz``."""
    return normalize_weekday(moment.astimezone(tz).weekday())


def minutes_from_midnight(moment: datetime, tz: tzinfo) -> int:
    local = moment.astimezone(tz)
    return local.hour * 60 + local.minute


def local_date(moment: datetime, tz: tzinfo) -> date:
    return moment.astimezone(tz).date()


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Local midnight of ``day`` and of the following day, as aware datetimes."""
    start = datetime(day.year, day.month, day.day, tzinfo=tz)
    following = day + timedelta(days=1)
    end = datetime(following.year, following.month, following.day, tzinfo=tz)
    return start, end


def _clamp(start: datetime, end: datetime, day_start: datetime, day_end: datetime) -> Optional[Interval]:
    clamped = Interval(max(start, day_start), min(end, day_end))
    if clamped.is_empty:
        return None
    return clamped


def base_windows(
    schedule: StudioOperatingSchedule,
    day_start: datetime,
    day_end: datetime,
    tz: tzinfo,
) -> list[Interval]:
    """Concrete operating windows of ``schedule`` for the day starting at ``day_start``.

    An empty schedule means the studio is always open, so the whole day is
    returned. Windows running past ``day_end`` are cut at ``day_end``.
    """
    if schedule.is_always_open:
        return [Interval(day_start, day_end)]

    windows = []
    for window in schedule.windows_for(weekday_of(day_start, tz)):
        start = day_start + timedelta(minutes=window.start_time_minutes)
        end = min(start + timedelta(minutes=window.duration_minutes), day_end)
        if start < end:
            windows.append(Interval(start, end))
    return windows


def clamped_interval(booking: Booking, day_start: datetime, day_end: datetime) -> Optional[Interval]:
    """The booking's effective window clamped to the day, or None when it misses the day."""
    return _clamp(booking.effective_start, booking.effective_end, day_start, day_end)


def entry_interval(entry: AvailabilityEntry, day_start: datetime, day_end: datetime) -> Optional[Interval]:
    """Clamp an absolute-range entry to the day. Recurring entries yield None."""
    if not isinstance(entry.window, AbsoluteWindow):
        return None
    return _clamp(entry.window.start_date, entry.window.end_date, day_start, day_end)


def recurring_interval(
    entry: AvailabilityEntry,
    day_start: datetime,
    day_end: datetime,
    tz: tzinfo,
) -> Optional[Interval]:
    """Project a recurring entry onto the day if its weekday matches."""
    window = entry.window
    if not isinstance(window, RecurringWindow):
        return None
    if window.weekday != weekday_of(day_start, tz):
        return None
    start = day_start + timedelta(minutes=window.start_time_minutes)
    end = min(start + timedelta(minutes=window.duration_minutes), day_end)
    if start >= end:
        return None
    return Interval(start, end)


def subtract(intervals: Iterable[Interval], removal: Interval) -> list[Interval]:
    """Remove ``removal`` from every interval, keeping at most two pieces of each."""
    intervals = list(intervals)
    if removal.is_empty:
        return intervals

    result = []
    for interval in intervals:
        overlap_start = max(interval.start, removal.start)
        overlap_end = min(interval.end, removal.end)
        if overlap_start >= overlap_end:
            result.append(interval)
            continue
        if interval.start < overlap_start:
            result.append(Interval(interval.start, overlap_start))
        if overlap_end < interval.end:
            result.append(Interval(overlap_end, interval.end))
    return result


def merge_overlapping(intervals: Iterable[Interval]) -> list[Interval]:
    """Fold overlapping or touching intervals into single spans, sorted by start."""
    ordered = sorted(intervals, key=lambda i: (i.start, i.end))
    if not ordered:
        return []

    merged = []
    current = ordered[0]
    for interval in ordered[1:]:
        if current.end >= interval.start:
            current = Interval(min(current.start, interval.start), max(current.end, interval.end))
        else:
            merged.append(current)
            current = interval
    merged.append(current)
    return merged
