from punchin_booking.scheduling.approval import resolve_approval
from punchin_booking.scheduling.conflicts import (
    blocking_entries,
    booking_conflicts,
    entry_overlaps,
    is_blocking,
    is_conflict_free,
)
from punchin_booking.scheduling.intervals import (
    Interval,
    base_windows,
    clamped_interval,
    merge_overlapping,
    normalize_weekday,
    subtract,
)
from punchin_booking.scheduling.lifecycle import BookingLifecycle
from punchin_booking.scheduling.pricing import resolve_pricing

__all__ = [
    "Interval", "base_windows", "clamped_interval", "merge_overlapping",
    "normalize_weekday", "subtract",
    "blocking_entries", "booking_conflicts", "entry_overlaps", "is_blocking",
    "is_conflict_free",
    "resolve_pricing", "resolve_approval", "BookingLifecycle",
]
