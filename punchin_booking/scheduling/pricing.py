"""Cost quotes from room and studio hourly rates."""

from typing import Optional

from punchin_booking.config import settings
from punchin_booking.schemas.booking_schema import BookingPricing
from punchin_booking.schemas.studio_schema import Room, Studio


def effective_hourly_rate(studio: Studio, room: Room) -> Optional[float]:
    """Room override first, studio default second."""
    if room.hourly_rate is not None:
        return room.hourly_rate
    return studio.hourly_rate


def resolve_pricing(
    studio: Studio,
    room: Room,
    duration_minutes: int,
    currency: Optional[str] = None,
    precision: Optional[int] = None,
) -> Optional[BookingPricing]:
    """
    Price a session of ``duration_minutes``.

    Returns None when neither the room nor the studio sets a rate; such
    bookings are unpriced. Totals are rounded to ``precision`` decimals,
    the configured precision when not given.
    """
    rate = effective_hourly_rate(studio, room)
    if rate is None:
        return None
    if precision is None:
        precision = settings.booking.price_precision
    total = round(rate * (duration_minutes / 60), precision)
    return BookingPricing(
        hourly_rate=rate,
        total=total,
        currency=currency or settings.booking.currency,
    )
