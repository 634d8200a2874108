from punchin_booking.booking.booking_service import BookingService

__all__ = ["BookingService"]
