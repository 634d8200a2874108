"""
Typed errors raised by the booking pipeline.

Validation failures carry a stable ``code`` and a user-facing ``message``.
None of them are retried by the engine; callers show the message and let
the user pick different parameters.
"""

from typing import Optional


class BookingFlowError(Exception):
    """Base class for booking validation failures."""

    code: str = "bookingFlow"
    default_message: str = "The booking could not be completed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class StudioClosedError(BookingFlowError):
    code = "studioClosed"
    default_message = "The studio is closed at that time. Pick a different slot."


class StudioBlackoutError(BookingFlowError):
    code = "studioBlackout"
    default_message = "The studio is unavailable on that date."


class RoomUnavailableError(BookingFlowError):
    code = "roomUnavailable"
    default_message = "That room is already booked or blocked."


class EngineerUnavailableError(BookingFlowError):
    code = "engineerUnavailable"
    default_message = "The engineer has a conflict at that time."


class InvalidDurationError(BookingFlowError):
    code = "invalidDuration"
    default_message = "Please choose a duration between 30 minutes and 12 hours."


class MissingEngineerError(BookingFlowError):
    code = "missingEngineer"
    default_message = "Select an engineer before booking."


class MissingRoomError(BookingFlowError):
    code = "missingRoom"
    default_message = "Select a room before booking."


class ProfileStoreError(Exception):
    """Raised by store implementations for backend failures."""


class BookingConflictError(ProfileStoreError):
    """Raised by the store when a create would overlap a live booking."""

    def __init__(self, booking_id: str, conflicting_id: str) -> None:
        self.booking_id = booking_id
        self.conflicting_id = conflicting_id
        super().__init__(
            f"Booking {booking_id} overlaps live booking {conflicting_id}"
        )


class InvalidTransitionError(Exception):
    """Raised when a booking status change is not allowed from its current status."""
