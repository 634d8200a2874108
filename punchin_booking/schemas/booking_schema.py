"""Booking, quote and request data models."""

import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from punchin_booking.config import settings
from punchin_booking.errors import MissingEngineerError, MissingRoomError
from punchin_booking.schemas.availability_schema import AvailabilityEntry
from punchin_booking.schemas.studio_schema import Room, Studio, UserProfile
from punchin_booking.utils import ensure_aware, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)

    @property
    def is_live(self) -> bool:
        return self in LIVE_STATUSES


LIVE_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED}
)


class BookingParticipantRole(str, Enum):
    ARTIST = "artist"
    STUDIO = "studio"
    ENGINEER = "engineer"


class BookingPricing(BaseModel):
    """Cost quote. Computed, never charged."""
    hourly_rate: float
    total: float
    currency: str = Field(default_factory=lambda: settings.booking.currency)


class BookingApprovalState(BaseModel):
    """Which parties still have to approve a booking."""
    requires_studio_approval: bool
    requires_engineer_approval: bool
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_fully_approved(self) -> bool:
        return not self.requires_studio_approval and not self.requires_engineer_approval


class TimelineEventKind(str, Enum):
    STATUS_CHANGE = "statusChange"
    NOTE = "note"
    REMINDER = "reminder"
    RESCHEDULE = "reschedule"


class BookingTimelineEvent(BaseModel):
    """Audit entry produced by every booking lifecycle change."""
    id: str = Field(default_factory=_new_id)
    kind: TimelineEventKind
    message: str
    created_by: str
    created_at: datetime = Field(default_factory=utcnow)


class Booking(BaseModel):
    """
    A studio session reservation.

    ``confirmed_start``/``confirmed_end`` stay unset while the booking is
    pending. Conflict checks use the confirmed window when present and the
    requested window otherwise.
    """

    id: str = Field(default_factory=_new_id)
    artist_id: str
    studio_id: str
    room_id: str
    engineer_id: str
    status: BookingStatus = BookingStatus.PENDING
    requested_start: datetime
    requested_end: datetime
    confirmed_start: Optional[datetime] = None
    confirmed_end: Optional[datetime] = None
    duration_minutes: int
    pricing: Optional[BookingPricing] = None
    instant_book: bool = False
    approval: BookingApprovalState
    conversation_id: Optional[str] = None
    notes: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("requested_start", "requested_end", "confirmed_start", "confirmed_end")
    @classmethod
    def _aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(value) if value is not None else None

    @property
    def is_pending(self) -> bool:
        return self.status == BookingStatus.PENDING

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    @property
    def is_live(self) -> bool:
        return self.status.is_live

    @property
    def effective_start(self) -> datetime:
        return self.confirmed_start or self.requested_start

    @property
    def effective_end(self) -> datetime:
        return self.confirmed_end or self.requested_end


class BookingRequest(BaseModel):
    """Validated input to quote and submit."""
    artist: UserProfile
    studio: Studio
    engineer: UserProfile
    room: Room
    start_date: datetime
    duration_minutes: int
    notes: str = ""

    @field_validator("start_date")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def end_date(self) -> datetime:
        return self.start_date + timedelta(minutes=self.duration_minutes)

    @classmethod
    def build(
        cls,
        artist: UserProfile,
        studio: Studio,
        engineer: Optional[UserProfile],
        room: Optional[Room],
        start_date: datetime,
        duration_minutes: int,
        notes: str = "",
    ) -> "BookingRequest":
        """Assemble a request from a possibly incomplete selection.

        Raises:
            MissingRoomError: If no room was selected.
            MissingEngineerError: If no engineer was selected.
        """
        if room is None:
            raise MissingRoomError()
        if engineer is None:
            raise MissingEngineerError()
        return cls(
            artist=artist,
            studio=studio,
            engineer=engineer,
            room=room,
            start_date=start_date,
            duration_minutes=duration_minutes,
            notes=notes,
        )


class BookingQuote(BaseModel):
    """Result of a successful validation: the window, its cost and approval needs."""
    start_date: datetime
    end_date: datetime
    duration_minutes: int
    pricing: Optional[BookingPricing] = None
    is_instant: bool
    approval: BookingApprovalState


class BookingContext(BaseModel):
    """Everything the booking flow needs to present a studio's options."""
    studio: Studio
    rooms: list[Room] = Field(default_factory=list)
    engineers: list[UserProfile] = Field(default_factory=list)
    studio_availability: list[AvailabilityEntry] = Field(default_factory=list)
