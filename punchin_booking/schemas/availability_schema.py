"""Availability and operating-schedule data models."""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from punchin_booking.config import settings
from punchin_booking.utils import ensure_aware, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class AvailabilityKind(str, Enum):
    """What an availability entry says about its window."""
    RECURRING = "recurring"
    BLOCK = "block"
    BOOKING_HOLD = "bookingHold"
    SELF_BOOKING = "selfBooking"


class AvailabilityScope(str, Enum):
    STUDIO = "studio"
    ENGINEER = "engineer"


BLOCKING_KINDS = frozenset(
    {AvailabilityKind.BLOCK, AvailabilityKind.BOOKING_HOLD, AvailabilityKind.SELF_BOOKING}
)


class RecurringTimeRange(BaseModel):
    """A weekly open window of a studio's operating hours. Weekday 0 is Sunday."""

    id: str = Field(default_factory=_new_id)
    weekday: int = Field(ge=0, le=6)
    start_time_minutes: int = Field(ge=0, lt=24 * 60)
    duration_minutes: int = Field(gt=0)

    @property
    def end_time_minutes(self) -> int:
        return self.start_time_minutes + self.duration_minutes


class StudioOperatingSchedule(BaseModel):
    """Weekly hours and blackout dates, interpreted in ``time_zone_identifier``."""

    time_zone_identifier: str = Field(
        default_factory=lambda: settings.booking.default_timezone
    )
    recurring_hours: list[RecurringTimeRange] = Field(default_factory=list)
    blackout_dates: list[date] = Field(default_factory=list)

    @property
    def is_always_open(self) -> bool:
        return not self.recurring_hours

    def windows_for(self, weekday: int) -> list[RecurringTimeRange]:
        """Recurring windows on ``weekday`` ordered by start minute."""
        return sorted(
            (w for w in self.recurring_hours if w.weekday == weekday),
            key=lambda w: w.start_time_minutes,
        )

    def is_blackout(self, day: date) -> bool:
        return day in self.blackout_dates


class RecurringWindow(BaseModel):
    """Weekly-repeating shape of an availability entry."""

    shape: Literal["recurring"] = "recurring"
    weekday: int = Field(ge=0, le=6)
    start_time_minutes: int = Field(ge=0, lt=24 * 60)
    duration_minutes: int = Field(gt=0)

    @property
    def end_time_minutes(self) -> int:
        return self.start_time_minutes + self.duration_minutes


class AbsoluteWindow(BaseModel):
    """One-off shape of an availability entry: a concrete ``[start, end)`` range."""

    shape: Literal["absolute"] = "absolute"
    start_date: datetime
    end_date: datetime

    @field_validator("start_date", "end_date")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @model_validator(mode="after")
    def _ordered(self) -> "AbsoluteWindow":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self

    @property
    def duration_minutes(self) -> int:
        return int((self.end_date - self.start_date).total_seconds() // 60)


AvailabilityWindow = Annotated[
    Union[RecurringWindow, AbsoluteWindow], Field(discriminator="shape")
]


class AvailabilityEntry(BaseModel):
    """
    A studio- or engineer-owned availability record.

    The window is a tagged union: an entry is either recurring weekly or a
    one-off absolute range, never both and never neither. Only block,
    bookingHold and selfBooking kinds exclude time; recurring kinds describe
    open time and never block.
    """

    id: str = Field(default_factory=_new_id)
    kind: AvailabilityKind
    scope: AvailabilityScope
    owner_id: str
    window: AvailabilityWindow
    studio_id: Optional[str] = None
    room_id: Optional[str] = None
    engineer_id: Optional[str] = None
    source_booking_id: Optional[str] = None
    created_by: str = ""
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _room_scope(self) -> "AvailabilityEntry":
        if self.room_id is not None and self.scope != AvailabilityScope.STUDIO:
            raise ValueError("room_id is only valid on studio-scope entries")
        if not self.created_by:
            self.created_by = self.owner_id
        return self

    @property
    def is_recurring(self) -> bool:
        return isinstance(self.window, RecurringWindow)

    @property
    def is_blocking(self) -> bool:
        return self.kind in BLOCKING_KINDS

    @property
    def duration_minutes(self) -> int:
        return self.window.duration_minutes
