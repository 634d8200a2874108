"""Studio, room and engineer profile data models."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from punchin_booking.config import settings
from punchin_booking.schemas.availability_schema import StudioOperatingSchedule


def _new_id() -> str:
    return str(uuid.uuid4())


class Room(BaseModel):
    """A bookable room. Belongs to exactly one studio."""
    id: str = Field(default_factory=_new_id)
    studio_id: str
    name: str = "Room"
    description: str = ""
    hourly_rate: Optional[float] = None
    capacity: Optional[int] = None
    amenities: list[str] = Field(default_factory=list)
    is_default: bool = False


class Studio(BaseModel):
    """Studio record with its booking policy and operating schedule."""
    id: str = Field(default_factory=_new_id)
    owner_id: str
    name: str = ""
    city: str = ""
    address: str = ""
    hourly_rate: Optional[float] = None
    amenities: list[str] = Field(default_factory=list)
    approved_engineer_ids: list[str] = Field(default_factory=list)
    auto_approve_requests: bool = False
    operating_schedule: StudioOperatingSchedule = Field(
        default_factory=StudioOperatingSchedule
    )


class EngineerSettings(BaseModel):
    """Booking preferences an engineer controls from their profile settings."""
    is_premium: bool = False
    instant_book_enabled: bool = False
    main_studio_id: Optional[str] = None
    allow_other_studios: bool = False
    main_studio_selected_at: Optional[datetime] = None
    default_session_duration_minutes: int = Field(
        default_factory=lambda: settings.booking.default_session_minutes
    )

    @property
    def can_instant_book(self) -> bool:
        return self.is_premium and self.instant_book_enabled


class UserProfile(BaseModel):
    """The slice of a user profile the booking engine reads."""
    id: str = Field(default_factory=_new_id)
    username: str = ""
    display_name: str = ""
    engineer_settings: EngineerSettings = Field(default_factory=EngineerSettings)
