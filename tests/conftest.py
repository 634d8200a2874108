"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from punchin_booking.booking.booking_service import BookingService
from punchin_booking.scheduling.lifecycle import BookingLifecycle
from punchin_booking.schemas.availability_schema import (
    AbsoluteWindow,
    AvailabilityEntry,
    AvailabilityKind,
    AvailabilityScope,
    RecurringTimeRange,
    RecurringWindow,
    StudioOperatingSchedule,
)
from punchin_booking.schemas.booking_schema import (
    Booking,
    BookingApprovalState,
    BookingRequest,
    BookingStatus,
)
from punchin_booking.schemas.studio_schema import EngineerSettings, Room, Studio, UserProfile
from punchin_booking.tools.profile_store import InMemoryProfileStore

NEW_YORK = ZoneInfo("America/New_York")

# 2024-07-01 is a Monday, 2024-07-04 a Thursday.
MONDAY = date(2024, 7, 1)
THURSDAY = date(2024, 7, 4)

SUNDAY_WD, MONDAY_WD, THURSDAY_WD = 0, 1, 4


@pytest.fixture
def store():
    return InMemoryProfileStore()


@pytest.fixture
def service(store):
    return BookingService(store)


@pytest.fixture
def lifecycle():
    return BookingLifecycle()


def at(day: date, hour: int, minute: int = 0, tz=NEW_YORK) -> datetime:
    """Aware datetime on ``day`` at ``hour:minute`` local time."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz)


def make_schedule(
    hours: Optional[list[tuple[int, int, int]]] = None,
    blackouts: Optional[list[date]] = None,
    tz: str = "America/New_York",
) -> StudioOperatingSchedule:
    """Schedule from (weekday, start_hour, end_hour) triples."""
    return StudioOperatingSchedule(
        time_zone_identifier=tz,
        recurring_hours=[
            RecurringTimeRange(
                weekday=weekday,
                start_time_minutes=start * 60,
                duration_minutes=(end - start) * 60,
            )
            for weekday, start, end in (hours or [])
        ],
        blackout_dates=blackouts or [],
    )


def make_studio(
    studio_id: str = "studio-1",
    hourly_rate: Optional[float] = 60.0,
    auto_approve: bool = True,
    schedule: Optional[StudioOperatingSchedule] = None,
    engineers: Optional[list[str]] = None,
) -> Studio:
    return Studio(
        id=studio_id,
        owner_id="owner-1",
        name="Flowstate",
        city="New York",
        hourly_rate=hourly_rate,
        auto_approve_requests=auto_approve,
        approved_engineer_ids=engineers if engineers is not None else ["eng-1", "eng-2"],
        operating_schedule=schedule or make_schedule([(MONDAY_WD, 9, 21)]),
    )


def make_room(
    room_id: str = "room-a",
    studio_id: str = "studio-1",
    hourly_rate: Optional[float] = None,
    name: Optional[str] = None,
) -> Room:
    return Room(
        id=room_id,
        studio_id=studio_id,
        name=name or room_id.replace("-", " ").title(),
        hourly_rate=hourly_rate,
    )


def make_engineer(
    engineer_id: str = "eng-1",
    premium: bool = True,
    instant: bool = True,
    allow_other_studios: bool = True,
    main_studio_id: Optional[str] = None,
) -> UserProfile:
    return UserProfile(
        id=engineer_id,
        username=engineer_id,
        display_name=engineer_id.upper(),
        engineer_settings=EngineerSettings(
            is_premium=premium,
            instant_book_enabled=instant,
            allow_other_studios=allow_other_studios,
            main_studio_id=main_studio_id,
        ),
    )


def make_artist(artist_id: str = "artist-1") -> UserProfile:
    return UserProfile(id=artist_id, username=artist_id, display_name="Artist")


def make_booking(
    start: datetime,
    minutes: int = 60,
    booking_id: Optional[str] = None,
    studio_id: str = "studio-1",
    room_id: str = "room-a",
    engineer_id: str = "eng-1",
    status: BookingStatus = BookingStatus.CONFIRMED,
    confirmed: bool = True,
) -> Booking:
    end = start + timedelta(minutes=minutes)
    kwargs = {} if booking_id is None else {"id": booking_id}
    return Booking(
        artist_id="artist-0",
        studio_id=studio_id,
        room_id=room_id,
        engineer_id=engineer_id,
        status=status,
        requested_start=start,
        requested_end=end,
        confirmed_start=start if confirmed else None,
        confirmed_end=end if confirmed else None,
        duration_minutes=minutes,
        approval=BookingApprovalState(
            requires_studio_approval=not confirmed,
            requires_engineer_approval=not confirmed,
        ),
        **kwargs,
    )


def make_block(
    start: datetime,
    minutes: int = 60,
    scope: AvailabilityScope = AvailabilityScope.ENGINEER,
    owner_id: str = "eng-1",
    kind: AvailabilityKind = AvailabilityKind.BLOCK,
    room_id: Optional[str] = None,
    source_booking_id: Optional[str] = None,
) -> AvailabilityEntry:
    return AvailabilityEntry(
        kind=kind,
        scope=scope,
        owner_id=owner_id,
        room_id=room_id,
        source_booking_id=source_booking_id,
        window=AbsoluteWindow(start_date=start, end_date=start + timedelta(minutes=minutes)),
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def make_recurring_entry(
    weekday: int,
    start_hour: int,
    hours: int = 1,
    scope: AvailabilityScope = AvailabilityScope.ENGINEER,
    owner_id: str = "eng-1",
    kind: AvailabilityKind = AvailabilityKind.BLOCK,
) -> AvailabilityEntry:
    return AvailabilityEntry(
        kind=kind,
        scope=scope,
        owner_id=owner_id,
        window=RecurringWindow(
            weekday=weekday,
            start_time_minutes=start_hour * 60,
            duration_minutes=hours * 60,
        ),
    )


def make_request(
    studio: Studio,
    start: datetime,
    minutes: int = 60,
    room: Optional[Room] = None,
    engineer: Optional[UserProfile] = None,
) -> BookingRequest:
    return BookingRequest(
        artist=make_artist(),
        studio=studio,
        engineer=engineer or make_engineer(),
        room=room or make_room(studio_id=studio.id),
        start_date=start,
        duration_minutes=minutes,
    )


async def seed(
    store: InMemoryProfileStore,
    studio: Studio,
    rooms: Optional[list[Room]] = None,
    engineers: Optional[list[UserProfile]] = None,
) -> None:
    """Write a studio with its rooms and engineer profiles into the store."""
    await store.upsert_studio(studio)
    for room in rooms if rooms is not None else [make_room(studio_id=studio.id)]:
        await store.upsert_room(room)
    for engineer in engineers or []:
        await store.save_user_profile(engineer)
