"""
Booking orchestrator: validates requests, quotes them and persists bookings.

The validation pipeline runs in a fixed order and fails fast:
duration -> operating hours -> blackout date -> room -> engineer. A quote
is never cached; ``submit`` re-runs the whole pipeline right before the
write. Submissions touching the same studio room or the same studio
engineer are serialized in-process, and the store's create-time conflict
check stays the final arbiter across processes.
"""

from __future__ import annotations

import asyncio
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import date, datetime, timedelta, tzinfo
from typing import AsyncIterator, Optional

from punchin_booking.config import BookingRulesConfig, settings
from punchin_booking.errors import (
    BookingFlowError,
    EngineerUnavailableError,
    InvalidDurationError,
    RoomUnavailableError,
    StudioBlackoutError,
    StudioClosedError,
)
from punchin_booking.logging_context import get_request_logger, new_request_id
from punchin_booking.schemas.availability_schema import AvailabilityScope, StudioOperatingSchedule
from punchin_booking.schemas.booking_schema import (
    Booking,
    BookingContext,
    BookingParticipantRole,
    BookingQuote,
    BookingRequest,
    BookingStatus,
    BookingTimelineEvent,
)
from punchin_booking.schemas.studio_schema import Studio, UserProfile
from punchin_booking.scheduling.approval import resolve_approval
from punchin_booking.scheduling.conflicts import (
    blocking_entries,
    booking_conflicts,
    is_conflict_free,
)
from punchin_booking.scheduling.intervals import (
    Interval,
    base_windows,
    clamped_interval,
    day_bounds,
    entry_interval,
    local_date,
    merge_overlapping,
    minutes_from_midnight,
    recurring_interval,
    resolve_timezone,
    subtract,
    weekday_of,
)
from punchin_booking.scheduling.lifecycle import BookingLifecycle
from punchin_booking.scheduling.pricing import resolve_pricing
from punchin_booking.tools.profile_store import ProfileStore
from punchin_booking.utils import ensure_aware, utcnow

logger = get_request_logger(__name__)


class BookingService:
    """Studio booking orchestrator over an injected profile store."""

    def __init__(
        self,
        store: ProfileStore,
        rules: Optional[BookingRulesConfig] = None,
        lifecycle: Optional[BookingLifecycle] = None,
    ) -> None:
        self._store = store
        self._rules = rules or settings.booking
        self._lifecycle = lifecycle or BookingLifecycle()
        # Entries vanish once no holder or waiter references the lock.
        self._locks: weakref.WeakValueDictionary[tuple[str, ...], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # ------------------------------------------------------------------ #
    # Context
    # ------------------------------------------------------------------ #

    async def load_context(
        self, studio: Studio, preferred_engineer_id: Optional[str] = None
    ) -> BookingContext:
        """Fetch rooms, studio availability and candidate engineer profiles."""
        new_request_id("CTX")
        engineer_ids = list(studio.approved_engineer_ids)
        if preferred_engineer_id and preferred_engineer_id not in engineer_ids:
            engineer_ids.append(preferred_engineer_id)

        rooms, availability, engineers = await asyncio.gather(
            self._store.fetch_rooms(studio.id),
            self._store.fetch_availability(AvailabilityScope.STUDIO, studio.id),
            self._fetch_profiles_in_order(engineer_ids),
        )
        logger.debug(
            "Loaded context for studio %s: %d rooms, %d entries, %d engineers",
            studio.id, len(rooms), len(availability), len(engineers),
        )
        return BookingContext(
            studio=studio,
            rooms=rooms,
            engineers=engineers,
            studio_availability=availability,
        )

    async def _fetch_profiles_in_order(self, user_ids: list[str]) -> list[UserProfile]:
        if not user_ids:
            return []
        profiles = await self._store.fetch_user_profiles(user_ids)
        position = {uid: index for index, uid in enumerate(user_ids)}
        return sorted(
            (p for p in profiles if p.id in position),
            key=lambda p: position[p.id],
        )

    # ------------------------------------------------------------------ #
    # Quote / submit
    # ------------------------------------------------------------------ #

    async def quote(self, request: BookingRequest) -> BookingQuote:
        """
        Validate a request and price it.

        Raises:
            BookingFlowError: The first failed validation step.
        """
        new_request_id("QUOTE")
        return await self._quote(request)

    async def _quote(self, request: BookingRequest) -> BookingQuote:
        end_date = await self._validate_window(
            studio=request.studio,
            room_id=request.room.id,
            engineer_id=request.engineer.id,
            start=request.start_date,
            duration_minutes=request.duration_minutes,
        )
        pricing = resolve_pricing(
            request.studio,
            request.room,
            request.duration_minutes,
            currency=self._rules.currency,
            precision=self._rules.price_precision,
        )
        approval = resolve_approval(request.studio, request.engineer, request.start_date)
        return BookingQuote(
            start_date=request.start_date,
            end_date=end_date,
            duration_minutes=request.duration_minutes,
            pricing=pricing,
            is_instant=approval.is_fully_approved,
            approval=approval,
        )

    async def submit(self, request: BookingRequest) -> Booking:
        """Re-validate the request and persist a booking.

        Instant bookings are stored confirmed on the requested window; all
        others are stored pending. Store errors propagate unchanged.
        """
        new_request_id("SUBMIT")
        async with self._serialized(request.studio.id, request.room.id, request.engineer.id):
            quote = await self._quote(request)
            now = utcnow()
            booking = Booking(
                artist_id=request.artist.id,
                studio_id=request.studio.id,
                room_id=request.room.id,
                engineer_id=request.engineer.id,
                status=BookingStatus.CONFIRMED if quote.is_instant else BookingStatus.PENDING,
                requested_start=quote.start_date,
                requested_end=quote.end_date,
                confirmed_start=quote.start_date if quote.is_instant else None,
                confirmed_end=quote.end_date if quote.is_instant else None,
                duration_minutes=quote.duration_minutes,
                pricing=quote.pricing,
                instant_book=quote.is_instant,
                approval=quote.approval,
                notes=request.notes,
                created_at=now,
                updated_at=now,
            )
            await self._store.create_booking(booking)

        logger.info(
            "Booking %s submitted for studio=%s room=%s engineer=%s status=%s",
            booking.id, booking.studio_id, booking.room_id, booking.engineer_id,
            booking.status.value,
        )
        return booking

    # ------------------------------------------------------------------ #
    # Reschedule and lifecycle hooks
    # ------------------------------------------------------------------ #

    async def validate_reschedule(
        self, booking: Booking, new_start: datetime, duration_minutes: int
    ) -> None:
        """Check a new window for an existing booking.

        The booking's own reservation and the holds it created never count
        as conflicts. Pricing and approval are left untouched.
        """
        new_request_id("RESCHEDULE")
        await self._validate_reschedule(booking, new_start, duration_minutes)

    async def _validate_reschedule(
        self, booking: Booking, new_start: datetime, duration_minutes: int
    ) -> None:
        self._validate_duration(duration_minutes)
        studios = await self._store.fetch_studios()
        studio = next((s for s in studios if s.id == booking.studio_id), None)
        if studio is None:
            logger.warning("Studio %s for booking %s not found", booking.studio_id, booking.id)
            raise self._reject(RoomUnavailableError())

        await self._validate_window(
            studio=studio,
            room_id=booking.room_id,
            engineer_id=booking.engineer_id,
            start=new_start,
            duration_minutes=duration_minutes,
            exclude_booking_id=booking.id,
        )

    async def reschedule(
        self,
        booking: Booking,
        new_start: datetime,
        duration_minutes: int,
        actor_id: str,
        role: BookingParticipantRole = BookingParticipantRole.ARTIST,
    ) -> tuple[Booking, BookingTimelineEvent]:
        """Validate and apply a new window, putting the booking back up for approval.

        ``role`` is the party asking for the move; it decides which
        approvals the new window needs.
        """
        new_request_id("RESCHEDULE")
        async with self._serialized(booking.studio_id, booking.room_id, booking.engineer_id):
            await self._validate_reschedule(booking, new_start, duration_minutes)
            updated, event = self._lifecycle.reschedule(
                booking, new_start, duration_minutes, actor_id, role
            )
            await self._store.update_booking(updated)
        return updated, event

    async def transition(
        self, booking: Booking, new_status: BookingStatus, actor_id: str
    ) -> tuple[Booking, BookingTimelineEvent]:
        """Apply a status change and persist it."""
        new_request_id("STATUS")
        updated, event = self._lifecycle.transition(booking, new_status, actor_id)
        await self._store.update_booking(updated)
        return updated, event

    async def approve(
        self, booking: Booking, actor_id: str, role: BookingParticipantRole
    ) -> tuple[Booking, BookingTimelineEvent]:
        """Record one party's approval and persist it; confirms once both agree."""
        new_request_id("APPROVE")
        updated, event = self._lifecycle.approve(booking, actor_id, role)
        await self._store.update_booking(updated)
        return updated, event

    async def decline(
        self, booking: Booking, actor_id: str, role: BookingParticipantRole
    ) -> tuple[Booking, BookingTimelineEvent]:
        new_request_id("DECLINE")
        updated, event = self._lifecycle.decline(booking, actor_id, role)
        await self._store.update_booking(updated)
        return updated, event

    # ------------------------------------------------------------------ #
    # Pass-through persistence
    # ------------------------------------------------------------------ #

    async def load_booking(self, booking_id: str) -> Optional[Booking]:
        return await self._store.load_booking(booking_id)

    async def fetch_bookings(
        self, participant_id: str, role: BookingParticipantRole
    ) -> list[Booking]:
        return await self._store.fetch_bookings(participant_id, role)

    async def update_booking(self, booking: Booking) -> None:
        await self._store.update_booking(booking)

    # ------------------------------------------------------------------ #
    # Open windows
    # ------------------------------------------------------------------ #

    async def open_windows(
        self,
        studio: Studio,
        engineer_id: str,
        day: date,
        room_id: Optional[str] = None,
    ) -> list[Interval]:
        """Free time on ``day`` for ``engineer_id`` (and ``room_id`` when given).

        Starts from the studio's operating windows and removes the
        engineer's live bookings and availability entries, plus live
        bookings and blocks on the room. Recurring engineer entries count
        as busy time here.
        """
        schedule = studio.operating_schedule
        tz = resolve_timezone(schedule.time_zone_identifier)
        if schedule.is_blackout(day):
            return []

        day_start, day_end = day_bounds(day, tz)
        open_intervals = base_windows(schedule, day_start, day_end, tz)
        if not open_intervals:
            return []

        engineer_entries, engineer_bookings, studio_entries, studio_bookings = await asyncio.gather(
            self._store.fetch_availability(AvailabilityScope.ENGINEER, engineer_id),
            self._store.fetch_bookings(engineer_id, BookingParticipantRole.ENGINEER),
            self._store.fetch_availability(AvailabilityScope.STUDIO, studio.id),
            self._store.fetch_bookings(studio.id, BookingParticipantRole.STUDIO),
        )

        busy: list[Interval] = []
        for booking in engineer_bookings:
            if booking.is_live:
                interval = clamped_interval(booking, day_start, day_end)
                if interval is not None:
                    busy.append(interval)

        if room_id is not None:
            for booking in studio_bookings:
                if booking.room_id == room_id and booking.is_live:
                    interval = clamped_interval(booking, day_start, day_end)
                    if interval is not None:
                        busy.append(interval)
            for entry in blocking_entries(studio_entries, room_id=room_id):
                interval = (
                    entry_interval(entry, day_start, day_end)
                    or recurring_interval(entry, day_start, day_end, tz)
                )
                if interval is not None:
                    busy.append(interval)

        for entry in engineer_entries:
            interval = (
                entry_interval(entry, day_start, day_end)
                or recurring_interval(entry, day_start, day_end, tz)
            )
            if interval is not None:
                busy.append(interval)

        for interval in merge_overlapping(busy):
            open_intervals = subtract(open_intervals, interval)
        return sorted(open_intervals, key=lambda i: i.start)

    # ------------------------------------------------------------------ #
    # Validation pipeline
    # ------------------------------------------------------------------ #

    async def _validate_window(
        self,
        studio: Studio,
        room_id: str,
        engineer_id: str,
        start: datetime,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> datetime:
        """Run every timing check for ``[start, start + duration)`` and return the end."""
        self._validate_duration(duration_minutes)

        start = ensure_aware(start)
        end = start + timedelta(minutes=duration_minutes)
        schedule = studio.operating_schedule
        tz = resolve_timezone(schedule.time_zone_identifier)

        if not self._is_within_operating_hours(schedule, start, duration_minutes, tz):
            raise self._reject(StudioClosedError())

        if schedule.is_blackout(local_date(start, tz)):
            raise self._reject(StudioBlackoutError())

        await self._ensure_room_is_free(
            studio, room_id, engineer_id, start, end, tz, exclude_booking_id
        )
        await self._ensure_engineer_is_free(
            studio, room_id, engineer_id, start, end, tz, exclude_booking_id
        )
        return end

    def _validate_duration(self, duration_minutes: int) -> None:
        if not self._rules.min_duration_minutes <= duration_minutes <= self._rules.max_duration_minutes:
            raise self._reject(InvalidDurationError())

    @staticmethod
    def _is_within_operating_hours(
        schedule: StudioOperatingSchedule,
        start: datetime,
        duration_minutes: int,
        tz: tzinfo,
    ) -> bool:
        if schedule.is_always_open:
            return True
        start_minutes = minutes_from_midnight(start, tz)
        end_minutes = start_minutes + duration_minutes
        return any(
            window.start_time_minutes <= start_minutes and end_minutes <= window.end_time_minutes
            for window in schedule.windows_for(weekday_of(start, tz))
        )

    async def _ensure_room_is_free(
        self,
        studio: Studio,
        room_id: str,
        engineer_id: str,
        start: datetime,
        end: datetime,
        tz: tzinfo,
        exclude_booking_id: Optional[str],
    ) -> None:
        availability, bookings = await asyncio.gather(
            self._store.fetch_availability(AvailabilityScope.STUDIO, studio.id),
            self._store.fetch_bookings(studio.id, BookingParticipantRole.STUDIO),
        )
        entries = blocking_entries(
            availability, room_id=room_id, exclude_source_booking_id=exclude_booking_id
        )
        if not is_conflict_free(entries, start, end, tz):
            raise self._reject(RoomUnavailableError())
        if booking_conflicts(
            bookings, studio.id, room_id, engineer_id, start, end, exclude_booking_id
        ):
            raise self._reject(RoomUnavailableError())

    async def _ensure_engineer_is_free(
        self,
        studio: Studio,
        room_id: str,
        engineer_id: str,
        start: datetime,
        end: datetime,
        tz: tzinfo,
        exclude_booking_id: Optional[str],
    ) -> None:
        availability, bookings = await asyncio.gather(
            self._store.fetch_availability(AvailabilityScope.ENGINEER, engineer_id),
            self._store.fetch_bookings(engineer_id, BookingParticipantRole.ENGINEER),
        )
        entries = blocking_entries(availability, exclude_source_booking_id=exclude_booking_id)
        if not is_conflict_free(entries, start, end, tz):
            raise self._reject(EngineerUnavailableError())
        if booking_conflicts(
            bookings, studio.id, room_id, engineer_id, start, end, exclude_booking_id
        ):
            raise self._reject(EngineerUnavailableError())

    @staticmethod
    def _reject(error: BookingFlowError) -> BookingFlowError:
        logger.info("Booking validation failed: %s", error.code)
        return error

    # ------------------------------------------------------------------ #
    # In-process serialization
    # ------------------------------------------------------------------ #

    @asynccontextmanager
    async def _serialized(self, studio_id: str, room_id: str, engineer_id: str) -> AsyncIterator[None]:
        """Hold the (studio, room) and (studio, engineer) locks, in a fixed order."""
        keys = sorted([("room", studio_id, room_id), ("engineer", studio_id, engineer_id)])
        async with AsyncExitStack() as stack:
            for key in keys:
                lock = self._locks.setdefault(key, asyncio.Lock())
                await stack.enter_async_context(lock)
            yield
