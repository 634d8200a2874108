"""
Profile store port and an in-memory implementation.

The booking engine only talks to storage through ``ProfileStore``. A
production deployment backs it with the managed document database; tests
and local tooling use ``InMemoryProfileStore``, which keeps encoded
documents so every read and write goes through the same decode/encode
contracts as the real backend.
"""

import asyncio
import logging
from typing import Optional, Protocol

from punchin_booking.errors import BookingConflictError, ProfileStoreError
from punchin_booking.schemas.availability_schema import AvailabilityEntry, AvailabilityScope
from punchin_booking.schemas.booking_schema import Booking, BookingParticipantRole
from punchin_booking.schemas.studio_schema import Room, Studio, UserProfile
from punchin_booking.scheduling.conflicts import conflicting_booking
from punchin_booking.tools.documents import (
    Document,
    decode_availability,
    decode_booking,
    decode_room,
    decode_studio,
    decode_user_profile,
    encode_availability,
    encode_booking,
    encode_room,
    encode_studio,
    encode_user_profile,
)

logger = logging.getLogger(__name__)

_ROLE_FIELDS = {
    BookingParticipantRole.ARTIST: "artistId",
    BookingParticipantRole.STUDIO: "studioId",
    BookingParticipantRole.ENGINEER: "engineerId",
}


class ProfileStore(Protocol):
    """Storage operations the booking engine depends on."""

    async def fetch_studios(self) -> list[Studio]: ...

    async def fetch_rooms(self, studio_id: str) -> list[Room]: ...

    async def fetch_availability(
        self, scope: AvailabilityScope, owner_id: str
    ) -> list[AvailabilityEntry]: ...

    async def fetch_user_profiles(self, user_ids: list[str]) -> list[UserProfile]:
        """Order of the result is not guaranteed to match ``user_ids``."""
        ...

    async def fetch_bookings(
        self, participant_id: str, role: BookingParticipantRole
    ) -> list[Booking]: ...

    async def load_booking(self, booking_id: str) -> Optional[Booking]: ...

    async def create_booking(self, booking: Booking) -> None:
        """Persist a new booking; raises BookingConflictError on overlap."""
        ...

    async def update_booking(self, booking: Booking) -> None:
        """Merge-upsert an existing booking."""
        ...


class InMemoryProfileStore:
    """Document-shaped in-memory store. Not a storage engine."""

    def __init__(self) -> None:
        self._studios: dict[str, Document] = {}
        self._rooms: dict[str, dict[str, Document]] = {}
        self._availability: dict[tuple[AvailabilityScope, str], dict[str, Document]] = {}
        self._profiles: dict[str, Document] = {}
        self._bookings: dict[str, Document] = {}
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Seeding helpers
    # ------------------------------------------------------------------ #

    async def upsert_studio(self, studio: Studio) -> None:
        self._studios.setdefault(studio.id, {}).update(encode_studio(studio))

    async def upsert_room(self, room: Room) -> None:
        self._rooms.setdefault(room.studio_id, {}).setdefault(room.id, {}).update(encode_room(room))

    async def delete_room(self, room_id: str, studio_id: str) -> None:
        self._rooms.get(studio_id, {}).pop(room_id, None)

    async def upsert_availability(self, entry: AvailabilityEntry) -> None:
        collection = self._availability.setdefault((entry.scope, entry.owner_id), {})
        collection[entry.id] = encode_availability(entry)

    async def delete_availability(
        self, scope: AvailabilityScope, owner_id: str, entry_id: str
    ) -> None:
        self._availability.get((scope, owner_id), {}).pop(entry_id, None)

    async def save_user_profile(self, profile: UserProfile) -> None:
        self._profiles.setdefault(profile.id, {}).update(encode_user_profile(profile))

    def put_raw_booking(self, booking_id: str, document: Document) -> None:
        """Insert a raw booking document, bypassing encoding and conflict checks."""
        self._bookings[booking_id] = dict(document)

    def put_raw_availability(
        self, scope: AvailabilityScope, owner_id: str, entry_id: str, document: Document
    ) -> None:
        self._availability.setdefault((scope, owner_id), {})[entry_id] = dict(document)

    def reset(self) -> None:
        """Clear all documents. Used by test fixtures for isolation."""
        self._studios.clear()
        self._rooms.clear()
        self._availability.clear()
        self._profiles.clear()
        self._bookings.clear()

    # ------------------------------------------------------------------ #
    # ProfileStore
    # ------------------------------------------------------------------ #

    async def fetch_studios(self) -> list[Studio]:
        return [decode_studio(sid, data) for sid, data in self._studios.items()]

    async def load_studio(self, studio_id: str) -> Optional[Studio]:
        data = self._studios.get(studio_id)
        return decode_studio(studio_id, data) if data is not None else None

    async def fetch_rooms(self, studio_id: str) -> list[Room]:
        rooms = [
            decode_room(studio_id, rid, data)
            for rid, data in self._rooms.get(studio_id, {}).items()
        ]
        return sorted(rooms, key=lambda r: r.name)

    async def fetch_availability(
        self, scope: AvailabilityScope, owner_id: str
    ) -> list[AvailabilityEntry]:
        entries = []
        for entry_id, data in self._availability.get((scope, owner_id), {}).items():
            entry = decode_availability(scope, owner_id, entry_id, data)
            if entry is not None:
                entries.append(entry)
        return sorted(entries, key=lambda e: e.created_at)

    async def fetch_user_profiles(self, user_ids: list[str]) -> list[UserProfile]:
        wanted = set(user_ids)
        return [
            decode_user_profile(uid, data)
            for uid, data in sorted(self._profiles.items())
            if uid in wanted
        ]

    async def fetch_bookings(
        self, participant_id: str, role: BookingParticipantRole
    ) -> list[Booking]:
        field_name = _ROLE_FIELDS[role]
        bookings = [
            decode_booking(bid, data)
            for bid, data in self._bookings.items()
            if data.get(field_name) == participant_id
        ]
        return sorted(bookings, key=lambda b: b.requested_start)

    async def load_booking(self, booking_id: str) -> Optional[Booking]:
        data = self._bookings.get(booking_id)
        return decode_booking(booking_id, data) if data is not None else None

    async def create_booking(self, booking: Booking) -> None:
        async with self._write_lock:
            if booking.id in self._bookings:
                raise ProfileStoreError(f"Booking {booking.id} already exists")
            existing = [decode_booking(bid, data) for bid, data in self._bookings.items()]
            clash = conflicting_booking(
                existing,
                booking.studio_id,
                booking.room_id,
                booking.engineer_id,
                booking.effective_start,
                booking.effective_end,
            )
            if clash is not None:
                raise BookingConflictError(booking.id, clash.id)
            self._bookings[booking.id] = encode_booking(booking)
        logger.debug("Stored booking %s", booking.id)

    async def update_booking(self, booking: Booking) -> None:
        async with self._write_lock:
            self._bookings.setdefault(booking.id, {}).update(
                encode_booking(booking, clear_unset=True)
            )
        logger.debug("Updated booking %s", booking.id)
