"""
Encode/decode contracts between domain models and store documents.

Store documents are loosely-typed camelCase maps. Decoders never raise on
missing or malformed fields: each field falls back to a documented default
so older documents keep loading. Encoders omit unset optionals and stamp
``schemaVersion``.

Decode defaults:
    booking       status=pending, durationMinutes=60, approval flags=True,
                  pricing hourlyRate/total=0 and currency=USD, notes="",
                  instantBook=False
    availability  kind=recurring, createdBy=owner, updatedAt=createdAt;
                  absolute shape wins when both shapes are present; a
                  document with neither shape decodes to None
    room          name="Room", isDefault=False
    studio        autoApproveRequests=False, schedule zone=default zone
    engineer      flags=False, defaultSessionDurationMinutes=120
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from punchin_booking.config import settings
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
    BookingPricing,
    BookingStatus,
)
from punchin_booking.schemas.studio_schema import EngineerSettings, Room, Studio, UserProfile
from punchin_booking.scheduling.intervals import resolve_timezone
from punchin_booking.utils import (
    coerce_date,
    coerce_datetime,
    coerce_float,
    coerce_int,
    utcnow,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

Document = dict[str, Any]


def _str(data: Document, key: str, default: str = "") -> str:
    value = data.get(key)
    return value if isinstance(value, str) else default


def _opt_str(data: Document, key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _bool(data: Document, key: str, default: bool) -> bool:
    value = data.get(key)
    return value if isinstance(value, bool) else default


def _str_list(data: Document, key: str) -> list[str]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _put(data: Document, key: str, value: Any) -> None:
    if value is not None:
        data[key] = value


# ---------------------------------------------------------------------- #
# Operating schedule
# ---------------------------------------------------------------------- #

def encode_operating_schedule(schedule: StudioOperatingSchedule) -> Document:
    return {
        "timeZoneIdentifier": schedule.time_zone_identifier,
        "recurringHours": [
            {
                "id": window.id,
                "weekday": window.weekday,
                "startTimeMinutes": window.start_time_minutes,
                "durationMinutes": window.duration_minutes,
            }
            for window in schedule.recurring_hours
        ],
        "blackoutDates": [day.isoformat() for day in schedule.blackout_dates],
    }


def decode_operating_schedule(payload: Optional[Document]) -> StudioOperatingSchedule:
    if not isinstance(payload, dict):
        return StudioOperatingSchedule()

    zone_name = _str(payload, "timeZoneIdentifier", settings.booking.default_timezone)
    tz = resolve_timezone(zone_name)

    recurring_hours = []
    raw_hours = payload.get("recurringHours")
    for item in raw_hours if isinstance(raw_hours, list) else []:
        if not isinstance(item, dict):
            continue
        weekday = coerce_int(item.get("weekday"))
        start = coerce_int(item.get("startTimeMinutes"))
        duration = coerce_int(item.get("durationMinutes"))
        if weekday is None or start is None or duration is None:
            continue
        fields: Document = {
            "weekday": weekday,
            "start_time_minutes": start,
            "duration_minutes": duration,
        }
        if isinstance(item.get("id"), str):
            fields["id"] = item["id"]
        try:
            recurring_hours.append(RecurringTimeRange(**fields))
        except ValidationError:
            logger.warning("Dropping malformed operating window: %r", item)

    blackout_dates = []
    raw_blackouts = payload.get("blackoutDates")
    for value in raw_blackouts if isinstance(raw_blackouts, list) else []:
        day = coerce_date(value, tz)
        if day is not None:
            blackout_dates.append(day)

    return StudioOperatingSchedule(
        time_zone_identifier=zone_name,
        recurring_hours=recurring_hours,
        blackout_dates=blackout_dates,
    )


# ---------------------------------------------------------------------- #
# Studio, room, profile
# ---------------------------------------------------------------------- #

def encode_studio(studio: Studio) -> Document:
    data: Document = {
        "schemaVersion": SCHEMA_VERSION,
        "ownerId": studio.owner_id,
        "name": studio.name,
        "city": studio.city,
        "address": studio.address,
        "amenities": list(studio.amenities),
        "approvedEngineerIds": list(studio.approved_engineer_ids),
        "autoApproveRequests": studio.auto_approve_requests,
    }
    _put(data, "hourlyRate", studio.hourly_rate)
    schedule = studio.operating_schedule
    if schedule.recurring_hours or schedule.blackout_dates:
        data["operatingSchedule"] = encode_operating_schedule(schedule)
    return data


def decode_studio(document_id: str, data: Document) -> Studio:
    return Studio(
        id=document_id,
        owner_id=_str(data, "ownerId"),
        name=_str(data, "name"),
        city=_str(data, "city"),
        address=_str(data, "address"),
        hourly_rate=coerce_float(data.get("hourlyRate")),
        amenities=_str_list(data, "amenities"),
        approved_engineer_ids=_str_list(data, "approvedEngineerIds"),
        auto_approve_requests=_bool(data, "autoApproveRequests", False),
        operating_schedule=decode_operating_schedule(data.get("operatingSchedule")),
    )


def encode_room(room: Room) -> Document:
    data: Document = {
        "schemaVersion": SCHEMA_VERSION,
        "name": room.name,
        "description": room.description,
        "amenities": list(room.amenities),
        "isDefault": room.is_default,
    }
    _put(data, "hourlyRate", room.hourly_rate)
    _put(data, "capacity", room.capacity)
    return data


def decode_room(studio_id: str, document_id: str, data: Document) -> Room:
    return Room(
        id=document_id,
        studio_id=studio_id,
        name=_str(data, "name", "Room"),
        description=_str(data, "description"),
        hourly_rate=coerce_float(data.get("hourlyRate")),
        capacity=coerce_int(data.get("capacity")),
        amenities=_str_list(data, "amenities"),
        is_default=_bool(data, "isDefault", False),
    )


def encode_user_profile(profile: UserProfile) -> Document:
    engineer = profile.engineer_settings
    engineer_data: Document = {
        "isPremium": engineer.is_premium,
        "instantBookEnabled": engineer.instant_book_enabled,
        "allowOtherStudios": engineer.allow_other_studios,
        "defaultSessionDurationMinutes": engineer.default_session_duration_minutes,
    }
    _put(engineer_data, "mainStudioId", engineer.main_studio_id)
    _put(engineer_data, "mainStudioSelectedAt", engineer.main_studio_selected_at)
    return {
        "schemaVersion": SCHEMA_VERSION,
        "username": profile.username,
        "displayName": profile.display_name,
        "engineerSettings": engineer_data,
    }


def decode_engineer_settings(data: Any) -> EngineerSettings:
    if not isinstance(data, dict):
        data = {}
    duration = coerce_int(data.get("defaultSessionDurationMinutes"))
    return EngineerSettings(
        is_premium=_bool(data, "isPremium", False),
        instant_book_enabled=_bool(data, "instantBookEnabled", False),
        main_studio_id=_opt_str(data, "mainStudioId"),
        allow_other_studios=_bool(data, "allowOtherStudios", False),
        main_studio_selected_at=coerce_datetime(data.get("mainStudioSelectedAt")),
        default_session_duration_minutes=(
            duration if duration is not None else settings.booking.default_session_minutes
        ),
    )


def decode_user_profile(document_id: str, data: Document) -> UserProfile:
    username = _str(data, "username")
    return UserProfile(
        id=document_id,
        username=username,
        display_name=_str(data, "displayName", username),
        engineer_settings=decode_engineer_settings(data.get("engineerSettings")),
    )


# ---------------------------------------------------------------------- #
# Availability
# ---------------------------------------------------------------------- #

def encode_availability(entry: AvailabilityEntry) -> Document:
    data: Document = {
        "schemaVersion": SCHEMA_VERSION,
        "kind": entry.kind.value,
        "ownerId": entry.owner_id,
        "durationMinutes": entry.duration_minutes,
        "createdBy": entry.created_by,
        "createdAt": entry.created_at,
        "updatedAt": entry.updated_at,
    }
    window = entry.window
    if isinstance(window, RecurringWindow):
        data["weekday"] = window.weekday
        data["startTimeMinutes"] = window.start_time_minutes
    else:
        data["startDate"] = window.start_date
        data["endDate"] = window.end_date
    _put(data, "studioId", entry.studio_id)
    _put(data, "roomId", entry.room_id)
    _put(data, "engineerId", entry.engineer_id)
    _put(data, "sourceBookingId", entry.source_booking_id)
    _put(data, "notes", entry.notes)
    return data


def _decode_window(data: Document) -> Optional[Any]:
    start_date = coerce_datetime(data.get("startDate"))
    end_date = coerce_datetime(data.get("endDate"))
    if start_date is not None and end_date is not None:
        return AbsoluteWindow(start_date=start_date, end_date=end_date)

    weekday = coerce_int(data.get("weekday"))
    start_minutes = coerce_int(data.get("startTimeMinutes"))
    if weekday is not None and start_minutes is not None:
        duration = coerce_int(data.get("durationMinutes"))
        return RecurringWindow(
            weekday=weekday,
            start_time_minutes=start_minutes,
            duration_minutes=(
                duration if duration is not None else settings.booking.fallback_duration_minutes
            ),
        )
    return None


def decode_availability(
    scope: AvailabilityScope,
    owner_id: str,
    document_id: str,
    data: Document,
) -> Optional[AvailabilityEntry]:
    """Decode an availability document, or None when it carries no usable window."""
    try:
        window = _decode_window(data)
    except ValidationError as exc:
        logger.warning("Availability %s has an invalid window: %s", document_id, exc)
        return None
    if window is None:
        logger.warning("Availability %s has neither a recurring nor an absolute window", document_id)
        return None

    try:
        kind = AvailabilityKind(data.get("kind"))
    except ValueError:
        kind = AvailabilityKind.RECURRING

    created_at = coerce_datetime(data.get("createdAt")) or utcnow()
    updated_at = coerce_datetime(data.get("updatedAt")) or created_at
    room_id = _opt_str(data, "roomId") if scope == AvailabilityScope.STUDIO else None

    return AvailabilityEntry(
        id=document_id,
        kind=kind,
        scope=scope,
        owner_id=owner_id,
        window=window,
        studio_id=_opt_str(data, "studioId"),
        room_id=room_id,
        engineer_id=_opt_str(data, "engineerId"),
        source_booking_id=_opt_str(data, "sourceBookingId"),
        created_by=_str(data, "createdBy", owner_id),
        notes=_opt_str(data, "notes"),
        created_at=created_at,
        updated_at=updated_at,
    )


# ---------------------------------------------------------------------- #
# Booking
# ---------------------------------------------------------------------- #

def encode_booking(booking: Booking, clear_unset: bool = False) -> Document:
    """
    Encode a booking document.

    With ``clear_unset`` the confirmed window and approval resolution are
    written as explicit ``None`` so a merge-update clears stale values.
    """
    approval: Document = {
        "requiresStudioApproval": booking.approval.requires_studio_approval,
        "requiresEngineerApproval": booking.approval.requires_engineer_approval,
    }
    _put(approval, "resolvedBy", booking.approval.resolved_by)
    _put(approval, "resolvedAt", booking.approval.resolved_at)

    data: Document = {
        "schemaVersion": SCHEMA_VERSION,
        "artistId": booking.artist_id,
        "studioId": booking.studio_id,
        "roomId": booking.room_id,
        "engineerId": booking.engineer_id,
        "status": booking.status.value,
        "requestedStart": booking.requested_start,
        "requestedEnd": booking.requested_end,
        "durationMinutes": booking.duration_minutes,
        "instantBook": booking.instant_book,
        "approval": approval,
        "notes": booking.notes,
        "createdAt": booking.created_at,
        "updatedAt": booking.updated_at,
    }
    _put(data, "confirmedStart", booking.confirmed_start)
    _put(data, "confirmedEnd", booking.confirmed_end)
    _put(data, "conversationId", booking.conversation_id)
    if booking.pricing is not None:
        data["pricing"] = {
            "hourlyRate": booking.pricing.hourly_rate,
            "total": booking.pricing.total,
            "currency": booking.pricing.currency,
        }

    if clear_unset:
        for key in ("confirmedStart", "confirmedEnd"):
            data.setdefault(key, None)
        for key in ("resolvedBy", "resolvedAt"):
            approval.setdefault(key, None)
    return data


def decode_booking(document_id: str, data: Document) -> Booking:
    try:
        status = BookingStatus(data.get("status"))
    except ValueError:
        status = BookingStatus.PENDING

    approval_data = data.get("approval")
    if not isinstance(approval_data, dict):
        approval_data = {}
    approval = BookingApprovalState(
        requires_studio_approval=_bool(approval_data, "requiresStudioApproval", True),
        requires_engineer_approval=_bool(approval_data, "requiresEngineerApproval", True),
        resolved_by=_opt_str(approval_data, "resolvedBy"),
        resolved_at=coerce_datetime(approval_data.get("resolvedAt")),
    )

    pricing = None
    pricing_data = data.get("pricing")
    if isinstance(pricing_data, dict):
        pricing = BookingPricing(
            hourly_rate=coerce_float(pricing_data.get("hourlyRate")) or 0.0,
            total=coerce_float(pricing_data.get("total")) or 0.0,
            currency=_str(pricing_data, "currency", "USD"),
        )

    now = utcnow()
    duration = coerce_int(data.get("durationMinutes"))

    return Booking(
        id=document_id,
        artist_id=_str(data, "artistId"),
        studio_id=_str(data, "studioId"),
        room_id=_str(data, "roomId"),
        engineer_id=_str(data, "engineerId"),
        status=status,
        requested_start=coerce_datetime(data.get("requestedStart")) or now,
        requested_end=coerce_datetime(data.get("requestedEnd")) or now,
        confirmed_start=coerce_datetime(data.get("confirmedStart")),
        confirmed_end=coerce_datetime(data.get("confirmedEnd")),
        duration_minutes=(
            duration if duration is not None else settings.booking.fallback_duration_minutes
        ),
        pricing=pricing,
        instant_book=_bool(data, "instantBook", False),
        approval=approval,
        conversation_id=_opt_str(data, "conversationId"),
        notes=_str(data, "notes"),
        created_at=coerce_datetime(data.get("createdAt")) or now,
        updated_at=coerce_datetime(data.get("updatedAt")) or now,
    )
