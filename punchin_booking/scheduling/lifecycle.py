"""
Finite state machine for booking status changes and two-party approval.

Every status change must be an explicitly listed transition. Completed and
cancelled bookings are terminal. Rescheduled bookings stay live and are
re-validated like pending ones. Each transition returns the updated booking
together with a timeline event for the audit trail; the input booking is
never mutated.

Approval is layered: the studio and the engineer each clear only their own
flag, and a booking is confirmed once neither flag is left. Cancelling or
declining resolves the approval and drops the confirmed window.

Usage:
    lifecycle = BookingLifecycle()
    updated, event = lifecycle.approve(booking, "owner-1", BookingParticipantRole.STUDIO)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from punchin_booking.errors import InvalidTransitionError
from punchin_booking.schemas.booking_schema import (
    Booking,
    BookingApprovalState,
    BookingParticipantRole,
    BookingStatus,
    BookingTimelineEvent,
    TimelineEventKind,
)
from punchin_booking.utils import ensure_aware, utcnow

logger = logging.getLogger(__name__)

AWAITING_APPROVAL = frozenset({BookingStatus.PENDING, BookingStatus.RESCHEDULED})

_APPROVAL_FLAGS = {
    BookingParticipantRole.STUDIO: "requires_studio_approval",
    BookingParticipantRole.ENGINEER: "requires_engineer_approval",
}


@dataclass(frozen=True)
class StatusTransition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus


class BookingLifecycle:
    """Validates and applies booking status transitions."""

    TRANSITIONS: list[StatusTransition] = [
        # --- Awaiting approval ---
        StatusTransition(BookingStatus.PENDING, BookingStatus.CONFIRMED),
        StatusTransition(BookingStatus.PENDING, BookingStatus.CANCELLED),
        StatusTransition(BookingStatus.PENDING, BookingStatus.RESCHEDULED),

        # --- Confirmed ---
        StatusTransition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
        StatusTransition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
        StatusTransition(BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED),

        # --- Rescheduled behaves like pending ---
        StatusTransition(BookingStatus.RESCHEDULED, BookingStatus.CONFIRMED),
        StatusTransition(BookingStatus.RESCHEDULED, BookingStatus.CANCELLED),
        StatusTransition(BookingStatus.RESCHEDULED, BookingStatus.RESCHEDULED),
    ]

    def valid_targets(self, status: BookingStatus) -> list[BookingStatus]:
        """Return all statuses reachable from ``status``."""
        return [t.to_status for t in self.TRANSITIONS if t.from_status == status]

    def can_transition(self, status: BookingStatus, target: BookingStatus) -> bool:
        return target in self.valid_targets(status)

    def _ensure_allowed(self, booking: Booking, target: BookingStatus) -> None:
        if not self.can_transition(booking.status, target):
            valid = [s.value for s in self.valid_targets(booking.status)]
            raise InvalidTransitionError(
                f"No valid transition for booking {booking.id} from "
                f"'{booking.status.value}' to '{target.value}'. Valid targets: {valid}"
            )

    @staticmethod
    def _approval_flag(booking: Booking, role: BookingParticipantRole) -> str:
        if booking.status not in AWAITING_APPROVAL:
            raise InvalidTransitionError(
                f"Booking {booking.id} is '{booking.status.value}' and not awaiting approval"
            )
        flag = _APPROVAL_FLAGS.get(role)
        if flag is None:
            raise InvalidTransitionError(
                f"Only the studio or the engineer can resolve booking {booking.id}, not '{role.value}'"
            )
        return flag

    @staticmethod
    def _resolved(approval: BookingApprovalState, actor_id: str, now: datetime) -> BookingApprovalState:
        return approval.model_copy(update={
            "requires_studio_approval": False,
            "requires_engineer_approval": False,
            "resolved_by": actor_id,
            "resolved_at": now,
        })

    def transition(
        self,
        booking: Booking,
        new_status: BookingStatus,
        actor_id: str,
        now: Optional[datetime] = None,
    ) -> tuple[Booking, BookingTimelineEvent]:
        """
        Move a booking to ``new_status``.

        Cancelling also resolves the approval and clears the confirmed window.

        Returns:
            The updated booking and the status-change timeline event.

        Raises:
            InvalidTransitionError: If the transition is not listed.
        """
        self._ensure_allowed(booking, new_status)
        now = now or utcnow()
        changes = {"status": new_status, "updated_at": now}
        if new_status == BookingStatus.CANCELLED:
            changes.update({
                "confirmed_start": None,
                "confirmed_end": None,
                "approval": self._resolved(booking.approval, actor_id, now),
            })
        updated = booking.model_copy(update=changes)
        event = BookingTimelineEvent(
            kind=TimelineEventKind.STATUS_CHANGE,
            message=f"Status changed to {new_status.value.capitalize()}",
            created_by=actor_id,
            created_at=now,
        )
        logger.info(
            "Booking %s: %s -> %s (by %s)",
            booking.id, booking.status.value, new_status.value, actor_id,
        )
        return updated, event

    def approve(
        self,
        booking: Booking,
        actor_id: str,
        role: BookingParticipantRole,
        now: Optional[datetime] = None,
    ) -> tuple[Booking, BookingTimelineEvent]:
        """
        Clear the approving party's flag on a pending or rescheduled booking.

        The booking is confirmed on its requested window only once neither
        the studio nor the engineer still has to approve.

        Raises:
            InvalidTransitionError: If the booking is not awaiting approval or
                ``role`` is not the studio or the engineer.
        """
        flag = self._approval_flag(booking, role)
        now = now or utcnow()
        approval = booking.approval.model_copy(update={
            flag: False,
            "resolved_by": actor_id,
            "resolved_at": now,
        })

        if not approval.is_fully_approved:
            updated = booking.model_copy(update={"approval": approval, "updated_at": now})
            event = BookingTimelineEvent(
                kind=TimelineEventKind.NOTE,
                message=f"Approved by {role.value}",
                created_by=actor_id,
                created_at=now,
            )
            logger.info("Booking %s approved by %s %s", booking.id, role.value, actor_id)
            return updated, event

        updated, event = self.transition(booking, BookingStatus.CONFIRMED, actor_id, now)
        updated = updated.model_copy(update={
            "confirmed_start": updated.requested_start,
            "confirmed_end": updated.requested_end,
            "approval": approval,
        })
        return updated, event

    def decline(
        self,
        booking: Booking,
        actor_id: str,
        role: BookingParticipantRole,
        now: Optional[datetime] = None,
    ) -> tuple[Booking, BookingTimelineEvent]:
        """Cancel a booking the studio or the engineer will not approve."""
        self._approval_flag(booking, role)
        updated, event = self.transition(booking, BookingStatus.CANCELLED, actor_id, now)
        logger.info("Booking %s declined by %s %s", booking.id, role.value, actor_id)
        return updated, event

    def reschedule(
        self,
        booking: Booking,
        new_start: datetime,
        duration_minutes: int,
        actor_id: str,
        role: BookingParticipantRole = BookingParticipantRole.ARTIST,
        now: Optional[datetime] = None,
    ) -> tuple[Booking, BookingTimelineEvent]:
        """
        Move the requested window and put the booking back up for approval.

        The party that rescheduled has implicitly approved the new window:
        a studio reschedule waits on the engineer, an engineer reschedule
        waits on the studio if it still had to approve, and an artist
        reschedule waits on the engineer plus any open studio approval.
        When nobody is left to approve, the new window is confirmed directly.
        """
        self._ensure_allowed(booking, BookingStatus.RESCHEDULED)
        now = now or utcnow()
        new_start = ensure_aware(new_start)
        new_end = new_start + timedelta(minutes=duration_minutes)

        flags = {"resolved_by": None, "resolved_at": None}
        if role == BookingParticipantRole.STUDIO:
            flags.update(requires_studio_approval=False, requires_engineer_approval=True)
        elif role == BookingParticipantRole.ENGINEER:
            flags.update(requires_engineer_approval=False)
        else:
            flags.update(requires_engineer_approval=True)
        approval = booking.approval.model_copy(update=flags)

        changes = {
            "status": BookingStatus.RESCHEDULED,
            "requested_start": new_start,
            "requested_end": new_end,
            "confirmed_start": None,
            "confirmed_end": None,
            "duration_minutes": duration_minutes,
            "approval": approval,
            "updated_at": now,
        }
        if approval.is_fully_approved:
            changes.update({
                "status": BookingStatus.CONFIRMED,
                "confirmed_start": new_start,
                "confirmed_end": new_end,
            })
        updated = booking.model_copy(update=changes)
        event = BookingTimelineEvent(
            kind=TimelineEventKind.RESCHEDULE,
            message=f"Rescheduled to {new_start.isoformat()}",
            created_by=actor_id,
            created_at=now,
        )
        logger.info(
            "Booking %s rescheduled to %s by %s %s (status %s)",
            booking.id, new_start, role.value, actor_id, updated.status.value,
        )
        return updated, event

    def is_terminal(self, booking: Booking) -> bool:
        return booking.status.is_terminal
