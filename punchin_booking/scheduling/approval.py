"""
Instant-booking eligibility.

A booking confirms instantly only when three conditions align: the engineer
can instant-book (premium with instant booking switched on), the engineer's
studio rule admits this studio (other studios allowed, or this is their
main studio), and the studio auto-approves requests. Whichever party's
condition fails has to approve manually.
"""

import logging
from datetime import datetime
from typing import Optional

from punchin_booking.schemas.booking_schema import BookingApprovalState
from punchin_booking.schemas.studio_schema import Studio, UserProfile

logger = logging.getLogger(__name__)


def engineer_allows_studio(studio: Studio, engineer: UserProfile) -> bool:
    settings = engineer.engineer_settings
    main_studio_matches = (
        settings.main_studio_id is not None and settings.main_studio_id == studio.id
    )
    return settings.allow_other_studios or main_studio_matches


def resolve_approval(
    studio: Studio,
    engineer: UserProfile,
    start_date: Optional[datetime] = None,
) -> BookingApprovalState:
    """Compute which approvals a booking at ``studio`` with ``engineer`` needs.

    ``start_date`` is accepted for parity with the booking pipeline; the
    current rules do not depend on it.
    """
    engineer_can_instant = engineer.engineer_settings.can_instant_book
    allows_studio = engineer_allows_studio(studio, engineer)
    can_instant_book = engineer_can_instant and allows_studio and studio.auto_approve_requests

    approval = BookingApprovalState(
        requires_studio_approval=not can_instant_book,
        requires_engineer_approval=not engineer_can_instant or not allows_studio,
    )
    logger.debug(
        "Approval for studio=%s engineer=%s: studio=%s engineer=%s",
        studio.id, engineer.id,
        approval.requires_studio_approval, approval.requires_engineer_approval,
    )
    return approval
