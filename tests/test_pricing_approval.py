"""Tests for session pricing and instant-booking approval rules."""

import itertools

import pytest

from punchin_booking.scheduling.approval import engineer_allows_studio, resolve_approval
from punchin_booking.scheduling.pricing import effective_hourly_rate, resolve_pricing
from tests.conftest import make_engineer, make_room, make_studio


class TestPricing:
    def test_studio_rate_when_room_has_none(self):
        pricing = resolve_pricing(make_studio(hourly_rate=60.0), make_room(), 90)
        assert pricing.hourly_rate == 60.0
        assert pricing.total == pytest.approx(90.0)
        assert pricing.currency == "USD"

    def test_room_rate_overrides_studio(self):
        studio = make_studio(hourly_rate=60.0)
        room = make_room(hourly_rate=80.0)
        assert effective_hourly_rate(studio, room) == 80.0
        assert resolve_pricing(studio, room, 30).total == pytest.approx(40.0)

    def test_no_rate_means_unpriced(self):
        assert resolve_pricing(make_studio(hourly_rate=None), make_room(), 120) is None

    def test_total_rounded_to_cents(self):
        pricing = resolve_pricing(make_studio(hourly_rate=40.0), make_room(), 50)
        assert pricing.total == 33.33

    def test_total_rounded_to_requested_precision(self):
        pricing = resolve_pricing(make_studio(hourly_rate=40.0), make_room(), 50, precision=0)
        assert pricing.total == 33.0

    def test_explicit_currency(self):
        pricing = resolve_pricing(make_studio(), make_room(), 60, currency="EUR")
        assert pricing.currency == "EUR"


class TestEngineerStudioRule:
    def test_other_studios_allowed(self):
        assert engineer_allows_studio(make_studio(), make_engineer(allow_other_studios=True))

    def test_main_studio_matches(self):
        engineer = make_engineer(allow_other_studios=False, main_studio_id="studio-1")
        assert engineer_allows_studio(make_studio(), engineer)

    def test_main_studio_elsewhere(self):
        engineer = make_engineer(allow_other_studios=False, main_studio_id="studio-9")
        assert not engineer_allows_studio(make_studio(), engineer)

    def test_no_main_studio_and_no_others(self):
        engineer = make_engineer(allow_other_studios=False)
        assert not engineer_allows_studio(make_studio(), engineer)


class TestApproval:
    @pytest.mark.parametrize(
        "instant_enabled,allows_studio,auto_approve",
        list(itertools.product([True, False], repeat=3)),
    )
    def test_truth_table(self, instant_enabled, allows_studio, auto_approve):
        studio = make_studio(auto_approve=auto_approve)
        engineer = make_engineer(
            premium=True,
            instant=instant_enabled,
            allow_other_studios=allows_studio,
        )
        approval = resolve_approval(studio, engineer)

        assert approval.is_fully_approved == (instant_enabled and allows_studio and auto_approve)
        assert approval.requires_engineer_approval == (not instant_enabled or not allows_studio)
        assert approval.requires_studio_approval == (
            not (instant_enabled and allows_studio and auto_approve)
        )

    def test_non_premium_engineer_never_instant(self):
        approval = resolve_approval(make_studio(), make_engineer(premium=False, instant=True))
        assert approval.requires_engineer_approval
        assert approval.requires_studio_approval
        assert not approval.is_fully_approved

    def test_main_studio_admits_instant_booking(self):
        engineer = make_engineer(allow_other_studios=False, main_studio_id="studio-1")
        assert resolve_approval(make_studio(), engineer).is_fully_approved
