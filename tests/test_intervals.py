"""Tests for interval arithmetic and weekday normalization."""

import random
from datetime import date, datetime, timedelta

import pytest

from punchin_booking.schemas.availability_schema import AvailabilityScope
from punchin_booking.schemas.booking_schema import BookingStatus
from punchin_booking.scheduling.intervals import (
    Interval,
    base_windows,
    clamped_interval,
    day_bounds,
    entry_interval,
    merge_overlapping,
    minutes_from_midnight,
    normalize_weekday,
    recurring_interval,
    resolve_timezone,
    subtract,
    weekday_of,
)
from tests.conftest import (
    MONDAY,
    MONDAY_WD,
    NEW_YORK,
    at,
    make_block,
    make_booking,
    make_recurring_entry,
    make_schedule,
)


def iv(start_hour: float, end_hour: float) -> Interval:
    base = at(MONDAY, 0)
    return Interval(base + timedelta(hours=start_hour), base + timedelta(hours=end_hour))


class TestWeekdayNormalization:
    def test_maps_all_seven_days_to_distinct_values(self):
        values = {normalize_weekday(d) for d in range(7)}
        assert values == set(range(7))

    def test_sunday_is_zero(self):
        # Python's weekday(): Sunday == 6
        assert normalize_weekday(6) == 0

    def test_monday_is_one(self):
        assert normalize_weekday(0) == 1

    def test_weekday_of_uses_local_time(self):
        # 02:00 UTC Tuesday is still Monday evening in New York
        moment = datetime(2024, 7, 2, 2, 0, tzinfo=resolve_timezone("UTC"))
        assert weekday_of(moment, NEW_YORK) == MONDAY_WD

    def test_weekday_of_real_sunday(self):
        assert weekday_of(at(date(2024, 6, 30), 12), NEW_YORK) == 0


class TestTimezoneResolution:
    def test_known_zone(self):
        assert str(resolve_timezone("America/New_York")) == "America/New_York"

    def test_unknown_zone_falls_back_to_default(self):
        assert str(resolve_timezone("Mars/Olympus_Mons")) == "UTC"

    def test_minutes_from_midnight(self):
        assert minutes_from_midnight(at(MONDAY, 14, 30), NEW_YORK) == 14 * 60 + 30


class TestBaseWindows:
    def test_empty_schedule_is_whole_day(self):
        start, end = day_bounds(MONDAY, NEW_YORK)
        windows = base_windows(make_schedule([]), start, end, NEW_YORK)
        assert windows == [Interval(start, end)]

    def test_windows_for_matching_weekday_sorted(self):
        schedule = make_schedule([(MONDAY_WD, 18, 22), (MONDAY_WD, 9, 12), (2, 9, 17)])
        start, end = day_bounds(MONDAY, NEW_YORK)
        windows = base_windows(schedule, start, end, NEW_YORK)
        assert windows == [iv(9, 12), iv(18, 22)]

    def test_no_windows_on_other_weekday(self):
        schedule = make_schedule([(2, 9, 17)])
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert base_windows(schedule, start, end, NEW_YORK) == []

    def test_window_clipped_to_day_end(self):
        schedule = make_schedule([(MONDAY_WD, 20, 26)])
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert base_windows(schedule, start, end, NEW_YORK) == [Interval(at(MONDAY, 20), end)]


class TestClamping:
    def test_booking_inside_day_unchanged(self):
        booking = make_booking(at(MONDAY, 14), 60)
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert clamped_interval(booking, start, end) == iv(14, 15)

    def test_booking_spanning_midnight_is_clamped(self):
        booking = make_booking(at(MONDAY, 23), 120)
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert clamped_interval(booking, start, end) == Interval(at(MONDAY, 23), end)

    def test_booking_on_other_day_is_none(self):
        booking = make_booking(at(date(2024, 7, 2), 10), 60)
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert clamped_interval(booking, start, end) is None

    def test_clamping_is_idempotent(self):
        booking = make_booking(at(MONDAY, 22), 180)
        start, end = day_bounds(MONDAY, NEW_YORK)
        first = clamped_interval(booking, start, end)
        again = clamped_interval(
            booking.model_copy(update={"confirmed_start": first.start, "confirmed_end": first.end}),
            start,
            end,
        )
        assert first == again == clamped_interval(booking, start, end)

    def test_pending_booking_uses_requested_window(self):
        booking = make_booking(at(MONDAY, 10), 60, status=BookingStatus.PENDING, confirmed=False)
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert clamped_interval(booking, start, end) == iv(10, 11)

    def test_absolute_entry_interval(self):
        entry = make_block(at(MONDAY, 8), 120)
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert entry_interval(entry, start, end) == iv(8, 10)

    def test_absolute_helper_ignores_recurring_entry(self):
        entry = make_recurring_entry(MONDAY_WD, 10)
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert entry_interval(entry, start, end) is None

    def test_recurring_entry_interval_on_matching_day(self):
        entry = make_recurring_entry(MONDAY_WD, 10, hours=2, scope=AvailabilityScope.STUDIO,
                                     owner_id="studio-1")
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert recurring_interval(entry, start, end, NEW_YORK) == iv(10, 12)

    def test_recurring_entry_on_other_day_is_none(self):
        entry = make_recurring_entry(3, 10)
        start, end = day_bounds(MONDAY, NEW_YORK)
        assert recurring_interval(entry, start, end, NEW_YORK) is None


class TestSubtract:
    def test_non_overlapping_passes_through(self):
        assert subtract([iv(9, 12)], iv(13, 14)) == [iv(9, 12)]

    def test_split_into_two(self):
        assert subtract([iv(9, 17)], iv(12, 13)) == [iv(9, 12), iv(13, 17)]

    def test_remove_prefix(self):
        assert subtract([iv(9, 17)], iv(8, 10)) == [iv(10, 17)]

    def test_remove_whole(self):
        assert subtract([iv(9, 17)], iv(9, 17)) == []

    def test_touching_removal_keeps_interval(self):
        assert subtract([iv(9, 12)], iv(12, 13)) == [iv(9, 12)]

    def test_empty_removal_is_noop(self):
        assert subtract([iv(9, 12)], iv(10, 10)) == [iv(9, 12)]

    @pytest.mark.parametrize("seed", range(20))
    def test_partition_property(self, seed):
        rng = random.Random(seed)
        intervals = merge_overlapping(
            iv(s, s + rng.randint(1, 4)) for s in (rng.randint(0, 18) for _ in range(4))
        )
        removal_start = rng.randint(0, 20)
        removal = iv(removal_start, removal_start + rng.randint(1, 5))

        pieces = subtract(intervals, removal)

        assert all(p.start < p.end for p in pieces)
        assert all(not p.overlaps(removal) for p in pieces)
        total_before = sum((i.duration for i in intervals), timedelta())
        removed = sum(
            (max(timedelta(), min(i.end, removal.end) - max(i.start, removal.start)) for i in intervals),
            timedelta(),
        )
        total_after = sum((p.duration for p in pieces), timedelta())
        assert total_after + removed == total_before


class TestMergeOverlapping:
    def test_empty(self):
        assert merge_overlapping([]) == []

    def test_touching_intervals_merge(self):
        assert merge_overlapping([iv(9, 10), iv(10, 11)]) == [iv(9, 11)]

    def test_disjoint_stay_separate(self):
        assert merge_overlapping([iv(13, 14), iv(9, 10)]) == [iv(9, 10), iv(13, 14)]

    def test_nested_intervals(self):
        assert merge_overlapping([iv(9, 17), iv(10, 11)]) == [iv(9, 17)]

    @pytest.mark.parametrize("seed", range(10))
    def test_idempotent_and_order_independent(self, seed):
        rng = random.Random(seed)
        items = [iv(s, s + rng.randint(1, 3)) for s in (rng.randint(0, 20) for _ in range(8))]
        merged = merge_overlapping(items)
        shuffled = list(items)
        rng.shuffle(shuffled)
        assert merge_overlapping(merged) == merged
        assert merge_overlapping(shuffled) == merged
