"""Tests for the availability merger: overlap rules, origins and purity."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from slotsync.models import Booking
from slotsync.services.availability.availability_merger import AvailabilityMerger
from slotsync.services.availability.intervals import (
    CROSS_ORIGIN,
    LEDGER_ORIGIN,
    SAME_ORIGIN,
    BusyInterval,
    booking_interval,
)

UTC = timezone.utc
DETECTED = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _booking(booking_id: str, start: time, status: str = "confirmed", **kwargs) -> Booking:
    return Booking(
        id=booking_id,
        booking_reference=f"REF-{booking_id}",
        channel="direct",
        visit_date=date(2026, 3, 14),
        visit_time=start,
        status=status,
        number_of_people=2,
        **kwargs,
    )


def _interval(source_id: str, uid: str, start_hour: int, end_hour: int) -> BusyInterval:
    return BusyInterval(
        source_id=source_id,
        external_uid=uid,
        start=datetime(2026, 3, 14, start_hour, 0, tzinfo=UTC),
        end=datetime(2026, 3, 14, end_hour, 0, tzinfo=UTC),
    )


class TestOverlapRules:
    """Half-open overlap between ledger bookings and external intervals."""

    def test_overlapping_booking_and_interval_conflict(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=120)
        result = merger.merge([_booking("b1", time(9, 0))], [_interval("src-1", "x1", 10, 12)], DETECTED)

        assert len(result.conflicts) == 1
        conflict = result.conflicts[0]
        assert conflict.kind == CROSS_ORIGIN
        assert {conflict.interval_a.origin, conflict.interval_b.origin} == {LEDGER_ORIGIN, "src-1"}
        assert result.same_origin_overlaps == []

    def test_back_to_back_ranges_do_not_conflict(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=120)
        # booking 09:00-11:00, external 11:00-12:00
        result = merger.merge([_booking("b1", time(9, 0))], [_interval("src-1", "x1", 11, 12)], DETECTED)

        assert result.conflicts == []
        assert len(result.occupied) == 2

    def test_disjoint_ranges_do_not_conflict(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=60)
        result = merger.merge([_booking("b1", time(9, 0))], [_interval("src-1", "x1", 14, 15)], DETECTED)

        assert result.conflicts == []

    def test_contained_interval_conflicts(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=240)
        result = merger.merge([_booking("b1", time(8, 0))], [_interval("src-1", "x1", 9, 10)], DETECTED)

        assert len(result.conflicts) == 1

    def test_two_external_sources_conflict_with_each_other(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=60)
        result = merger.merge([], [_interval("src-1", "a", 9, 11), _interval("src-2", "b", 10, 12)], DETECTED)

        assert len(result.conflicts) == 1
        assert result.conflicts[0].kind == CROSS_ORIGIN


class TestOrigins:
    """Same-origin overlaps are reported apart from conflicts."""

    def test_two_ledger_bookings_are_same_origin_overlap(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=120)
        result = merger.merge([_booking("b1", time(9, 0)), _booking("b2", time(10, 0))], [], DETECTED)

        assert result.conflicts == []
        assert len(result.same_origin_overlaps) == 1
        assert result.same_origin_overlaps[0].kind == SAME_ORIGIN

    def test_overlaps_within_one_source_are_same_origin(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=60)
        result = merger.merge([], [_interval("src-1", "a", 9, 11), _interval("src-1", "b", 10, 12)], DETECTED)

        assert result.conflicts == []
        assert len(result.same_origin_overlaps) == 1

    def test_non_occupying_bookings_are_ignored(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=120)
        bookings = [
            _booking("p", time(9, 0), status="pending"),
            _booking("c", time(9, 0), status="cancelled"),
            _booking("d", time(9, 0), status="completed"),
        ]
        result = merger.merge(bookings, [_interval("src-1", "x1", 9, 10)], DETECTED)

        assert result.conflicts == []
        assert [r.origin for r in result.occupied] == ["src-1"]

    def test_in_progress_booking_occupies(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=120)
        result = merger.merge(
            [_booking("b1", time(9, 0), status="in_progress")],
            [_interval("src-1", "x1", 9, 10)],
            DETECTED,
        )

        assert len(result.conflicts) == 1


class TestPurity:
    """Same inputs always give the same answer."""

    def test_merge_is_deterministic_regardless_of_input_order(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=120)
        bookings = [_booking("b1", time(9, 0)), _booking("b2", time(13, 0))]
        intervals = [_interval("src-1", "x1", 10, 11), _interval("src-2", "y1", 13, 14)]

        first = merger.merge(bookings, intervals, DETECTED)
        second = merger.merge(list(reversed(bookings)), list(reversed(intervals)), DETECTED + timedelta(hours=1))

        assert first.conflicts == second.conflicts
        assert first.occupied == second.occupied
        assert first.conflict_keys() == second.conflict_keys()

    def test_occupied_ranges_are_sorted_by_start(self) -> None:
        merger = AvailabilityMerger(default_duration_minutes=60)
        result = merger.merge(
            [_booking("b1", time(15, 0))],
            [_interval("src-1", "x1", 8, 9), _interval("src-2", "y1", 11, 12)],
            DETECTED,
        )

        starts = [r.start for r in result.occupied]
        assert starts == sorted(starts)


class TestBookingInterval:
    """How long a ledger booking occupies its slot."""

    def test_default_duration_applies(self) -> None:
        start, end = booking_interval(_booking("b1", time(9, 0)), 120, UTC)
        assert end - start == timedelta(minutes=120)

    def test_custom_duration_wins_over_default(self) -> None:
        start, end = booking_interval(_booking("b1", time(9, 0), duration_minutes=45), 120, UTC)
        assert end - start == timedelta(minutes=45)

    def test_check_out_time_wins_over_duration(self) -> None:
        booking = _booking(
            "b1",
            time(9, 0),
            duration_minutes=45,
            check_out_time=datetime(2026, 3, 14, 13, 30, tzinfo=UTC),
        )
        start, end = booking_interval(booking, 120, UTC)
        assert end == datetime(2026, 3, 14, 13, 30, tzinfo=UTC)

    def test_check_out_before_start_is_ignored(self) -> None:
        booking = _booking(
            "b1",
            time(9, 0),
            check_out_time=datetime(2026, 3, 14, 8, 0, tzinfo=UTC),
        )
        start, end = booking_interval(booking, 90, UTC)
        assert end - start == timedelta(minutes=90)
