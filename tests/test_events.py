"""Tests for the per-session change event source."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from slotsync.core.events import BookingChanged, EventSource, SourceSynced, SyncCompleted


def _booking_event(booking_id: str = "b-1") -> BookingChanged:
    return BookingChanged(booking_id=booking_id, channel="viator", status="confirmed", created=True)


class TestSubscription:
    def test_listener_receives_events(self) -> None:
        received = []
        events = EventSource()
        events.subscribe(received.append)

        events.emit(_booking_event())

        assert received == [_booking_event()]

    def test_type_filter(self) -> None:
        received = []
        events = EventSource()
        events.subscribe(received.append, SourceSynced)

        events.emit(_booking_event())
        events.emit(SourceSynced(source_id="s-1", succeeded=True, imported_count=3))

        assert [type(e) for e in received] == [SourceSynced]

    def test_unsubscribe_stops_delivery(self) -> None:
        received = []
        events = EventSource()
        unsubscribe = events.subscribe(received.append)

        events.emit(_booking_event("first"))
        unsubscribe()
        events.emit(_booking_event("second"))

        assert [e.booking_id for e in received] == ["first"]

    def test_late_listener_sees_only_later_events(self) -> None:
        received = []
        events = EventSource()
        events.emit(_booking_event("before"))

        events.subscribe(received.append)
        events.emit(_booking_event("after"))

        assert [e.booking_id for e in received] == ["after"]


class TestIsolation:
    def test_failing_listener_does_not_block_others(self) -> None:
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        events = EventSource()
        events.subscribe(broken)
        events.subscribe(received.append)

        events.emit(_booking_event())

        assert len(received) == 1

    def test_sessions_do_not_share_listeners(self) -> None:
        received = []
        first = EventSource()
        second = EventSource()
        first.subscribe(received.append)

        second.emit(_booking_event())

        assert received == []


class TestClose:
    def test_closed_source_drops_events(self) -> None:
        received = []
        events = EventSource()
        events.subscribe(received.append)
        events.close()

        events.emit(SyncCompleted(started_at=datetime.now(timezone.utc), finished_at=datetime.now(timezone.utc)))

        assert received == []
        assert events.closed

    def test_subscribe_after_close_fails(self) -> None:
        with EventSource() as events:
            pass

        with pytest.raises(RuntimeError):
            events.subscribe(print)
