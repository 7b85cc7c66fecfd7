"""Tests for the sync orchestrator: isolation, idempotency and single-flight."""

from __future__ import annotations

import asyncio
from datetime import datetime, time, timezone

import httpx
import pytest

from helpers import ical_document, vevent
from slotsync.core.events import ConflictDetected, EventSource, SourceSynced, SyncCompleted
from slotsync.core.exceptions import SyncAlreadyRunning
from slotsync.services.calendar.ical_import_service import ICalImportService, ImportSuccess
from slotsync.services.sync.sync_lock import InProcessSyncLock
from slotsync.services.sync.sync_orchestrator import SyncOrchestrator

FEEDS = {
    "https://feeds.example.com/viator.ics": ical_document(
        vevent("v-1", "20260314T100000Z", "20260314T120000Z", summary="Viator group"),
    ),
    "https://feeds.example.com/airbnb.ics": ical_document(
        vevent("a-1", "20260315T080000Z", "20260315T090000Z"),
        vevent("a-2", "20260316T080000Z", "20260316T090000Z"),
    ),
}


def _routing_handler(request: httpx.Request) -> httpx.Response:
    body = FEEDS.get(str(request.url))
    if body is None:
        return httpx.Response(500, text="upstream exploded")
    return httpx.Response(200, text=body)


def _importer() -> ICalImportService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(_routing_handler))
    return ICalImportService(http_client=client, timezone_name="UTC", default_event_minutes=60)


def _orchestrator(db, importer=None, **kwargs) -> SyncOrchestrator:
    kwargs.setdefault("lock", InProcessSyncLock())
    return SyncOrchestrator(db, importer=importer or _importer(), **kwargs)


class _HangingImporter:
    """Delegates to a real importer except for one URL, which never answers."""

    def __init__(self, hang_url: str):
        self.hang_url = hang_url
        self.inner = _importer()

    async def fetch_busy_intervals(self, source_id, feed_url):
        if feed_url == self.hang_url:
            await asyncio.sleep(3600)
        return await self.inner.fetch_busy_intervals(source_id, feed_url)


class _CrashingImporter:
    async def fetch_busy_intervals(self, source_id, feed_url):
        if "boom" in feed_url:
            raise RuntimeError("parser bug")
        return ImportSuccess([])


class TestPartialFailure:
    """One bad source never takes down the run."""

    @pytest.mark.asyncio
    async def test_failing_source_is_isolated(self, db, make_source) -> None:
        viator = make_source("Viator", "https://feeds.example.com/viator.ics")
        broken = make_source("Broken", "https://feeds.example.com/broken.ics")
        airbnb = make_source("Airbnb", "https://feeds.example.com/airbnb.ics")

        run = await _orchestrator(db).run_sync()

        assert [r.source_id for r in run.results] == [viator.id, broken.id, airbnb.id]
        by_id = {r.source_id: r for r in run.results}
        assert by_id[viator.id].succeeded and by_id[viator.id].imported_count == 1
        assert by_id[airbnb.id].succeeded and by_id[airbnb.id].imported_count == 2
        assert not by_id[broken.id].succeeded
        assert by_id[broken.id].error == "HTTP 500 from calendar feed"
        assert run.failed_sources == [broken.id]
        assert len(run.intervals) == 3

    @pytest.mark.asyncio
    async def test_last_synced_at_only_moves_on_success(self, db, make_source) -> None:
        ok = make_source("Viator", "https://feeds.example.com/viator.ics")
        broken = make_source("Broken", "https://feeds.example.com/broken.ics")
        previous = datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc)
        broken.last_synced_at = previous
        db.commit()

        await _orchestrator(db).run_sync()

        db.refresh(ok)
        db.refresh(broken)
        assert ok.last_synced_at is not None
        assert ok.last_sync_status == "success"
        assert broken.last_synced_at.replace(tzinfo=timezone.utc) == previous
        assert broken.last_sync_status == "failed"
        assert "HTTP 500" in broken.last_sync_error

    @pytest.mark.asyncio
    async def test_hanging_source_times_out_alone(self, db, make_source) -> None:
        make_source("Viator", "https://feeds.example.com/viator.ics")
        stuck = make_source("Stuck", "https://feeds.example.com/stuck.ics")

        orchestrator = _orchestrator(
            db,
            importer=_HangingImporter("https://feeds.example.com/stuck.ics"),
            fetch_timeout=0.05,
        )
        run = await orchestrator.run_sync()

        by_id = {r.source_id: r for r in run.results}
        assert not by_id[stuck.id].succeeded
        assert by_id[stuck.id].error.startswith("Import exceeded")
        assert sum(1 for r in run.results if r.succeeded) == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failed_result(self, db, make_source) -> None:
        make_source("Fine", "https://feeds.example.com/fine.ics")
        boom = make_source("Boom", "https://feeds.example.com/boom.ics")

        run = await _orchestrator(db, importer=_CrashingImporter()).run_sync()

        by_id = {r.source_id: r for r in run.results}
        assert by_id[boom.id].error == "Unexpected error: parser bug"
        assert len([r for r in run.results if r.succeeded]) == 1

    @pytest.mark.asyncio
    async def test_disabled_sources_are_skipped(self, db, make_source) -> None:
        make_source("Viator", "https://feeds.example.com/viator.ics")
        make_source("Off", "https://feeds.example.com/broken.ics", enabled=False)

        run = await _orchestrator(db).run_sync()

        assert len(run.results) == 1
        assert run.failed_sources == []

    @pytest.mark.asyncio
    async def test_no_sources(self, db) -> None:
        run = await _orchestrator(db).run_sync()

        assert run.results == []
        assert run.merged_conflicts == []


class TestMerge:
    """Conflicts between the ledger and imported intervals."""

    @pytest.mark.asyncio
    async def test_conflict_with_ledger_booking(self, db, make_source, make_booking) -> None:
        make_source("Viator", "https://feeds.example.com/viator.ics")
        booking = make_booking(visit_time=time(9, 0))  # 09:00-11:00 overlaps 10:00-12:00

        run = await _orchestrator(db).run_sync()

        assert len(run.merged_conflicts) == 1
        refs = {run.merged_conflicts[0].interval_a.ref, run.merged_conflicts[0].interval_b.ref}
        assert refs == {booking.id, "v-1"}

    @pytest.mark.asyncio
    async def test_sync_never_changes_bookings(self, db, make_source, make_booking) -> None:
        make_source("Viator", "https://feeds.example.com/viator.ics")
        booking = make_booking(visit_time=time(9, 0))

        await _orchestrator(db).run_sync()

        db.refresh(booking)
        assert booking.status == "confirmed"
        assert booking.number_of_people == 2

    @pytest.mark.asyncio
    async def test_rerun_with_same_inputs_gives_same_conflicts(self, db, make_source, make_booking) -> None:
        make_source("Viator", "https://feeds.example.com/viator.ics")
        make_source("Airbnb", "https://feeds.example.com/airbnb.ics")
        make_booking(visit_time=time(9, 0))
        orchestrator = _orchestrator(db)

        first = await orchestrator.run_sync()
        second = await orchestrator.run_sync()

        assert first.merged_conflicts == second.merged_conflicts
        assert first.merged.occupied == second.merged.occupied
        assert [r.succeeded for r in first.results] == [r.succeeded for r in second.results]


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_rejected_while_lock_is_held(self, db) -> None:
        lock = InProcessSyncLock()
        assert await lock.try_acquire()

        with pytest.raises(SyncAlreadyRunning):
            await _orchestrator(db, lock=lock).run_sync()

        assert lock.held

    @pytest.mark.asyncio
    async def test_lock_released_after_run(self, db, make_source) -> None:
        make_source("Broken", "https://feeds.example.com/broken.ics")
        lock = InProcessSyncLock()

        await _orchestrator(db, lock=lock).run_sync()

        assert not lock.held

    @pytest.mark.asyncio
    async def test_concurrent_runs_one_wins(self, db, make_source) -> None:
        make_source("Stuck", "https://feeds.example.com/stuck.ics")
        lock = InProcessSyncLock()
        importer = _HangingImporter("https://feeds.example.com/stuck.ics")

        results = await asyncio.gather(
            _orchestrator(db, importer=importer, lock=lock, fetch_timeout=0.05).run_sync(),
            _orchestrator(db, importer=importer, lock=lock, fetch_timeout=0.05).run_sync(),
            return_exceptions=True,
        )

        assert sum(isinstance(r, SyncAlreadyRunning) for r in results) == 1
        assert not lock.held


class TestEvents:
    @pytest.mark.asyncio
    async def test_events_emitted_per_source_and_run(self, db, make_source, make_booking) -> None:
        make_source("Viator", "https://feeds.example.com/viator.ics")
        make_source("Broken", "https://feeds.example.com/broken.ics")
        make_booking(visit_time=time(9, 0))
        received = []

        with EventSource() as events:
            events.subscribe(received.append)
            await _orchestrator(db, events=events).run_sync()

        synced = [e for e in received if isinstance(e, SourceSynced)]
        conflicts = [e for e in received if isinstance(e, ConflictDetected)]
        completed = [e for e in received if isinstance(e, SyncCompleted)]
        assert [e.succeeded for e in synced] == [True, False]
        assert len(conflicts) == 1
        assert len(completed) == 1
        assert completed[0].conflict_count == 1
        assert len(completed[0].failed_sources) == 1
