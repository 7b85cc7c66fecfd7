# ===== slotsync/services/sync/sync_orchestrator.py =====
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from slotsync.config.settings import get_settings
from slotsync.core.events import ConflictDetected, EventSource, SourceSynced, SyncCompleted
from slotsync.core.exceptions import SyncAlreadyRunning
from slotsync.models.calendar_source import CalendarSource
from slotsync.services.availability.availability_merger import AvailabilityMerger, MergedAvailability
from slotsync.services.availability.intervals import BusyInterval, Conflict
from slotsync.services.booking.booking_ledger import BookingLedger
from slotsync.services.calendar.ical_import_service import ICalImportService, ImportFailure, ImportOutcome
from slotsync.services.sync.sync_lock import InProcessSyncLock

settings = get_settings()

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    """Outcome for one source in one run: a count on success, an error on failure"""
    source_id: str
    source_name: str
    succeeded: bool
    imported_count: int = 0
    error: Optional[str] = None
    duration_ms: float = 0.0

    @classmethod
    def success(cls, source_id, source_name, imported_count, duration_ms=0.0):
        return cls(source_id, source_name, True, imported_count, None, duration_ms)

    @classmethod
    def failure(cls, source_id, source_name, error, duration_ms=0.0):
        return cls(source_id, source_name, False, 0, error, duration_ms)


@dataclass
class SyncRun:
    started_at: datetime
    finished_at: datetime
    results: List[SyncResult] = field(default_factory=list)
    merged: MergedAvailability = field(default_factory=MergedAvailability)
    intervals: List[BusyInterval] = field(default_factory=list)

    @property
    def merged_conflicts(self) -> List[Conflict]:
        return self.merged.conflicts

    @property
    def failed_sources(self) -> List[str]:
        return [r.source_id for r in self.results if not r.succeeded]


class SyncOrchestrator:
    """Runs one merge cycle across every enabled calendar source.

    Sources are fetched concurrently and each fetch is isolated: an error,
    timeout or hang in one source becomes that source's failed SyncResult and
    never affects the others. Bookings are only read; conflicts are reported,
    not resolved.
    """

    def __init__(
            self,
            db: Session,
            importer: Optional[ICalImportService] = None,
            merger: Optional[AvailabilityMerger] = None,
            lock=None,
            events: Optional[EventSource] = None,
            fetch_timeout: Optional[float] = None,
    ):
        self.db = db
        self.importer = importer or ICalImportService()
        self.merger = merger or AvailabilityMerger(
            settings.BOOKING_DEFAULT_DURATION_MINUTES,
            settings.DEFAULT_TIMEZONE,
        )
        self.lock = lock or InProcessSyncLock()
        self.events = events
        # the importer has its own HTTP timeout; this also bounds parsing and hangs
        self.fetch_timeout = fetch_timeout or settings.CALENDAR_FETCH_TIMEOUT_SECONDS * 2

    async def run_sync(self) -> SyncRun:
        if not await self.lock.try_acquire():
            logger.warning("Calendar sync requested while another run is in progress")
            raise SyncAlreadyRunning("A calendar sync is already running")
        try:
            return await self._run()
        finally:
            await self.lock.release()

    async def _run(self) -> SyncRun:
        started_at = datetime.now(timezone.utc)

        sources = (
            self.db.query(CalendarSource)
            .filter(CalendarSource.enabled.is_(True))
            .order_by(CalendarSource.created_at, CalendarSource.id)
            .all()
        )
        logger.info(f"Starting calendar sync across {len(sources)} sources")

        outcomes = await asyncio.gather(*(
            self._import_source(source.id, source.feed_url) for source in sources
        ))

        results: List[SyncResult] = []
        intervals: List[BusyInterval] = []
        for source, (outcome, duration_ms) in zip(sources, outcomes):
            result = self._record(source, outcome, duration_ms)
            results.append(result)
            if result.succeeded:
                intervals.extend(outcome.intervals)
        self.db.commit()

        bookings = BookingLedger(self.db).occupying_bookings()
        merged = self.merger.merge(bookings, intervals, detected_at=started_at)

        run = SyncRun(
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            results=results,
            merged=merged,
            intervals=intervals,
        )
        self._report(run)
        return run

    async def _import_source(self, source_id: str, feed_url: str) -> Tuple[ImportOutcome, float]:
        started = time.monotonic()
        try:
            outcome = await asyncio.wait_for(
                self.importer.fetch_busy_intervals(source_id, feed_url),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            outcome = ImportFailure(f"Import exceeded {self.fetch_timeout}s")
        except Exception as e:
            logger.exception("Calendar import crashed", extra={"source_id": source_id})
            outcome = ImportFailure(f"Unexpected error: {str(e)[:200]}")
        return outcome, round((time.monotonic() - started) * 1000, 2)

    def _record(self, source: CalendarSource, outcome: ImportOutcome, duration_ms: float) -> SyncResult:
        if outcome.succeeded:
            source.last_synced_at = datetime.now(timezone.utc)
            source.last_sync_status = "success"
            source.last_sync_error = None
            result = SyncResult.success(source.id, source.name, len(outcome.intervals), duration_ms)
        else:
            # last_synced_at keeps pointing at the last good import
            source.last_sync_status = "failed"
            source.last_sync_error = outcome.reason
            result = SyncResult.failure(source.id, source.name, outcome.reason, duration_ms)

        if self.events is not None:
            self.events.emit(SourceSynced(
                source_id=source.id,
                succeeded=result.succeeded,
                imported_count=result.imported_count,
                error=result.error,
            ))
        return result

    def _report(self, run: SyncRun) -> None:
        merged = run.merged
        for conflict in merged.conflicts + merged.same_origin_overlaps:
            log = logger.warning if conflict.kind == "cross_origin" else logger.error
            log(
                f"{conflict.kind} overlap: {conflict.interval_a.origin}/{conflict.interval_a.ref} "
                f"vs {conflict.interval_b.origin}/{conflict.interval_b.ref}",
                extra={
                    "start_a": conflict.interval_a.start.isoformat(),
                    "start_b": conflict.interval_b.start.isoformat(),
                },
            )
            if self.events is not None:
                self.events.emit(ConflictDetected(
                    kind=conflict.kind,
                    origin_a=conflict.interval_a.origin,
                    ref_a=conflict.interval_a.ref,
                    origin_b=conflict.interval_b.origin,
                    ref_b=conflict.interval_b.ref,
                ))

        logger.info(
            "Calendar sync finished",
            extra={
                "sources": len(run.results),
                "failed_sources": len(run.failed_sources),
                "conflicts": len(merged.conflicts),
                "same_origin_overlaps": len(merged.same_origin_overlaps),
                "duration_ms": round((run.finished_at - run.started_at).total_seconds() * 1000, 2),
            },
        )

        if self.events is not None:
            self.events.emit(SyncCompleted(
                started_at=run.started_at,
                finished_at=run.finished_at,
                failed_sources=run.failed_sources,
                conflict_count=len(merged.conflicts),
            ))
