# ===== slotsync/tasks/calendar_tasks.py =====
import asyncio
import logging

import redis.asyncio as redis

from slotsync.config.celery_config import celery_app
from slotsync.config.database import SessionLocal
from slotsync.config.settings import get_settings
from slotsync.core.events import EventSource
from slotsync.core.exceptions import SyncAlreadyRunning
from slotsync.services.sync.sync_lock import InProcessSyncLock, RedisSyncLock
from slotsync.services.sync.sync_orchestrator import SyncOrchestrator

settings = get_settings()

logger = logging.getLogger(__name__)

_local_lock = InProcessSyncLock()


async def _run_sync(db):
    # each asyncio.run() gets its own loop, so the redis client cannot come from the shared pool
    if settings.SYNC_LOCK_BACKEND == "memory":
        with EventSource() as events:
            return await SyncOrchestrator(db, lock=_local_lock, events=events).run_sync()

    client = redis.from_url(settings.REDIS_URL)
    try:
        lock = RedisSyncLock(client, settings.SYNC_LOCK_TTL_SECONDS)
        with EventSource() as events:
            return await SyncOrchestrator(db, lock=lock, events=events).run_sync()
    finally:
        await client.aclose()


@celery_app.task(bind=True)
def run_calendar_sync(self):
    """Periodic merge cycle; skipped when a manual sync holds the lock"""
    db = SessionLocal()
    try:
        run = asyncio.run(_run_sync(db))
    except SyncAlreadyRunning:
        logger.info("Skipping scheduled calendar sync, another run is in progress")
        return {"status": "skipped", "reason": "already_running"}
    finally:
        db.close()

    return {
        "status": "completed",
        "sources": len(run.results),
        "failed_sources": run.failed_sources,
        "conflicts": len(run.merged.conflicts),
        "same_origin_overlaps": len(run.merged.same_origin_overlaps),
    }
