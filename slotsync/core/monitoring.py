"""Health checks and monitoring endpoints"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from slotsync.config.database import get_db
from slotsync.config.redis import get_redis
from slotsync.config.settings import settings
from slotsync.models.calendar_source import CalendarSource

health_router = APIRouter()


@health_router.get("/")
async def health_check():
    """Liveness only, touches no dependency"""
    return {"status": "healthy", "service": "slotsync-api"}


@health_router.get("/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """Database and redis reachability"""
    checks = {
        "api": "healthy",
        "database": "unknown",
        "redis": "unknown",
        "overall": "unknown"
    }

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    # The memory lock backend runs without redis
    if settings.SYNC_LOCK_BACKEND == "memory":
        checks["redis"] = "not_used"
    else:
        try:
            redis_client = await get_redis()
            await redis_client.ping()
            checks["redis"] = "healthy"
            await redis_client.aclose()
        except Exception as e:
            checks["redis"] = f"unhealthy: {str(e)}"

    degraded = any(str(value).startswith("unhealthy") for value in checks.values())
    checks["overall"] = "degraded" if degraded else "healthy"
    return checks


@health_router.get("/sync")
async def sync_health(db: Session = Depends(get_db)):
    """Last sync outcome of every enabled calendar source"""
    sources = (
        db.query(CalendarSource)
        .filter(CalendarSource.enabled.is_(True))
        .order_by(CalendarSource.created_at, CalendarSource.id)
        .all()
    )
    failing = [s for s in sources if s.last_sync_status == "failed"]

    return {
        "status": "degraded" if failing else "healthy",
        "enabled_sources": len(sources),
        "failing_sources": [
            {"id": s.id, "name": s.name, "error": s.last_sync_error}
            for s in failing
        ],
        "never_synced": [s.id for s in sources if s.last_synced_at is None and s.last_sync_status is None],
    }
