# ============================================================================
# FILE: slotsync/api/v1/calendar.py
# Calendar feed, manual sync and calendar source management - thin HTTP layer
# IMPORTANT: Specific routes MUST come before parameterized routes
# ============================================================================
import logging
import secrets
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from slotsync.api.dependencies import get_event_source, get_sync_lock, require_operator
from slotsync.config.database import get_db
from slotsync.config.settings import settings
from slotsync.core.events import EventSource
from slotsync.core.exceptions import SyncAlreadyRunning
from slotsync.models.calendar_source import CalendarSource
from slotsync.schemas.availability import SyncRunResponse
from slotsync.schemas.calendar_source import (
    CalendarSourceCreate,
    CalendarSourceResponse,
    CalendarSourceUpdate,
)
from slotsync.services.booking.booking_ledger import BookingLedger
from slotsync.services.calendar.ical_feed_service import ICalFeedService
from slotsync.services.sync.sync_orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["calendar"])


# ========== OUTBOUND FEED ==========

@router.get("/feed/{token}.ics", response_class=Response)
async def calendar_feed(token: str, db: Session = Depends(get_db)):
    """
    iCal feed of confirmed and in-progress bookings.
    Partner channels subscribe to this URL; the token is the only credential.
    """
    expected = settings.CALENDAR_FEED_TOKEN
    if not expected or not secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=404, detail="Calendar feed not found")

    bookings = BookingLedger(db).occupying_bookings()
    ical = ICalFeedService().generate(bookings)

    return Response(
        content=ical,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": 'inline; filename="bookings.ics"'},
    )


# ========== MANUAL SYNC ==========

@router.post("/sync", response_model=SyncRunResponse, dependencies=[Depends(require_operator)])
async def sync_calendars(
        db: Session = Depends(get_db),
        lock=Depends(get_sync_lock),
        events: EventSource = Depends(get_event_source),
):
    """
    Import every enabled source and merge it with the ledger.
    Always returns one result per source; a failing source never fails the run.
    """
    orchestrator = SyncOrchestrator(db, lock=lock, events=events)
    try:
        run = await orchestrator.run_sync()
    except SyncAlreadyRunning as e:
        raise HTTPException(status_code=409, detail=str(e))

    return SyncRunResponse.from_run(run)


# ========== CALENDAR SOURCES ==========

@router.get("/sources", response_model=List[CalendarSourceResponse], dependencies=[Depends(require_operator)])
async def list_sources(db: Session = Depends(get_db)):
    return (
        db.query(CalendarSource)
        .order_by(CalendarSource.created_at, CalendarSource.id)
        .all()
    )


@router.post(
    "/sources",
    response_model=CalendarSourceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operator)],
)
async def create_source(payload: CalendarSourceCreate, db: Session = Depends(get_db)):
    source = CalendarSource(
        name=payload.name,
        feed_url=payload.feed_url,
        color_tag=payload.color_tag,
        enabled=payload.enabled,
    )
    db.add(source)
    db.commit()
    db.refresh(source)

    logger.info(f"Added calendar source {source.name}", extra={"source_id": source.id})
    return source


def _get_source_or_404(db: Session, source_id: str) -> CalendarSource:
    source = db.query(CalendarSource).filter_by(id=source_id).first()
    if source is None:
        raise HTTPException(status_code=404, detail="Calendar source not found")
    return source


@router.patch("/sources/{source_id}", response_model=CalendarSourceResponse, dependencies=[Depends(require_operator)])
async def update_source(source_id: str, payload: CalendarSourceUpdate, db: Session = Depends(get_db)):
    source = _get_source_or_404(db, source_id)

    for attr, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(source, attr, value)
    db.commit()
    db.refresh(source)

    logger.info(f"Updated calendar source {source.name}", extra={"source_id": source.id})
    return source


@router.delete(
    "/sources/{source_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_operator)],
)
async def delete_source(source_id: str, db: Session = Depends(get_db)):
    source = _get_source_or_404(db, source_id)
    db.delete(source)
    db.commit()

    logger.info("Deleted calendar source", extra={"source_id": source_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
