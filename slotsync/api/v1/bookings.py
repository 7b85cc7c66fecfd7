# ============================================================================
# FILE: slotsync/api/v1/bookings.py
# Booking ledger endpoints for operators
# ============================================================================
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from slotsync.api.dependencies import get_event_source, require_operator
from slotsync.config.database import get_db
from slotsync.core.events import BookingChanged, EventSource
from slotsync.core.exceptions import BookingNotFound, InvalidStatusTransition
from slotsync.schemas.booking import BookingResponse, BookingStatusUpdate
from slotsync.services.booking.booking_ledger import BookingLedger

router = APIRouter(tags=["bookings"], dependencies=[Depends(require_operator)])


@router.get("/channel/{channel}", response_model=List[BookingResponse])
async def list_channel_bookings(channel: str, db: Session = Depends(get_db)):
    """Bookings that arrived through one channel, newest visit first"""
    return BookingLedger(db).list_by_channel(channel)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
        booking_id: str,
        payload: BookingStatusUpdate,
        db: Session = Depends(get_db),
        events: EventSource = Depends(get_event_source),
):
    """
    Move a booking along its lifecycle.
    pending -> confirmed -> in_progress -> completed, cancellation from pending or confirmed.
    """
    ledger = BookingLedger(db)
    try:
        booking = ledger.transition_status(booking_id, payload.status)
    except BookingNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=409, detail=str(e))

    events.emit(BookingChanged(
        booking_id=booking.id,
        channel=booking.channel,
        status=booking.status,
        created=False,
    ))
    return booking
