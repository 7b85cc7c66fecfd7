# slotsync/webhooks/booking_handler.py
"""Booking webhooks from sales channels - written straight into the ledger"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from slotsync.api.dependencies import get_event_source, require_webhook_credentials
from slotsync.config.database import get_db
from slotsync.core.events import EventSource
from slotsync.core.exceptions import InvalidStatusTransition, PayloadDecodeError
from slotsync.schemas.booking import BookingResponse
from slotsync.services.webhook.booking_webhook_service import BookingWebhookService

router = APIRouter(dependencies=[Depends(require_webhook_credentials)])
logger = logging.getLogger(__name__)


@router.post("/{channel}")
async def handle_booking_webhook(
        channel: str,
        request: Request,
        db: Session = Depends(get_db),
        events: EventSource = Depends(get_event_source),
):
    """Create or update the booking for (channel, external reference): 201 when new, 200 otherwise"""
    try:
        body = await request.json()
    except ValueError:
        logger.warning(f"Rejected {channel} webhook: body is not JSON")
        raise HTTPException(status_code=400, detail=f"Invalid {channel} payload: body is not JSON")

    service = BookingWebhookService(db, events=events)
    try:
        booking, created = service.ingest(channel, body)
    except PayloadDecodeError as e:
        logger.warning(f"Rejected {channel} webhook: {e.reason}")
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=409, detail=str(e))

    return JSONResponse(
        status_code=201 if created else 200,
        content={
            "success": True,
            "created": created,
            "booking": BookingResponse.model_validate(booking).model_dump(mode="json"),
        },
    )
