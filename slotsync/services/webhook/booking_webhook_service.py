# slotsync/services/webhook/booking_webhook_service.py
import logging
import secrets
from typing import Any, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from slotsync.config.settings import get_settings
from slotsync.core.events import BookingChanged, EventSource
from slotsync.core.exceptions import WebhookAuthenticationError, WebhookNotConfigured
from slotsync.models.booking import Booking
from slotsync.schemas.webhook_events import decode_booking_payload
from slotsync.services.booking.booking_ledger import BookingLedger

settings = get_settings()

logger = logging.getLogger(__name__)


def verify_webhook_credentials(
        username: Optional[str],
        password: Optional[str],
        expected_username: Optional[str] = None,
        expected_password: Optional[str] = None,
) -> None:
    """Check Basic auth credentials of a channel delivery in constant time"""
    expected_username = settings.BOOKING_WEBHOOK_USERNAME if expected_username is None else expected_username
    expected_password = settings.BOOKING_WEBHOOK_PASSWORD if expected_password is None else expected_password

    if not expected_username or not expected_password:
        logger.error("Booking webhook credentials not configured")
        raise WebhookNotConfigured("Webhook not configured")

    if username is None or password is None:
        raise WebhookAuthenticationError("Authentication required")

    username_ok = secrets.compare_digest(username.encode("utf-8"), expected_username.encode("utf-8"))
    password_ok = secrets.compare_digest(password.encode("utf-8"), expected_password.encode("utf-8"))
    if not (username_ok and password_ok):
        raise WebhookAuthenticationError("Invalid credentials")


class BookingWebhookService:
    """Absorbs channel bookings into the ledger, idempotently per (channel, external reference)"""

    def __init__(self, db: Session, events: Optional[EventSource] = None, timezone_name: Optional[str] = None):
        self.ledger = BookingLedger(db)
        self.events = events
        self.tz = ZoneInfo(timezone_name or settings.DEFAULT_TIMEZONE)

    def ingest(self, channel: str, body: Any) -> Tuple[Booking, bool]:
        draft = decode_booking_payload(channel, body, self.tz)
        booking, created = self.ledger.upsert_external_booking(draft)

        logger.info(
            f"{'Created' if created else 'Updated'} {channel} booking {booking.booking_reference}",
            extra={
                "channel": channel,
                "external_reference": draft.external_reference,
                "booking_id": booking.id,
                "status": booking.status,
            },
        )

        if self.events is not None:
            self.events.emit(BookingChanged(
                booking_id=booking.id,
                channel=channel,
                status=booking.status,
                created=created,
            ))

        return booking, created
