# ============================================================================
# slotsync/services/booking/booking_ledger.py
# ============================================================================
"""Read/write access to the authoritative booking ledger"""
import logging
import secrets
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slotsync.core.exceptions import BookingNotFound, InvalidStatusTransition
from slotsync.models.booking import Booking, BookingStatus, OCCUPYING_STATUSES
from slotsync.schemas.booking import BookingDraft

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

CHANNEL_REFERENCE_PREFIXES = {
    "getyourguide": "GYG",
    "viator": "VTR",
    "direct": "DIR",
}


def can_transition(current, requested) -> bool:
    return BookingStatus(requested) in ALLOWED_TRANSITIONS[BookingStatus(current)]


def generate_booking_reference(channel: str, on: Optional[date] = None) -> str:
    prefix = CHANNEL_REFERENCE_PREFIXES.get(channel, channel[:3].upper() or "BKG")
    day = (on or datetime.now(timezone.utc).date()).strftime("%Y%m%d")
    return f"{prefix}-{day}-{secrets.token_hex(3).upper()}"


class BookingLedger:
    """Booking operations needed by sync and webhook ingestion"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, booking_id: str) -> Booking:
        booking = self.db.query(Booking).filter_by(id=booking_id).first()
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return booking

    def get_by_external_reference(self, channel: str, external_reference: str) -> Optional[Booking]:
        return self.db.query(Booking).filter_by(
            channel=channel,
            external_reference=external_reference,
        ).first()

    def list_by_channel(self, channel: str) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.channel == channel)
            .order_by(Booking.visit_date.desc(), Booking.visit_time.desc())
            .all()
        )

    def occupying_bookings(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Booking]:
        """Confirmed and in-progress bookings, optionally limited to visit dates in [start, end]"""
        query = self.db.query(Booking).filter(
            Booking.status.in_([s.value for s in OCCUPYING_STATUSES])
        )
        if start is not None:
            query = query.filter(Booking.visit_date >= start)
        if end is not None:
            query = query.filter(Booking.visit_date <= end)
        return query.order_by(Booking.visit_date, Booking.visit_time, Booking.id).all()

    def transition_status(self, booking_id: str, requested: BookingStatus) -> Booking:
        """Move a booking to a new status.

        The write is conditional on the status we validated against, so two
        concurrent transitions cannot both apply.
        """
        booking = self.get(booking_id)
        current = booking.status
        if not can_transition(current, requested):
            raise InvalidStatusTransition(current, BookingStatus(requested).value)

        values = {"status": BookingStatus(requested).value, "updated_at": datetime.now(timezone.utc)}
        if requested == BookingStatus.CANCELLED:
            values["cancelled_at"] = datetime.now(timezone.utc)

        updated = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status == current)
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            self.db.rollback()
            latest = self.get(booking_id)
            raise InvalidStatusTransition(latest.status, BookingStatus(requested).value)

        self.db.commit()
        self.db.refresh(booking)
        logger.info(
            f"Booking status {current} -> {booking.status}",
            extra={"booking_id": booking_id},
        )
        return booking

    def upsert_external_booking(self, draft: BookingDraft) -> Tuple[Booking, bool]:
        """Create or update the booking identified by (channel, external_reference).

        Returns (booking, created). The unique constraint on the key decides
        races: a delivery that loses the insert is re-applied as an update.
        """
        existing = self.get_by_external_reference(draft.channel, draft.external_reference)

        if existing is None:
            booking = self._new_booking(draft)
            self.db.add(booking)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                existing = self.get_by_external_reference(draft.channel, draft.external_reference)
                if existing is None:
                    raise
                logger.info(
                    "Concurrent delivery created the booking first, applying as update",
                    extra={"channel": draft.channel, "external_reference": draft.external_reference},
                )
            else:
                self.db.refresh(booking)
                return booking, True

        self._apply_update(existing, draft)
        self.db.commit()
        self.db.refresh(existing)
        return existing, False

    def _new_booking(self, draft: BookingDraft) -> Booking:
        status = BookingStatus.CANCELLED if draft.cancelled else draft.initial_status
        booking = Booking(
            booking_reference=generate_booking_reference(draft.channel, draft.visit_date),
            channel=draft.channel,
            external_reference=draft.external_reference,
            visitor_name=draft.visitor_name,
            visitor_email=draft.visitor_email,
            visitor_phone=draft.visitor_phone,
            tour_type=draft.tour_type,
            visit_date=draft.visit_date,
            visit_time=draft.visit_time,
            duration_minutes=draft.duration_minutes,
            number_of_people=draft.number_of_people,
            total_amount=draft.total_amount,
            status=status.value,
        )
        if status == BookingStatus.CANCELLED:
            booking.cancelled_at = datetime.now(timezone.utc)
        return booking

    def _apply_update(self, booking: Booking, draft: BookingDraft) -> None:
        # validate the cancellation before touching anything else
        cancel = draft.cancelled and booking.status != BookingStatus.CANCELLED.value
        if cancel and not can_transition(booking.status, BookingStatus.CANCELLED):
            raise InvalidStatusTransition(booking.status, BookingStatus.CANCELLED.value)

        booking.number_of_people = draft.number_of_people
        booking.visit_date = draft.visit_date
        booking.visit_time = draft.visit_time
        if draft.duration_minutes is not None:
            booking.duration_minutes = draft.duration_minutes
        for attr in ("visitor_name", "visitor_email", "visitor_phone", "tour_type", "total_amount"):
            value = getattr(draft, attr)
            if value is not None:
                setattr(booking, attr, value)

        if cancel:
            booking.status = BookingStatus.CANCELLED.value
            booking.cancelled_at = datetime.now(timezone.utc)
