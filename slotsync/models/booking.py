# ===== slotsync/models/booking.py =====
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Date, Time, DateTime, UniqueConstraint, Index

from .base import Base


def _utcnow():
    return datetime.now(timezone.utc)


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that take a slot out of availability
OCCUPYING_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS})


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_reference = Column(String(40), unique=True, nullable=False)  # e.g. GYG-20250314-7K2QF

    # Channel identity
    channel = Column(String(50), nullable=False, default="direct")  # direct, getyourguide, viator, manual
    external_reference = Column(String(100), nullable=True)  # booking id on the channel

    # Visitor info
    visitor_name = Column(String(200), nullable=True)
    visitor_email = Column(String(200), nullable=True)
    visitor_phone = Column(String(50), nullable=True)

    # Visit details
    tour_type = Column(String(100), nullable=True)
    visit_date = Column(Date, nullable=False)
    visit_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=True)  # custom duration, default applies when null
    check_out_time = Column(DateTime(timezone=True), nullable=True)
    number_of_people = Column(Integer, nullable=False, default=1)
    total_amount = Column(Integer, nullable=True)

    # Status tracking
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("channel", "external_reference", name="uq_bookings_channel_external_reference"),
        Index("ix_bookings_visit_date_status", "visit_date", "status"),
    )

    @property
    def is_occupying(self) -> bool:
        return self.status in {s.value for s in OCCUPYING_STATUSES}

    def __repr__(self):
        return f"<Booking(id={self.id}, channel={self.channel}, status={self.status})>"
