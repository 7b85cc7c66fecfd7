# ===== slotsync/services/availability/intervals.py =====
"""
Normalized time ranges shared by the ledger and every calendar source.

All datetimes leaving this module are timezone-aware UTC. Ranges are half-open:
[start, end), so back-to-back ranges never overlap.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

LEDGER_ORIGIN = "ledger"

CROSS_ORIGIN = "cross_origin"
SAME_ORIGIN = "same_origin"


@dataclass(frozen=True)
class BusyInterval:
    """One occupied range reported by an external source during one sync cycle"""
    source_id: str
    external_uid: str
    start: datetime
    end: datetime
    label: str = ""


@dataclass(frozen=True)
class OccupiedRange:
    """A range in the merged view, tagged with where it came from"""
    origin: str  # LEDGER_ORIGIN or a calendar source id
    ref: str  # booking id or external uid
    start: datetime
    end: datetime
    label: str = ""

    def overlaps(self, other: "OccupiedRange") -> bool:
        return self.start < other.end and other.start < self.end

    @property
    def sort_key(self):
        return (self.start, self.end, self.origin, self.ref)


@dataclass(frozen=True)
class Conflict:
    interval_a: OccupiedRange
    interval_b: OccupiedRange
    detected_at: datetime = field(compare=False, hash=False)
    kind: str = CROSS_ORIGIN

    @property
    def key(self):
        return (self.kind, self.interval_a.sort_key, self.interval_b.sort_key)


def to_utc(value, tz: ZoneInfo) -> datetime:
    """Normalize an iCal/DB value to an aware UTC datetime.

    Dates become local midnight; naive datetimes are read in ``tz``.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=tz)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=tz).astimezone(timezone.utc)
    raise TypeError(f"Unsupported time value: {value!r}")


def stored_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes for DateTime(timezone=True); they were written as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def booking_interval(booking, default_minutes: int, tz: ZoneInfo):
    """Start/end of a booking: explicit check-out, else custom duration, else the default"""
    start = to_utc(datetime.combine(booking.visit_date, booking.visit_time), tz)

    check_out = stored_utc(booking.check_out_time)
    if check_out is not None and check_out > start:
        return start, check_out

    if booking.duration_minutes:
        return start, start + timedelta(minutes=booking.duration_minutes)

    return start, start + timedelta(minutes=default_minutes)


def booking_range(booking, default_minutes: int, tz: ZoneInfo) -> OccupiedRange:
    start, end = booking_interval(booking, default_minutes, tz)
    return OccupiedRange(
        origin=LEDGER_ORIGIN,
        ref=str(booking.id),
        start=start,
        end=end,
        label=booking.booking_reference or "",
    )


def interval_range(interval: BusyInterval) -> OccupiedRange:
    return OccupiedRange(
        origin=interval.source_id,
        ref=interval.external_uid,
        start=interval.start,
        end=interval.end,
        label=interval.label,
    )
