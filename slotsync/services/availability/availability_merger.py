# ===== slotsync/services/availability/availability_merger.py =====
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List
from zoneinfo import ZoneInfo

from slotsync.models.booking import Booking
from slotsync.services.availability.intervals import (
    BusyInterval,
    Conflict,
    OccupiedRange,
    CROSS_ORIGIN,
    SAME_ORIGIN,
    booking_range,
    interval_range,
)


@dataclass
class MergedAvailability:
    occupied: List[OccupiedRange] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)  # different origins
    same_origin_overlaps: List[Conflict] = field(default_factory=list)  # integrity bugs inside one origin

    def conflict_keys(self):
        return {c.key for c in self.conflicts} | {c.key for c in self.same_origin_overlaps}


class AvailabilityMerger:
    """Combines ledger bookings and external busy intervals into one view.

    merge() has no side effects: the same bookings and intervals always yield
    the same occupied list and the same conflicts.
    """

    def __init__(self, default_duration_minutes: int, timezone_name: str = "UTC"):
        self.default_duration_minutes = default_duration_minutes
        self.tz = ZoneInfo(timezone_name)

    def merge(
            self,
            bookings: Iterable[Booking],
            intervals: Iterable[BusyInterval],
            detected_at: datetime,
    ) -> MergedAvailability:
        ranges = [
            booking_range(b, self.default_duration_minutes, self.tz)
            for b in bookings
            if b.is_occupying
        ]
        ranges.extend(interval_range(i) for i in intervals)
        ranges.sort(key=lambda r: r.sort_key)

        merged = MergedAvailability(occupied=ranges)

        for index, current in enumerate(ranges):
            for other in ranges[index + 1:]:
                # sorted by start, so nothing further along can overlap current
                if other.start >= current.end:
                    break
                if current.origin == other.origin:
                    merged.same_origin_overlaps.append(
                        Conflict(current, other, detected_at=detected_at, kind=SAME_ORIGIN)
                    )
                else:
                    merged.conflicts.append(
                        Conflict(current, other, detected_at=detected_at, kind=CROSS_ORIGIN)
                    )

        return merged
