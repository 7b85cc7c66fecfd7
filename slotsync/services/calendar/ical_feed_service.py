# slotsync/services/calendar/ical_feed_service.py
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from icalendar import Calendar, Event

from slotsync.config.settings import get_settings
from slotsync.models.booking import Booking
from slotsync.services.availability.intervals import booking_interval, stored_utc

settings = get_settings()


class ICalFeedService:
    """Publishes occupying ledger bookings as an iCal feed for partner channels.

    Only confirmed and in-progress bookings are emitted: partners treat every
    event in this feed as an occupied slot. Output depends on the bookings
    alone (no wall-clock values), so two generations over the same ledger are
    byte-identical.
    """

    PRODID = "-//SlotSync//Tour Bookings//EN"

    def __init__(
            self,
            calendar_name: Optional[str] = None,
            location: Optional[str] = None,
            default_duration_minutes: Optional[int] = None,
            timezone_name: Optional[str] = None,
    ):
        self.calendar_name = calendar_name or settings.CALENDAR_FEED_NAME
        self.location = settings.CALENDAR_FEED_LOCATION if location is None else location
        self.default_duration_minutes = default_duration_minutes or settings.BOOKING_DEFAULT_DURATION_MINUTES
        self.tz = ZoneInfo(timezone_name or settings.DEFAULT_TIMEZONE)

    def generate(self, bookings: Iterable[Booking]) -> str:
        cal = Calendar()
        cal.add("prodid", self.PRODID)
        cal.add("version", "2.0")
        cal.add("calscale", "GREGORIAN")
        cal.add("method", "PUBLISH")
        cal.add("x-wr-calname", self.calendar_name)

        entries = []
        for booking in bookings:
            if not booking.is_occupying:
                continue
            start, end = booking_interval(booking, self.default_duration_minutes, self.tz)
            entries.append((start, str(booking.id), end, booking))
        entries.sort(key=lambda entry: (entry[0], entry[1]))

        for start, booking_id, end, booking in entries:
            cal.add_component(self._build_event(booking_id, start, end, booking))

        return cal.to_ical().decode("utf-8")

    def _build_event(self, booking_id, start, end, booking: Booking) -> Event:
        event = Event()
        event.add("uid", booking_id)
        event.add("dtstamp", stored_utc(booking.updated_at or booking.created_at) or start)
        event.add("dtstart", start)
        event.add("dtend", end)
        event.add("summary", f"Booking: {booking.visitor_name or booking.booking_reference} ({booking.number_of_people})")
        event.add(
            "description",
            f"Reference: {booking.booking_reference}\n"
            f"Tour: {booking.tour_type or '-'}\n"
            f"People: {booking.number_of_people}\n"
            f"Channel: {booking.channel}",
        )
        if self.location:
            event.add("location", self.location)
        return event
