# slotsync/services/calendar/ical_import_service.py
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional, Union
from urllib.parse import urlsplit
from zoneinfo import ZoneInfo

import httpx
from icalendar import Calendar

from slotsync.config.settings import get_settings
from slotsync.core.exceptions import SourceConfigurationError
from slotsync.services.availability.intervals import BusyInterval, to_utc

settings = get_settings()

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportSuccess:
    intervals: List[BusyInterval] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class ImportFailure:
    reason: str

    @property
    def succeeded(self) -> bool:
        return False


ImportOutcome = Union[ImportSuccess, ImportFailure]


def normalize_feed_url(feed_url: str) -> str:
    """Validate a feed URL; webcal:// is fetched over https"""
    url = (feed_url or "").strip()
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise SourceConfigurationError(f"Unsupported calendar feed URL: {feed_url!r} ({e})") from e
    scheme = parts.scheme.lower()

    if scheme in ("webcal", "webcals"):
        url = "https" + url[len(parts.scheme):]
        scheme = "https"

    if scheme not in ("http", "https") or not parts.netloc:
        raise SourceConfigurationError(f"Unsupported calendar feed URL: {feed_url!r}")

    return url


def parse_calendar(
        ical_text: str,
        source_id: str,
        default_event_minutes: int,
        tz: ZoneInfo,
) -> List[BusyInterval]:
    """Parse an RFC 5545 document into busy intervals.

    Raises ValueError when the document is not a calendar.
    """
    cal = Calendar.from_ical(ical_text)
    if cal.name != "VCALENDAR":
        raise ValueError(f"expected VCALENDAR, got {cal.name}")

    intervals = []
    for component in cal.walk("VEVENT"):
        dtstart = component.get("DTSTART")
        if dtstart is None:
            logger.debug("Skipping event without DTSTART", extra={"source_id": source_id})
            continue

        if str(component.get("STATUS", "")).upper() == "CANCELLED":
            continue
        if str(component.get("TRANSP", "")).upper() == "TRANSPARENT":
            continue

        start_value = dtstart.dt
        all_day = isinstance(start_value, date) and not isinstance(start_value, datetime)
        start = to_utc(start_value, tz)

        end = None
        dtend = component.get("DTEND")
        duration = component.get("DURATION")
        if dtend is not None:
            end = to_utc(dtend.dt, tz)
        elif duration is not None:
            end = start + duration.dt
        elif all_day:
            end = start + timedelta(days=1)

        if end is None or end <= start:
            end = start + timedelta(minutes=default_event_minutes)

        uid = str(component.get("UID") or "") or f"{source_id}:{start.isoformat()}"

        intervals.append(BusyInterval(
            source_id=source_id,
            external_uid=uid,
            start=start,
            end=end,
            label=str(component.get("SUMMARY") or "Busy"),
        ))

    return intervals


class ICalImportService:
    """Fetches a remote iCal feed and turns it into busy intervals.

    fetch_busy_intervals() never raises: callers get ImportSuccess (possibly
    with no intervals) or ImportFailure with a reason.
    """

    USER_AGENT = "SlotSync-Calendar-Sync/1.0"

    def __init__(
            self,
            timeout: Optional[float] = None,
            default_event_minutes: Optional[int] = None,
            timezone_name: Optional[str] = None,
            http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout or settings.CALENDAR_FETCH_TIMEOUT_SECONDS
        self.default_event_minutes = default_event_minutes or settings.CALENDAR_DEFAULT_EVENT_MINUTES
        self.tz = ZoneInfo(timezone_name or settings.DEFAULT_TIMEZONE)
        self.http_client = http_client

    async def _download(self, url: str) -> str:
        headers = {"User-Agent": self.USER_AGENT, "Accept": "text/calendar, */*"}
        if self.http_client is not None:
            response = await self.http_client.get(url, headers=headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                response = await client.get(url, headers=headers)
        response.raise_for_status()
        return response.text

    async def fetch_busy_intervals(self, source_id: str, feed_url: str) -> ImportOutcome:
        started = time.monotonic()

        try:
            url = normalize_feed_url(feed_url)
        except SourceConfigurationError as e:
            logger.warning(str(e), extra={"source_id": source_id})
            return ImportFailure(str(e))

        try:
            ical_text = await self._download(url)
        except httpx.TimeoutException:
            return self._failed(source_id, f"Request timeout ({self.timeout}s)", started)
        except httpx.HTTPStatusError as e:
            return self._failed(source_id, f"HTTP {e.response.status_code} from calendar feed", started)
        except httpx.HTTPError as e:
            return self._failed(source_id, f"Request error: {str(e)[:200]}", started)

        try:
            intervals = parse_calendar(ical_text, source_id, self.default_event_minutes, self.tz)
        except Exception as e:
            return self._failed(source_id, f"Malformed calendar feed: {str(e)[:200]}", started)

        logger.info(
            f"Imported {len(intervals)} busy intervals",
            extra={
                "source_id": source_id,
                "imported_count": len(intervals),
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return ImportSuccess(intervals)

    @staticmethod
    def _failed(source_id: str, reason: str, started: float) -> ImportFailure:
        logger.warning(
            f"Calendar import failed: {reason}",
            extra={
                "source_id": source_id,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return ImportFailure(reason)
