# slotsync/services/partner/partner_availability_service.py
import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from slotsync.config.settings import get_settings
from slotsync.core.exceptions import PartnerAuthenticationError, PartnerAPIError, PartnerConfigurationError
from slotsync.schemas.partner import DailyAvailability, PushOutcome
from slotsync.services.availability.intervals import BusyInterval
from slotsync.services.booking.booking_ledger import BookingLedger
from slotsync.services.partner.getyourguide_service import GetYourGuideClient

settings = get_settings()

logger = logging.getLogger(__name__)


class PartnerAvailabilityPublisher:
    """Computes daily vacancies from the ledger and pushes them to GetYourGuide"""

    def __init__(
            self,
            db: Session,
            client: Optional[GetYourGuideClient] = None,
            capacity: Optional[int] = None,
            product_id: Optional[str] = None,
            timezone_name: Optional[str] = None,
    ):
        self.ledger = BookingLedger(db)
        self.client = client or GetYourGuideClient()
        self.capacity = settings.TOUR_DAILY_CAPACITY if capacity is None else capacity
        self.product_id = product_id or settings.GETYOURGUIDE_PRODUCT_ID
        self.tz = ZoneInfo(timezone_name or settings.DEFAULT_TIMEZONE)

    def _day_bounds(self, day: date):
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=self.tz)
        return start, end

    def compute_vacancies(
            self,
            days: int,
            start_date: Optional[date] = None,
            busy_intervals: Iterable[BusyInterval] = (),
    ) -> List[DailyAvailability]:
        start_date = start_date or datetime.now(self.tz).date()
        end_date = start_date + timedelta(days=days - 1)

        booked: Dict[date, int] = defaultdict(int)
        for booking in self.ledger.occupying_bookings(start_date, end_date):
            booked[booking.visit_date] += booking.number_of_people or 0

        busy = list(busy_intervals)
        availability = []
        for offset in range(days):
            day = start_date + timedelta(days=offset)
            day_start, day_end = self._day_bounds(day)
            blocked = any(
                i.start < day_end.astimezone(timezone.utc) and day_start.astimezone(timezone.utc) < i.end
                for i in busy
            )
            vacancies = 0 if blocked else max(0, self.capacity - booked[day])
            availability.append(DailyAvailability(
                date=day,
                date_time=day_start,
                vacancies=vacancies,
                booked_people=booked[day],
                blocked_externally=blocked,
            ))
        return availability

    def publish(
            self,
            days: Optional[int] = None,
            start_date: Optional[date] = None,
            busy_intervals: Iterable[BusyInterval] = (),
            use_sandbox: Optional[bool] = None,
    ) -> List[PushOutcome]:
        """Push one availability update per day.

        Missing configuration aborts before any request. A rejected credential
        aborts the run; any other per-day failure is recorded and the next day
        is still pushed.
        """
        if not self.product_id:
            raise PartnerConfigurationError("GetYourGuide product id not configured")
        self.client.ensure_configured()

        days = days or settings.PARTNER_PUSH_DAYS
        outcomes = []
        for day in self.compute_vacancies(days, start_date, busy_intervals):
            try:
                self.client.push_availability(
                    self.product_id,
                    day.date_time,
                    day.vacancies,
                    use_sandbox=use_sandbox,
                )
            except PartnerAuthenticationError:
                raise
            except PartnerAPIError as e:
                logger.warning(
                    f"Availability push failed for {day.date}: {e}",
                    extra={"status_code": e.status_code},
                )
                outcomes.append(PushOutcome(date=day.date, vacancies=day.vacancies, succeeded=False, error=str(e)))
            else:
                outcomes.append(PushOutcome(date=day.date, vacancies=day.vacancies, succeeded=True))

        failed = sum(1 for o in outcomes if not o.succeeded)
        logger.info(
            f"Partner availability push finished: {len(outcomes) - failed} ok, {failed} failed",
            extra={"product_id": self.product_id, "days": days},
        )
        return outcomes
