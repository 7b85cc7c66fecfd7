# slotsync/models/__init__.py
from .base import Base
from .booking import Booking, BookingStatus
from .calendar_source import CalendarSource

__all__ = [
    "Base",
    "Booking",
    "BookingStatus",
    "CalendarSource",
]
