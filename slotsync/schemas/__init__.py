# slotsync/schemas/__init__.py
from .booking import (
    BookingDraft,
    BookingResponse,
    BookingStatusUpdate
)

from .webhook_events import (
    GetYourGuideBookingPayload,
    ViatorBookingPayload,
    ChannelBookingPayload,
    decode_booking_payload
)

from .partner import (
    DealParams,
    DealResponse,
    DailyAvailability,
    PushOutcome
)
