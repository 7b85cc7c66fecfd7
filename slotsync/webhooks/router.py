# slotsync/webhooks/router.py
from fastapi import APIRouter

from slotsync.schemas.webhook_events import SUPPORTED_CHANNELS

webhook_router = APIRouter()


# Import handlers inside a function to avoid circular imports
def register_handlers():
    from slotsync.webhooks import booking_handler
    webhook_router.include_router(booking_handler.router, prefix="/bookings")


register_handlers()


@webhook_router.get("/")
async def webhook_info():
    return {
        "endpoints": {
            channel: f"/webhooks/bookings/{channel}" for channel in SUPPORTED_CHANNELS
        },
        "note": "All endpoints accept POST requests with HTTP Basic credentials"
    }
