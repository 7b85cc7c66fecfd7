"""
API v1 router setup
Organized into: calendar (feed is token-protected, the rest needs the operator
key), bookings and partner (operator key)
"""
from fastapi import APIRouter

from slotsync.api.v1 import bookings, calendar, partner

api_v1_router = APIRouter()

# ============================================================================
# CALENDAR ROUTES (feed + sync + sources)
# ============================================================================
api_v1_router.include_router(
    calendar.router,
    prefix="/calendar",
    tags=["Calendar"]
)

# ============================================================================
# OPERATOR ROUTES (X-API-Key required)
# ============================================================================
api_v1_router.include_router(
    bookings.router,
    prefix="/bookings",
    tags=["Bookings"]
)

api_v1_router.include_router(
    partner.router,
    prefix="/partner",
    tags=["Partner"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """
    API information and available endpoints.
    """
    return {
        "version": "1.0",
        "authentication": {
            "calendar_feed": "Feed token in the URL",
            "operator": "X-API-Key header matching OPERATOR_API_KEY",
            "webhooks": "HTTP Basic with the shared webhook credentials",
        }
    }
