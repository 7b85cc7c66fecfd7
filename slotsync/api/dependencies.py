# ============================================================================
# FILE: slotsync/api/dependencies.py
# Shared dependencies: operator auth, webhook auth, per-request event source,
# sync lock
# ============================================================================
import logging
import secrets
from typing import Iterator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader, HTTPBasic, HTTPBasicCredentials

from slotsync.config.redis import get_redis
from slotsync.config.settings import settings
from slotsync.core.events import EventSource
from slotsync.core.exceptions import WebhookAuthenticationError, WebhookNotConfigured
from slotsync.services.sync.sync_lock import InProcessSyncLock, RedisSyncLock
from slotsync.services.webhook.booking_webhook_service import verify_webhook_credentials

logger = logging.getLogger(__name__)

# ============================================================================
# Security Schemes
# ============================================================================

operator_key_security = APIKeyHeader(
    name="X-API-Key",
    scheme_name="Operator API Key",
    description="Operator key configured as OPERATOR_API_KEY",
    auto_error=False,
)

webhook_security = HTTPBasic(
    realm="Booking Webhooks",
    description="Shared credentials configured per deployment",
    auto_error=False,
)

WEBHOOK_REALM = 'Basic realm="Booking Webhooks"'

_local_sync_lock = InProcessSyncLock()


# ============================================================================
# Operator Dependencies
# ============================================================================

async def require_operator(api_key: Optional[str] = Depends(operator_key_security)) -> None:
    """Dependency that requires the operator API key on management endpoints."""
    if not settings.OPERATOR_API_KEY:
        logger.error("OPERATOR_API_KEY is not configured, refusing operator request")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Operator access not configured",
        )

    if not api_key or not secrets.compare_digest(
            api_key.encode("utf-8"),
            settings.OPERATOR_API_KEY.encode("utf-8"),
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )


# ============================================================================
# Webhook Dependencies
# ============================================================================

async def require_webhook_credentials(
        credentials: Optional[HTTPBasicCredentials] = Depends(webhook_security),
) -> None:
    """Dependency that checks the Basic auth of an inbound channel webhook."""
    try:
        verify_webhook_credentials(
            credentials.username if credentials else None,
            credentials.password if credentials else None,
        )
    except WebhookNotConfigured as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )
    except WebhookAuthenticationError as e:
        logger.warning(f"Rejected webhook delivery: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": WEBHOOK_REALM},
        )


# ============================================================================
# Session-scoped services
# ============================================================================

def get_event_source() -> Iterator[EventSource]:
    """One EventSource per request, closed when the request ends."""
    events = EventSource()
    try:
        yield events
    finally:
        events.close()


async def get_sync_lock():
    """Single-flight lock for calendar sync runs.

    The redis backend is shared with the Celery beat task; the memory backend
    only guards this process.
    """
    if settings.SYNC_LOCK_BACKEND == "memory":
        return _local_sync_lock
    redis_client = await get_redis()
    return RedisSyncLock(redis_client, settings.SYNC_LOCK_TTL_SECONDS)
