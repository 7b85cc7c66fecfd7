# ============================================================================
# FILE: slotsync/api/v1/partner.py
# GetYourGuide availability push and deal management
# ============================================================================
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from slotsync.api.dependencies import get_event_source, get_sync_lock, require_operator
from slotsync.config.database import get_db
from slotsync.config.settings import settings
from slotsync.core.events import EventSource
from slotsync.core.exceptions import (
    PartnerAPIError,
    PartnerAuthenticationError,
    PartnerConfigurationError,
    SyncAlreadyRunning,
)
from slotsync.schemas.partner import (
    AvailabilityPushRequest,
    AvailabilityPushResponse,
    DealParams,
    DealResponse,
    PushOutcome,
    SingleAvailabilityPush,
)
from slotsync.services.partner.getyourguide_service import GetYourGuideClient
from slotsync.services.partner.partner_availability_service import PartnerAvailabilityPublisher
from slotsync.services.sync.sync_orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["partner"], dependencies=[Depends(require_operator)])


def get_partner_client() -> GetYourGuideClient:
    return GetYourGuideClient()


def _partner_http_error(e: Exception) -> HTTPException:
    if isinstance(e, PartnerConfigurationError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, PartnerAuthenticationError):
        return HTTPException(status_code=502, detail="Partner rejected our credentials")
    return HTTPException(status_code=502, detail=str(e))


def _resolve_sandbox(client: GetYourGuideClient, use_sandbox: Optional[bool]) -> bool:
    return client.use_sandbox if use_sandbox is None else use_sandbox


@router.post("/availability/sync", response_model=AvailabilityPushResponse)
async def push_merged_availability(
        payload: AvailabilityPushRequest,
        db: Session = Depends(get_db),
        client: GetYourGuideClient = Depends(get_partner_client),
        lock=Depends(get_sync_lock),
        events: EventSource = Depends(get_event_source),
):
    """
    Run a calendar sync, then push daily vacancies for the next N days.
    Days touched by an external busy interval are pushed with zero vacancies.
    """
    publisher = PartnerAvailabilityPublisher(db, client=client)
    try:
        # fail on missing credentials before spending a sync run
        if not publisher.product_id:
            raise PartnerConfigurationError("GetYourGuide product id not configured")
        client.ensure_configured()

        run = await SyncOrchestrator(db, lock=lock, events=events).run_sync()
        outcomes = await run_in_threadpool(
            publisher.publish,
            payload.days,
            payload.start_date,
            run.intervals,
            payload.use_sandbox,
        )
    except SyncAlreadyRunning as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (PartnerConfigurationError, PartnerAPIError) as e:
        raise _partner_http_error(e)

    return AvailabilityPushResponse(
        product_id=publisher.product_id,
        sandbox=_resolve_sandbox(client, payload.use_sandbox),
        outcomes=outcomes,
        failed_days=sum(1 for o in outcomes if not o.succeeded),
    )


@router.post("/availability", response_model=PushOutcome)
async def push_single_availability(
        payload: SingleAvailabilityPush,
        client: GetYourGuideClient = Depends(get_partner_client),
):
    """Push one availability value as given, without consulting the ledger"""
    product_id = payload.product_id or settings.GETYOURGUIDE_PRODUCT_ID
    try:
        if not product_id:
            raise PartnerConfigurationError("GetYourGuide product id not configured")
        await run_in_threadpool(
            client.push_availability,
            product_id,
            payload.date_time,
            payload.vacancies,
            payload.price,
            payload.use_sandbox,
        )
    except (PartnerConfigurationError, PartnerAPIError) as e:
        raise _partner_http_error(e)

    return PushOutcome(date=payload.date_time.date(), vacancies=payload.vacancies, succeeded=True)


@router.get("/deals", response_model=List[dict])
async def list_deals(
        product_id: Optional[str] = Query(None),
        use_sandbox: Optional[bool] = Query(None),
        client: GetYourGuideClient = Depends(get_partner_client),
):
    try:
        return await run_in_threadpool(client.list_deals, product_id, use_sandbox)
    except (PartnerConfigurationError, PartnerAPIError) as e:
        raise _partner_http_error(e)


@router.post("/deals", response_model=DealResponse, status_code=status.HTTP_201_CREATED)
async def create_deal(
        params: DealParams,
        use_sandbox: Optional[bool] = Query(None),
        client: GetYourGuideClient = Depends(get_partner_client),
):
    try:
        deal_id = await run_in_threadpool(client.create_deal, params, use_sandbox)
    except (PartnerConfigurationError, PartnerAPIError) as e:
        raise _partner_http_error(e)
    return DealResponse(deal_id=deal_id)


@router.delete("/deals/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deal(
        deal_id: str,
        use_sandbox: Optional[bool] = Query(None),
        client: GetYourGuideClient = Depends(get_partner_client),
):
    try:
        await run_in_threadpool(client.delete_deal, deal_id, use_sandbox)
    except (PartnerConfigurationError, PartnerAPIError) as e:
        raise _partner_http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
