# slotsync/services/partner/getyourguide_service.py
import base64
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from slotsync.config.settings import get_settings
from slotsync.core.exceptions import (
    PartnerAPIError,
    PartnerAuthenticationError,
    PartnerConfigurationError,
)
from slotsync.schemas.partner import DealParams

settings = get_settings()

logger = logging.getLogger(__name__)


class GetYourGuideClient:
    """GetYourGuide Supplier API client.

    Every method is one authenticated request. Failures are raised, never
    retried; callers decide whether to try again.
    """

    def __init__(
            self,
            username: Optional[str] = None,
            password: Optional[str] = None,
            use_sandbox: Optional[bool] = None,
            currency: Optional[str] = None,
            timeout: Optional[float] = None,
            session: Optional[requests.Session] = None,
    ):
        self.username = settings.GETYOURGUIDE_API_USERNAME if username is None else username
        self.password = settings.GETYOURGUIDE_API_PASSWORD if password is None else password
        self.use_sandbox = settings.GETYOURGUIDE_USE_SANDBOX if use_sandbox is None else use_sandbox
        self.currency = currency or settings.GETYOURGUIDE_CURRENCY
        self.timeout = timeout or settings.GETYOURGUIDE_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def ensure_configured(self) -> None:
        if not self.username or not self.password:
            raise PartnerConfigurationError("GetYourGuide API credentials not configured")

    def base_url(self, use_sandbox: Optional[bool] = None) -> str:
        sandbox = self.use_sandbox if use_sandbox is None else use_sandbox
        return settings.GETYOURGUIDE_SANDBOX_URL if sandbox else settings.GETYOURGUIDE_API_URL

    def _auth_header(self) -> str:
        credentials = base64.b64encode(f"{self.username}:{self.password}".encode("utf-8")).decode("ascii")
        return f"Basic {credentials}"

    def _request(
            self,
            method: str,
            path: str,
            json: Optional[dict] = None,
            params: Optional[dict] = None,
            use_sandbox: Optional[bool] = None,
    ) -> Dict[str, Any]:
        self.ensure_configured()
        url = f"{self.base_url(use_sandbox)}{path}"
        headers = {
            "Authorization": self._auth_header(),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                json=json,
                params=params,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise PartnerAPIError(f"GetYourGuide request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise PartnerAPIError(f"GetYourGuide request failed: {e}") from e

        if response.status_code in (401, 403):
            logger.error(f"GetYourGuide rejected credentials: HTTP {response.status_code}")
            raise PartnerAuthenticationError(
                "GetYourGuide authentication failed",
                status_code=response.status_code,
                body=response.text,
            )

        if not response.ok:
            logger.error(f"GetYourGuide API error: {response.status_code} {response.text[:500]}")
            raise PartnerAPIError(
                f"GetYourGuide API error: HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        if not response.content:
            return {}

        try:
            data = response.json()
        except ValueError as e:
            raise PartnerAPIError(
                "GetYourGuide returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from e

        # the API reports some failures inside a 2xx body
        if isinstance(data, dict) and (data.get("errorCode") or data.get("errors")):
            message = data.get("errorMessage") or data.get("errors") or data.get("errorCode")
            raise PartnerAPIError(
                f"GetYourGuide rejected the request: {message}",
                status_code=response.status_code,
                body=response.text,
            )

        return data if isinstance(data, dict) else {"data": data}

    def push_availability(
            self,
            product_id: str,
            date_time: datetime,
            spots: int,
            price: Optional[float] = None,
            use_sandbox: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Notify GetYourGuide of the vacancies for one tour start"""
        availability = {
            "dateTime": date_time.isoformat(),
            "vacancies": max(0, int(spots)),
            "currency": self.currency,
        }
        if price is not None:
            availability["pricesByCategory"] = {
                "retailPrices": [{"category": "Adult", "price": price}],
            }

        result = self._request(
            "POST",
            "/notify-availability-update",
            json={"data": {"productId": product_id, "availabilities": [availability]}},
            use_sandbox=use_sandbox,
        )
        logger.info(
            f"Pushed availability for {product_id}",
            extra={"date_time": availability["dateTime"], "vacancies": availability["vacancies"]},
        )
        return result

    def create_deal(self, params: DealParams, use_sandbox: Optional[bool] = None) -> str:
        """Create a last-minute deal and return its id"""
        product_id = params.product_id or settings.GETYOURGUIDE_PRODUCT_ID
        if not product_id:
            raise PartnerConfigurationError("GetYourGuide product id not configured")

        result = self._request(
            "POST",
            "/deals",
            json={
                "data": {
                    "externalProductId": product_id,
                    "dealName": params.deal_name,
                    "dateRange": {
                        "start": params.start_date.isoformat(),
                        "end": params.end_date.isoformat(),
                    },
                    "dealType": "last_minute",
                    "discountPercentage": params.discount_percentage,
                    "noticePeriodDays": params.notice_period_days,
                }
            },
            use_sandbox=use_sandbox,
        )

        deal_id = (result.get("data") or {}).get("dealId") or result.get("dealId")
        if not deal_id:
            raise PartnerAPIError("GetYourGuide did not return a deal id", body=str(result))
        logger.info(f"Created GetYourGuide deal {deal_id} for {product_id}")
        return str(deal_id)

    def list_deals(self, product_id: Optional[str] = None, use_sandbox: Optional[bool] = None) -> List[dict]:
        product_id = product_id or settings.GETYOURGUIDE_PRODUCT_ID
        if not product_id:
            raise PartnerConfigurationError("GetYourGuide product id not configured")

        result = self._request(
            "GET",
            "/deals",
            params={"externalProductId": product_id},
            use_sandbox=use_sandbox,
        )
        return (result.get("data") or {}).get("deals") or []

    def delete_deal(self, deal_id: str, use_sandbox: Optional[bool] = None) -> None:
        self._request("DELETE", f"/deals/{deal_id}", use_sandbox=use_sandbox)
        logger.info(f"Deleted GetYourGuide deal {deal_id}")
