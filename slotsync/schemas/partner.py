from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DealParams(BaseModel):
    """Last-minute deal to publish on the partner channel"""
    deal_name: str = Field(..., min_length=1, max_length=200)
    start_date: date
    end_date: date
    discount_percentage: float = Field(..., gt=0, le=100)
    notice_period_days: int = Field(3, ge=0, le=365)
    product_id: Optional[str] = Field(None, description="Defaults to GETYOURGUIDE_PRODUCT_ID")

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class DealResponse(BaseModel):
    deal_id: str


class DailyAvailability(BaseModel):
    """Vacancies offered to partners for one tour day"""
    model_config = ConfigDict(frozen=True)

    date: date
    date_time: datetime
    vacancies: int = Field(..., ge=0)
    booked_people: int = 0
    blocked_externally: bool = False


class PushOutcome(BaseModel):
    date: date
    vacancies: int
    succeeded: bool
    error: Optional[str] = None


class AvailabilityPushRequest(BaseModel):
    days: Optional[int] = Field(None, ge=1, le=365, description="Defaults to PARTNER_PUSH_DAYS")
    start_date: Optional[date] = None
    use_sandbox: Optional[bool] = None


class SingleAvailabilityPush(BaseModel):
    date_time: datetime
    vacancies: int = Field(..., ge=0)
    price: Optional[float] = Field(None, ge=0)
    product_id: Optional[str] = None
    use_sandbox: Optional[bool] = None


class AvailabilityPushResponse(BaseModel):
    product_id: str
    sandbox: bool
    outcomes: List[PushOutcome]
    failed_days: int
