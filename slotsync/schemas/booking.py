from __future__ import annotations
from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from slotsync.models.booking import BookingStatus


class BookingDraft(BaseModel):
    """A channel booking normalized for the ledger, produced by the webhook decoders"""
    channel: str = Field(..., description="Channel the booking came from")
    external_reference: str = Field(..., min_length=1, description="Booking id on the channel")
    visit_date: date
    visit_time: time
    number_of_people: int = Field(1, ge=1)
    initial_status: BookingStatus = Field(BookingStatus.CONFIRMED, description="Status used when the booking is new")
    cancelled: bool = Field(False, description="Payload signals a cancellation")
    duration_minutes: Optional[int] = Field(None, gt=0)
    visitor_name: Optional[str] = None
    visitor_email: Optional[str] = None
    visitor_phone: Optional[str] = None
    tour_type: Optional[str] = None
    total_amount: Optional[int] = None


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_reference: str
    channel: str
    external_reference: Optional[str] = None
    visitor_name: Optional[str] = None
    tour_type: Optional[str] = None
    visit_date: date
    visit_time: time
    duration_minutes: Optional[int] = None
    number_of_people: int
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
