from __future__ import annotations
from datetime import date, datetime, time
from typing import Annotated, Literal, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from slotsync.core.exceptions import PayloadDecodeError
from slotsync.models.booking import BookingStatus
from slotsync.schemas.booking import BookingDraft


class GetYourGuideCustomer(BaseModel):
    name: Optional[str] = Field(None, description="Lead traveler name")
    email: Optional[str] = Field(None, description="Lead traveler email")
    phone: Optional[str] = Field(None, description="Lead traveler phone")


class GetYourGuideBookingPayload(BaseModel):
    """GetYourGuide booking notification"""
    model_config = ConfigDict(populate_by_name=True)

    channel: Literal["getyourguide"]
    booking_id: str = Field(..., min_length=1, description="GetYourGuide booking identifier")
    product_id: str = Field(..., description="GetYourGuide product identifier")
    start_at: datetime = Field(..., alias="datetime", description="Tour start (ISO 8601)")
    participants: int = Field(1, ge=1, description="Number of travelers")
    customer: GetYourGuideCustomer
    total_price: Optional[float] = Field(None, ge=0)
    action: Literal["book", "cancel"] = Field("book", description="cancel marks the booking cancelled")

    def to_draft(self, tz: ZoneInfo) -> BookingDraft:
        local = self.start_at if self.start_at.tzinfo is None else self.start_at.astimezone(tz)
        return BookingDraft(
            channel=self.channel,
            external_reference=self.booking_id,
            visit_date=local.date(),
            visit_time=local.time().replace(tzinfo=None),
            number_of_people=self.participants,
            initial_status=BookingStatus.CONFIRMED,  # paid on the channel
            cancelled=self.action == "cancel",
            visitor_name=self.customer.name,
            visitor_email=self.customer.email,
            visitor_phone=self.customer.phone,
            tour_type="Community Tour",
            total_amount=int(round(self.total_price)) if self.total_price is not None else None,
        )


class ViatorLeadTraveler(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class ViatorBookingPayload(BaseModel):
    """Viator booking notification"""
    channel: Literal["viator"]
    bookingRef: str = Field(..., min_length=1, description="Viator booking reference")
    productCode: str = Field(..., description="Viator product code")
    travelDate: date = Field(..., description="Tour date (YYYY-MM-DD)")
    startTime: time = Field(..., description="Tour start time (HH:MM)")
    travelers: int = Field(1, ge=1)
    bookingStatus: Literal["CONFIRMED", "PENDING", "CANCELLED"] = Field("PENDING")
    leadTraveler: Optional[ViatorLeadTraveler] = None
    durationMinutes: Optional[int] = Field(None, gt=0)

    @field_validator("bookingStatus", mode="before")
    @classmethod
    def upper_status(cls, v):
        return v.upper() if isinstance(v, str) else v

    def to_draft(self, tz: ZoneInfo) -> BookingDraft:
        lead = self.leadTraveler or ViatorLeadTraveler()
        name = " ".join(part for part in (lead.firstName, lead.lastName) if part) or None
        return BookingDraft(
            channel=self.channel,
            external_reference=self.bookingRef,
            visit_date=self.travelDate,
            visit_time=self.startTime.replace(tzinfo=None),
            number_of_people=self.travelers,
            # Viator holds bookings until the supplier confirms
            initial_status=BookingStatus.CONFIRMED if self.bookingStatus == "CONFIRMED" else BookingStatus.PENDING,
            cancelled=self.bookingStatus == "CANCELLED",
            duration_minutes=self.durationMinutes,
            visitor_name=name,
            visitor_email=lead.email,
            visitor_phone=lead.phone,
        )


ChannelBookingPayload = Annotated[
    Union[GetYourGuideBookingPayload, ViatorBookingPayload],
    Field(discriminator="channel"),
]

_payload_adapter = TypeAdapter(ChannelBookingPayload)

SUPPORTED_CHANNELS = ("getyourguide", "viator")


def decode_booking_payload(channel: str, body, tz: ZoneInfo) -> BookingDraft:
    """Decode a raw webhook body for ``channel`` into a BookingDraft.

    Raises PayloadDecodeError for unknown channels, non-object bodies and
    schema violations; untyped data never goes further than this function.
    """
    if channel not in SUPPORTED_CHANNELS:
        raise PayloadDecodeError(channel, "unsupported channel")
    if not isinstance(body, dict):
        raise PayloadDecodeError(channel, "payload must be a JSON object")

    try:
        payload = _payload_adapter.validate_python({**body, "channel": channel})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'body'}: {err['msg']}"
            for err in e.errors()
        )
        raise PayloadDecodeError(channel, problems) from e

    return payload.to_draft(tz)
