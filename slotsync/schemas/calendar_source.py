from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from slotsync.core.exceptions import SourceConfigurationError
from slotsync.services.calendar.ical_import_service import normalize_feed_url


def _check_feed_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        normalize_feed_url(value)
    except SourceConfigurationError as e:
        raise ValueError(str(e))
    return value.strip()


class CalendarSourceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    feed_url: str = Field(..., description="http(s) or webcal URL of an iCal feed")
    color_tag: str = Field("#3b82f6", pattern=r"^#[0-9a-fA-F]{6}$")
    enabled: bool = True

    @field_validator("feed_url")
    @classmethod
    def check_feed_url(cls, v):
        return _check_feed_url(v)


class CalendarSourceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    feed_url: Optional[str] = None
    color_tag: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    enabled: Optional[bool] = None

    @field_validator("feed_url")
    @classmethod
    def check_feed_url(cls, v):
        return _check_feed_url(v)


class CalendarSourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    feed_url: str
    color_tag: Optional[str] = None
    enabled: bool
    last_synced_at: Optional[datetime] = None
    last_sync_status: Optional[str] = None
    last_sync_error: Optional[str] = None
    created_at: Optional[datetime] = None
