# ===== slotsync/models/calendar_source.py =====
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, DateTime, Text

from .base import Base


def _utcnow():
    return datetime.now(timezone.utc)


class CalendarSource(Base):
    """An external, read-only iCal feed registered for import"""
    __tablename__ = "calendar_sources"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)  # e.g. "Viator", "Airbnb Experiences"
    feed_url = Column(Text, nullable=False)
    color_tag = Column(String(20), default="#3b82f6")
    enabled = Column(Boolean, nullable=False, default=True)

    # Written by the sync orchestrator only
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    last_sync_status = Column(String(20), nullable=True)  # 'success', 'failed'
    last_sync_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<CalendarSource(id={self.id}, name={self.name})>"
