"""Shared fixtures: in-memory SQLite ledger, API client and model factories."""

from __future__ import annotations

import os

# Settings are read once at import time; point them at test values first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SYNC_LOCK_BACKEND", "memory")
os.environ.setdefault("OPERATOR_API_KEY", "test-operator-key")
os.environ.setdefault("CALENDAR_FEED_TOKEN", "feed-token")
os.environ.setdefault("BOOKING_WEBHOOK_USERNAME", "channel")
os.environ.setdefault("BOOKING_WEBHOOK_PASSWORD", "s3cret")
os.environ.setdefault("GETYOURGUIDE_API_USERNAME", "gyg-user")
os.environ.setdefault("GETYOURGUIDE_API_PASSWORD", "gyg-pass")
os.environ.setdefault("GETYOURGUIDE_PRODUCT_ID", "prod-123")
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")

import uuid
from datetime import date, datetime, time, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from slotsync.config.database import SessionLocal, engine, get_db
from slotsync.main import create_app
from slotsync.models import Base, Booking, CalendarSource


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def app(db):
    application = create_app()

    def _get_test_db():
        yield db

    application.dependency_overrides[get_db] = _get_test_db
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_booking(db):
    """Insert a ledger booking; defaults to a confirmed 2-person tour at 09:00."""

    def _make(
            visit_date: date = date(2026, 3, 14),
            visit_time: time = time(9, 0),
            status: str = "confirmed",
            number_of_people: int = 2,
            channel: str = "direct",
            external_reference: str | None = None,
            duration_minutes: int | None = None,
            **extra,
    ) -> Booking:
        booking = Booking(
            booking_reference=f"DIR-{uuid.uuid4().hex[:8].upper()}",
            channel=channel,
            external_reference=external_reference,
            visit_date=visit_date,
            visit_time=visit_time,
            status=status,
            number_of_people=number_of_people,
            duration_minutes=duration_minutes,
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            updated_at=datetime(2026, 1, 2, tzinfo=timezone.utc),
            **extra,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


@pytest.fixture
def make_source(db):
    """Insert a calendar source; creation times increase in call order."""
    counter = {"n": 0}

    def _make(name: str = "Viator", feed_url: str = "https://feeds.example.com/viator.ics", enabled: bool = True):
        counter["n"] += 1
        source = CalendarSource(
            name=name,
            feed_url=feed_url,
            enabled=enabled,
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=counter["n"]),
        )
        db.add(source)
        db.commit()
        db.refresh(source)
        return source

    return _make
