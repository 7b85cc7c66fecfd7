"""Tests for log formatting, request correlation and health endpoints."""

from __future__ import annotations

import json
import logging

from slotsync.utils.my_logging import RequestContextFilter, build_formatter, request_id_var


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("slotsync.test", logging.INFO, __file__, 1, "Synced %s", ("viator",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRequestContextFilter:
    def test_defaults_to_dash(self) -> None:
        record = _record()

        RequestContextFilter().filter(record)

        assert record.request_id == "-"

    def test_uses_context_value(self) -> None:
        token = request_id_var.set("req-42")
        try:
            record = _record()
            RequestContextFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert record.request_id == "req-42"

    def test_explicit_extra_wins(self) -> None:
        token = request_id_var.set("req-42")
        try:
            record = _record(request_id="from-extra")
            RequestContextFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert record.request_id == "from-extra"


class TestFormatters:
    def test_json_includes_extra_fields(self) -> None:
        record = _record(request_id="req-1", source_id="src-9")

        payload = json.loads(build_formatter("json").format(record))

        assert payload["message"] == "Synced viator"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "slotsync.test"
        assert payload["request_id"] == "req-1"
        assert payload["source_id"] == "src-9"

    def test_text_format(self) -> None:
        line = build_formatter("text").format(_record(request_id="req-1"))

        assert "[req-1] Synced viator" in line


class TestRequestIdMiddleware:
    def test_echoes_incoming_id(self, client) -> None:
        response = client.get("/health/", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"

    def test_generates_id(self, client) -> None:
        response = client.get("/health/")

        assert response.headers["X-Request-ID"]


class TestHealth:
    def test_detailed_without_redis(self, client) -> None:
        body = client.get("/health/detailed").json()

        assert body["database"] == "healthy"
        assert body["redis"] == "not_used"
        assert body["overall"] == "healthy"

    def test_sync_health_lists_failing_sources(self, client, db, make_source) -> None:
        ok = make_source("Viator")
        broken = make_source("Broken", "https://feeds.example.com/broken.ics")
        make_source("Off", enabled=False)
        ok.last_sync_status = "success"
        broken.last_sync_status = "failed"
        broken.last_sync_error = "HTTP 500 from calendar feed"
        db.commit()

        body = client.get("/health/sync").json()

        assert body["status"] == "degraded"
        assert body["enabled_sources"] == 2
        assert body["failing_sources"] == [
            {"id": broken.id, "name": "Broken", "error": "HTTP 500 from calendar feed"}
        ]
