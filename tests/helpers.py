"""Shared test constants and iCal text builders."""

from __future__ import annotations

OPERATOR_HEADERS = {"X-API-Key": "test-operator-key"}
WEBHOOK_AUTH = ("channel", "s3cret")


def ical_document(*events: str) -> str:
    """Wrap VEVENT blocks into a minimal VCALENDAR."""
    body = "".join(events)
    return (
        "BEGIN:VCALENDAR\r\n"
        "VERSION:2.0\r\n"
        "PRODID:-//Test//Feed//EN\r\n"
        f"{body}"
        "END:VCALENDAR\r\n"
    )


def vevent(uid: str, start: str, end: str | None = None, summary: str = "Busy", extra: str = "") -> str:
    lines = [
        "BEGIN:VEVENT",
        f"UID:{uid}",
        "DTSTAMP:20260101T000000Z",
        f"DTSTART:{start}",
    ]
    if end is not None:
        lines.append(f"DTEND:{end}")
    lines.append(f"SUMMARY:{summary}")
    if extra:
        lines.append(extra)
    lines.append("END:VEVENT")
    return "\r\n".join(lines) + "\r\n"
