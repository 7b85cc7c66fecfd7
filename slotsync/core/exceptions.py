"""Exceptions raised by the sync engine and its adapters"""
from typing import Optional


class SlotSyncError(Exception):
    """Base class for all engine errors"""


class SourceConfigurationError(SlotSyncError):
    """A calendar source is misconfigured (e.g. an unsupported feed URL)"""


class SyncAlreadyRunning(SlotSyncError):
    """Another sync run holds the single-flight lock"""


class InvalidStatusTransition(SlotSyncError):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move booking from '{current}' to '{requested}'")


class BookingNotFound(SlotSyncError):
    pass


class WebhookAuthenticationError(SlotSyncError):
    """Inbound webhook caller presented missing or wrong credentials"""


class WebhookNotConfigured(SlotSyncError):
    """Inbound webhook credentials are not set on this deployment"""


class PayloadDecodeError(SlotSyncError):
    """A channel payload could not be decoded into a booking draft"""

    def __init__(self, channel: str, reason: str):
        self.channel = channel
        self.reason = reason
        super().__init__(f"Invalid {channel} payload: {reason}")


class PartnerConfigurationError(SlotSyncError):
    """Partner API credentials or product settings are missing"""


class PartnerAPIError(SlotSyncError):
    """A partner call failed at the HTTP, transport or payload level"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class PartnerAuthenticationError(PartnerAPIError):
    """The partner rejected our credentials (401/403)"""
