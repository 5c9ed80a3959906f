"""
Exception types raised by the order sync job.

Fetch and config failures abort a run. Sink and watermark failures are caught
where they happen and reported (SinkResult, ``None`` watermark) instead.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class OrderSyncError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(OrderSyncError):
    """A required setting is missing or cannot be parsed."""


class FetchError(OrderSyncError):
    """The orders API could not be read after all retries."""

    def __init__(self, endpoint: str, reason: str = "") -> None:
        message = f"Failed to fetch data from {endpoint}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"endpoint": endpoint})
        self.endpoint = endpoint


class SinkAuthError(OrderSyncError):
    """Service-account authentication or spreadsheet load failed."""


class SinkLookupError(OrderSyncError):
    """No sheet with the requested title exists in the target document."""

    def __init__(self, title: str) -> None:
        super().__init__(f"Sheet not found: {title}", details={"title": title})
        self.title = title


class WatermarkParseError(OrderSyncError):
    """The watermark file exists but does not hold a readable timestamp."""


__all__ = [
    "ConfigError",
    "FetchError",
    "OrderSyncError",
    "SinkAuthError",
    "SinkLookupError",
    "WatermarkParseError",
]
