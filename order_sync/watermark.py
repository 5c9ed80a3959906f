"""
Persisted watermark: the time of the last confirmed sheet write.

Stored as `{"lastRequestTime": "<ISO-8601>"}`. A missing or unreadable file
means "first run" and never fails the job.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from dateutil import parser as dateparser

from order_sync.errors import WatermarkParseError

logger = logging.getLogger(__name__)

WATERMARK_KEY = "lastRequestTime"


def as_utc(value: datetime) -> datetime:
    # naive timestamps are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(raw: str) -> datetime:
    return as_utc(dateparser.isoparse(raw))


class WatermarkStore:
    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _read(self) -> datetime:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise WatermarkParseError(f"Cannot read {self.path}: {exc}") from exc
        raw = payload.get(WATERMARK_KEY) if isinstance(payload, dict) else None
        if not isinstance(raw, str) or not raw.strip():
            raise WatermarkParseError(f"{self.path} has no {WATERMARK_KEY!r} value")
        try:
            return parse_timestamp(raw)
        except (ValueError, OverflowError) as exc:
            raise WatermarkParseError(f"Invalid timestamp {raw!r} in {self.path}") from exc

    def load(self) -> Optional[datetime]:
        if not self.path.exists():
            logger.info("No watermark at %s; processing all successful orders", self.path)
            return None
        try:
            value = self._read()
        except WatermarkParseError as exc:
            logger.warning("Ignoring watermark: %s", exc)
            return None
        logger.info("Last request time: %s", value.isoformat())
        return value

    def save(self, timestamp: Optional[datetime] = None) -> datetime:
        """
        Write `timestamp` (or the current UTC time when omitted) and return it.

        The pipeline passes the time captured at the start of the run, before
        the fetch, so orders created while a run is in flight land after the
        saved watermark and are picked up by the next run.
        """
        value = as_utc(timestamp) if timestamp else datetime.now(timezone.utc)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({WATERMARK_KEY: value.isoformat()}, indent=2), encoding="utf-8"
        )
        logger.info("Saved watermark %s to %s", value.isoformat(), self.path)
        return value


__all__ = ["WATERMARK_KEY", "WatermarkStore", "as_utc", "parse_timestamp"]
