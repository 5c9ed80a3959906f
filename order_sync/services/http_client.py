# order_sync/services/http_client.py
from __future__ import annotations
import asyncio, logging
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from order_sync.utils.config import RetrySettings

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0
LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5, keepalive_expiry=30)

DEFAULT_HEADERS = {
    "User-Agent": "order-sync/1.0 (+python-httpx)",
    "Accept": "application/json",
    "Content-Type": "application/json",
}

# any transport error or non-2xx status (raised by raise_for_status)
Retryable = (httpx.HTTPError,)


def async_client(
    base_url: str = "",
    headers: Optional[Dict[str, str]] = None,
    token: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    read_timeout: float = 30.0,
) -> httpx.AsyncClient:
    h = {**DEFAULT_HEADERS, **(headers or {})}
    if token:
        h["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/") + "/" if base_url else "",
        timeout=httpx.Timeout(read_timeout, connect=CONNECT_TIMEOUT),
        limits=LIMITS,
        headers=h,
        follow_redirects=True,
        transport=transport,
    )


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning("Attempt %d failed. Retrying... %s", state.attempt_number, exc)


def _retrying(settings: RetrySettings) -> AsyncRetrying:
    return AsyncRetrying(
        reraise=True,
        retry=retry_if_exception_type(Retryable),
        stop=stop_after_attempt(max(1, settings.attempts)),
        wait=wait_exponential(multiplier=settings.wait_initial, max=settings.wait_max)
        + wait_random(0, settings.jitter),
        before_sleep=_log_retry,
    )


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    settings: Optional[RetrySettings] = None,
    **kw: Any,
) -> Any:
    settings = settings or RetrySettings()
    async for attempt in _retrying(settings):
        with attempt:
            # cap total op time per attempt so a hung server still counts as a failure
            try:
                r = await asyncio.wait_for(client.get(url, **kw), timeout=settings.total_timeout)
            except asyncio.TimeoutError as exc:
                raise httpx.TimeoutException(f"GET {url} exceeded {settings.total_timeout}s") from exc
            r.raise_for_status()
            return r.json()
