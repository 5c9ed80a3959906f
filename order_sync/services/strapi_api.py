"""
Strapi orders API client.

Usage:
  from order_sync.services.strapi_api import StrapiAPI
  async with StrapiAPI.from_config(config) as api:
      orders = await api.fetch_orders(page_size=100, page=1)

Notes:
- Bearer token auth, one page per call (no automatic pagination)
- Newest orders first (sort=createdAt:DESC)
- Retries with exponential backoff on any transport error or non-2xx status
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from order_sync.errors import FetchError
from order_sync.models import OrderRecord, parse_case_type_names, parse_orders_payload
from order_sync.services.http_client import async_client, get_json
from order_sync.utils.config import RetrySettings, SyncConfig

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_PAGE = 1


class StrapiAPI:
    def __init__(
        self,
        base_url: str,
        token: str,
        orders_endpoint: str = "api/orders/",
        case_types_endpoint: str = "api/phone-case-types",
        retry: Optional[RetrySettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.base_url = base_url
        self.orders_endpoint = orders_endpoint
        self.case_types_endpoint = case_types_endpoint
        self.retry = retry or RetrySettings()
        self._owns_client = client is None
        self.client = client or async_client(base_url=base_url, token=token, read_timeout=timeout_seconds)
        self.last_payload: Optional[Dict[str, Any]] = None

    @classmethod
    def from_config(cls, config: SyncConfig, client: Optional[httpx.AsyncClient] = None) -> "StrapiAPI":
        return cls(
            base_url=config.strapi.base_url,
            token=config.strapi.token,
            orders_endpoint=config.strapi.orders_endpoint,
            case_types_endpoint=config.strapi.case_types_endpoint,
            retry=config.retry,
            client=client,
            timeout_seconds=config.strapi.timeout_seconds,
        )

    async def fetch_raw(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            return await get_json(self.client, endpoint, settings=self.retry, params=params)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error fetching data from Strapi (%s): %s", endpoint, exc)
            raise FetchError(endpoint, str(exc)) from exc

    async def fetch_orders(
        self, page_size: Optional[int] = None, page: Optional[int] = None
    ) -> List[OrderRecord]:
        params: Dict[str, Any] = {
            "sort": "createdAt:DESC",
            "pagination[pageSize]": page_size or DEFAULT_PAGE_SIZE,
            "pagination[page]": page or DEFAULT_PAGE,
        }
        logger.info("Fetching orders: %s params=%s", self.orders_endpoint, params)
        payload = await self.fetch_raw(self.orders_endpoint, params=params)
        try:
            records = parse_orders_payload(payload)
        except ValueError as exc:
            raise FetchError(self.orders_endpoint, f"unexpected payload: {exc}") from exc
        self.last_payload = payload
        logger.info("Fetched %d orders", len(records))
        if records:
            logger.debug("First order: %s", records[0].model_dump_json())
        return records

    async def fetch_case_types(self) -> List[str]:
        payload = await self.fetch_raw(self.case_types_endpoint)
        return parse_case_type_names(payload)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "StrapiAPI":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


__all__ = ["DEFAULT_PAGE", "DEFAULT_PAGE_SIZE", "StrapiAPI"]
