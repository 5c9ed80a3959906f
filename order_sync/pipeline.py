"""
Order sync driver: Strapi -> transform -> Google Sheets, one page per run.

The watermark only moves forward after the sink confirms a write, so a failed
or empty run leaves the next run's window unchanged.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from order_sync.errors import FetchError
from order_sync.services.sheets_client import SheetSink, SinkResult
from order_sync.services.strapi_api import StrapiAPI
from order_sync.transform import OrderBatch, build_batch
from order_sync.utils.config import SyncConfig
from order_sync.watermark import WatermarkStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    fetched: int
    selected: int
    sink: Optional[SinkResult] = None
    watermark: Optional[datetime] = None

    @property
    def watermark_advanced(self) -> bool:
        return self.watermark is not None


def _stamp(now: datetime) -> str:
    return now.strftime("%Y%m%dT%H%M%S")


def write_snapshots(cache_dir: Path, now: datetime, payload: Any, batch: OrderBatch) -> None:
    """Save the raw API page and the rows headed for the sheet."""
    cache_dir.mkdir(parents=True, exist_ok=True)
    stamp = _stamp(now)
    json_path = cache_dir / f"orders_{stamp}.json"
    with json_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    logger.info("Saved raw orders JSON to %s", json_path)

    rows = batch.all_rows()
    if rows:
        csv_path = cache_dir / f"order_rows_{stamp}.csv"
        pd.DataFrame(rows).to_csv(csv_path, index=False)
        logger.info("Saved %d sheet rows to %s", len(rows), csv_path)


async def _log_case_types(api: StrapiAPI) -> None:
    try:
        names = await api.fetch_case_types()
    except FetchError as exc:
        logger.warning("Could not load phone case types: %s", exc)
        return
    logger.info("Known phone case types (%d): %s", len(names), ", ".join(names))


async def run_sync(
    config: SyncConfig,
    *,
    api: Optional[StrapiAPI] = None,
    sink: Optional[SheetSink] = None,
    store: Optional[WatermarkStore] = None,
    now: Optional[datetime] = None,
    dry_run: bool = False,
) -> SyncResult:
    store = store or WatermarkStore(config.state.watermark_file)
    owns_api = api is None
    api = api or StrapiAPI.from_config(config)
    started = now or datetime.now(timezone.utc)
    mode = config.transform.mode

    try:
        last_request_time = store.load()
        if mode == "grouped":
            await _log_case_types(api)
        records = await api.fetch_orders(page_size=config.strapi.page_size, page=config.strapi.page)
    finally:
        if owns_api:
            await api.close()

    batch = build_batch(
        records,
        watermark=last_request_time,
        mode=mode,
        incremental=config.transform.incremental,
        pattern=config.transform.label_pattern,
        default_label=config.transform.default_label,
    )

    if config.state.cache_dir is not None:
        try:
            write_snapshots(config.state.cache_dir, started, api.last_payload, batch)
        except OSError as e:
            logger.warning("Could not save snapshot: %s", e)

    if len(batch) == 0:
        logger.warning("No new successful orders found to post.")
        return SyncResult(fetched=len(records), selected=0)

    if mode == "grouped":
        logger.info("Grouped %d orders into %s", len(batch), {k: len(v) for k, v in batch.groups.items()})

    if dry_run:
        logger.info("Dry run: %d rows ready, skipping sheet write and watermark", len(batch))
        return SyncResult(fetched=len(records), selected=len(batch))

    sink = sink or SheetSink(config.sheets)
    sink_result = await sink.write(batch)
    if not sink_result.ok:
        logger.warning("Sheet write not confirmed; keeping previous watermark")
        return SyncResult(fetched=len(records), selected=len(batch), sink=sink_result)

    saved = store.save(started)
    return SyncResult(fetched=len(records), selected=len(batch), sink=sink_result, watermark=saved)


__all__ = ["SyncResult", "run_sync", "write_snapshots"]
