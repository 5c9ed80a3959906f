#!/usr/bin/env python3
"""
CLI: pull one page of Strapi orders and append the new ones to Google Sheets.
"""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

from order_sync.errors import OrderSyncError
from order_sync.pipeline import run_sync
from order_sync.utils.config import MODES, SyncConfig, load_config

logger = logging.getLogger("order_sync")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync successful Strapi orders into Google Sheets.")
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional path to sync.yaml (defaults to config/sync.yaml)",
    )
    parser.add_argument("--page-size", type=int, dest="page_size", help="orders per page (LIMIT)")
    parser.add_argument("--page", type=int, help="page number (PAGE)")
    parser.add_argument("--mode", choices=MODES, help="flat: one sheet with a type column; grouped: one sheet per type")
    parser.add_argument("--full", action="store_true", help="ignore the watermark and take every successful order")
    parser.add_argument("--state-file", type=Path, dest="state_file", help="watermark file path")
    parser.add_argument("--dry-run", action="store_true", dest="dry_run", help="transform only; no sheet write")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser.parse_args(argv)


def apply_overrides(config: SyncConfig, args: argparse.Namespace) -> SyncConfig:
    strapi = config.strapi
    if args.page_size:
        strapi = dataclasses.replace(strapi, page_size=args.page_size)
    if args.page:
        strapi = dataclasses.replace(strapi, page=args.page)
    transform = config.transform
    if args.mode:
        transform = dataclasses.replace(transform, mode=args.mode)
    if args.full:
        transform = dataclasses.replace(transform, incremental=False)
    state = config.state
    if args.state_file:
        state = dataclasses.replace(state, watermark_file=args.state_file)
    return dataclasses.replace(config, strapi=strapi, transform=transform, state=state)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    try:
        config = load_config(args.config) if args.config else load_config()
        config = apply_overrides(config, args)
        config.validate(include_sheets=not args.dry_run)
        result = asyncio.run(run_sync(config, dry_run=args.dry_run))
    except KeyboardInterrupt:
        print("Interrupted by user, exiting 130", file=sys.stderr)
        return 130
    except OrderSyncError as exc:
        logger.error("Order sync failed: %s", exc)
        return 1
    except Exception:
        logger.exception("An error occurred")
        return 1

    logger.info(
        "Done: fetched=%d selected=%d written=%d watermark=%s",
        result.fetched,
        result.selected,
        result.sink.rows_written if result.sink else 0,
        result.watermark.isoformat() if result.watermark else "unchanged",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
