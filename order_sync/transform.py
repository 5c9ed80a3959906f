"""
Filter, classify and reshape Strapi orders into sheet rows.

Two output shapes:
  flat     one list of rows, each carrying the extracted label in a `type` column
  grouped  label -> rows, used to route each group to the sheet titled after it
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Pattern, Sequence, Tuple, Union

from order_sync.models import TYPE_COLUMN, OrderRecord
from order_sync.utils.config import DEFAULT_LABEL, DEFAULT_LABEL_PATTERN
from order_sync.watermark import parse_timestamp

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

_PATTERN_CACHE: Dict[str, Pattern[str]] = {}


def _compile(pattern: Union[str, Pattern[str]]) -> Pattern[str]:
    if not isinstance(pattern, str):
        return pattern
    compiled = _PATTERN_CACHE.get(pattern)
    if compiled is None:
        # ASCII word chars: a label ends at the first non-latin character
        compiled = re.compile(pattern, re.ASCII)
        _PATTERN_CACHE[pattern] = compiled
    return compiled


def extract_label(
    text: Optional[str],
    pattern: Union[str, Pattern[str]] = DEFAULT_LABEL_PATTERN,
    default: str = DEFAULT_LABEL,
) -> str:
    if not text:
        return default
    match = _compile(pattern).search(text)
    if not match:
        return default
    label = (match.group(1) if match.groups() else match.group(0)).strip()
    return label or default


def _is_newer(record: OrderRecord, watermark: datetime) -> bool:
    if not record.createdAt:
        logger.warning("Order %s has no createdAt; skipping", record.id)
        return False
    try:
        created = parse_timestamp(record.createdAt)
    except (ValueError, OverflowError):
        logger.warning("Order %s has unparseable createdAt %r; skipping", record.id, record.createdAt)
        return False
    return created > watermark


def filter_records(
    records: Iterable[OrderRecord],
    watermark: Optional[datetime] = None,
    incremental: bool = True,
) -> List[OrderRecord]:
    """Keep successful orders, and when incremental, only those newer than the watermark."""
    kept = [r for r in records if r.success]
    if incremental and watermark is not None:
        kept = [r for r in kept if _is_newer(r, watermark)]
    return kept


def reshape(record: OrderRecord, label: Optional[str] = None) -> Row:
    row: Row = {
        "id": record.id,
        "name": record.name or "",
        "image": record.image or "",
        "email": record.email or "",
        "phoneNumber": record.phoneNumber or "",
        "address": record.address or "",
        "postCode": record.postCode or "",
        "success": record.success,
        "socialId": record.socialId or None,
        "data": record.data or "",
        "orderStatus": record.orderStatus or None,
        "createdAt": record.createdAt,
    }
    if label is not None:
        row[TYPE_COLUMN] = label
    return row


def group_by_label(pairs: Iterable[Tuple[str, Row]]) -> Dict[str, List[Row]]:
    groups: Dict[str, List[Row]] = {}
    for label, row in pairs:
        groups.setdefault(label, []).append(row)
    return groups


@dataclass(frozen=True)
class OrderBatch:
    mode: str
    rows: List[Row] = field(default_factory=list)
    groups: Dict[str, List[Row]] = field(default_factory=dict)

    def __len__(self) -> int:
        if self.mode == "grouped":
            return sum(len(v) for v in self.groups.values())
        return len(self.rows)

    def all_rows(self) -> List[Row]:
        if self.mode == "grouped":
            return [dict(row, **{TYPE_COLUMN: label}) for label, rows in self.groups.items() for row in rows]
        return list(self.rows)


def build_batch(
    records: Sequence[OrderRecord],
    watermark: Optional[datetime] = None,
    mode: str = "flat",
    incremental: bool = True,
    pattern: Union[str, Pattern[str]] = DEFAULT_LABEL_PATTERN,
    default_label: str = DEFAULT_LABEL,
) -> OrderBatch:
    selected = filter_records(records, watermark=watermark, incremental=incremental)
    logger.info(
        "Selected %d of %d orders (incremental=%s, watermark=%s)",
        len(selected),
        len(records),
        incremental,
        watermark.isoformat() if watermark else None,
    )
    labelled = [(extract_label(r.data, pattern, default_label), r) for r in selected]
    if mode == "grouped":
        return OrderBatch(mode=mode, groups=group_by_label((label, reshape(r)) for label, r in labelled))
    return OrderBatch(mode=mode, rows=[reshape(r, label) for label, r in labelled])


__all__ = [
    "OrderBatch",
    "Row",
    "build_batch",
    "extract_label",
    "filter_records",
    "group_by_label",
    "reshape",
]
