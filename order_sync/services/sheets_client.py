"""
Google Sheets sink.

Appends order rows to the target spreadsheet with a service account:
  flat     everything goes to the first sheet (by position)
  grouped  each label's rows go to the sheet whose title equals the label

Failures never propagate to the caller; they are logged and reported through
SinkResult so the driver can decide whether the run counts as written.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import gspread
from google.oauth2.service_account import Credentials

from order_sync.errors import SinkAuthError, SinkLookupError
from order_sync.models import ORDER_COLUMNS, TYPE_COLUMN
from order_sync.transform import OrderBatch, Row
from order_sync.utils.config import SHEETS_SCOPE, SheetSettings

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


def unescape_private_key(key: str) -> str:
    # keys pasted into .env files carry literal "\n" sequences
    return key.replace("\\n", "\n")


def build_credentials(email: str, private_key: str) -> Credentials:
    info = {
        "type": "service_account",
        "client_email": email,
        "private_key": unescape_private_key(private_key),
        "token_uri": TOKEN_URI,
    }
    return Credentials.from_service_account_info(info, scopes=[SHEETS_SCOPE])


def _cell(value: Any) -> Any:
    return "" if value is None else value


def row_values(row: Row, header: Sequence[str]) -> List[Any]:
    return [_cell(row.get(col)) for col in header]


def default_header(rows: Sequence[Row]) -> List[str]:
    cols = list(ORDER_COLUMNS)
    if any(TYPE_COLUMN in row for row in rows):
        cols.append(TYPE_COLUMN)
    return cols


@dataclass
class SinkResult:
    written: Dict[str, int] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def rows_written(self) -> int:
        return sum(self.written.values())

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed and self.rows_written > 0


class SheetSink:
    def __init__(self, settings: SheetSettings, client: Optional[gspread.Client] = None) -> None:
        self.settings = settings
        self._client = client

    def _authorize(self) -> gspread.Client:
        if self._client is None:
            creds = build_credentials(self.settings.service_account_email, self.settings.private_key)
            self._client = gspread.authorize(creds)
            logger.info("Authenticated with Google as %s", self.settings.service_account_email)
        return self._client

    def _open(self) -> gspread.Spreadsheet:
        target = self.settings.spreadsheet
        try:
            client = self._authorize()
            if target.startswith("http"):
                doc = client.open_by_url(target)
            else:
                doc = client.open_by_key(target)
        except Exception as exc:
            raise SinkAuthError(f"Cannot open spreadsheet {target}: {exc}") from exc
        logger.info("Loaded spreadsheet %s", getattr(doc, "title", target))
        return doc

    def _append(self, worksheet: gspread.Worksheet, rows: Sequence[Row]) -> int:
        # blank header cells keep their position and receive ""
        header = worksheet.row_values(1)
        values = []
        if not any(header):
            header = default_header(rows)
            values.append(header)
            logger.info("Sheet %s has no header row; writing %s", worksheet.title, header)
        values.extend(row_values(row, header) for row in rows)
        worksheet.append_rows(values, value_input_option=self.settings.value_input_option)
        logger.info("Appended %d rows to sheet %s", len(rows), worksheet.title)
        return len(rows)

    async def _append_group(
        self,
        titles: Dict[str, gspread.Worksheet],
        label: str,
        rows: List[Row],
        limiter: asyncio.Semaphore,
        result: SinkResult,
    ) -> None:
        worksheet = titles.get(label)
        if worksheet is None:
            err = SinkLookupError(label)
            logger.error("%s; skipping %d rows", err, len(rows))
            result.missing.append(label)
            return
        async with limiter:
            try:
                result.written[label] = await asyncio.to_thread(self._append, worksheet, rows)
            except Exception as exc:
                logger.error("Error appending rows to sheet %s: %s", label, exc)
                result.failed[label] = str(exc)

    async def write(self, batch: OrderBatch) -> SinkResult:
        result = SinkResult()
        if len(batch) == 0:
            return result
        try:
            doc = await asyncio.to_thread(self._open)
        except SinkAuthError as exc:
            logger.error("Error during sheet write: %s", exc)
            result.error = str(exc)
            return result

        if batch.mode == "grouped":
            try:
                worksheets = await asyncio.to_thread(doc.worksheets)
            except Exception as exc:
                logger.error("Error listing sheets: %s", exc)
                result.error = str(exc)
                return result
            titles = {ws.title: ws for ws in worksheets}
            limiter = asyncio.Semaphore(max(1, self.settings.max_concurrency))
            await asyncio.gather(
                *(
                    self._append_group(titles, label, rows, limiter, result)
                    for label, rows in batch.groups.items()
                )
            )
        else:
            try:
                worksheet = await asyncio.to_thread(doc.get_worksheet, 0)
                if worksheet is None:
                    raise SinkLookupError("#0")
                result.written[worksheet.title] = await asyncio.to_thread(
                    self._append, worksheet, batch.rows
                )
            except Exception as exc:
                logger.error("Error appending rows to first sheet: %s", exc)
                result.failed["#0"] = str(exc)

        logger.info(
            "Sheet write finished: %d rows written, missing=%s, failed=%s",
            result.rows_written,
            result.missing,
            list(result.failed),
        )
        return result


__all__ = [
    "SheetSink",
    "SinkResult",
    "build_credentials",
    "default_header",
    "row_values",
    "unescape_private_key",
]
