"""Thin client for the spreadsheet gateway (a deployed web-app endpoint).

Reads are ``GET <endpoint>?sheet=<table>`` returning a JSON array of row
objects. Writes are ``POST <endpoint>`` with a JSON body and are
fire-and-forget: the gateway never returns a usable success or failure
payload, so a write counts as done once the request was dispatched without a
transport error. Callers reconcile by reading the table again later.

Blocking ``urllib`` calls run in a worker thread via :func:`asyncio.to_thread`
so the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from .errors import GatewayConnectionError, MissingIdentifierError
from .logging_setup import get_logger
from .models import RawRecord, Transaction

# Spreadsheet rows are 1-based and row 1 holds the header.
_HEADER_ROW_OFFSET = 2

_logger = get_logger("sheet_ledger.gateway")


def parse_records(
    items: Sequence[Any], *, table: str, category_feed: bool = False
) -> list[RawRecord]:
    """Validate raw list items, defaulting ``rowId`` and coercing amounts.

    Items that are not JSON objects are skipped. For the category feed, whose
    sheet has a single column, ``category`` falls back to ``date`` then
    ``name``.
    """

    records: list[RawRecord] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            _logger.warning("Skipping non-object row %d from %s: %r", index, table, item)
            continue
        try:
            record = RawRecord.model_validate(dict(item))
        except ValidationError as e:
            _logger.warning("Skipping malformed row %d from %s: %s", index, table, e)
            continue
        updates: dict[str, Any] = {}
        if record.rowId is None:
            updates["rowId"] = index + _HEADER_ROW_OFFSET
        if category_feed and record.category is None:
            updates["category"] = (record.date or record.name).strip() or None
        records.append(record.model_copy(update=updates) if updates else record)
    return records


def records_to_transactions(records: Sequence[RawRecord]) -> list[Transaction]:
    return [r.to_transaction() for r in records]


class SheetGateway:
    """The sole channel to the backing sheet: list, append and delete."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 30.0,
        category_table: str | None = "Category",
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.category_table = category_table

    # ---- reads ---------------------------------------------------------------

    def list_url(self, table: str) -> str:
        sep = "&" if "?" in self.endpoint else "?"
        return f"{self.endpoint}{sep}{urllib.parse.urlencode({'sheet': table})}"

    async def list(self, table: str) -> list[RawRecord]:
        """Fetch every row of ``table``.

        Raises :class:`GatewayConnectionError` naming ``table`` on transport
        errors, non-2xx statuses and bodies that are not a JSON array.
        """

        items = await asyncio.to_thread(self._fetch_json, table)
        return parse_records(items, table=table, category_feed=table == self.category_table)

    def _fetch_json(self, table: str) -> list[Any]:
        req = urllib.request.Request(self.list_url(table), method="GET")
        req.add_header("Cache-Control", "no-cache")
        _logger.debug("GET %s", req.full_url)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                status = getattr(resp, "status", 200)
                body = resp.read()
        except urllib.error.HTTPError as e:
            _logger.warning("Error fetching from %s: HTTP %s", table, e.code)
            raise GatewayConnectionError(table, f"server responded with {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            _logger.warning("Error fetching from %s: %s", table, e)
            raise GatewayConnectionError(table, str(getattr(e, "reason", e))) from e

        if not 200 <= status < 300:
            raise GatewayConnectionError(table, f"server responded with {status}")

        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise GatewayConnectionError(table, "response was not valid JSON") from e
        if not isinstance(data, list):
            raise GatewayConnectionError(table, "response was not a JSON array")
        return data

    # ---- fire-and-forget writes ----------------------------------------------

    async def append(self, table: str, tx: Transaction) -> None:
        """Send a new row. The date is quote-prefixed so the sheet keeps it as text."""

        payload = {
            "sheet": table,
            "date": f"'{tx.date}",
            "amount": float(tx.amount),
            "name": tx.name,
            "category": tx.category or "",
        }
        await asyncio.to_thread(self._dispatch, payload)

    async def delete(self, table: str, row_id: int | None) -> None:
        """Ask the gateway to delete spreadsheet row ``row_id`` of ``table``."""

        if row_id is None:
            raise MissingIdentifierError(table)
        _logger.info("Attempting to delete row %s from sheet %r", row_id, table)
        payload = {"sheet": table, "action": "delete", "rowId": row_id}
        await asyncio.to_thread(self._dispatch, payload)

    def _dispatch(self, payload: Mapping[str, Any]) -> None:
        data = json.dumps(payload).encode("utf-8")
        req = urllib.request.Request(self.endpoint, data=data, method="POST")
        req.add_header("Content-Type", "application/json")
        _logger.debug("POST %s %s", self.endpoint, payload.get("action", "append"))

        try:
            # The response is opaque by contract; the body is never read.
            with urllib.request.urlopen(req, timeout=self.timeout):
                pass
        except urllib.error.HTTPError as e:
            # The request reached the gateway; its status carries no meaning.
            _logger.debug("Ignoring HTTP %s from write to %s", e.code, payload.get("sheet"))


__all__ = ["SheetGateway", "parse_records", "records_to_transactions"]
