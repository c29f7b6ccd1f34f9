"""In-memory stand-in for :class:`sheet_ledger.gateway.SheetGateway`.

Tables are lists of row dicts without ``rowId``; like the real sheet, a row's
id is its position plus the header offset, so deleting a row shifts the ids
of every row below it. Tests flip ``fail_*`` switches to simulate transport
failures and may set ``gate`` to hold writes in flight until released.
"""

from __future__ import annotations

import asyncio
from typing import Any

from sheet_ledger.errors import GatewayConnectionError, MissingIdentifierError
from sheet_ledger.gateway import parse_records
from sheet_ledger.models import RawRecord, Transaction


class FakeGateway:
    def __init__(
        self,
        tables: dict[str, list[dict[str, Any]]] | None = None,
        *,
        category_table: str = "Category",
    ) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self.category_table = category_table
        self.calls: list[tuple[Any, ...]] = []
        self.fail_list: set[str] = set()
        self.fail_append = False
        self.fail_delete = False
        self.gate: asyncio.Event | None = None

    async def list(self, table: str) -> list[RawRecord]:
        self.calls.append(("list", table))
        await asyncio.sleep(0)
        if table in self.fail_list:
            raise GatewayConnectionError(table, "simulated outage")
        return parse_records(
            self.tables.get(table, []), table=table, category_feed=table == self.category_table
        )

    async def append(self, table: str, tx: Transaction) -> None:
        self.calls.append(("append", table, tx))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_append:
            raise OSError("network unreachable")
        self.tables.setdefault(table, []).append(
            {
                "date": f"'{tx.date}",
                "amount": tx.amount,
                "name": tx.name,
                "category": tx.category or "",
            }
        )

    async def delete(self, table: str, row_id: int | None) -> None:
        if row_id is None:
            raise MissingIdentifierError(table)
        self.calls.append(("delete", table, row_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_delete:
            raise OSError("network unreachable")
        rows = self.tables.get(table, [])
        pos = row_id - 2
        if 0 <= pos < len(rows):
            del rows[pos]

    def writes(self) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] in ("append", "delete")]
