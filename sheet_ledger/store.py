"""In-memory ledgers and the optimistic mutation protocol.

The gateway cannot confirm writes, so every mutation is applied locally first
and then reconciled by a full reload once a settle delay has passed:

- ``add``: the append is dispatched and the record is placed in the snapshot
  before control returns to the caller. A reload is scheduled after
  ``insert_settle_seconds``; it replaces the provisional copy with the
  authoritative row (and its real row id).
- ``delete``: the record is removed from the snapshot, the delete is
  dispatched, and a reload follows after ``delete_settle_seconds``.
- A dispatch that raises sets a generic sync error and triggers an immediate
  corrective reload. For inserts this is controlled by
  ``LedgerSettings.reload_on_insert_failure``.

The last completed full reload is the source of truth. Settle timers are never
cancelled; a stale reload simply overwrites the snapshot again. Everything
runs on one event loop, so no locking is needed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Iterable
from typing import Any

from .config import LedgerSettings
from .errors import MissingIdentifierError, SyncDispatchError
from .gateway import SheetGateway, records_to_transactions
from .logging_setup import get_logger
from .models import LedgerKind, LoadState, RawRecord, Transaction

_logger = get_logger("sheet_ledger.store")

# Header cells that leak into the single-column category sheet.
_CATEGORY_HEADER_WORDS = frozenset({"DATE", "NAME", "CATEGORY", "AMOUNT"})

SYNC_FAILED_MESSAGE = "Sync failed. Please check your connection and script version."
DELETE_FAILED_MESSAGE = "Delete request failed. Check your internet or script version."


def derive_categories(records: Iterable[RawRecord], *, default: str = "General") -> list[str]:
    """Build the expense category vocabulary from the category feed.

    Blank cells and header words are dropped, duplicates removed and the rest
    sorted case-insensitively. An empty feed degrades to ``[default]``.
    """

    seen: dict[str, None] = {}
    for r in records:
        value = (r.category or r.date or r.name or "").strip()
        if not value or value.upper() in _CATEGORY_HEADER_WORDS:
            continue
        seen.setdefault(value, None)
    if not seen:
        return [default]
    return sorted(seen, key=lambda c: (c.casefold(), c))


class Ledger:
    """One logical table of transactions and its load state."""

    def __init__(self, kind: LedgerKind, table: str, *, show_category: bool = False) -> None:
        self.kind = kind
        self.table = table
        self.show_category = show_category
        self.state = LoadState.IDLE
        self.transactions: tuple[Transaction, ...] = ()
        self.error: str | None = None

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"Ledger({self.table!r}, state={self.state}, rows={len(self.transactions)})"

    def mark_loading(self) -> None:
        self.state = LoadState.LOADING

    def replace(self, snapshot: Iterable[Transaction]) -> None:
        self.transactions = tuple(snapshot)
        self.state = LoadState.LOADED
        self.error = None

    def mark_failed(self, message: str) -> None:
        # The previous snapshot stays visible.
        self.state = LoadState.LOAD_FAILED
        self.error = message

    def identity(self, tx: Transaction) -> tuple[str, int] | None:
        """Local identity: the remote row id, else the position in the snapshot.

        Returns ``None`` for a provisional record that is not in the snapshot.
        """

        if not tx.is_provisional:
            return ("row", tx.remote_row_id)
        try:
            return ("pos", self.transactions.index(tx))
        except ValueError:
            return None

    def append_optimistic(self, tx: Transaction) -> None:
        self.transactions = (*self.transactions, tx)

    def remove_optimistic(self, tx: Transaction) -> bool:
        """Drop the record sharing ``tx``'s identity; returns whether one was removed."""

        key = self.identity(tx)
        if key is None:
            return False
        kept = tuple(
            t
            for pos, t in enumerate(self.transactions)
            if (("pos", pos) if t.is_provisional else ("row", t.remote_row_id)) != key
        )
        removed = len(kept) != len(self.transactions)
        self.transactions = kept
        return removed


class TransactionStore:
    """Owns the sales and expense ledgers plus the derived category vocabulary."""

    def __init__(self, gateway: SheetGateway, settings: LedgerSettings | None = None) -> None:
        self._gateway = gateway
        self.settings = settings or LedgerSettings()
        self.sales = Ledger(LedgerKind.SALES, self.settings.sales_table)
        self.expenses = Ledger(
            LedgerKind.EXPENSES, self.settings.expenses_table, show_category=True
        )
        self.category_records: tuple[RawRecord, ...] = ()
        self._load_error: str | None = None
        self._sync_error: str | None = None
        self._loads_in_flight = 0
        self._dispatches_in_flight = 0
        self._tasks: set[asyncio.Task[Any]] = set()

    # ---- views -----------------------------------------------------------------

    def ledger(self, kind: LedgerKind | str) -> Ledger:
        return self.sales if LedgerKind(kind) is LedgerKind.SALES else self.expenses

    @property
    def ledgers(self) -> tuple[Ledger, Ledger]:
        return (self.sales, self.expenses)

    @property
    def expense_categories(self) -> list[str]:
        return derive_categories(self.category_records, default=self.settings.default_category)

    @property
    def error(self) -> str | None:
        return self._sync_error or self._load_error

    def dismiss_error(self) -> None:
        self._sync_error = None
        self._load_error = None

    @property
    def is_busy(self) -> bool:
        return self._loads_in_flight > 0 or self._dispatches_in_flight > 0

    @property
    def status(self) -> str:
        if self.error:
            return "Sync Error"
        if self.is_busy:
            return "Syncing..."
        return "Cloud Active"

    # ---- load --------------------------------------------------------------------

    async def _load_category_records(self) -> list[RawRecord]:
        try:
            return await self._gateway.list(self.settings.category_table)
        except Exception as e:  # noqa: BLE001 - the vocabulary is best-effort
            _logger.debug("Category feed unavailable: %s", e)
            return []

    async def load(self) -> bool:
        """Fetch both ledgers and the category feed concurrently.

        Each ledger commits its own result once all three requests have
        settled; a failed ledger keeps its previous snapshot. Returns ``True``
        when both ledgers loaded.
        """

        self._loads_in_flight += 1
        self._load_error = None
        for ledger in self.ledgers:
            ledger.mark_loading()
        try:
            sales_res, expense_res, category_res = await asyncio.gather(
                self._gateway.list(self.sales.table),
                self._gateway.list(self.expenses.table),
                self._load_category_records(),
                return_exceptions=True,
            )
        finally:
            self._loads_in_flight -= 1

        failed: list[str] = []
        for ledger, result in ((self.sales, sales_res), (self.expenses, expense_res)):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                _logger.warning("Load of %s failed: %s", ledger.table, result)
                ledger.mark_failed(str(result))
                failed.append(ledger.table)
            else:
                ledger.replace(records_to_transactions(result))

        if not isinstance(category_res, BaseException):
            self.category_records = tuple(category_res)

        if failed:
            self._load_error = (
                f"Failed to connect to {', '.join(failed)}. Check script URL and permissions."
            )
            return False
        _logger.debug(
            "Reload committed: %d sales, %d expenses, %d category rows",
            len(self.sales.transactions),
            len(self.expenses.transactions),
            len(self.category_records),
        )
        return True

    # ---- optimistic mutations -------------------------------------------------

    def add(self, kind: LedgerKind | str, tx: Transaction) -> asyncio.Task[None]:
        """Insert ``tx`` optimistically and dispatch the append.

        The snapshot already contains ``tx`` when this returns. The returned
        task completes when the dispatch has been sent and raises
        :class:`SyncDispatchError` if it could not be.
        """

        loop = asyncio.get_running_loop()
        ledger = self.ledger(kind)
        task = self._spawn(self._dispatch_append(ledger, tx), loop)
        ledger.append_optimistic(tx)
        return task

    def delete(self, kind: LedgerKind | str, tx: Transaction) -> asyncio.Task[None]:
        """Remove ``tx`` optimistically and dispatch the delete.

        Raises :class:`MissingIdentifierError` synchronously, leaving the
        snapshot untouched and sending nothing, when ``tx`` has no remote row id.
        """

        loop = asyncio.get_running_loop()
        ledger = self.ledger(kind)
        if tx.is_provisional:
            raise MissingIdentifierError(ledger.table)
        ledger.remove_optimistic(tx)
        return self._spawn(self._dispatch_delete(ledger, tx), loop)

    async def _dispatch_append(self, ledger: Ledger, tx: Transaction) -> None:
        self._dispatches_in_flight += 1
        try:
            await self._gateway.append(ledger.table, tx)
        except Exception as e:
            _logger.error("Error adding to %s: %s", ledger.table, e)
            self._sync_error = SYNC_FAILED_MESSAGE
            if self.settings.reload_on_insert_failure:
                self._schedule_reload(0)
            raise SyncDispatchError(ledger.table, "append") from e
        finally:
            self._dispatches_in_flight -= 1
        self._schedule_reload(self.settings.insert_settle_seconds)

    async def _dispatch_delete(self, ledger: Ledger, tx: Transaction) -> None:
        self._dispatches_in_flight += 1
        try:
            await self._gateway.delete(ledger.table, tx.remote_row_id)
        except Exception as e:
            _logger.error("Error sending delete request for row %s: %s", tx.remote_row_id, e)
            self._sync_error = DELETE_FAILED_MESSAGE
            self._schedule_reload(0)
            raise SyncDispatchError(ledger.table, "delete") from e
        finally:
            self._dispatches_in_flight -= 1
        self._schedule_reload(self.settings.delete_settle_seconds)

    # ---- reconciliation -------------------------------------------------------

    def _spawn(
        self, coro: Coroutine[Any, Any, Any], loop: asyncio.AbstractEventLoop | None = None
    ) -> asyncio.Task[Any]:
        task = (loop or asyncio.get_running_loop()).create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _schedule_reload(self, delay: float) -> None:
        _logger.debug("Reload scheduled in %.1fs", delay)
        self._spawn(self._reload_after(delay))

    async def _reload_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.load()

    async def drain(self) -> None:
        """Wait until every dispatch and scheduled reload has finished.

        Dispatch failures are already reflected in :attr:`error`; their
        exceptions are consumed here.
        """

        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)


__all__ = ["Ledger", "TransactionStore", "derive_categories"]
