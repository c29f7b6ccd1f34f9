from __future__ import annotations

import asyncio

import pytest

from sheet_ledger.config import LedgerSettings
from sheet_ledger.errors import MissingIdentifierError, SyncDispatchError
from sheet_ledger.models import LedgerKind, LoadState, RawRecord, Transaction
from sheet_ledger.store import (
    DELETE_FAILED_MESSAGE,
    SYNC_FAILED_MESSAGE,
    Ledger,
    TransactionStore,
    derive_categories,
)
from tests.helpers.fake_gateway import FakeGateway

FAST = LedgerSettings(insert_settle_seconds=0.01, delete_settle_seconds=0.01)


def _gateway() -> FakeGateway:
    return FakeGateway(
        {
            "Transcations": [
                {"date": "2024-01-05", "amount": 100, "name": "Ali"},
                {"date": "2024-01-05", "amount": 50, "name": "Hassan"},
                {"date": "'06-01-24", "amount": "25", "name": "Mariyam"},
            ],
            "Expenses": [
                {"date": "2024-01-05", "amount": 30, "name": "Diesel", "category": "Fuel"},
            ],
            "Category": [
                {"date": "CATEGORY"},
                {"date": "Rent"},
                {"date": "fuel"},
                {"date": "Rent"},
            ],
        }
    )


def _lists(gw: FakeGateway) -> int:
    return sum(1 for c in gw.calls if c[0] == "list")


# ---- load --------------------------------------------------------------------


def test_load_populates_both_ledgers_and_categories():
    gw = _gateway()
    store = TransactionStore(gw, FAST)

    assert asyncio.run(store.load()) is True

    assert store.sales.state is LoadState.LOADED
    assert [t.remote_row_id for t in store.sales.transactions] == [2, 3, 4]
    assert store.expenses.transactions[0].category == "Fuel"
    assert store.expense_categories == ["fuel", "Rent"]
    assert store.error is None
    assert store.status == "Cloud Active"


def test_category_feed_failure_is_tolerated():
    gw = _gateway()
    gw.fail_list = {"Category"}
    store = TransactionStore(gw, FAST)

    assert asyncio.run(store.load()) is True
    assert store.expense_categories == ["General"]
    assert store.error is None


def test_failed_ledger_keeps_previous_snapshot():
    gw = _gateway()
    store = TransactionStore(gw, FAST)

    async def scenario() -> bool:
        await store.load()
        gw.fail_list = {"Expenses"}
        gw.tables["Transcations"].append({"date": "2024-01-07", "amount": 5, "name": "Zaid"})
        return await store.load()

    before = TransactionStore(_gateway(), FAST)
    asyncio.run(before.load())

    assert asyncio.run(scenario()) is False
    assert store.expenses.state is LoadState.LOAD_FAILED
    assert store.expenses.transactions == before.expenses.transactions
    assert len(store.sales.transactions) == 4
    assert store.error == "Failed to connect to Expenses. Check script URL and permissions."
    assert store.status == "Sync Error"


def test_both_ledgers_failing_names_both_tables():
    gw = _gateway()
    gw.fail_list = {"Transcations", "Expenses"}
    store = TransactionStore(gw, FAST)

    assert asyncio.run(store.load()) is False
    assert store.error == (
        "Failed to connect to Transcations, Expenses. Check script URL and permissions."
    )
    assert store.sales.transactions == ()


# ---- insert ------------------------------------------------------------------


def test_insert_is_visible_before_dispatch_completes():
    gw = _gateway()
    store = TransactionStore(gw, FAST)
    tx = Transaction(date="2024-01-07", amount=10, name="Aisha")

    async def scenario() -> None:
        await store.load()
        gw.gate = asyncio.Event()
        task = store.add(LedgerKind.SALES, tx)

        assert store.sales.transactions[-1] == tx
        await asyncio.sleep(0)
        assert store.status == "Syncing..."
        assert gw.writes() == [("append", "Transcations", tx)]

        gw.gate.set()
        await task
        await store.drain()

    asyncio.run(scenario())

    rows = store.sales.transactions
    assert len(rows) == 4
    assert rows[-1].name == "Aisha"
    assert rows[-1].remote_row_id == 5
    assert not rows[-1].is_provisional
    assert store.status == "Cloud Active"


def test_reconciling_reload_waits_for_settle_delay():
    gw = _gateway()
    store = TransactionStore(gw, LedgerSettings(insert_settle_seconds=0.05))

    async def scenario() -> tuple[int, int]:
        await store.load()
        await store.add("sales", Transaction(date="2024-01-07", amount=1, name="x"))
        immediately = _lists(gw)
        await store.drain()
        return immediately, _lists(gw)

    immediately, settled = asyncio.run(scenario())
    assert immediately == 3
    assert settled == 6


def test_failed_insert_is_rolled_back_by_reload():
    gw = _gateway()
    gw.fail_append = True
    store = TransactionStore(gw, FAST)
    tx = Transaction(date="2024-01-07", amount=10, name="Aisha")

    async def scenario() -> None:
        await store.load()
        task = store.add("sales", tx)
        assert tx in store.sales.transactions
        with pytest.raises(SyncDispatchError):
            await task
        assert store.error == SYNC_FAILED_MESSAGE
        await store.drain()

    asyncio.run(scenario())

    assert tx not in store.sales.transactions
    assert len(store.sales.transactions) == 3
    # A successful reload does not clear a sync error.
    assert store.error == SYNC_FAILED_MESSAGE


def test_failed_insert_kept_when_rollback_disabled():
    gw = _gateway()
    gw.fail_append = True
    settings = LedgerSettings(insert_settle_seconds=0.01, reload_on_insert_failure=False)
    store = TransactionStore(gw, settings)
    tx = Transaction(date="2024-01-07", amount=10, name="Aisha")

    async def scenario() -> None:
        await store.load()
        task = store.add("sales", tx)
        with pytest.raises(SyncDispatchError):
            await task
        await store.drain()

    asyncio.run(scenario())

    assert store.sales.transactions[-1] == tx
    assert _lists(gw) == 3


# ---- delete ------------------------------------------------------------------


def test_delete_without_row_id_changes_nothing():
    gw = _gateway()
    store = TransactionStore(gw, FAST)

    async def scenario() -> None:
        await store.load()
        with pytest.raises(MissingIdentifierError):
            store.delete("sales", Transaction(date="2024-01-05", amount=100, name="Ali"))

    asyncio.run(scenario())

    assert len(store.sales.transactions) == 3
    assert gw.writes() == []
    assert store.error is None


def test_delete_removes_immediately_and_reload_confirms():
    gw = _gateway()
    store = TransactionStore(gw, FAST)

    async def scenario() -> None:
        await store.load()
        target = store.sales.transactions[0]
        task = store.delete("sales", target)
        assert all(t.remote_row_id != 2 for t in store.sales.transactions)
        await task
        await store.drain()

    asyncio.run(scenario())

    assert gw.writes() == [("delete", "Transcations", 2)]
    assert [t.name for t in store.sales.transactions] == ["Hassan", "Mariyam"]
    # Row ids below the deleted row shift up.
    assert [t.remote_row_id for t in store.sales.transactions] == [2, 3]


def test_failed_delete_reloads_and_reports():
    gw = _gateway()
    gw.fail_delete = True
    store = TransactionStore(gw, FAST)

    async def scenario() -> None:
        await store.load()
        task = store.delete("expenses", store.expenses.transactions[0])
        assert store.expenses.transactions == ()
        with pytest.raises(SyncDispatchError) as excinfo:
            await task
        assert excinfo.value.action == "delete"
        await store.drain()

    asyncio.run(scenario())

    assert len(store.expenses.transactions) == 1
    assert store.error == DELETE_FAILED_MESSAGE
    assert store.status == "Sync Error"
    store.dismiss_error()
    assert store.error is None


# ---- ledger and categories ---------------------------------------------------


def test_ledger_identity_prefers_row_id_then_position():
    ledger = Ledger(LedgerKind.SALES, "Transcations")
    a = Transaction(date="2024-01-05", amount=1, name="a")
    b = Transaction(date="2024-01-05", amount=2, name="b")
    ledger.replace([a, b, a])

    assert ledger.identity(b) == ("pos", 1)
    assert ledger.identity(Transaction(date="", amount=0, name="a", remote_row_id=7)) == ("row", 7)
    assert ledger.identity(Transaction(date="", amount=0, name="zz")) is None

    assert ledger.remove_optimistic(a)
    assert ledger.transactions == (b, a)
    assert not ledger.remove_optimistic(Transaction(date="", amount=0, name="zz"))


def test_row_id_removal_spares_provisional_row_at_same_position():
    ledger = Ledger(LedgerKind.SALES, "Transcations")
    confirmed = [
        Transaction(date="2024-01-05", amount=1, name="a", remote_row_id=2),
        Transaction(date="2024-01-05", amount=2, name="b", remote_row_id=3),
    ]
    pending = Transaction(date="2024-01-06", amount=3, name="new")
    ledger.replace(confirmed)
    ledger.append_optimistic(pending)

    assert ledger.remove_optimistic(confirmed[0])
    assert ledger.transactions == (confirmed[1], pending)


def test_delete_while_insert_in_flight_keeps_the_new_row():
    gw = _gateway()
    store = TransactionStore(gw, FAST)
    tx = Transaction(date="2024-01-07", amount=10, name="Aisha")

    async def scenario() -> None:
        await store.load()
        gw.gate = asyncio.Event()
        store.add("sales", tx)
        store.delete("sales", store.sales.transactions[0])

        assert [t.name for t in store.sales.transactions] == ["Hassan", "Mariyam", "Aisha"]
        gw.gate.set()
        await store.drain()

    asyncio.run(scenario())

    assert [t.name for t in store.sales.transactions] == ["Hassan", "Mariyam", "Aisha"]

def test_derive_categories_drops_headers_blanks_and_duplicates():
    records = [
        RawRecord(category="Utilities"),
        RawRecord(date="NAME"),
        RawRecord(date="  "),
        RawRecord(name="food"),
        RawRecord(category="Utilities"),
        RawRecord(date="Amount"),
    ]
    assert derive_categories(records) == ["food", "Utilities"]
    assert derive_categories([], default="Misc") == ["Misc"]
