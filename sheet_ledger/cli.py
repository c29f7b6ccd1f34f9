"""Console interface for ``sheet_ledger``.

A thin Typer shell over the store, aggregation, filtering and export modules.
Environment variables are loaded from a local ``.env`` via ``python-dotenv``
before settings are read; business logic lives in the library modules.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .aggregation import summarize
from .config import LedgerSettings, load_settings
from .errors import LedgerError, SyncDispatchError
from .export import export_csv, export_pdf
from .filtering import FilteredView, filter_transactions, parse_range
from .gateway import SheetGateway
from .logging_setup import configure_logging
from .models import LedgerKind, Transaction, TransactionDraft
from .normalizers import display_date, format_amount, format_money
from .store import TransactionStore

app = typer.Typer(
    name="sheet-ledger",
    help="Sales and expense ledger backed by a spreadsheet gateway.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

# (report title, label of the name column) per ledger
LEDGER_LABELS: dict[LedgerKind, tuple[str, str]] = {
    LedgerKind.SALES: ("Full Sales Log", "Transferred By"),
    LedgerKind.EXPENSES: ("Full Expense History", "Description"),
}


class ExportFormat(StrEnum):
    CSV = "csv"
    PDF = "pdf"


# ---- helpers -----------------------------------------------------------------


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(1)


def _settings() -> LedgerSettings:
    try:
        return load_settings()
    except ValueError as e:
        raise _fail(str(e)) from e


def build_store(settings: LedgerSettings) -> TransactionStore:
    gateway = SheetGateway(
        settings.endpoint,
        timeout=settings.timeout_seconds,
        category_table=settings.category_table,
    )
    return TransactionStore(gateway, settings)


async def _load(store: TransactionStore) -> TransactionStore:
    if not await store.load():
        raise _fail(store.error or "Could not fetch data. Check your permissions.")
    return store


def _filtered(
    store: TransactionStore, kind: LedgerKind, search: str, start: str | None, end: str | None
) -> FilteredView:
    ledger = store.ledger(kind)
    try:
        date_range = parse_range(start, end, date_order=store.settings.date_order)
    except ValueError as e:
        raise _fail(str(e)) from e
    return filter_transactions(
        ledger.transactions,
        search,
        date_range,
        show_category=ledger.show_category,
        date_order=store.settings.date_order,
    )


def _render_view(view: FilteredView, *, title: str, name_label: str, currency: str) -> Table:
    table = Table(title=title)
    table.add_column("Row", justify="right", style="dim")
    table.add_column("Date")
    if view.show_category:
        table.add_column("Category")
    table.add_column(name_label)
    table.add_column(f"Amount ({currency})", justify="right")
    for tx in view.newest_first():
        cells = [
            "-" if tx.is_provisional else str(tx.remote_row_id),
            display_date(tx.date, date_order=view.date_order),
        ]
        if view.show_category:
            cells.append(tx.category or "Uncategorized")
        cells.extend([tx.name, format_amount(tx.amount)])
        table.add_row(*cells)
    return table


# ---- commands ----------------------------------------------------------------


@app.command("summary")
def summary_cmd() -> None:
    """Dashboard totals, profit and the last 14 days of sales."""

    settings = _settings()
    store = asyncio.run(_load(build_store(settings)))
    s = summarize(
        store.sales.transactions, store.expenses.transactions, date_order=settings.date_order
    )
    cur = settings.currency

    stats = Table(title="Sales Dashboard", show_header=False)
    stats.add_column("Metric")
    stats.add_column("Value", justify="right")
    stats.add_row("Total Sales", format_money(s.total_sales, cur))
    stats.add_row("Today's Sales", format_money(s.today_sales, cur))
    stats.add_row("Total Expenses", format_money(s.total_expenses, cur))
    stats.add_row("Today's Total Spend", format_money(s.today_expenses, cur))
    colour = "green" if s.net == "positive" else "red"
    stats.add_row("Net Profit", f"[{colour}]{format_money(s.profit, cur)}[/{colour}]")
    console.print(stats)

    daily = Table(title="Daily Sales (last 14 days)")
    daily.add_column("Date")
    daily.add_column(f"Total ({cur})", justify="right")
    for point in s.daily:
        daily.add_row(display_date(point.date), format_amount(point.total))
    console.print(daily)


@app.command("list")
def list_cmd(
    kind: Annotated[LedgerKind, typer.Argument(help="Which ledger to show")],
    search: Annotated[
        str, typer.Option("--search", "-s", help="Filter by name, category or date")
    ] = "",
    start: Annotated[str | None, typer.Option("--from", help="Range start (inclusive)")] = None,
    end: Annotated[str | None, typer.Option("--to", help="Range end (inclusive)")] = None,
) -> None:
    """Show a ledger, newest first, with optional search and date range."""

    settings = _settings()
    store = asyncio.run(_load(build_store(settings)))
    view = _filtered(store, kind, search, start, end)
    title, name_label = LEDGER_LABELS[kind]
    console.print(
        _render_view(view, title=title, name_label=name_label, currency=settings.currency)
    )
    noun = "Matches" if search.strip() or view.range_active else "Entries"
    count = f"{len(view)} {noun}"
    console.print(f"{count}  Total: [bold]{format_money(view.total, settings.currency)}[/bold]")


@app.command("add")
def add_cmd(
    kind: Annotated[LedgerKind, typer.Argument(help="Which ledger to add to")],
    amount: Annotated[float, typer.Option(help="Amount (must be > 0)")],
    name: Annotated[str, typer.Option(help="Payer or expense description")],
    date: Annotated[str | None, typer.Option(help="Date (defaults to today)")] = None,
    category: Annotated[str | None, typer.Option(help="Expense category")] = None,
) -> None:
    """Record a new entry and wait for the reconciling reload."""

    settings = _settings()

    async def run() -> TransactionStore:
        store = await _load(build_store(settings))
        fields: dict[str, object] = {"amount": amount, "name": name, "category": category}
        if date is not None:
            fields["date"] = date
        if kind is LedgerKind.EXPENSES and not category:
            fields["category"] = store.expense_categories[0]
        try:
            draft = TransactionDraft.model_validate(
                fields, context={"date_order": settings.date_order}
            )
            tx = draft.to_transaction()
        except ValidationError as e:
            raise _fail(f"invalid entry: {e}") from e
        try:
            await store.add(kind, tx)
        except SyncDispatchError as e:
            await store.drain()
            raise _fail(str(e)) from e
        console.print(f"[cyan]Saved locally; syncing {store.ledger(kind).table}...[/cyan]")
        await store.drain()
        return store

    store = asyncio.run(run())
    console.print(f"{store.status}: {len(store.ledger(kind).transactions)} rows")


@app.command("delete")
def delete_cmd(
    kind: Annotated[LedgerKind, typer.Argument(help="Which ledger to delete from")],
    row_id: Annotated[int, typer.Argument(help="Spreadsheet row id")],
) -> None:
    """Delete a row by its spreadsheet row id and wait for the reconciling reload."""

    settings = _settings()

    async def run() -> TransactionStore:
        store = await _load(build_store(settings))
        target: Transaction | None = next(
            (t for t in store.ledger(kind).transactions if t.remote_row_id == row_id), None
        )
        if target is None:
            raise _fail(f"row {row_id} not found in {store.ledger(kind).table}")
        try:
            await store.delete(kind, target)
        except LedgerError as e:
            await store.drain()
            raise _fail(str(e)) from e
        await store.drain()
        return store

    store = asyncio.run(run())
    console.print(f"{store.status}: {len(store.ledger(kind).transactions)} rows")


@app.command("categories")
def categories_cmd() -> None:
    """List the expense categories derived from the category sheet."""

    store = asyncio.run(_load(build_store(_settings())))
    for c in store.expense_categories:
        console.print(c)


@app.command("export")
def export_cmd(
    kind: Annotated[LedgerKind, typer.Argument(help="Which ledger to export")],
    fmt: Annotated[ExportFormat, typer.Argument(help="csv or pdf")],
    search: Annotated[str, typer.Option("--search", "-s")] = "",
    start: Annotated[str | None, typer.Option("--from")] = None,
    end: Annotated[str | None, typer.Option("--to")] = None,
    out: Annotated[Path, typer.Option(file_okay=False, help="Output directory")] = Path("."),
) -> None:
    """Export the filtered ledger view."""

    settings = _settings()
    store = asyncio.run(_load(build_store(settings)))
    view = _filtered(store, kind, search, start, end)
    title, name_label = LEDGER_LABELS[kind]
    out.mkdir(parents=True, exist_ok=True)
    if fmt is ExportFormat.CSV:
        path = export_csv(view, out, title=title, name_label=name_label, currency=settings.currency)
    else:
        path = export_pdf(
            view,
            out,
            title=title,
            name_label=name_label,
            generated_at=datetime.now(),
            currency=settings.currency,
        )
    if path is None:
        console.print("Nothing to export.")
        return
    console.print(f"Wrote {path}")


@app.command("endpoint")
def endpoint_cmd() -> None:
    """Show the active gateway endpoint."""

    console.print(_settings().endpoint)


@app.callback()
def _root(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Load ``.env`` from the working directory and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging("DEBUG" if verbose else None)


if __name__ == "__main__":  # pragma: no cover
    app()
