"""Free-text and date-range filtering of a ledger snapshot."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .aggregation import total
from .config import DateOrder
from .models import DateRange, Transaction
from .normalizers import ParseFailure, display_date, normalize_date


@dataclass(frozen=True, slots=True)
class FilteredView:
    """The transactions that passed a filter, in snapshot order, plus their total."""

    transactions: tuple[Transaction, ...]
    total: float
    query: str = ""
    date_range: DateRange | None = None
    show_category: bool = False
    date_order: DateOrder = "DMY"

    def __len__(self) -> int:
        return len(self.transactions)

    def newest_first(self) -> tuple[Transaction, ...]:
        """Reverse snapshot order, matching the on-screen table."""

        return self.transactions[::-1]

    @property
    def range_active(self) -> bool:
        return self.date_range is not None and self.date_range.is_active


def _matches_text(
    tx: Transaction, needle: str, *, show_category: bool, date_order: DateOrder
) -> bool:
    if needle in tx.name.lower():
        return True
    if show_category and tx.category and needle in tx.category.lower():
        return True
    return needle in display_date(tx.date, date_order=date_order).lower()


def _in_range(tx: Transaction, date_range: DateRange, *, date_order: DateOrder) -> bool:
    parsed = normalize_date(tx.date, date_order=date_order)
    if isinstance(parsed, ParseFailure):
        return False
    return date_range.contains(parsed)


def filter_transactions(
    transactions: Iterable[Transaction],
    query: str = "",
    date_range: DateRange | None = None,
    *,
    show_category: bool = False,
    date_order: DateOrder = "DMY",
) -> FilteredView:
    """Keep transactions inside ``date_range`` that also match ``query``.

    ``query`` is a case-insensitive substring matched against the name, the
    category (only when ``show_category``) and the display-formatted date, so
    ``"jan"`` finds ``05-Jan-24``. Surrounding spaces in a non-blank query are
    part of the match. A blank query and an absent or open range keep
    everything.
    """

    needle = query.lower() if query.strip() else ""
    range_on = date_range is not None and date_range.is_active
    kept: list[Transaction] = []
    for tx in transactions:
        if range_on and not _in_range(tx, date_range, date_order=date_order):
            continue
        if needle and not _matches_text(
            tx, needle, show_category=show_category, date_order=date_order
        ):
            continue
        kept.append(tx)
    return FilteredView(
        transactions=tuple(kept),
        total=total(kept),
        query=query,
        date_range=date_range,
        show_category=show_category,
        date_order=date_order,
    )


def parse_range(
    start: str | None, end: str | None, *, date_order: DateOrder = "DMY"
) -> DateRange | None:
    """Build a :class:`DateRange` from user-typed endpoints.

    Blank endpoints are open. Raises ``ValueError`` for unreadable input or
    when ``start`` falls after ``end``.
    """

    bounds = []
    for label, raw in (("from", start), ("to", end)):
        if raw is None or not raw.strip():
            bounds.append(None)
            continue
        parsed = normalize_date(raw, date_order=date_order)
        if isinstance(parsed, ParseFailure):
            raise ValueError(f"unreadable {label} date: {raw!r}")
        bounds.append(parsed)
    if bounds[0] is None and bounds[1] is None:
        return None
    return DateRange(start=bounds[0], end=bounds[1])


__all__ = ["FilteredView", "filter_transactions", "parse_range"]
