"""Dashboard aggregates computed from ledger snapshots.

Every function here is pure: the result depends only on the snapshot passed
in and, for "today" figures, on the reference ``now``. Transactions whose date
cannot be read still count toward :func:`total` but are left out of the
date-keyed figures.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal, TypeAlias

from .config import DateOrder
from .models import DailyTotal, Transaction
from .normalizers import local_date_key, today_key

DAILY_WINDOW = 14

NetClass: TypeAlias = Literal["positive", "negative"]


def total(transactions: Iterable[Transaction]) -> float:
    return sum((t.amount for t in transactions), 0.0)


def today_total(
    transactions: Iterable[Transaction],
    now: datetime | date | None = None,
    *,
    date_order: DateOrder = "DMY",
) -> float:
    """Sum of amounts dated on ``now``'s local calendar day."""

    key = today_key(now)
    return sum(
        (t.amount for t in transactions if local_date_key(t.date, date_order=date_order) == key),
        0.0,
    )


def daily_series(
    transactions: Iterable[Transaction],
    *,
    window: int = DAILY_WINDOW,
    date_order: DateOrder = "DMY",
) -> list[DailyTotal]:
    """Per-day totals, ascending by date key, truncated to the last ``window`` days."""

    if window < 1:
        raise ValueError("window must be a positive integer")
    sums: dict[str, float] = defaultdict(float)
    for t in transactions:
        key = local_date_key(t.date, date_order=date_order)
        if key is not None:
            sums[key] += t.amount
    return [DailyTotal(k, sums[k]) for k in sorted(sums)[-window:]]


def profit(sales: Iterable[Transaction], expenses: Iterable[Transaction]) -> float:
    return total(sales) - total(expenses)


def net_classification(value: float) -> NetClass:
    return "positive" if value >= 0 else "negative"


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    """Figures shown on the sales dashboard and expense header."""

    total_sales: float
    today_sales: float
    total_expenses: float
    today_expenses: float
    profit: float
    net: NetClass
    daily: tuple[DailyTotal, ...]


def summarize(
    sales: Iterable[Transaction],
    expenses: Iterable[Transaction],
    now: datetime | date | None = None,
    *,
    date_order: DateOrder = "DMY",
) -> DashboardSummary:
    sales = tuple(sales)
    expenses = tuple(expenses)
    # Pin "today" once so every figure uses the same day.
    now = now if now is not None else datetime.now()
    net = profit(sales, expenses)
    return DashboardSummary(
        total_sales=total(sales),
        today_sales=today_total(sales, now, date_order=date_order),
        total_expenses=total(expenses),
        today_expenses=today_total(expenses, now, date_order=date_order),
        profit=net,
        net=net_classification(net),
        daily=tuple(daily_series(sales, date_order=date_order)),
    )


__all__ = [
    "DAILY_WINDOW",
    "DashboardSummary",
    "daily_series",
    "net_classification",
    "profit",
    "summarize",
    "today_total",
    "total",
]
