"""Data models for ``sheet_ledger``.

``Transaction`` is the single entity held by the store. Gateway rows arrive as
loosely-typed JSON and are validated into :class:`RawRecord` first; new entries
typed by a user go through :class:`TransactionDraft`, which enforces the entry
rules (positive amount, non-blank name, readable date).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .normalizers import ParseFailure, coerce_amount, date_key, normalize_date, today_key

# ---------------------------------------------------------------------------
# Core record
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """One ledger row.

    ``date`` keeps the sheet's own encoding; consumers normalize it through
    :func:`~sheet_ledger.normalizers.normalize_date` before computing with it.
    ``remote_row_id`` is ``None`` for optimistic inserts that a reload has not
    yet replaced.
    """

    date: str
    amount: float
    name: str
    category: str | None = None
    remote_row_id: int | None = None

    @property
    def is_provisional(self) -> bool:
        return self.remote_row_id is None


class DailyTotal(NamedTuple):
    """Sum of amounts for one canonical ``YYYY-MM-DD`` key."""

    date: str
    total: float


class LedgerKind(StrEnum):
    SALES = "sales"
    EXPENSES = "expenses"


class LoadState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    LOAD_FAILED = "load_failed"


# ---------------------------------------------------------------------------
# Date range filter
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive calendar range; either end may be open.

    ``start`` is compared at 00:00:00 and ``end`` at 23:59:59 local time, so a
    transaction dated on either endpoint is inside the range.
    """

    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f"date range start {self.start} is after end {self.end}")

    @property
    def is_active(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, value: date) -> bool:
        moment = datetime.combine(value, time.min)
        if self.start is not None and moment < datetime.combine(self.start, time.min):
            return False
        if self.end is not None and moment > datetime.combine(self.end, time(23, 59, 59)):
            return False
        return True


# ---------------------------------------------------------------------------
# Validation models
# ---------------------------------------------------------------------------


class RawRecord(BaseModel):
    """One row as returned by the gateway's list endpoint.

    Extras are allowed so unknown sheet columns do not fail a load. Field names
    mirror the wire format (``rowId``).
    """

    model_config = ConfigDict(extra="allow")

    rowId: int | None = None
    date: str = ""
    amount: float = 0.0
    name: str = ""
    category: str | None = None

    @field_validator("rowId", mode="before")
    @classmethod
    def _coerce_row_id(cls, v: Any) -> int | None:
        if v is None or isinstance(v, bool):
            return None
        try:
            n = int(float(str(v).strip()))
        except (ValueError, OverflowError):
            return None
        return n if n > 0 else None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any) -> float:
        return coerce_amount(v)

    @field_validator("date", "name", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, v: Any) -> str | None:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    def to_transaction(self) -> Transaction:
        return Transaction(
            date=self.date,
            amount=self.amount,
            name=self.name,
            category=self.category,
            remote_row_id=self.rowId,
        )


class TransactionDraft(BaseModel):
    """A new entry as typed by the user, before it is sent to the gateway.

    Pass ``context={"date_order": ...}`` to ``model_validate`` so typed dates are
    read with the same day/month order as the rest of the ledger.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    date: str = Field(default_factory=lambda: today_key())
    amount: float
    name: str
    category: str | None = None

    @field_validator("amount")
    @classmethod
    def _amount_positive(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError("amount must be greater than zero")
        return v

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("name must be non-empty")
        return v

    @field_validator("date")
    @classmethod
    def _date_readable(cls, v: str, info: ValidationInfo) -> str:
        date_order = info.context.get("date_order", "DMY") if info.context else "DMY"
        parsed = normalize_date(v, date_order=date_order)
        if isinstance(parsed, ParseFailure):
            raise ValueError(f"unreadable date: {v!r}")
        return date_key(parsed)

    @field_validator("category")
    @classmethod
    def _category_blank_to_none(cls, v: str | None) -> str | None:
        return v or None

    def to_transaction(self) -> Transaction:
        return Transaction(
            date=self.date, amount=self.amount, name=self.name, category=self.category
        )


__all__ = [
    "DailyTotal",
    "DateRange",
    "LedgerKind",
    "LoadState",
    "RawRecord",
    "Transaction",
    "TransactionDraft",
]
