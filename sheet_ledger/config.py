"""Runtime settings for the ledger client.

Settings are read from ``SHEET_LEDGER_*`` environment variables. The CLI loads
a local ``.env`` (via ``python-dotenv``) before calling :func:`load_settings`;
library callers may construct :class:`LedgerSettings` directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Literal, TypeAlias

DateOrder: TypeAlias = Literal["DMY", "MDY"]

DEFAULT_ENDPOINT = (
    "https://script.google.com/macros/s/"
    "AKfycbyFHoyIURRJ2YvXyJF5SZPlVqsnkKbZD7uFAfTH9sLP73O1XstAJz2IFPqUP_Ud1-n4ww/exec"
)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True, slots=True)
class LedgerSettings:
    """Connection, table and reconciliation settings.

    ``sales_table`` keeps the upstream sheet's spelling (``"Transcations"``).
    ``date_order`` decides how non-year-first dates such as ``05/03/24`` are
    read; the default is day-first.
    """

    endpoint: str = DEFAULT_ENDPOINT
    sales_table: str = "Transcations"
    expenses_table: str = "Expenses"
    category_table: str = "Category"
    insert_settle_seconds: float = 2.5
    delete_settle_seconds: float = 3.0
    timeout_seconds: float = 30.0
    date_order: DateOrder = "DMY"
    currency: str = "MVR"
    reload_on_insert_failure: bool = True
    default_category: str = "General"

    def __post_init__(self) -> None:
        if not self.endpoint.strip():
            raise ValueError("endpoint must be a non-empty URL")
        if self.date_order not in ("DMY", "MDY"):
            raise ValueError(f"date_order must be 'DMY' or 'MDY', got {self.date_order!r}")
        for name in ("insert_settle_seconds", "delete_settle_seconds"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean flag (1/0, true/false), got {raw!r}")


def load_settings(**overrides: Any) -> LedgerSettings:
    """Build settings from the environment, then apply explicit ``overrides``.

    Unset variables keep the dataclass defaults. Invalid values raise
    ``ValueError`` naming the offending variable.
    """

    values: dict[str, Any] = {}

    endpoint = os.getenv("SHEET_LEDGER_ENDPOINT")
    if endpoint and endpoint.strip():
        values["endpoint"] = endpoint.strip()

    for env_name, field_name in (
        ("SHEET_LEDGER_INSERT_SETTLE", "insert_settle_seconds"),
        ("SHEET_LEDGER_DELETE_SETTLE", "delete_settle_seconds"),
        ("SHEET_LEDGER_TIMEOUT", "timeout_seconds"),
    ):
        val = _env_float(env_name)
        if val is not None:
            values[field_name] = val

    order = os.getenv("SHEET_LEDGER_DATE_ORDER")
    if order and order.strip():
        values["date_order"] = order.strip().upper()

    reload_flag = _env_bool("SHEET_LEDGER_RELOAD_ON_INSERT_FAILURE")
    if reload_flag is not None:
        values["reload_on_insert_failure"] = reload_flag

    currency = os.getenv("SHEET_LEDGER_CURRENCY")
    if currency and currency.strip():
        values["currency"] = currency.strip()

    settings = LedgerSettings(**values)
    if overrides:
        settings = replace(settings, **overrides)
    return settings


__all__ = ["DEFAULT_ENDPOINT", "DateOrder", "LedgerSettings", "load_settings"]
