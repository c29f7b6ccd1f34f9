"""Public interface for the ``sheet_ledger`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .aggregation import (
    DashboardSummary,
    daily_series,
    net_classification,
    profit,
    summarize,
    today_total,
    total,
)
from .config import LedgerSettings, load_settings
from .errors import (
    GatewayConnectionError,
    LedgerError,
    MissingIdentifierError,
    SyncDispatchError,
)
from .export import export_csv, export_pdf, render_csv, render_pdf
from .filtering import FilteredView, filter_transactions, parse_range
from .gateway import SheetGateway
from .models import (
    DailyTotal,
    DateRange,
    LedgerKind,
    LoadState,
    RawRecord,
    Transaction,
    TransactionDraft,
)
from .normalizers import (
    ParseFailure,
    coerce_amount,
    date_key,
    display_date,
    normalize_date,
    to_display,
)
from .store import Ledger, TransactionStore, derive_categories

__all__ = [
    # Store / gateway
    "SheetGateway",
    "TransactionStore",
    "Ledger",
    "derive_categories",
    # Aggregation / filtering / export
    "total",
    "today_total",
    "daily_series",
    "profit",
    "net_classification",
    "summarize",
    "DashboardSummary",
    "filter_transactions",
    "parse_range",
    "FilteredView",
    "render_csv",
    "render_pdf",
    "export_csv",
    "export_pdf",
    # Normalization
    "normalize_date",
    "to_display",
    "date_key",
    "display_date",
    "coerce_amount",
    "ParseFailure",
    # Models / settings / errors
    "Transaction",
    "TransactionDraft",
    "RawRecord",
    "DailyTotal",
    "DateRange",
    "LedgerKind",
    "LoadState",
    "LedgerSettings",
    "load_settings",
    "LedgerError",
    "GatewayConnectionError",
    "MissingIdentifierError",
    "SyncDispatchError",
]
