"""Exception taxonomy for ``sheet_ledger``.

Date and amount parse failures are deliberately absent: they are resolved to
safe values (see :mod:`sheet_ledger.normalizers`) and never raised.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all errors raised by this package."""


class GatewayConnectionError(LedgerError, ConnectionError):
    """A read from the remote gateway failed (transport, status or body)."""

    def __init__(self, table: str, reason: str | None = None) -> None:
        self.table = table
        self.reason = reason
        msg = f"Failed to connect to {table}. Check script URL and permissions."
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class MissingIdentifierError(LedgerError, ValueError):
    """A delete was attempted on a record with no remote row identifier."""

    def __init__(self, table: str | None = None) -> None:
        self.table = table
        super().__init__("Cannot delete: this record is missing a cloud identifier.")


class SyncDispatchError(LedgerError):
    """A fire-and-forget write could not be dispatched."""

    def __init__(self, table: str, action: str) -> None:
        self.table = table
        self.action = action
        super().__init__(
            f"Sync failed ({action} on {table}). Please check your connection and try again."
        )


__all__ = [
    "GatewayConnectionError",
    "LedgerError",
    "MissingIdentifierError",
    "SyncDispatchError",
]
