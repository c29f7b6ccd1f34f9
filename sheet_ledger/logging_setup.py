"""Logging for ``sheet_ledger``.

Every module logs through ``get_logger("sheet_ledger.<module>")``: the gateway
at DEBUG for each request and WARNING for failed reads, the store at ERROR for
failed write dispatches and DEBUG for scheduled and committed reloads, the
normalizers at WARNING for ambiguous day/month dates, and the exporter at INFO
for each file written. Until an application configures output, the package
logger only carries a ``NullHandler``, so importing the library stays silent.

The ``sheet-ledger`` CLI calls :func:`configure_logging` once from its root
callback: ``--verbose`` selects DEBUG, otherwise ``SHEET_LEDGER_LOG_LEVEL`` or
INFO applies. Records go to stderr so they never mix with report tables on
stdout.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "sheet_ledger"
_LEVEL_ENV = "SHEET_LEDGER_LOG_LEVEL"
_CONFIGURED = False


def _level_from_name(name: str) -> int | None:
    name = name.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = getattr(logging, name, None)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        parsed = _level_from_name(level)
        if parsed is not None:
            return parsed
    # Env override when explicit ``level`` is missing or unrecognized
    env_val = os.getenv(_LEVEL_ENV)
    if env_val:
        parsed = _level_from_name(env_val)
        if parsed is not None:
            return parsed
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Configure the package root logger exactly once.

    Parameters
    ----------
    level:
        Logging level as ``int`` or level-name string (e.g., ``"DEBUG"``). If
        ``None``, defaults to ``SHEET_LEDGER_LOG_LEVEL`` when set, otherwise
        ``logging.INFO``.
    fmt:
        Optional logging format string. Defaults to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        The output stream for the single ``StreamHandler``.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s"))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Avoid double emission via the root logger.
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, attaching a ``NullHandler`` to the package
    root until an application configures handlers explicitly."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
