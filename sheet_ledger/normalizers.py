"""Date and amount normalization for loosely-typed gateway rows.

The backing sheet returns dates in several encodings: ISO calendar dates with
or without zero padding, full ISO timestamps, day-first ``DD-MM-YY`` strings
and the display form this package itself renders (``05-Jan-24``). Writes
prefix dates with a single ``'`` so the sheet keeps them as text; reads strip
it again.

Rules, applied in order by :func:`normalize_date`:

1. Strip one leading ``'``.
2. A ``T`` separator means a timestamp. Aware timestamps are converted to
   local time before the calendar date is taken; naive ones are read as local.
3. Split on ``-`` or ``/``. A 4-digit first segment is ``Y-M-D``; otherwise the
   configured ``date_order`` applies (day-first by default) and 2-digit years
   are expanded by adding 2000.
4. The ``DD-Mon-YY`` display form and a short list of generic formats.
5. Otherwise :class:`ParseFailure`. Nothing here raises.

Amounts are coerced by dropping everything except digits, ``.`` and ``-``;
anything unparseable becomes ``0.0`` so one malformed row cannot abort a load.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from .config import DateOrder
from .logging_setup import get_logger

_logger = get_logger("sheet_ledger.normalizers")

MONTHS_SHORT: tuple[str, ...] = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)
_MONTH_INDEX = {m.lower(): i + 1 for i, m in enumerate(MONTHS_SHORT)}

_SEGMENT_SPLIT = re.compile(r"[-/]")
_DISPLAY_RE = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2}|\d{4})$")
_NON_NUMERIC = re.compile(r"[^0-9.\-]+")

# Last-resort formats for hand-typed sheet cells.
_GENERIC_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%Y.%m.%d",
    "%d.%m.%Y",
)

# Raw values already reported as ambiguous; keeps the warning to once per value.
_ambiguous_seen: set[str] = set()


@dataclass(frozen=True, slots=True)
class ParseFailure:
    """Marker returned when no rule could read ``raw`` as a calendar date."""

    raw: str

    def __bool__(self) -> bool:
        return False


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def strip_quote(raw: str) -> str:
    """Remove surrounding whitespace and one leading ``'`` escape."""

    s = raw.strip()
    if s.startswith("'"):
        s = s[1:].strip()
    return s


def _expand_year(segment: str) -> int:
    year = int(segment)
    return 2000 + year if len(segment) == 2 else year


def _parse_timestamp(s: str) -> date | None:
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.date()


def _parse_segments(s: str, date_order: DateOrder) -> date | None:
    parts = [p.strip() for p in _SEGMENT_SPLIT.split(s)]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    first, second, third = parts
    try:
        if len(first) == 4:
            return date(int(first), int(second), int(third))
        if len(third) not in (2, 4):
            return None
        if date_order == "MDY":
            month, day = int(first), int(second)
        else:
            day, month = int(first), int(second)
        if day <= 12 and month <= 12 and day != month and s not in _ambiguous_seen:
            _ambiguous_seen.add(s)
            _logger.warning(
                "Ambiguous date %r read as %s; check the sheet if this looks wrong",
                s,
                "day-first" if date_order == "DMY" else "month-first",
            )
        return date(_expand_year(third), month, day)
    except ValueError:
        return None


def _parse_display(s: str) -> date | None:
    m = _DISPLAY_RE.match(s)
    if not m:
        return None
    month = _MONTH_INDEX.get(m.group(2).lower())
    if month is None:
        return None
    try:
        return date(_expand_year(m.group(3)), month, int(m.group(1)))
    except ValueError:
        return None


def _parse_generic(s: str) -> date | None:
    for fmt in _GENERIC_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(raw: str | None, *, date_order: DateOrder = "DMY") -> date | ParseFailure:
    """Read a sheet date cell as a calendar date, or return :class:`ParseFailure`."""

    if raw is None:
        return ParseFailure("")
    s = strip_quote(str(raw))
    if not s:
        return ParseFailure(s)

    if "T" in s:
        parsed = _parse_timestamp(s)
        if parsed is not None:
            return parsed

    parsed = _parse_segments(s, date_order) or _parse_display(s) or _parse_generic(s)
    if parsed is not None:
        return parsed
    _logger.debug("Unparseable date value %r", raw)
    return ParseFailure(s)


def to_display(value: date) -> str:
    """Render ``DD-Mon-YY`` with a fixed English month table."""

    return f"{value.day:02d}-{MONTHS_SHORT[value.month - 1]}-{value.year % 100:02d}"


def date_key(value: date) -> str:
    """Canonical ``YYYY-MM-DD`` grouping/comparison key."""

    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def display_date(raw: str | None, *, date_order: DateOrder = "DMY") -> str:
    """Display form of ``raw``; falls back to the unquoted raw text."""

    parsed = normalize_date(raw, date_order=date_order)
    if isinstance(parsed, ParseFailure):
        return parsed.raw or "N/A"
    return to_display(parsed)


def local_date_key(raw: str | None, *, date_order: DateOrder = "DMY") -> str | None:
    parsed = normalize_date(raw, date_order=date_order)
    if isinstance(parsed, ParseFailure):
        return None
    return date_key(parsed)


def today_key(now: datetime | date | None = None) -> str:
    """Local ``YYYY-MM-DD`` of ``now`` (defaults to the current local time)."""

    if now is None:
        now = datetime.now()
    if isinstance(now, datetime):
        if now.tzinfo is not None:
            now = now.astimezone()
        now = now.date()
    return date_key(now)


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


def coerce_amount(value: Any) -> float:
    """Coerce a sheet amount cell to ``float``; unparseable input yields ``0.0``.

    ``"MVR 1,250.50"`` -> ``1250.5``; ``"N/A"`` -> ``0.0``.
    """

    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        f = float(value)
    elif isinstance(value, str):
        try:
            f = float(_NON_NUMERIC.sub("", value))
        except ValueError:
            return 0.0
    else:
        return 0.0
    return f if math.isfinite(f) else 0.0


def format_amount(value: float) -> str:
    """Two decimals with thousands separators (``1,250.50``)."""

    return f"{value:,.2f}"


def format_money(value: float, currency: str = "MVR") -> str:
    return f"{format_amount(value)} {currency}"


__all__ = [
    "MONTHS_SHORT",
    "ParseFailure",
    "coerce_amount",
    "date_key",
    "display_date",
    "format_amount",
    "format_money",
    "local_date_key",
    "normalize_date",
    "strip_quote",
    "to_display",
    "today_key",
]
