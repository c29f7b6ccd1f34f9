"""CSV and PDF reports of a filtered ledger view.

Both formats list the view newest first (the on-screen order) and are
reproducible byte for byte from the same view, labels and ``generated_at``.
An empty view produces no file.
"""

from __future__ import annotations

import io
import re
from datetime import datetime
from pathlib import Path
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .filtering import FilteredView
from .logging_setup import get_logger
from .normalizers import display_date, format_amount, to_display

_logger = get_logger("sheet_ledger.export")

_WHITESPACE = re.compile(r"\s+")
_NEEDS_QUOTES = (",", '"', "\n", "\r")


# ---------------------------------------------------------------------------
# File naming
# ---------------------------------------------------------------------------


def _slug(title: str) -> str:
    return _WHITESPACE.sub("_", title.strip())


def csv_filename(title: str) -> str:
    return f"{_slug(title)}_export.csv"


def pdf_filename(title: str, generated_at: datetime) -> str:
    return f"{_slug(title)}_{to_display(generated_at.date())}.pdf"


# ---------------------------------------------------------------------------
# Shared row layout
# ---------------------------------------------------------------------------


def header_row(view: FilteredView, *, name_label: str, currency: str = "MVR") -> list[str]:
    category = ["Category"] if view.show_category else []
    return ["Date", *category, name_label, f"Amount ({currency})"]


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _cell(value: str) -> str:
    return _quote(value) if any(c in value for c in _NEEDS_QUOTES) else value


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def render_csv(
    view: FilteredView, *, name_label: str = "Description", currency: str = "MVR"
) -> bytes:
    """Render ``view`` as UTF-8 CSV.

    Names are always quoted (inner quotes doubled); other cells are quoted only
    when they need it. Amounts use two decimals without thousands separators.
    """

    lines = [",".join(_cell(h) for h in header_row(view, name_label=name_label, currency=currency))]
    for tx in view.newest_first():
        row = [_cell(display_date(tx.date, date_order=view.date_order))]
        if view.show_category:
            row.append(_cell(tx.category or "N/A"))
        row.append(_quote(tx.name))
        row.append(f"{tx.amount:.2f}")
        lines.append(",".join(row))
    return "\n".join(lines).encode("utf-8")


def export_csv(
    view: FilteredView,
    directory: str | Path,
    *,
    title: str,
    name_label: str = "Description",
    currency: str = "MVR",
) -> Path | None:
    """Write ``view`` to ``<directory>/<title>_export.csv``; ``None`` when empty."""

    if not view:
        _logger.info("Nothing to export for %r: filtered view is empty", title)
        return None
    path = Path(directory) / csv_filename(title)
    path.write_bytes(render_csv(view, name_label=name_label, currency=currency))
    _logger.info("CSV exported: %s (%d rows)", path, len(view))
    return path


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------


def pdf_table_rows(
    view: FilteredView, *, name_label: str = "Description", currency: str = "MVR"
) -> list[list[str]]:
    """Header, one row per transaction (newest first) and the ``TOTAL`` footer."""

    header = header_row(view, name_label=name_label, currency=currency)
    rows: list[list[str]] = [header]
    for tx in view.newest_first():
        row = [display_date(tx.date, date_order=view.date_order)]
        if view.show_category:
            row.append(tx.category or "N/A")
        row.extend([tx.name, format_amount(tx.amount)])
        rows.append(row)
    rows.append(["TOTAL", *([""] * (len(header) - 2)), format_amount(view.total)])
    return rows


def _period_line(view: FilteredView) -> str | None:
    date_range = view.date_range
    if date_range is None or not date_range.is_active:
        return None
    start = to_display(date_range.start) if date_range.start else "..."
    end = to_display(date_range.end) if date_range.end else "..."
    return f"Period: {start} to {end}"


def render_pdf(
    view: FilteredView,
    *,
    title: str,
    name_label: str = "Description",
    generated_at: datetime | None = None,
    currency: str = "MVR",
) -> bytes:
    """Render ``view`` as a paginated A4 table.

    The document is built with reportlab's ``invariant`` mode so that equal
    inputs (including ``generated_at``) produce identical bytes.
    """

    generated_at = generated_at or datetime.now()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        title=title,
        invariant=1,
        leftMargin=0.6 * inch,
        rightMargin=0.6 * inch,
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
    )
    styles = getSampleStyleSheet()

    elements = [
        Paragraph(escape(title), styles["Title"]),
        Paragraph(
            f"Generated: {to_display(generated_at.date())} {generated_at:%H:%M}", styles["Normal"]
        ),
    ]
    period = _period_line(view)
    if period:
        elements.append(Paragraph(escape(period), styles["Normal"]))
    elements.append(Spacer(1, 0.2 * inch))

    data = pdf_table_rows(view, name_label=name_label, currency=currency)
    table = Table(data, repeatRows=1, hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#4f46e5")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (-1, 0), (-1, -1), "RIGHT"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -2), [colors.white, colors.HexColor("#f4f4f5")]),
                ("BACKGROUND", (0, -1), (-1, -1), colors.HexColor("#e4e4e7")),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#a1a1aa")),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
            ]
        )
    )
    elements.append(table)
    doc.build(elements)
    return buf.getvalue()


def export_pdf(
    view: FilteredView,
    directory: str | Path,
    *,
    title: str,
    name_label: str = "Description",
    generated_at: datetime | None = None,
    currency: str = "MVR",
) -> Path | None:
    """Write ``view`` to ``<directory>/<title>_<DD-Mon-YY>.pdf``; ``None`` when empty."""

    if not view:
        _logger.info("Nothing to export for %r: filtered view is empty", title)
        return None
    generated_at = generated_at or datetime.now()
    path = Path(directory) / pdf_filename(title, generated_at)
    path.write_bytes(
        render_pdf(
            view,
            title=title,
            name_label=name_label,
            generated_at=generated_at,
            currency=currency,
        )
    )
    _logger.info("PDF exported: %s (%d rows)", path, len(view))
    return path


__all__ = [
    "csv_filename",
    "export_csv",
    "export_pdf",
    "header_row",
    "pdf_filename",
    "pdf_table_rows",
    "render_csv",
    "render_pdf",
]
