"""
Excel export of monthly reports and creator balances.

Creates a 2-tab .xlsx file:
  Tab 1: "Monthly Reports"  — one row per MonthlyReport
  Tab 2: "Creator Balances" — one row per CreatorAccount

File naming: "EverNet Monthly Reports {export_date}.xlsx"

Formatting:
  - Bold header rows on all tabs
  - Auto-fit column widths (with min/max constraints)
  - Freeze top row (header) on all tabs
  - Currency format for money columns ($#,##0.00)
  - Comma-separated number format for view counts (#,##0)
"""

import os
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

import config
from models.schemas import CreatorAccount, MonthlyReport

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
MIN_COL_WIDTH = 10      # Minimum column width (characters)
MAX_COL_WIDTH = 50      # Maximum column width (avoid super-wide columns)
HEADER_FONT = Font(bold=True)
CURRENCY_FORMAT = '$#,##0.00'
NUMBER_FORMAT = '#,##0'

REPORT_HEADERS = [
    "Report ID",
    "Creator ID",
    "Month",
    "Total Views",
    "Premium Views",
    "Payout Amount",
    "Status",
    "Locked Until",
    "Unlocked At",
    "Unlocked By",
]
BALANCE_HEADERS = [
    "Creator ID",
    "Display Name",
    "Locked Balance",
    "Available Balance",
    "Lifetime Earnings",
    "Total Withdrawn",
]


# ===========================================================================
# Public API
# ===========================================================================

def export_filename(export_date: date) -> str:
    return f"EverNet Monthly Reports {export_date.isoformat()}.xlsx"


def generate_report(
    reports: list[MonthlyReport],
    creators: list[CreatorAccount],
    export_date: Optional[date] = None,
    output_dir: Optional[str] = None,
) -> str:
    """
    Write the 2-tab workbook.

    Args:
        reports:     Monthly reports for Tab 1
        creators:    Creator accounts for Tab 2
        export_date: Date used in the filename (defaults to today)
        output_dir:  Directory to save the file (defaults to config.OUTPUT_DIR)

    Returns:
        Absolute file path of the generated .xlsx file.
    """
    if output_dir is None:
        output_dir = config.OUTPUT_DIR
    if export_date is None:
        export_date = date.today()

    os.makedirs(output_dir, exist_ok=True)
    filepath = os.path.abspath(os.path.join(output_dir, export_filename(export_date)))

    logger.info(f"Generating export: {filepath}")

    wb = Workbook()

    # Tab 1: Monthly Reports (default sheet, rename it)
    ws1 = wb.active
    ws1.title = "Monthly Reports"
    _build_reports_tab(ws1, reports)

    # Tab 2: Creator Balances
    ws2 = wb.create_sheet("Creator Balances")
    _build_balances_tab(ws2, creators)

    wb.save(filepath)
    logger.info(
        f"Export saved: {filepath} ({len(reports)} reports, {len(creators)} creators)"
    )
    return filepath


# ===========================================================================
# Tab 1: Monthly Reports
# ===========================================================================

def _build_reports_tab(ws: Worksheet, reports: list[MonthlyReport]) -> None:
    """
    One row per report, newest month first, then by creator.
    """
    ws.append(REPORT_HEADERS)

    sorted_reports = sorted(reports, key=lambda r: r.creator_id)
    sorted_reports.sort(key=lambda r: r.month, reverse=True)

    for r in sorted_reports:
        ws.append([
            r.report_id,
            r.creator_id,
            r.month,
            r.total_views,
            r.total_premium_views,
            _money(r.payout_amount),
            r.status,
            _format_date(r.locked_until),
            _format_datetime(r.unlocked_at),
            r.unlocked_by,
        ])

    _format_header_row(ws)
    _freeze_top_row(ws)

    # Views (D, E) and payout (F)
    for col_idx in [4, 5]:
        _apply_column_format(ws, col_idx=col_idx, fmt=NUMBER_FORMAT, start_row=2)
    _apply_column_format(ws, col_idx=6, fmt=CURRENCY_FORMAT, start_row=2)

    _auto_fit_columns(ws)


# ===========================================================================
# Tab 2: Creator Balances
# ===========================================================================

def _build_balances_tab(ws: Worksheet, creators: list[CreatorAccount]) -> None:
    """
    One row per creator, sorted by lifetime earnings descending.
    """
    ws.append(BALANCE_HEADERS)

    for c in sorted(creators, key=lambda c: c.lifetime_earnings, reverse=True):
        ws.append([
            c.creator_id,
            c.display_name,
            _money(c.locked_balance),
            _money(c.available_balance),
            _money(c.lifetime_earnings),
            _money(c.total_withdrawn),
        ])

    _format_header_row(ws)
    _freeze_top_row(ws)

    for col_idx in [3, 4, 5, 6]:
        _apply_column_format(ws, col_idx=col_idx, fmt=CURRENCY_FORMAT, start_row=2)

    _auto_fit_columns(ws)


# ===========================================================================
# Formatting helpers
# ===========================================================================

def _format_header_row(ws: Worksheet) -> None:
    """Bold the entire header row (row 1)."""
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal="center", vertical="center")


def _freeze_top_row(ws: Worksheet) -> None:
    ws.freeze_panes = "A2"


def _apply_column_format(
    ws: Worksheet,
    col_idx: int,
    fmt: str,
    start_row: int = 2,
) -> None:
    for row in range(start_row, ws.max_row + 1):
        cell = ws.cell(row=row, column=col_idx)
        if cell.value is not None:
            cell.number_format = fmt


def _auto_fit_columns(ws: Worksheet) -> None:
    """Width = widest value in the column + 2, clamped to [MIN, MAX]."""
    for col_idx in range(1, ws.max_column + 1):
        max_length = 0
        for row in range(1, ws.max_row + 1):
            value = ws.cell(row=row, column=col_idx).value
            if value is not None:
                max_length = max(max_length, len(str(value)))

        width = min(max(max_length + 2, MIN_COL_WIDTH), MAX_COL_WIDTH)
        ws.column_dimensions[get_column_letter(col_idx)].width = width


def _money(amount: Decimal) -> float:
    return float(amount)


def _format_date(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.date().isoformat()


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%Y-%m-%d %H:%M:%S")
