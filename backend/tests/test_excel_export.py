"""
Tests for services/excel_export.py.

Tests verify:
  1. FILE GENERATION: file created, correct name, absolute path, dir created
  2. TAB STRUCTURE: 2 tabs with correct names and headers
  3. MONTHLY REPORTS TAB: row data, sort order (newest month first)
  4. CREATOR BALANCES TAB: row data, sort order (lifetime earnings desc)
  5. FORMATTING: bold frozen headers, currency + number formats, auto-fit
"""

import sys
import os
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from openpyxl import load_workbook

from models.schemas import CreatorAccount, MonthlyReport
from services.excel_export import (
    BALANCE_HEADERS,
    CURRENCY_FORMAT,
    MAX_COL_WIDTH,
    MIN_COL_WIDTH,
    NUMBER_FORMAT,
    REPORT_HEADERS,
    export_filename,
    generate_report,
)

EXPORT_DATE = date(2024, 5, 2)


# ===========================================================================
# Test data helpers
# ===========================================================================

def make_report(creator_id="alice", month="2024-01", payout="31.50", status="locked"):
    return MonthlyReport(
        report_id=f"{creator_id}_{month}",
        creator_id=creator_id,
        month=month,
        payout_amount=Decimal(payout),
        total_views=1_500_000,
        total_premium_views=105_000,
        status=status,
        locked_until=datetime(2024, 4, 30, tzinfo=timezone.utc),
        unlocked_at=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc) if status == "unlocked" else None,
        unlocked_by="admin1" if status == "unlocked" else None,
    )


def make_creator(creator_id="alice", lifetime="100.00", locked="40.00", available="60.00"):
    return CreatorAccount(
        creator_id=creator_id,
        display_name=creator_id.title(),
        locked_balance=Decimal(locked),
        available_balance=Decimal(available),
        lifetime_earnings=Decimal(lifetime),
        total_withdrawn=Decimal("0.00"),
    )


@pytest.fixture
def export(tmp_path):
    """Generate a workbook with sample data and return (filepath, workbook)."""
    reports = [
        make_report("alice", "2024-01"),
        make_report("bob", "2024-02", payout="12.25", status="unlocked"),
        make_report("alice", "2024-02", payout="3.15"),
    ]
    creators = [
        make_creator("alice", lifetime="34.65"),
        make_creator("bob", lifetime="1234.50"),
    ]
    filepath = generate_report(reports, creators, export_date=EXPORT_DATE, output_dir=str(tmp_path))
    return filepath, load_workbook(filepath)


# ===========================================================================
# 1. FILE GENERATION
# ===========================================================================

class TestFileGeneration:
    def test_file_created(self, export):
        filepath, _ = export
        assert os.path.exists(filepath)

    def test_filename(self, export):
        filepath, _ = export
        assert os.path.basename(filepath) == "EverNet Monthly Reports 2024-05-02.xlsx"
        assert export_filename(EXPORT_DATE) == os.path.basename(filepath)

    def test_absolute_path(self, export):
        filepath, _ = export
        assert os.path.isabs(filepath)

    def test_output_dir_created(self, tmp_path):
        target = tmp_path / "nested" / "exports"
        filepath = generate_report([], [], export_date=EXPORT_DATE, output_dir=str(target))
        assert os.path.exists(filepath)


# ===========================================================================
# 2. TAB STRUCTURE
# ===========================================================================

class TestTabs:
    def test_tab_names(self, export):
        _, wb = export
        assert wb.sheetnames == ["Monthly Reports", "Creator Balances"]

    def test_headers(self, export):
        _, wb = export
        assert [c.value for c in wb["Monthly Reports"][1]] == REPORT_HEADERS
        assert [c.value for c in wb["Creator Balances"][1]] == BALANCE_HEADERS

    def test_empty_inputs_have_headers_only(self, tmp_path):
        filepath = generate_report([], [], export_date=EXPORT_DATE, output_dir=str(tmp_path))
        wb = load_workbook(filepath)
        assert wb["Monthly Reports"].max_row == 1
        assert wb["Creator Balances"].max_row == 1


# ===========================================================================
# 3. MONTHLY REPORTS TAB
# ===========================================================================

class TestReportsTab:
    def test_sorted_newest_month_then_creator(self, export):
        _, wb = export
        ws = wb["Monthly Reports"]
        ids = [ws.cell(row=r, column=1).value for r in range(2, ws.max_row + 1)]
        assert ids == ["alice_2024-02", "bob_2024-02", "alice_2024-01"]

    def test_row_values(self, export):
        _, wb = export
        ws = wb["Monthly Reports"]
        row = [c.value for c in ws[3]]  # bob_2024-02
        assert row[0] == "bob_2024-02"
        assert row[3] == 1_500_000
        assert row[4] == 105_000
        assert row[5] == pytest.approx(12.25)
        assert row[6] == "unlocked"
        assert row[7] == "2024-04-30"
        assert row[8] == "2024-05-01 09:30:00"
        assert row[9] == "admin1"

    def test_locked_report_has_no_unlock_info(self, export):
        _, wb = export
        ws = wb["Monthly Reports"]
        assert ws.cell(row=4, column=9).value is None
        assert ws.cell(row=4, column=10).value is None


# ===========================================================================
# 4. CREATOR BALANCES TAB
# ===========================================================================

class TestBalancesTab:
    def test_sorted_by_lifetime_desc(self, export):
        _, wb = export
        ws = wb["Creator Balances"]
        assert [ws.cell(row=r, column=1).value for r in (2, 3)] == ["bob", "alice"]

    def test_money_values(self, export):
        _, wb = export
        ws = wb["Creator Balances"]
        assert ws.cell(row=2, column=3).value == pytest.approx(40.00)
        assert ws.cell(row=2, column=4).value == pytest.approx(60.00)
        assert ws.cell(row=2, column=5).value == pytest.approx(1234.50)


# ===========================================================================
# 5. FORMATTING
# ===========================================================================

class TestFormatting:
    def test_bold_frozen_headers(self, export):
        _, wb = export
        for ws in wb.worksheets:
            assert ws.freeze_panes == "A2"
            assert all(cell.font.bold for cell in ws[1])

    def test_number_formats(self, export):
        _, wb = export
        reports = wb["Monthly Reports"]
        assert reports.cell(row=2, column=4).number_format == NUMBER_FORMAT
        assert reports.cell(row=2, column=5).number_format == NUMBER_FORMAT
        assert reports.cell(row=2, column=6).number_format == CURRENCY_FORMAT
        balances = wb["Creator Balances"]
        for col in (3, 4, 5, 6):
            assert balances.cell(row=2, column=col).number_format == CURRENCY_FORMAT

    def test_column_widths_clamped(self, export):
        _, wb = export
        for ws in wb.worksheets:
            for dim in ws.column_dimensions.values():
                assert MIN_COL_WIDTH <= dim.width <= MAX_COL_WIDTH
