"""
Unit tests for the spreadsheet builder.

Workbooks are saved, reopened with openpyxl and their SUM formulas are
recomputed from the referenced cells.
"""

from __future__ import annotations

import io
import re
from datetime import datetime

import openpyxl
import pytest

from wasilah.data.records import parse_records
from wasilah.data.spreadsheet import (
    CURRENCY_FORMAT,
    DATE_FORMAT,
    ColumnConfig,
    SheetConfig,
    WorkbookBuilder,
    WorkbookOptions,
    entity_sheets,
)

pytestmark = pytest.mark.unit

_SUM_RE = re.compile(r"^=SUM\(([A-Z]+\d+:[A-Z]+\d+)\)$")


def _evaluate_sum(ws, formula: str) -> float:
    match = _SUM_RE.match(formula)
    assert match, f"not a SUM formula: {formula}"
    return sum(cell.value or 0 for row in ws[match.group(1)] for cell in row)


def _reload(content: bytes) -> openpyxl.Workbook:
    return openpyxl.load_workbook(io.BytesIO(content))


@pytest.fixture
def value_sheet() -> SheetConfig:
    return SheetConfig(
        name="Values",
        rows=[
            {"label": "a", "value": 10, "note": "x"},
            {"label": "b", "value": 20, "note": "y"},
            {"label": "c", "value": 30, "note": None},
        ],
        columns=[
            ColumnConfig(header="Label", key="label"),
            ColumnConfig(header="Value", key="value"),
            ColumnConfig(header="Note", key="note"),
        ],
    )


class TestSummaryRow:
    """TOTAL row two rows below the data with live SUM formulas."""

    def test_sum_formula_evaluates(self, value_sheet):
        ws = _reload(WorkbookBuilder().to_bytes([value_sheet]))["Values"]

        assert ws["A6"].value == "TOTAL"
        assert ws["B6"].value == "=SUM(B2:B4)"
        assert _evaluate_sum(ws, ws["B6"].value) == 60
        assert ws["A5"].value is None

    def test_text_columns_get_no_formula(self, value_sheet):
        ws = _reload(WorkbookBuilder().to_bytes([value_sheet]))["Values"]
        assert ws["C6"].value is None

    def test_custom_formula(self, value_sheet):
        value_sheet.columns[1].formula = "AVERAGE(B2:B4)"
        ws = WorkbookBuilder().build([value_sheet])["Values"]
        assert ws["B6"].value == "=AVERAGE(B2:B4)"

    def test_summary_can_be_disabled(self, value_sheet):
        value_sheet.include_summary = False
        ws = WorkbookBuilder().build([value_sheet])["Values"]
        assert ws.max_row == 4

    def test_no_summary_without_rows(self):
        sheet = SheetConfig(name="Empty", rows=[], columns=[ColumnConfig("Value", "value")])
        ws = WorkbookBuilder().build([sheet])["Empty"]
        assert ws.max_row == 1
        assert ws["A1"].value == "Value"


class TestSheetLayout:
    def test_header_style_and_freeze(self, value_sheet):
        ws = _reload(WorkbookBuilder().to_bytes([value_sheet]))["Values"]

        header = ws["A1"]
        assert header.value == "Label"
        assert header.font.bold
        assert header.fill.start_color.rgb.endswith("0369A1")
        assert ws.freeze_panes == "A2"
        assert ws.auto_filter.ref == "A1:C1"
        assert ws.column_dimensions["A"].width == 15

    def test_number_formats(self):
        sheet = SheetConfig(
            name="Formats",
            rows=[{"amount": 1500.5, "when": "2024-01-15"}],
            columns=[
                ColumnConfig("Amount", "amount", format="currency"),
                ColumnConfig("When", "when", format="date"),
            ],
        )
        ws = WorkbookBuilder().build([sheet])["Formats"]
        assert ws["A2"].number_format == CURRENCY_FORMAT
        assert ws["B2"].number_format == DATE_FORMAT
        assert ws["B2"].value == datetime(2024, 1, 15)

    def test_raw_number_format(self):
        column = ColumnConfig("Rate", "rate", format="numFmt:0.000")
        assert column.number_format == "0.000"
        assert ColumnConfig("Plain", "plain").number_format is None

    def test_formula_like_text_stays_text(self):
        sheet = SheetConfig(
            name="Text",
            rows=[{"cmd": "=HYPERLINK(\"http://x\")"}],
            columns=[ColumnConfig("Cmd", "cmd")],
            include_summary=False,
        )
        ws = WorkbookBuilder().build([sheet])["Text"]
        assert ws["A2"].data_type == "s"

    def test_long_sheet_names_truncated(self):
        sheet = SheetConfig(name="X" * 40, rows=[], columns=[ColumnConfig("A", "a")])
        wb = WorkbookBuilder().build([sheet])
        assert wb.sheetnames == ["X" * 31]

    def test_no_sheets_rejected(self):
        with pytest.raises(ValueError):
            WorkbookBuilder().build([])

    def test_chunk_hook_reports_progress(self):
        rows = [{"n": n} for n in range(5)]
        sheet = SheetConfig(name="Chunks", rows=rows, columns=[ColumnConfig("N", "n")])
        calls = []
        WorkbookBuilder(WorkbookOptions(chunk_size=2)).build(
            [sheet], lambda done, total: calls.append((done, total))
        )
        assert calls == [(2, 5), (4, 5), (5, 5)]


class TestAnalyticsSheet:
    def test_analytics_summary(self, value_sheet):
        options = WorkbookOptions(include_analytics=True, generated_at=datetime(2024, 6, 15))
        wb = _reload(WorkbookBuilder(options).to_bytes([value_sheet]))

        assert wb.sheetnames == ["Values", "Analytics Summary"]
        ws = wb["Analytics Summary"]
        assert ws["A1"].value == "Wasilah Platform - Analytics Summary"
        assert "A1:D1" in {str(merged) for merged in ws.merged_cells.ranges}
        assert ws["A3"].value == "Export Date:"
        assert ws["A5"].value == "Sheet Name"
        assert ws["A6"].value == "Values"
        assert ws["B6"].value == 3
        assert ws["A8"].value == "TOTAL"
        assert ws["B8"].value == "=SUM(B6:B6)"
        assert _evaluate_sum(ws, ws["B8"].value) == 3


class TestEntitySheets:
    def test_projects_main_and_summary_sheet(self, project_records):
        records = parse_records("projects", project_records)
        sheets = entity_sheets("projects", records, ["name", "budget", "remaining"])

        assert [sheet.name for sheet in sheets] == ["Projects", "Projects Summary"]
        main = sheets[0]
        assert [column.key for column in main.columns] == ["name", "budget", "remaining"]
        assert [column.header for column in main.columns] == ["Project Name", "Budget", "Remaining"]
        assert main.columns[1].format == "currency"
        assert main.rows[0]["remaining"] == 8_000_000

        metrics = {row["metric"]: row["value"] for row in sheets[1].rows}
        assert metrics["Total Projects"] == 4
        assert metrics["Active Projects"] == 2
        assert metrics["Total Budget"] == 23_500_000

    def test_budget_total_in_workbook(self, project_records):
        records = parse_records("projects", project_records)
        sheets = entity_sheets("projects", records, ["id", "budget"])
        ws = _reload(WorkbookBuilder().to_bytes(sheets))["Projects"]

        # Four data rows in 2..5, TOTAL on row 7
        assert ws["A7"].value == "TOTAL"
        assert ws["B7"].value == "=SUM(B2:B5)"
        assert _evaluate_sum(ws, ws["B7"].value) == 23_500_000

    def test_payments_summary(self, payment_records):
        records = parse_records("payments", payment_records)
        summary = entity_sheets("payments", records, ["id", "amount"])[1]
        rows = {row["metric"]: row for row in summary.rows}
        assert rows["Total Payments"]["value"] == 5
        assert rows["Completed Payments"]["value"] == 3
        assert rows["Completed Payments"]["amount"] == 875_000
        assert rows["Pending Payments"]["amount"] == 1_000_000

    def test_audit_logs_have_no_totals(self):
        records = parse_records("audit_logs", [{"timestamp": "2024-01-01", "action": "login"}])
        sheets = entity_sheets("audit_logs", records, ["timestamp", "action"])
        assert len(sheets) == 1
        assert sheets[0].include_summary is False

    def test_no_summary_sheet_without_records(self):
        assert len(entity_sheets("projects", [], ["id"])) == 1
