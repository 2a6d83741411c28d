"""Spreadsheet (XLSX) export.

Workbook Structure:
- Sheet: <Entity>           - Styled data rows, TOTAL row with SUM formulas
- Sheet: <Entity> Summary   - Metric/value rows (projects, volunteers, payments, NGOs)
- Sheet: Analytics Summary  - Record and column counts per sheet (optional)
"""

from __future__ import annotations

import io
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from wasilah.data.addressing import column_letter, range_ref, sum_formula
from wasilah.data.catalog import ColumnType, get_catalog, restrict_columns
from wasilah.data.models import EntityType
from wasilah.data.pipeline import to_datetime
from wasilah.data.records import EntityRecord

# Called with (rows_written, total_rows) after every chunk of data rows
ChunkHook = Callable[[int, int], None]

PRIMARY = "0369A1"
CURRENCY_FORMAT = '"PKR "#,##0.00'
DATE_FORMAT = "dd/mm/yyyy"
PERCENTAGE_FORMAT = "0.00%"
TIMESTAMP_FORMAT = "dd/mm/yyyy hh:mm"

HEADER_FONT = Font(bold=True, size=12, color="FFFFFF")
HEADER_FILL = PatternFill(fill_type="solid", start_color=PRIMARY, end_color=PRIMARY)
HEADER_ALIGNMENT = Alignment(horizontal="left", vertical="center")
_THIN = Side(style="thin", color="000000")
HEADER_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
EVEN_ROW_FILL = PatternFill(fill_type="solid", start_color="F3F4F6", end_color="F3F4F6")
ODD_ROW_FILL = PatternFill(fill_type="solid", start_color="FFFFFF", end_color="FFFFFF")
SUMMARY_FONT = Font(bold=True, size=11)
SUMMARY_FILL = PatternFill(fill_type="solid", start_color="DBEAFE", end_color="DBEAFE")
SUMMARY_BORDER = Border(top=Side(style="medium", color=PRIMARY))
TITLE_FONT = Font(bold=True, size=16, color=PRIMARY)


@dataclass
class ColumnConfig:
    """One sheet column.

    ``format`` is ``currency``, ``date``, ``percentage`` or ``numFmt:<pattern>``.
    ``formula`` replaces the generated summary cell for this column.
    """

    header: str
    key: str
    width: float = 15
    format: str | None = None
    formula: str | None = None

    @property
    def number_format(self) -> str | None:
        if self.format is None:
            return None
        if self.format == "currency":
            return CURRENCY_FORMAT
        if self.format == "date":
            return DATE_FORMAT
        if self.format == "percentage":
            return PERCENTAGE_FORMAT
        if self.format.startswith("numFmt:"):
            return self.format[len("numFmt:"):]
        return None


@dataclass
class SheetConfig:
    name: str
    rows: list[dict[str, Any]]
    columns: list[ColumnConfig]
    include_summary: bool = True
    freeze_header: bool = True


@dataclass
class WorkbookOptions:
    creator: str = "Wasilah Platform"
    include_analytics: bool = False
    chunk_size: int = 500
    generated_at: datetime | None = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _cell_value(value: Any, column: ColumnConfig) -> Any:
    if value is None:
        return None
    if column.format == "date" and isinstance(value, (str, date)):
        parsed = to_datetime(value)
        return parsed if parsed is not None else value
    if isinstance(value, (list, tuple, set)):
        return ", ".join(str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, default=str)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return to_datetime(value)
    return value


class WorkbookBuilder:
    """Build a styled workbook from sheet configs."""

    def __init__(self, options: WorkbookOptions | None = None) -> None:
        self.options = options or WorkbookOptions()

    def build(
        self, sheets: Sequence[SheetConfig], on_chunk: ChunkHook | None = None
    ) -> openpyxl.Workbook:
        if not sheets:
            raise ValueError("A workbook needs at least one sheet")
        wb = openpyxl.Workbook()
        wb.remove(wb.active)
        wb.properties.creator = self.options.creator
        wb.properties.lastModifiedBy = self.options.creator

        for sheet in sheets:
            ws = wb.create_sheet(title=sheet.name[:31])
            self._write_sheet(ws, sheet, on_chunk)

        if self.options.include_analytics:
            self._write_analytics_sheet(wb.create_sheet("Analytics Summary"), sheets)
        return wb

    def to_bytes(
        self, sheets: Sequence[SheetConfig], on_chunk: ChunkHook | None = None
    ) -> bytes:
        buffer = io.BytesIO()
        self.build(sheets, on_chunk).save(buffer)
        return buffer.getvalue()

    def _write_sheet(
        self, ws: Worksheet, sheet: SheetConfig, on_chunk: ChunkHook | None
    ) -> None:
        columns = sheet.columns
        last_letter = column_letter(len(columns))

        for col_idx, column in enumerate(columns, 1):
            cell = ws.cell(row=1, column=col_idx, value=column.header)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = HEADER_ALIGNMENT
            cell.border = HEADER_BORDER
            ws.column_dimensions[column_letter(col_idx)].width = column.width
        ws.row_dimensions[1].height = 25

        total = len(sheet.rows)
        chunk_size = max(1, self.options.chunk_size)
        for start in range(0, total, chunk_size):
            for index in range(start, min(start + chunk_size, total)):
                self._write_data_row(ws, index, sheet.rows[index], columns)
            if on_chunk is not None:
                on_chunk(min(start + chunk_size, total), total)

        if sheet.include_summary and total > 0:
            self._write_summary_row(ws, sheet)

        if sheet.freeze_header:
            ws.freeze_panes = "A2"
        ws.auto_filter.ref = f"A1:{last_letter}1"

    def _write_data_row(
        self,
        ws: Worksheet,
        index: int,
        row: dict[str, Any],
        columns: Sequence[ColumnConfig],
    ) -> None:
        fill = EVEN_ROW_FILL if index % 2 == 0 else ODD_ROW_FILL
        row_num = index + 2
        for col_idx, column in enumerate(columns, 1):
            value = _cell_value(row.get(column.key), column)
            cell = ws.cell(row=row_num, column=col_idx, value=value)
            if isinstance(value, str) and value.startswith("="):
                # Record text is never evaluated as a formula
                cell.data_type = "s"
            cell.fill = fill
            if column.number_format:
                cell.number_format = column.number_format

    def _write_summary_row(self, ws: Worksheet, sheet: SheetConfig) -> None:
        first_row = 2
        last_row = len(sheet.rows) + 1
        # One blank separator row between data and summary
        summary_row = last_row + 2

        for col_idx, column in enumerate(sheet.columns, 1):
            values = [row.get(column.key) for row in sheet.rows]
            present = [value for value in values if value is not None and value != ""]
            if col_idx == 1:
                value: Any = "TOTAL"
            elif column.formula:
                value = column.formula if column.formula.startswith("=") else f"={column.formula}"
            elif present and all(_is_number(v) for v in present):
                value = f"={sum_formula(col_idx, first_row, last_row)}"
            else:
                value = None
            cell = ws.cell(row=summary_row, column=col_idx, value=value)
            cell.font = SUMMARY_FONT
            cell.fill = SUMMARY_FILL
            cell.border = SUMMARY_BORDER
            if column.number_format:
                cell.number_format = column.number_format

    def _write_analytics_sheet(self, ws: Worksheet, sheets: Sequence[SheetConfig]) -> None:
        generated_at = self.options.generated_at or datetime.now()

        ws.cell(row=1, column=1, value="Wasilah Platform - Analytics Summary").font = TITLE_FONT
        ws.row_dimensions[1].height = 30
        ws.merge_cells(range_ref(1, 1, 1, 4))

        ws.cell(row=3, column=1, value="Export Date:")
        stamp = ws.cell(row=3, column=2, value=generated_at)
        stamp.number_format = TIMESTAMP_FORMAT

        for col_idx, header in enumerate(["Sheet Name", "Total Records", "Columns", "Status"], 1):
            cell = ws.cell(row=5, column=col_idx, value=header)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = HEADER_ALIGNMENT
            cell.border = HEADER_BORDER

        first_row = 6
        for offset, sheet in enumerate(sheets):
            row_num = first_row + offset
            values = [sheet.name, len(sheet.rows), len(sheet.columns), "Complete"]
            for col_idx, value in enumerate(values, 1):
                cell = ws.cell(row=row_num, column=col_idx, value=value)
                if row_num % 2 == 0:
                    cell.fill = EVEN_ROW_FILL

        for col_idx, width in enumerate([25, 15, 15, 15], 1):
            ws.column_dimensions[column_letter(col_idx)].width = width

        last_row = first_row + len(sheets) - 1
        total_row = last_row + 2
        totals = ["TOTAL", f"={sum_formula(2, first_row, last_row)}", None, None]
        for col_idx, value in enumerate(totals, 1):
            cell = ws.cell(row=total_row, column=col_idx, value=value)
            cell.font = SUMMARY_FONT
            cell.fill = SUMMARY_FILL
            cell.border = SUMMARY_BORDER
        ws.freeze_panes = "A2"


# Entity sheet adapters


def _count_status(records: Sequence[EntityRecord], status: str) -> int:
    return sum(
        1
        for record in records
        if (getattr(record, "status", None) or "").casefold() == status
    )


def _total(records: Sequence[EntityRecord], attr: str) -> float:
    return sum(getattr(record, attr) or 0 for record in records)


def _metric_sheet(
    name: str, rows: list[dict[str, Any]], value_format: str | None = None, width: float = 25
) -> SheetConfig:
    return SheetConfig(
        name=name,
        rows=rows,
        columns=[
            ColumnConfig(header="Metric", key="metric", width=width),
            ColumnConfig(header="Value", key="value", width=20, format=value_format),
        ],
        include_summary=False,
    )


def projects_summary_sheet(records: Sequence[EntityRecord]) -> SheetConfig:
    count = len(records)
    return _metric_sheet(
        "Projects Summary",
        [
            {"metric": "Total Projects", "value": count},
            {"metric": "Active Projects", "value": _count_status(records, "active")},
            {"metric": "Completed Projects", "value": _count_status(records, "completed")},
            {"metric": "Total Budget", "value": _total(records, "budget")},
            {"metric": "Total Spent", "value": _total(records, "spent")},
            {"metric": "Total Beneficiaries", "value": _total(records, "beneficiaries")},
            {
                "metric": "Average Impact Score",
                "value": _total(records, "impact_score") / count if count else 0,
            },
        ],
        value_format="currency",
    )


def volunteers_summary_sheet(records: Sequence[EntityRecord]) -> SheetConfig:
    count = len(records)
    hours = _total(records, "total_hours")
    return _metric_sheet(
        "Volunteers Summary",
        [
            {"metric": "Total Volunteers", "value": count},
            {"metric": "Active Volunteers", "value": _count_status(records, "active")},
            {"metric": "Total Volunteer Hours", "value": hours},
            {"metric": "Average Hours per Volunteer", "value": hours / count if count else 0},
            {
                "metric": "Total Projects Completed",
                "value": _total(records, "projects_completed"),
            },
        ],
        width=30,
    )


def payments_summary_sheet(records: Sequence[EntityRecord]) -> SheetConfig:
    def by_status(status: str) -> dict[str, Any]:
        matching = [
            r for r in records if (getattr(r, "status", None) or "").casefold() == status
        ]
        return {
            "metric": f"{status.title()} Payments",
            "value": len(matching),
            "amount": _total(matching, "amount"),
        }

    return SheetConfig(
        name="Payments Summary",
        rows=[
            {
                "metric": "Total Payments",
                "value": len(records),
                "amount": _total(records, "amount"),
            },
            by_status("completed"),
            by_status("pending"),
            by_status("failed"),
        ],
        columns=[
            ColumnConfig(header="Metric", key="metric", width=25),
            ColumnConfig(header="Count", key="value", width=15),
            ColumnConfig(header="Amount", key="amount", width=20, format="currency"),
        ],
        include_summary=False,
    )


def ngos_summary_sheet(records: Sequence[EntityRecord]) -> SheetConfig:
    count = len(records)
    return _metric_sheet(
        "NGOs Summary",
        [
            {"metric": "Total NGOs", "value": count},
            {"metric": "Active NGOs", "value": _count_status(records, "active")},
            {"metric": "Total Projects", "value": _total(records, "project_count")},
            {"metric": "Total Volunteers", "value": _total(records, "volunteer_count")},
            {
                "metric": "Average Impact Score",
                "value": _total(records, "impact_score") / count if count else 0,
            },
        ],
        width=30,
    )


_SUMMARY_SHEETS: dict[EntityType, Callable[[Sequence[EntityRecord]], SheetConfig]] = {
    EntityType.PROJECTS: projects_summary_sheet,
    EntityType.VOLUNTEERS: volunteers_summary_sheet,
    EntityType.PAYMENTS: payments_summary_sheet,
    EntityType.NGOS: ngos_summary_sheet,
}

# Audit trails have no meaningful column totals
_NO_TOTALS = {EntityType.AUDIT_LOGS}

_COLUMN_FORMATS = {
    ColumnType.CURRENCY: "currency",
    ColumnType.DATE: "date",
}


def entity_sheets(
    entity_type: EntityType | str,
    records: Sequence[EntityRecord],
    include_columns: Sequence[str],
) -> list[SheetConfig]:
    """Main sheet for the entity, plus its summary sheet when it has one."""
    entity_type = EntityType(entity_type)
    catalog = get_catalog(entity_type)
    selected = restrict_columns(catalog.column_ids, include_columns)

    definitions = {column.id: column for column in catalog.columns}
    columns = [
        ColumnConfig(
            header=definitions[column_id].label,
            key=column_id,
            width=catalog.widths.get(column_id, 15),
            format=_COLUMN_FORMATS.get(definitions[column_id].type),
        )
        for column_id in selected
    ]

    sheets = [
        SheetConfig(
            name=catalog.label,
            rows=[record.to_row() for record in records],
            columns=columns,
            include_summary=entity_type not in _NO_TOTALS,
        )
    ]
    summary = _SUMMARY_SHEETS.get(entity_type)
    if summary is not None and records:
        sheets.append(summary(records))
    return sheets
