"""Paginated document (PDF) export.

Document Structure:
- Header (first page)  - Brand mark, title, subtitle, generation time, rule
- Tables               - Title kept with its table, header repeated on every page
- Summary blocks       - Precomputed label/value pairs per table
- Export Information   - Optional metadata page
- Footer (every page)  - Rule, organisation name, "Page X of Y"
"""

from __future__ import annotations

import functools
import io
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import (
    HRFlowable,
    KeepTogether,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from wasilah.data.catalog import get_catalog, restrict_columns
from wasilah.data.models import EntityType
from wasilah.data.pipeline import to_datetime
from wasilah.data.records import EntityRecord

ChunkHook = Callable[[int, int], None]

PRIMARY = colors.HexColor("#0369A1")
SECONDARY = colors.HexColor("#DBEAFE")
TEXT = colors.HexColor("#1F2937")
TEXT_LIGHT = colors.HexColor("#6B7280")
BORDER = colors.HexColor("#E5E7EB")
BACKGROUND = colors.HexColor("#F9FAFB")

MARGIN = 14 * mm
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


@dataclass
class TableColumn:
    header: str
    key: str
    width: float | None = None  # mm


@dataclass
class TableConfig:
    title: str
    rows: list[dict[str, Any]]
    columns: list[TableColumn]
    include_summary: bool = False
    summary: dict[str, Any] = field(default_factory=dict)


@dataclass
class DocumentOptions:
    title: str
    subtitle: str | None = None
    creator: str = "Wasilah Platform"
    organization: str = "Wasilah CSR Platform"
    orientation: str = "portrait"
    include_metadata: bool = False
    currency_prefix: str = "PKR"
    currency_threshold: float = 10000
    chunk_size: int = 500
    generated_at: datetime | None = None


@dataclass
class PdfDocument:
    content: bytes
    page_count: int
    footers: list[str] = field(default_factory=list)


def format_header_name(key: str) -> str:
    """``totalBudget`` / ``total_budget`` -> ``Total Budget``."""
    spaced = re.sub(r"([A-Z])", r" \1", key).replace("_", " ")
    titled = re.sub(r"\b\w", lambda match: match.group(0).upper(), spaced)
    return " ".join(titled.split())


def format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def format_cell_value(
    value: Any, currency_prefix: str = "PKR", currency_threshold: float = 10000
) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        if value > currency_threshold:
            return f"{currency_prefix} {format_number(value)}"
        return format_number(value)
    if isinstance(value, (datetime, date)):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, str) and _ISO_DATE_RE.match(value):
        parsed = to_datetime(value)
        if parsed is not None:
            return parsed.strftime("%d/%m/%Y")
    return str(value)


def format_generated_on(moment: datetime) -> str:
    return f"{moment:%B} {moment.day}, {moment.year} at {moment:%I:%M %p}"


class NumberedCanvas(canvas.Canvas):
    """Canvas that defers footers until the total page count is known."""

    def __init__(
        self,
        *args: Any,
        footer_text: str = "",
        footer_log: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict[str, Any]] = []
        self._footer_text = footer_text
        self._footer_log = footer_log if footer_log is not None else []

    def showPage(self) -> None:
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self) -> None:
        page_count = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(page_count)
            super().showPage()
        super().save()

    def _draw_footer(self, page_count: int) -> None:
        width, _height = self._pagesize
        label = f"Page {self._pageNumber} of {page_count}"
        self.saveState()
        self.setStrokeColor(BORDER)
        self.setLineWidth(0.5)
        self.line(MARGIN, 15 * mm, width - MARGIN, 15 * mm)
        self.setFont("Helvetica", 8)
        self.setFillColor(TEXT_LIGHT)
        self.drawString(MARGIN, 10 * mm, self._footer_text)
        self.drawRightString(width - MARGIN, 10 * mm, label)
        self.restoreState()
        self._footer_log.append(label)


class DocumentBuilder:
    """Lay out tables into an A4 PDF with platypus."""

    def __init__(self, options: DocumentOptions) -> None:
        self.options = options
        base = getSampleStyleSheet()
        self.styles = {
            "title": ParagraphStyle(
                "WasilahTitle", parent=base["Heading1"], fontSize=18, leading=22, textColor=TEXT
            ),
            "subtitle": ParagraphStyle(
                "WasilahSubtitle", parent=base["Normal"], fontSize=11, textColor=TEXT_LIGHT
            ),
            "meta": ParagraphStyle(
                "WasilahMeta", parent=base["Normal"], fontSize=9, textColor=TEXT_LIGHT
            ),
            "table_title": ParagraphStyle(
                "WasilahTableTitle", parent=base["Heading2"], fontSize=14, textColor=TEXT
            ),
            "section": ParagraphStyle(
                "WasilahSection", parent=base["Heading3"], fontSize=12, textColor=TEXT
            ),
            "cell": ParagraphStyle(
                "WasilahCell", parent=base["Normal"], fontSize=9, leading=11, textColor=TEXT
            ),
            "head": ParagraphStyle(
                "WasilahHead",
                parent=base["Normal"],
                fontName="Helvetica-Bold",
                fontSize=10,
                leading=12,
                textColor=colors.white,
            ),
        }

    @property
    def pagesize(self) -> tuple[float, float]:
        return landscape(A4) if self.options.orientation == "landscape" else A4

    @property
    def frame_width(self) -> float:
        return self.pagesize[0] - 2 * MARGIN

    def build(
        self, tables: Sequence[TableConfig], on_chunk: ChunkHook | None = None
    ) -> PdfDocument:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=self.pagesize,
            leftMargin=MARGIN,
            rightMargin=MARGIN,
            topMargin=20 * mm,
            bottomMargin=22 * mm,
            title=self.options.title,
            author=self.options.creator,
            creator=self.options.organization,
            subject="Report Export",
        )

        story: list[Any] = self._header()
        for index, table in enumerate(tables):
            story.extend(self._table(table, on_chunk))
            if table.include_summary and table.summary:
                story.extend(self._summary(table.summary))
            if index < len(tables) - 1:
                story.append(Spacer(1, 5 * mm))
        if self.options.include_metadata:
            story.extend(self._metadata(len(tables)))

        footers: list[str] = []
        doc.build(
            story,
            canvasmaker=functools.partial(
                NumberedCanvas, footer_text=self.options.organization, footer_log=footers
            ),
        )
        return PdfDocument(content=buffer.getvalue(), page_count=len(footers), footers=footers)

    def _header(self) -> list[Any]:
        generated_at = self.options.generated_at or datetime.now()
        mark = Table([["WASILAH"]], colWidths=[30 * mm], rowHeights=[8 * mm], hAlign="LEFT")
        mark.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, -1), PRIMARY),
                    ("TEXTCOLOR", (0, 0), (-1, -1), colors.white),
                    ("FONTNAME", (0, 0), (-1, -1), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 12),
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ]
            )
        )
        flowables: list[Any] = [
            mark,
            Spacer(1, 6 * mm),
            Paragraph(escape(self.options.title), self.styles["title"]),
        ]
        if self.options.subtitle:
            flowables.append(Paragraph(escape(self.options.subtitle), self.styles["subtitle"]))
        flowables.extend(
            [
                Spacer(1, 2 * mm),
                Paragraph(
                    f"Generated on: {format_generated_on(generated_at)}", self.styles["meta"]
                ),
                Spacer(1, 3 * mm),
                HRFlowable(width="100%", thickness=0.5, color=BORDER),
                Spacer(1, 6 * mm),
            ]
        )
        return flowables

    def _column_widths(self, columns: Sequence[TableColumn]) -> list[float]:
        fixed = sum(column.width * mm for column in columns if column.width)
        flexible = [column for column in columns if not column.width]
        share = (self.frame_width - fixed) / len(flexible) if flexible else 0
        return [column.width * mm if column.width else share for column in columns]

    def _table(self, table: TableConfig, on_chunk: ChunkHook | None) -> list[Any]:
        cell_style = self.styles["cell"]
        data: list[list[Any]] = [
            [Paragraph(escape(column.header), self.styles["head"]) for column in table.columns]
        ]

        total = len(table.rows)
        chunk_size = max(1, self.options.chunk_size)
        for start in range(0, total, chunk_size):
            for row in table.rows[start : start + chunk_size]:
                data.append(
                    [
                        Paragraph(
                            escape(
                                format_cell_value(
                                    row.get(column.key),
                                    self.options.currency_prefix,
                                    self.options.currency_threshold,
                                )
                            ),
                            cell_style,
                        )
                        for column in table.columns
                    ]
                )
            if on_chunk is not None:
                on_chunk(min(start + chunk_size, total), total)

        grid = Table(
            data,
            colWidths=self._column_widths(table.columns),
            repeatRows=1,
            hAlign="LEFT",
        )
        grid.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), PRIMARY),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, BACKGROUND]),
                    ("LINEBELOW", (0, 0), (-1, -1), 0.25, BORDER),
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                    ("LEFTPADDING", (0, 0), (-1, -1), 4),
                    ("RIGHTPADDING", (0, 0), (-1, -1), 4),
                    ("TOPPADDING", (0, 0), (-1, -1), 3),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
                ]
            )
        )
        if table.title:
            title = Paragraph(escape(table.title), self.styles["table_title"])
            return [KeepTogether([title, grid]), Spacer(1, 5 * mm)]
        return [KeepTogether([grid]), Spacer(1, 5 * mm)]

    def _summary(self, summary: dict[str, Any]) -> list[Any]:
        rows = [[f"{format_header_name(key)}:", str(value)] for key, value in summary.items()]
        block = Table(rows, colWidths=[66 * mm, None], hAlign="LEFT")
        block.setStyle(
            TableStyle(
                [
                    ("FONTSIZE", (0, 0), (-1, -1), 10),
                    ("TEXTCOLOR", (0, 0), (0, -1), TEXT_LIGHT),
                    ("TEXTCOLOR", (1, 0), (1, -1), TEXT),
                    ("FONTNAME", (1, 0), (1, -1), "Helvetica-Bold"),
                    ("BACKGROUND", (0, 0), (-1, -1), SECONDARY),
                    ("LEFTPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        return [
            KeepTogether([Paragraph("Summary", self.styles["section"]), block]),
            Spacer(1, 8 * mm),
        ]

    def _metadata(self, table_count: int) -> list[Any]:
        generated_at = self.options.generated_at or datetime.now()
        rows = [
            ["Export Date:", generated_at.strftime("%d/%m/%Y %H:%M")],
            ["Generated By:", self.options.creator or "System"],
            ["Format:", "PDF Document"],
            ["Tables Included:", str(table_count)],
        ]
        info = Table(rows, colWidths=[46 * mm, None], hAlign="LEFT")
        info.setStyle(
            TableStyle(
                [
                    ("FONTSIZE", (0, 0), (-1, -1), 9),
                    ("TEXTCOLOR", (0, 0), (-1, -1), TEXT_LIGHT),
                ]
            )
        )
        return [PageBreak(), Paragraph("Export Information", self.styles["section"]), info]


# Entity table adapters

_TABLE_COLUMNS: dict[EntityType, tuple[str, ...]] = {
    EntityType.PROJECTS: (
        "name", "ngo", "category", "budget", "spent", "status", "beneficiaries", "startDate",
    ),
    EntityType.VOLUNTEERS: (
        "name", "email", "skills", "totalHours", "projectsCompleted", "status", "joinedAt",
    ),
    EntityType.PAYMENTS: (
        "id", "project", "ngo", "amount", "status", "disbursedAt", "milestone",
    ),
    EntityType.NGOS: (
        "name", "category", "status", "projectCount", "volunteerCount", "email", "verified",
    ),
    EntityType.OPPORTUNITIES: (
        "title", "ngo", "location", "positions", "filled", "status", "startDate",
    ),
    EntityType.AUDIT_LOGS: ("timestamp", "action", "user", "resource", "ipAddress", "success"),
    EntityType.CASES: ("caseId", "type", "priority", "status", "assignee", "createdDate"),
    EntityType.USERS: ("name", "email", "role", "status", "lastLogin"),
}

_TABLE_TITLES = {
    EntityType.NGOS: "Organizations Report",
    EntityType.OPPORTUNITIES: "Volunteer Opportunities Report",
}


def _status_count(records: Sequence[EntityRecord], status: str) -> int:
    return sum(
        1 for r in records if (getattr(r, "status", None) or "").casefold() == status
    )


def _sum(records: Sequence[EntityRecord], attr: str) -> float:
    return sum(getattr(r, attr) or 0 for r in records)


def entity_summary(
    entity_type: EntityType, records: Sequence[EntityRecord]
) -> dict[str, Any]:
    """Precomputed label/value pairs shown under an entity table."""
    count = len(records)
    if entity_type == EntityType.PROJECTS:
        return {
            "totalProjects": count,
            "totalBudget": format_number(_sum(records, "budget")),
            "totalBeneficiaries": format_number(_sum(records, "beneficiaries")),
            "activeProjects": _status_count(records, "active"),
        }
    if entity_type == EntityType.VOLUNTEERS:
        hours = _sum(records, "total_hours")
        return {
            "totalVolunteers": count,
            "totalHours": format_number(hours),
            "activeVolunteers": _status_count(records, "active"),
            "avgHoursPerVolunteer": round(hours / count) if count else 0,
        }
    if entity_type == EntityType.PAYMENTS:
        return {
            "totalPayments": count,
            "totalAmount": format_number(_sum(records, "amount")),
            "completed": _status_count(records, "completed"),
            "pending": _status_count(records, "pending"),
        }
    if entity_type == EntityType.NGOS:
        return {
            "totalOrganizations": count,
            "verified": sum(
                1
                for r in records
                if getattr(r, "verified", None)
                or (getattr(r, "status", None) or "").casefold() == "verified"
            ),
            "totalProjects": format_number(_sum(records, "project_count")),
            "totalVolunteers": format_number(_sum(records, "volunteer_count")),
        }
    if entity_type == EntityType.OPPORTUNITIES:
        return {
            "totalOpportunities": count,
            "openPositions": _status_count(records, "open"),
        }
    if entity_type == EntityType.AUDIT_LOGS:
        return {
            "totalLogs": count,
            "uniqueUsers": len({getattr(r, "user", None) for r in records}),
        }
    if entity_type == EntityType.CASES:
        return {
            "totalCases": count,
            "escalated": sum(1 for r in records if getattr(r, "escalated", None)),
        }
    return {
        "totalUsers": count,
        "activeUsers": _status_count(records, "active"),
    }


def entity_tables(
    entity_type: EntityType | str,
    records: Sequence[EntityRecord],
    include_columns: Sequence[str],
) -> list[TableConfig]:
    entity_type = EntityType(entity_type)
    catalog = get_catalog(entity_type)
    labels = {column.id: column.label for column in catalog.columns}
    selected = restrict_columns(_TABLE_COLUMNS[entity_type], include_columns)
    return [
        TableConfig(
            title=_TABLE_TITLES.get(entity_type, f"{catalog.label} Report"),
            rows=[record.to_row() for record in records],
            columns=[TableColumn(header=labels[key], key=key) for key in selected],
            include_summary=True,
            summary=entity_summary(entity_type, records),
        )
    ]
