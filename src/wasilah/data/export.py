"""Export Engine - render a prepared record set in one of four formats.

Export Formats:
| Format | Library    | Features                                  |
| CSV    | stdlib     | RFC-4180 quoting, optional UTF-8 BOM      |
| JSON   | json       | {metadata, data} envelope                 |
| EXCEL  | openpyxl   | Styled sheets, SUM formulas, analytics    |
| PDF    | reportlab  | A4 tables, summaries, numbered footers    |

CSV and JSON render the projected rows; the spreadsheet and document
builders render typed entity records through their entity adapters.
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from wasilah.config.settings import ExportSettings, get_settings
from wasilah.core.exceptions import ExportCancelled, RenderError
from wasilah.data.catalog import EntityCatalog, get_catalog
from wasilah.data.document import DocumentBuilder, DocumentOptions, entity_tables
from wasilah.data.models import EntityType, ExportConfig, ExportFormat
from wasilah.data.pipeline import Record, project_records, select_records
from wasilah.data.records import EntityRecord, parse_records
from wasilah.data.spreadsheet import WorkbookBuilder, WorkbookOptions, entity_sheets
from wasilah.utils.logging import get_logger, timed_operation

logger = get_logger("export.engine")

ChunkHook = Callable[[int, int], None]
UTF8_BOM = "\ufeff"


# Delimited text


def _csv_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def encode_csv(rows: Iterable[Record], columns: Sequence[str], *, bom: bool = False) -> str:
    """Encode rows as comma-separated text.

    Lines are joined with ``\\n`` and the output has no trailing newline; with
    no rows it is the header line alone. Cells holding a comma, quote, CR or
    LF are quoted by :mod:`csv`, so the text reads back with ``csv.reader``.
    """
    buffer = io.StringIO()
    # CRLF as the writer terminator makes it quote any cell with a bare CR
    writer = csv.writer(buffer, lineterminator="\r\n", quoting=csv.QUOTE_MINIMAL)

    def line(values: list[str]) -> str:
        writer.writerow(values)
        text = buffer.getvalue()[:-2]
        buffer.seek(0)
        buffer.truncate()
        return text

    lines = [line([str(column) for column in columns])]
    for row in rows:
        lines.append(line([_csv_text(row.get(column)) for column in columns]))
    text = "\n".join(lines)
    return UTF8_BOM + text if bom else text


# Structured text


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, tuple)):
        return list(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    return str(obj)


def _iso_utc(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def encode_json(
    rows: Sequence[Record], config: ExportConfig, *, exported_at: datetime | None = None
) -> str:
    envelope = {
        "metadata": {
            "exportedAt": _iso_utc(exported_at or datetime.now(timezone.utc)),
            "format": config.format.value,
            "entityType": config.entity_type.value,
            "rowCount": len(rows),
            "filters": config.filters.to_wire() if config.filters else None,
            "dateRange": config.date_range.to_wire() if config.date_range else None,
        },
        "data": list(rows),
    }
    return json.dumps(envelope, indent=2, ensure_ascii=False, default=_json_default)


# Naming and sizing


def build_filename(
    entity_type: EntityType | str,
    format: ExportFormat,
    *,
    namespace: str = "wasilah",
    today: date | None = None,
) -> str:
    """``<namespace>_<entity>_<YYYY-MM-DD>.<ext>`` using the UTC date."""
    stamp = (today or datetime.now(timezone.utc).date()).isoformat()
    entity = EntityType(entity_type).value.lower().replace(" ", "_")
    return f"{namespace}_{entity}_{stamp}.{format.extension}"


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(units) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {units[exponent]}"


_BYTES_PER_CELL = {
    ExportFormat.CSV: 20,
    ExportFormat.EXCEL: 25,
    ExportFormat.PDF: 50,
    ExportFormat.JSON: 30,
}
_SIZE_OVERHEAD = {
    ExportFormat.CSV: 1.1,
    ExportFormat.EXCEL: 1.3,
    ExportFormat.PDF: 1.5,
    ExportFormat.JSON: 1.2,
}


def estimate_file_size(row_count: int, column_count: int, format: ExportFormat) -> int:
    """Rough size estimate shown before an export starts."""
    return round(row_count * column_count * _BYTES_PER_CELL[format] * _SIZE_OVERHEAD[format])


# Engine


@dataclass
class PreparedExport:
    """Output of the pipeline stage, input of the render stage."""

    config: ExportConfig
    catalog: EntityCatalog
    selected: list[Record]
    rows: list[Record]
    records: list[EntityRecord] = field(default_factory=list)
    title: str | None = None

    @property
    def row_count(self) -> int:
        return len(self.selected)


@dataclass
class RenderedExport:
    content: bytes
    filename: str
    mime_type: str
    format: ExportFormat
    row_count: int
    page_count: int | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    def write_to(self, directory: Path) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.filename
        path.write_bytes(self.content)
        return path


Renderer = Callable[[PreparedExport, ChunkHook | None], RenderedExport]


class ExportEngine:
    """Dispatch prepared record sets to the renderer for their format."""

    def __init__(self, settings: ExportSettings | None = None) -> None:
        self.settings = settings or get_settings().exports
        self._renderers: dict[ExportFormat, Renderer] = {
            ExportFormat.CSV: self._render_csv,
            ExportFormat.JSON: self._render_json,
            ExportFormat.EXCEL: self._render_excel,
            ExportFormat.PDF: self._render_pdf,
        }

    def register_renderer(self, format: ExportFormat, renderer: Renderer) -> None:
        """Register a custom renderer for a format."""
        self._renderers[format] = renderer

    def get_available_formats(self) -> list[ExportFormat]:
        return list(self._renderers)

    def prepare(
        self,
        config: ExportConfig,
        records: Iterable[Record],
        *,
        title: str | None = None,
        now: datetime | None = None,
    ) -> PreparedExport:
        """Filter, sort, cap and project; parse typed records for rich formats."""
        catalog = get_catalog(config.entity_type)
        selected = select_records(records, config, catalog, now)
        prepared = PreparedExport(
            config=config,
            catalog=catalog,
            selected=selected,
            rows=project_records(selected, config.include_columns, catalog),
            title=title,
        )
        if config.format in (ExportFormat.EXCEL, ExportFormat.PDF):
            prepared.records = parse_records(config.entity_type, selected)
        return prepared

    def render(
        self, prepared: PreparedExport, on_chunk: ChunkHook | None = None
    ) -> RenderedExport:
        """Render a prepared export, wrapping any builder failure in RenderError."""
        format = prepared.config.format
        renderer = self._renderers.get(format)
        if renderer is None:
            raise RenderError(f"No renderer registered for format: {format.value}", format.value)
        try:
            with timed_operation(
                "export.render", logger=logger, format=format.value, rows=prepared.row_count
            ):
                return renderer(prepared, on_chunk)
        except (ExportCancelled, RenderError):
            raise
        except Exception as exc:
            raise RenderError(str(exc), format.value) from exc

    def export(
        self,
        config: ExportConfig,
        records: Iterable[Record],
        *,
        title: str | None = None,
        on_chunk: ChunkHook | None = None,
    ) -> RenderedExport:
        return self.render(self.prepare(config, records, title=title), on_chunk)

    def _rendered(self, prepared: PreparedExport, content: bytes, **extra: Any) -> RenderedExport:
        format = prepared.config.format
        return RenderedExport(
            content=content,
            filename=build_filename(
                prepared.config.entity_type, format, namespace=self.settings.namespace
            ),
            mime_type=format.mime_type,
            format=format,
            row_count=prepared.row_count,
            **extra,
        )

    def _render_csv(self, prepared: PreparedExport, on_chunk: ChunkHook | None) -> RenderedExport:
        text = encode_csv(
            prepared.rows, prepared.config.include_columns, bom=self.settings.csv_bom
        )
        return self._rendered(prepared, text.encode("utf-8"))

    def _render_json(self, prepared: PreparedExport, on_chunk: ChunkHook | None) -> RenderedExport:
        text = encode_json(prepared.rows, prepared.config)
        return self._rendered(prepared, text.encode("utf-8"))

    def _render_excel(
        self, prepared: PreparedExport, on_chunk: ChunkHook | None
    ) -> RenderedExport:
        sheets = entity_sheets(
            prepared.config.entity_type, prepared.records, prepared.config.include_columns
        )
        builder = WorkbookBuilder(
            WorkbookOptions(
                creator=self.settings.creator,
                include_analytics=self.settings.include_analytics,
                chunk_size=self.settings.chunk_size,
            )
        )
        return self._rendered(prepared, builder.to_bytes(sheets, on_chunk))

    def _render_pdf(self, prepared: PreparedExport, on_chunk: ChunkHook | None) -> RenderedExport:
        catalog = prepared.catalog
        tables = entity_tables(
            prepared.config.entity_type, prepared.records, prepared.config.include_columns
        )
        builder = DocumentBuilder(
            DocumentOptions(
                title=prepared.title or f"{catalog.label} Report",
                subtitle=f"{catalog.label} export - {prepared.row_count} records",
                creator=self.settings.creator,
                organization=self.settings.organization,
                orientation=self.settings.pdf_orientation,
                include_metadata=prepared.config.include_metadata,
                currency_prefix=self.settings.currency_prefix,
                currency_threshold=self.settings.currency_threshold,
                chunk_size=self.settings.chunk_size,
            )
        )
        document = builder.build(tables, on_chunk)
        return self._rendered(prepared, document.content, page_count=document.page_count)
