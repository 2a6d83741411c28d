"""Export request and job models.

Field names are snake_case in Python; camelCase aliases are accepted on input
and emitted when a model is serialized for history or templates, so stored
history and template definitions keep the wire form of the web client.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    field_validator,
)
from pydantic.alias_generators import to_camel


class ExportFormat(str, Enum):
    """Supported export formats."""

    CSV = "csv"
    EXCEL = "excel"
    PDF = "pdf"
    JSON = "json"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]


_EXTENSIONS = {
    ExportFormat.CSV: "csv",
    ExportFormat.EXCEL: "xlsx",
    ExportFormat.PDF: "pdf",
    ExportFormat.JSON: "json",
}

_MIME_TYPES = {
    ExportFormat.CSV: "text/csv;charset=utf-8",
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.PDF: "application/pdf",
    ExportFormat.JSON: "application/json;charset=utf-8",
}


class EntityType(str, Enum):
    """Fixed record categories that can be exported."""

    PROJECTS = "projects"
    NGOS = "ngos"
    VOLUNTEERS = "volunteers"
    OPPORTUNITIES = "opportunities"
    PAYMENTS = "payments"
    AUDIT_LOGS = "audit_logs"
    CASES = "cases"
    USERS = "users"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class DatePreset(str, Enum):
    """Named date ranges resolved relative to the time of export."""

    TODAY = "today"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"
    THIS_MONTH = "this_month"
    THIS_YEAR = "this_year"
    CUSTOM = "custom"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ExportFilters(_CamelModel):
    """Filter dimensions; AND across dimensions, OR within a list."""

    status: list[str] | None = None
    category: list[str] | None = None
    tags: list[str] | None = None
    location: list[str] | None = None
    min_amount: float | None = None
    max_amount: float | None = None

    @field_validator("status", "category", "tags", "location", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @property
    def is_empty(self) -> bool:
        return not any(
            [self.status, self.category, self.tags, self.location]
        ) and self.min_amount is None and self.max_amount is None


class DateRange(_CamelModel):
    start: datetime | None = None
    end: datetime | None = None
    preset: DatePreset | None = None

    def resolve(self, now: datetime | None = None) -> tuple[datetime | None, datetime | None]:
        """Return the inclusive (start, end) bounds for this range.

        Explicit bounds win over the preset; a preset only fills bounds that
        were not given.
        """
        now = now or datetime.now()
        start, end = self.start, self.end
        preset = self.preset
        if preset is None or preset == DatePreset.CUSTOM:
            return start, end

        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if preset == DatePreset.TODAY:
            preset_start = day_start
        elif preset == DatePreset.LAST_7_DAYS:
            preset_start = day_start - timedelta(days=7)
        elif preset == DatePreset.LAST_30_DAYS:
            preset_start = day_start - timedelta(days=30)
        elif preset == DatePreset.LAST_90_DAYS:
            preset_start = day_start - timedelta(days=90)
        elif preset == DatePreset.THIS_MONTH:
            preset_start = day_start.replace(day=1)
        else:
            preset_start = day_start.replace(month=1, day=1)

        return start or preset_start, end or now


class ExportConfig(_CamelModel):
    """Input contract of one export request."""

    format: ExportFormat
    entity_type: EntityType
    include_columns: list[str] = Field(default_factory=list)
    filters: ExportFilters | None = None
    date_range: DateRange | None = None
    sort_by: str | None = None
    sort_order: SortOrder = SortOrder.ASC
    max_rows: PositiveInt | None = None
    include_metadata: bool = False

    @field_validator("include_columns")
    @classmethod
    def _dedupe_columns(cls, value: list[str]) -> list[str]:
        # Duplicates carry no meaning; keep first occurrence order
        return list(dict.fromkeys(column.strip() for column in value if column.strip()))


class JobStatus(str, Enum):
    """Export job lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class ExportJob(_CamelModel):
    """Lifecycle record of one export request."""

    id: str
    name: str
    config: ExportConfig
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    cancelled_at: datetime | None = None
    row_count: int | None = None
    file_size: int | None = None
    filename: str | None = None
    error: str | None = None
    progress: int = Field(default=0, ge=0, le=100)
