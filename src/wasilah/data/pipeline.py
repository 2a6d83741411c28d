"""Entity pipeline: filter, sort, row cap and column projection.

All stages are pure functions over lists of raw record dicts; none of them
mutates its input.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime, timezone
from typing import Any

from wasilah.data.catalog import FALLBACK_DATE_FIELDS, EntityCatalog, get_catalog
from wasilah.data.models import DateRange, ExportConfig, ExportFilters, SortOrder
from wasilah.data.records import parse_money

Record = dict[str, Any]


def to_datetime(value: Any) -> datetime | None:
    """Read a timestamp from a datetime, date or ISO-8601 string.

    Timezone-aware values are converted to naive UTC so they compare with
    naive ones.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def record_timestamp(record: Record, catalog: EntityCatalog) -> datetime | None:
    """Canonical timestamp: first present field among the entity's candidates."""
    for name in (*catalog.date_fields, *FALLBACK_DATE_FIELDS):
        value = record.get(name)
        if value is not None and value != "":
            return to_datetime(value)
    return None


def record_amount(record: Record, catalog: EntityCatalog) -> float | None:
    for name in catalog.amount_fields:
        if record.get(name) is not None:
            return parse_money(record[name])
    return None


def _folded(values: Iterable[str]) -> set[str]:
    return {str(value).casefold() for value in values}


def _matches_folded(value: Any, allowed: set[str]) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, set)):
        return any(str(item).casefold() in allowed for item in value)
    return str(value).casefold() in allowed


def _record_tags(record: Record) -> list[str]:
    tags = record.get("tags")
    if tags is None:
        return []
    if isinstance(tags, str):
        return [tag.strip() for tag in tags.split(",") if tag.strip()]
    return [str(tag) for tag in tags]


class RecordFilter:
    """Predicate built once from the active filter dimensions."""

    def __init__(
        self,
        catalog: EntityCatalog,
        filters: ExportFilters | None = None,
        date_range: DateRange | None = None,
        now: datetime | None = None,
    ) -> None:
        self.catalog = catalog
        filters = filters or ExportFilters()
        self.status = _folded(filters.status) if filters.status else None
        self.category = _folded(filters.category) if filters.category else None
        self.location = _folded(filters.location) if filters.location else None
        self.tags = set(filters.tags) if filters.tags else None
        self.min_amount = filters.min_amount
        self.max_amount = filters.max_amount
        self.start: datetime | None = None
        self.end: datetime | None = None
        if date_range is not None:
            start, end = date_range.resolve(now)
            self.start = to_datetime(start) if start else None
            self.end = to_datetime(end) if end else None

    @property
    def amount_active(self) -> bool:
        return self.min_amount is not None or self.max_amount is not None

    @property
    def date_active(self) -> bool:
        return self.start is not None or self.end is not None

    def __call__(self, record: Record) -> bool:
        if self.status is not None and not _matches_folded(record.get("status"), self.status):
            return False
        if self.category is not None and not _matches_folded(
            record.get("category"), self.category
        ):
            return False
        if self.location is not None:
            location = record.get("location", record.get("city"))
            if not _matches_folded(location, self.location):
                return False
        if self.tags is not None and not any(
            tag in self.tags for tag in _record_tags(record)
        ):
            return False
        if self.amount_active:
            amount = record_amount(record, self.catalog)
            if amount is None:
                return False
            if self.min_amount is not None and amount < self.min_amount:
                return False
            if self.max_amount is not None and amount > self.max_amount:
                return False
        if self.date_active:
            stamp = record_timestamp(record, self.catalog)
            if stamp is None:
                return False
            if self.start is not None and stamp < self.start:
                return False
            if self.end is not None and stamp > self.end:
                return False
        return True


def filter_records(
    records: Iterable[Record],
    catalog: EntityCatalog,
    filters: ExportFilters | None = None,
    date_range: DateRange | None = None,
    now: datetime | None = None,
) -> list[Record]:
    predicate = RecordFilter(catalog, filters, date_range, now)
    return [record for record in records if predicate(record)]


def _sort_key(value: Any) -> tuple[int, Any]:
    # Ranked so mixed value types never compare directly
    if isinstance(value, (bool, int, float)):
        return (0, value)
    if isinstance(value, (datetime, date)):
        return (1, value.isoformat().casefold())
    return (1, str(value).casefold())


def sort_records(
    records: Sequence[Record],
    catalog: EntityCatalog,
    sort_by: str | None,
    order: SortOrder = SortOrder.ASC,
) -> list[Record]:
    """Stable sort; records without a value for ``sort_by`` go last."""
    if not sort_by:
        return list(records)
    field = catalog.field_for(sort_by)

    def value_of(record: Record) -> Any:
        return record.get(field, record.get(sort_by))

    present = [r for r in records if value_of(r) is not None and value_of(r) != ""]
    missing = [r for r in records if value_of(r) is None or value_of(r) == ""]
    present.sort(
        key=lambda r: _sort_key(value_of(r)),
        reverse=order == SortOrder.DESC,
    )
    return present + missing


def cap_rows(records: Sequence[Record], max_rows: int | None) -> list[Record]:
    if max_rows is None:
        return list(records)
    return list(records[:max_rows])


def project_record(record: Record, columns: Sequence[str], catalog: EntityCatalog) -> Record:
    projected: Record = {}
    for column in columns:
        field = catalog.field_for(column)
        projected[column] = record[field] if field in record else record.get(column)
    return projected


def project_records(
    records: Iterable[Record], columns: Sequence[str], catalog: EntityCatalog
) -> list[Record]:
    return [project_record(record, columns, catalog) for record in records]


def select_records(
    records: Iterable[Record],
    config: ExportConfig,
    catalog: EntityCatalog | None = None,
    now: datetime | None = None,
) -> list[Record]:
    """Filter, sort and cap raw records, keeping every raw field."""
    catalog = catalog or get_catalog(config.entity_type)
    selected = filter_records(records, catalog, config.filters, config.date_range, now)
    selected = sort_records(selected, catalog, config.sort_by, config.sort_order)
    return cap_rows(selected, config.max_rows)


def transform(
    records: Iterable[Record],
    config: ExportConfig,
    catalog: EntityCatalog | None = None,
    now: datetime | None = None,
) -> list[Record]:
    """Run the full pipeline and project onto ``config.include_columns``."""
    catalog = catalog or get_catalog(config.entity_type)
    selected = select_records(records, config, catalog, now)
    return project_records(selected, config.include_columns, catalog)
