"""Data handling module: record catalog, pipeline, renderers and persistence."""

from .catalog import (
    CATALOGS,
    ColumnDefinition,
    ColumnType,
    EntityCatalog,
    get_catalog,
    get_columns,
)
from .export import (
    ExportEngine,
    PreparedExport,
    RenderedExport,
    build_filename,
    encode_csv,
    encode_json,
    estimate_file_size,
    format_file_size,
)
from .models import (
    DatePreset,
    DateRange,
    EntityType,
    ExportConfig,
    ExportFilters,
    ExportFormat,
    ExportJob,
    JobStatus,
    SortOrder,
)
from .pipeline import filter_records, select_records, sort_records, transform
from .providers import (
    DirectoryDownloader,
    DownloadTarget,
    JSONDirectoryRecordProvider,
    MemoryDownloader,
    RecordProvider,
    StaticRecordProvider,
)
from .store import (
    HistoryStore,
    JSONFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
    StorageBackend,
    create_store,
)
from .templates import REPORT_TEMPLATES, ReportTemplate, build_config_from_template, get_template

__all__ = [
    # Models
    "EntityType",
    "ExportFormat",
    "SortOrder",
    "DatePreset",
    "JobStatus",
    "DateRange",
    "ExportFilters",
    "ExportConfig",
    "ExportJob",
    # Catalog
    "CATALOGS",
    "ColumnType",
    "ColumnDefinition",
    "EntityCatalog",
    "get_catalog",
    "get_columns",
    # Templates
    "REPORT_TEMPLATES",
    "ReportTemplate",
    "get_template",
    "build_config_from_template",
    # Pipeline
    "filter_records",
    "sort_records",
    "select_records",
    "transform",
    # Export engine
    "ExportEngine",
    "PreparedExport",
    "RenderedExport",
    "encode_csv",
    "encode_json",
    "build_filename",
    "format_file_size",
    "estimate_file_size",
    # Providers
    "RecordProvider",
    "StaticRecordProvider",
    "JSONDirectoryRecordProvider",
    "DownloadTarget",
    "MemoryDownloader",
    "DirectoryDownloader",
    # Storage
    "StorageBackend",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JSONFileKeyValueStore",
    "SQLiteKeyValueStore",
    "create_store",
    "HistoryStore",
]
