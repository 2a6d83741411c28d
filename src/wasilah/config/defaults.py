"""Default configuration values and constants for configuration loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

# Default configuration tree used when no files are present.
DEFAULT_CONFIG: dict[str, Any] = {
    "general": {
        "verbosity": "info",
        "output_format": "text",
        "color_enabled": True,
        "data_dir": "",
        "storage_backend": "json",
    },
    "exports": {
        # Prefix of every generated filename: <namespace>_<entity>_<date>.<ext>
        "namespace": "wasilah",
        # Printed in the PDF footer and the analytics sheet title
        "organization": "Wasilah CSR Platform",
        # Workbook creator / PDF author / metadata "Generated By"
        "creator": "Wasilah Platform",
        # Key the job history list is stored under
        "history_key": "wasilah_export_history",
        "currency_prefix": "PKR",
        # PDF cells above this value get the currency prefix
        "currency_threshold": 10000,
        # Prefix CSV output with a UTF-8 byte-order marker
        "csv_bom": False,
        # Rows written between progress/cancellation checkpoints
        "chunk_size": 500,
        "output_dir": "exports",
        "pdf_orientation": "portrait",
        "include_analytics": False,
    },
}

ENV_PREFIX = "WASILAH"
USER_CONFIG_PATH = Path.home() / ".wasilah" / "config.yaml"
PROJECT_CONFIG_FILENAME = "wasilah.yaml"
DEFAULT_CONFIG_RELATIVE_PATH = Path("configs") / "default.yaml"
