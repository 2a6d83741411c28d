"""CLI utility functions for configuration overrides, verbosity and service wiring."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from wasilah.config.settings import (
    Settings,
    config_service,
    get_settings,
    merge_config,
    read_yaml_file,
)
from wasilah.core.service import ExportService
from wasilah.data.providers import DirectoryDownloader, JSONDirectoryRecordProvider

_LEVELS = ["critical", "error", "warning", "info", "debug"]


def compute_verbosity(base_level: str, verbose: int, quiet: int) -> str:
    """Move one level per ``-v`` (chattier) or ``-q`` (quieter), clamped."""
    try:
        position = _LEVELS.index(base_level.lower())
    except ValueError:
        position = _LEVELS.index("info")
    position = min(max(position + verbose - quiet, 0), len(_LEVELS) - 1)
    return _LEVELS[position]


def load_settings_with_cli_overrides(
    *,
    config_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> Settings:
    """Effective settings plus an optional ``--config`` file and the global flags.

    The ``--config`` file sits above every regular layer; flags sit above it.
    """
    data = config_service.load().model_dump()
    if config_path:
        data = merge_config(data, read_yaml_file(config_path))
    if cli_overrides:
        data = merge_config(data, cli_overrides)
    return Settings.from_dict(data)


def settings_from_context(ctx: typer.Context) -> Settings:
    obj = ctx.find_root().obj
    if isinstance(obj, dict) and isinstance(obj.get("settings"), Settings):
        return obj["settings"]
    return get_settings()


def build_service(
    settings: Settings,
    *,
    input_dir: Path | None = None,
    output_dir: Path | None = None,
) -> ExportService:
    """Wire a service that reads records from JSON files and writes artifacts to disk."""
    return ExportService(
        settings,
        provider=JSONDirectoryRecordProvider(input_dir) if input_dir else None,
        downloader=DirectoryDownloader(output_dir or Path(settings.exports.output_dir)),
    )
