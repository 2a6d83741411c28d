"""Layered configuration for Wasilah exports.

Later layers win:

1) built-in defaults (``wasilah.config.defaults``)
2) ``configs/default.yaml`` shipped with the project
3) ``./wasilah.yaml`` project file
4) ``~/.wasilah/config.yaml`` user file
5) ``WASILAH_<SECTION>__<KEY>`` environment variables
6) explicit overrides from the CLI
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from wasilah.config.defaults import (
    DEFAULT_CONFIG,
    DEFAULT_CONFIG_RELATIVE_PATH,
    ENV_PREFIX,
    PROJECT_CONFIG_FILENAME,
    USER_CONFIG_PATH,
)

Scope = Literal["user", "project"]


class GeneralSettings(BaseModel):
    verbosity: Literal["critical", "error", "warning", "info", "debug"] = "info"
    output_format: Literal["text", "json"] = "text"
    color_enabled: bool = True
    # Directory for the history store; empty means the store's own default
    data_dir: str = ""
    storage_backend: Literal["json", "sqlite", "memory"] = "json"


class ExportSettings(BaseModel):
    """Knobs of the export engine and its renderers."""

    namespace: str = Field(default="wasilah", min_length=1)
    organization: str = "Wasilah CSR Platform"
    creator: str = "Wasilah Platform"
    history_key: str = Field(default="wasilah_export_history", min_length=1)
    currency_prefix: str = "PKR"
    currency_threshold: float = Field(default=10000, ge=0)
    csv_bom: bool = False
    chunk_size: int = Field(default=500, ge=1)
    output_dir: str = "exports"
    pdf_orientation: Literal["portrait", "landscape"] = "portrait"
    include_analytics: bool = False


class Settings(BaseModel):
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    exports: ExportSettings = Field(default_factory=ExportSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        return cls.model_validate(data)

    @classmethod
    def defaults(cls) -> Settings:
        return cls.from_dict(DEFAULT_CONFIG)


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested sections merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = value
    return merged


def read_yaml_file(path: Path) -> dict[str, Any]:
    """Read one YAML layer; a missing file is an empty layer."""
    if not path.is_file():
        return {}
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Cannot parse configuration file {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration file {path} must hold a mapping")
    return loaded


def lookup_value(settings: Settings, key_path: str) -> Any:
    """Value at a dotted key of ``settings``; raises KeyError for unknown keys."""
    parts = [part.strip() for part in key_path.split(".") if part.strip()]
    if not parts:
        raise ValueError("Key path cannot be empty")
    value: Any = settings.model_dump()
    for part in parts:
        if not isinstance(value, dict) or part not in value:
            raise KeyError(key_path)
        value = value[part]
    return value


def env_value(raw: str) -> Any:
    """Type an environment string the way YAML would (``250``, ``true``, ``null``)."""
    if not raw.strip():
        return raw
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


class ConfigService:
    """Resolves the effective :class:`Settings` and writes user/project files."""

    def __init__(self, env_prefix: str = ENV_PREFIX, root_dir: Path | None = None):
        self.env_prefix = env_prefix
        # settings.py -> config -> wasilah -> src -> project root
        self.root_dir = root_dir or Path(__file__).resolve().parents[3]
        self.default_config_path = self.root_dir / DEFAULT_CONFIG_RELATIVE_PATH
        self.project_config_path = self.root_dir / PROJECT_CONFIG_FILENAME
        self.user_config_path = USER_CONFIG_PATH

    def layers(self) -> Iterator[tuple[str, dict[str, Any]]]:
        """Yield ``(source, values)`` pairs, lowest priority first."""
        yield "defaults", DEFAULT_CONFIG
        yield str(self.default_config_path), read_yaml_file(self.default_config_path)
        yield str(self.project_config_path), read_yaml_file(self.project_config_path)
        yield str(self.user_config_path), read_yaml_file(self.user_config_path)
        yield "environment", self.env_overrides()

    def load(self, cli_overrides: dict[str, Any] | None = None) -> Settings:
        data: dict[str, Any] = {}
        for _, values in self.layers():
            data = merge_config(data, values)
        if cli_overrides:
            data = merge_config(data, cli_overrides)
        try:
            return Settings.from_dict(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc

    def env_overrides(self) -> dict[str, Any]:
        """``WASILAH_EXPORTS__CHUNK_SIZE=200`` becomes ``{"exports": {"chunk_size": 200}}``."""
        prefix = f"{self.env_prefix}_"
        overrides: dict[str, Any] = {}
        for name, raw in os.environ.items():
            if not name.startswith(prefix):
                continue
            rest = name[len(prefix):]
            parts = rest.split("__") if "__" in rest else rest.split("_", 1)
            path = [part.lower() for part in parts if part]
            if not path:
                continue
            section = overrides
            for part in path[:-1]:
                section = section.setdefault(part, {})
            section[path[-1]] = env_value(raw)
        return overrides

    def get_value(self, key_path: str, cli_overrides: dict[str, Any] | None = None) -> Any:
        """Look up a dotted key such as ``exports.chunk_size``."""
        return lookup_value(self.load(cli_overrides), key_path)

    def path_for(self, scope: Scope) -> Path:
        return self.user_config_path if scope == "user" else self.project_config_path

    def save(self, settings: Settings, scope: Scope = "user") -> Path:
        target = self.path_for(scope)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            yaml.safe_dump(settings.model_dump(), sort_keys=False), encoding="utf-8"
        )
        return target


config_service = ConfigService()

_cached_settings: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = config_service.load()
    return _cached_settings


def reload_settings() -> Settings:
    global _cached_settings
    _cached_settings = config_service.load()
    return _cached_settings


class FlatSettings:
    """Read-only shortcuts for the values the storage layer needs."""

    def __init__(self, settings: Settings):
        self._settings = settings

    @property
    def storage_backend(self) -> str:
        return self._settings.general.storage_backend

    @property
    def data_dir(self) -> str | None:
        return self._settings.general.data_dir or None

    @property
    def history_key(self) -> str:
        return self._settings.exports.history_key
