"""Config command implementation."""

from __future__ import annotations

import json

import typer
import yaml

from wasilah.cli.utils import settings_from_context
from wasilah.config.settings import config_service, lookup_value

app = typer.Typer(name="config", help="Configuration management")


@app.command()
def show(
    ctx: typer.Context,
    format: str = typer.Option("yaml", help="Output format: yaml or json"),
) -> None:
    """Show the effective configuration after all layers are merged."""

    data = settings_from_context(ctx).model_dump()

    if format.lower() == "json":
        typer.echo(json.dumps(data, indent=2))
    else:
        typer.echo(yaml.safe_dump(data, sort_keys=False))


@app.command()
def get(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Dot path (e.g., exports.chunk_size)"),
) -> None:
    """Get a configuration value by key path, including command-line overrides."""

    try:
        value = lookup_value(settings_from_context(ctx), key)
    except (KeyError, ValueError):
        typer.echo(f"Unknown configuration key: {key}", err=True)
        raise typer.Exit(code=1)
    typer.echo(value)


@app.command()
def init(
    scope: str = typer.Option("user", case_sensitive=False, help="Scope: user or project")
) -> None:
    """Write the effective configuration to the selected scope's file."""

    scope_value = scope.lower()
    if scope_value not in {"user", "project"}:
        raise typer.BadParameter("Scope must be 'user' or 'project'")

    path = config_service.save(config_service.load(), scope=scope_value)  # type: ignore[arg-type]
    typer.echo(f"Wrote {scope_value} configuration to {path}")
