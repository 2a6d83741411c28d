"""
Main CLI application definition.

Wasilah exports: report generation for the Wasilah CSR platform.

Runs CSV, JSON, Excel and PDF exports over JSON record files and manages the
persisted export history.
"""

from pathlib import Path
from typing import Any

import typer

from wasilah.cli import utils as cli_utils
from wasilah.cli.commands import (
    config as config_commands,
    export as export_commands,
    history as history_commands,
)
from wasilah.config.settings import config_service
from wasilah.utils.logging import configure_from_settings

app = typer.Typer(
    name="wasilah",
    help="""Wasilah exports: report generation for the Wasilah CSR platform

    \b
    COMMANDS:
      export    - Run exports, list templates and columns
      history   - View and manage past export jobs
      config    - View configuration

    \b
    EXAMPLES:
      wasilah export run projects -i data/ -f excel
      wasilah export run -t financial-payments-summary -i data/
      wasilah export columns payments
      wasilah history list
    """,
    add_completion=False,
    no_args_is_help=True,
)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to config YAML"
    ),
    data_dir: Path | None = typer.Option(
        None, "--data-dir", help="Directory for the history store"
    ),
    storage: str | None = typer.Option(
        None, "--storage", help="History store backend (json|sqlite|memory)"
    ),
    output: str | None = typer.Option(
        None, "--output", help="Log format (text|json)"
    ),
    color: bool | None = typer.Option(
        None, "--color/--no-color", help="Enable or disable color output"
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase verbosity (stackable)"
    ),
    quiet: int = typer.Option(
        0, "--quiet", "-q", count=True, help="Decrease verbosity (stackable)"
    ),
):
    """Resolve settings from config layers and global flags, then set up logging."""
    general = {
        key: value
        for key, value in (
            ("data_dir", str(data_dir) if data_dir else None),
            ("storage_backend", storage),
            ("output_format", output),
            ("color_enabled", color),
        )
        if value is not None
    }

    try:
        configured = config_service.load().general.verbosity
        general["verbosity"] = cli_utils.compute_verbosity(configured, verbose, quiet)
        settings = cli_utils.load_settings_with_cli_overrides(
            config_path=config, cli_overrides={"general": general}
        )
    except ValueError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(2)

    configure_from_settings(settings)
    ctx.obj = {"settings": settings}

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def version():
    """Show version information."""
    from wasilah import __version__

    typer.echo(f"Wasilah exports version {__version__}")


app.add_typer(export_commands.app, name="export")
app.add_typer(history_commands.app, name="history")
app.add_typer(config_commands.app, name="config")


if __name__ == "__main__":
    app()
