"""
Export CLI commands.

Run exports over JSON record files and browse the report templates and
column catalogs.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from wasilah.cli.utils import build_service, settings_from_context
from wasilah.core.exceptions import ExportValidationError
from wasilah.data.catalog import get_catalog
from wasilah.data.export import estimate_file_size, format_file_size
from wasilah.data.models import DatePreset, EntityType, ExportFormat, JobStatus, SortOrder
from wasilah.data.templates import (
    REPORT_TEMPLATES,
    build_config_from_template,
    get_template,
)

app = typer.Typer(name="export", help="Run exports and browse templates and columns.")
console = Console()


def _overrides(
    *,
    format: ExportFormat | None,
    columns: str | None,
    status: list[str] | None,
    category: list[str] | None,
    tag: list[str] | None,
    location: list[str] | None,
    min_amount: float | None,
    max_amount: float | None,
    preset: DatePreset | None,
    start: datetime | None,
    end: datetime | None,
    sort_by: str | None,
    sort_order: SortOrder | None,
    max_rows: int | None,
    include_metadata: bool | None,
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if format is not None:
        overrides["format"] = format
    if columns:
        overrides["include_columns"] = [column.strip() for column in columns.split(",")]

    filters: dict[str, Any] = {
        key: list(values)
        for key, values in {
            "status": status,
            "category": category,
            "tags": tag,
            "location": location,
        }.items()
        if values
    }
    if min_amount is not None:
        filters["min_amount"] = min_amount
    if max_amount is not None:
        filters["max_amount"] = max_amount
    if filters:
        overrides["filters"] = filters

    if preset is not None or start is not None or end is not None:
        overrides["date_range"] = {"preset": preset, "start": start, "end": end}
    if sort_by:
        overrides["sort_by"] = sort_by
    if sort_order is not None:
        overrides["sort_order"] = sort_order
    if max_rows is not None:
        overrides["max_rows"] = max_rows
    if include_metadata is not None:
        overrides["include_metadata"] = include_metadata
    return overrides


@app.command("run")
def run_export(
    ctx: typer.Context,
    entity: EntityType | None = typer.Argument(
        None, help="Entity type to export (optional with --template)"
    ),
    input_dir: Path = typer.Option(
        ...,
        "--input-dir",
        "-i",
        exists=True,
        file_okay=False,
        help="Directory holding <entity_type>.json record files",
    ),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o", help="Where to write the artifact (exports.output_dir)"
    ),
    template: str | None = typer.Option(
        None, "--template", "-t", help="Start from a report template id"
    ),
    name: str | None = typer.Option(None, "--name", "-n", help="Job name"),
    format: ExportFormat | None = typer.Option(None, "--format", "-f", help="Output format"),
    columns: str | None = typer.Option(
        None, "--columns", "-c", help="Comma-separated column ids (default: all)"
    ),
    status: list[str] | None = typer.Option(None, "--status", help="Status filter (repeatable)"),
    category: list[str] | None = typer.Option(
        None, "--category", help="Category filter (repeatable)"
    ),
    tag: list[str] | None = typer.Option(None, "--tag", help="Tag filter (repeatable)"),
    location: list[str] | None = typer.Option(
        None, "--location", help="Location filter (repeatable)"
    ),
    min_amount: float | None = typer.Option(None, "--min-amount", help="Minimum amount"),
    max_amount: float | None = typer.Option(None, "--max-amount", help="Maximum amount"),
    preset: DatePreset | None = typer.Option(None, "--preset", help="Date range preset"),
    start: datetime | None = typer.Option(None, "--start", help="Date range start"),
    end: datetime | None = typer.Option(None, "--end", help="Date range end"),
    sort_by: str | None = typer.Option(None, "--sort-by", help="Column id to sort by"),
    sort_order: SortOrder | None = typer.Option(None, "--sort-order", help="asc or desc"),
    max_rows: int | None = typer.Option(None, "--max-rows", min=1, help="Row cap"),
    include_metadata: bool | None = typer.Option(
        None, "--metadata/--no-metadata", help="Append a metadata page to PDF exports"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Count matching rows and estimate size only"
    ),
) -> None:
    """Export one entity collection to CSV, JSON, Excel or PDF.

    Filter options given on the command line replace a template's filters.
    """
    settings = settings_from_context(ctx)
    overrides = _overrides(
        format=format,
        columns=columns,
        status=status,
        category=category,
        tag=tag,
        location=location,
        min_amount=min_amount,
        max_amount=max_amount,
        preset=preset,
        start=start,
        end=end,
        sort_by=sort_by,
        sort_order=sort_order,
        max_rows=max_rows,
        include_metadata=include_metadata,
    )

    if template:
        try:
            report = get_template(template)
        except KeyError:
            typer.echo(f"Unknown template: {template}", err=True)
            raise typer.Exit(1)
        if entity is not None:
            overrides["entity_type"] = entity
        try:
            config: Any = build_config_from_template(report, overrides)
        except ValidationError as exc:
            typer.echo(f"Invalid export options: {exc.error_count()} error(s)", err=True)
            for error in exc.errors():
                typer.echo(f"  {'.'.join(map(str, error['loc']))}: {error['msg']}", err=True)
            raise typer.Exit(1)
        job_name = name or report.name
    else:
        if entity is None:
            raise typer.BadParameter("Give an entity type or --template")
        catalog = get_catalog(entity)
        config = {
            "format": ExportFormat.CSV,
            "entity_type": entity,
            "include_columns": catalog.column_ids,
            **overrides,
        }
        job_name = name or f"{catalog.label} export"

    service = build_service(settings, input_dir=input_dir, output_dir=output_dir)
    with service:
        try:
            validated = service.validate_request(config, job_name)
        except ExportValidationError as exc:
            for problem in exc.problems:
                typer.echo(f"Error: {problem}", err=True)
            raise typer.Exit(1)

        if dry_run:
            try:
                records = service.provider.fetch(validated.entity_type)
                prepared = service.engine.prepare(validated, records)
            except (OSError, ValueError) as exc:
                typer.echo(f"Error: {exc}", err=True)
                raise typer.Exit(1)
            estimate = estimate_file_size(
                prepared.row_count, len(validated.include_columns), validated.format
            )
            typer.echo(
                f"{prepared.row_count} of {len(records)} records match; "
                f"estimated {validated.format.value} size {format_file_size(estimate)}"
            )
            return

        job = service.run_export(validated, job_name)

    if job.status != JobStatus.COMPLETED:
        typer.echo(f"Export {job.id} {job.status.value}: {job.error or 'no artifact'}", err=True)
        raise typer.Exit(1)

    path = service.downloader.last_path
    typer.echo(
        f"Exported {job.row_count} rows to {path} "
        f"({format_file_size(job.file_size or 0)}) [{job.id}]"
    )


@app.command("templates")
def list_templates(
    category: str | None = typer.Option(None, "--category", help="Only this category"),
) -> None:
    """List the built-in report templates."""
    table = Table(title="Report Templates", box=box.ROUNDED)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Entity")
    table.add_column("Format")

    shown = 0
    for report in REPORT_TEMPLATES:
        if category and report.category != category:
            continue
        table.add_row(
            report.id,
            report.name,
            report.category,
            report.entity_type.value,
            report.format.value,
        )
        shown += 1

    if not shown:
        typer.echo("No templates found.")
        return
    console.print(table)


@app.command("columns")
def list_columns(
    entity: EntityType = typer.Argument(..., help="Entity type"),
) -> None:
    """List the selectable columns of an entity type."""
    catalog = get_catalog(entity)
    table = Table(title=f"{catalog.label} Columns", box=box.ROUNDED)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Label")
    table.add_column("Type")
    table.add_column("Required")

    for column in catalog.columns:
        table.add_row(column.id, column.label, column.type.value, "yes" if column.required else "")
    console.print(table)
