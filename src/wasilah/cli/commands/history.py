"""
History CLI commands.

Browse and manage export job history.
"""

from pathlib import Path

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from wasilah.cli.utils import build_service, settings_from_context
from wasilah.data.export import format_file_size
from wasilah.data.models import JobStatus

app = typer.Typer(help="Browse and manage export history.")
console = Console()

_STATUS_STYLES = {
    JobStatus.PENDING: "yellow",
    JobStatus.PROCESSING: "blue",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
    JobStatus.CANCELLED: "dim",
}


@app.callback(invoke_without_command=True)
def history_callback(ctx: typer.Context) -> None:
    """Show recent export history."""
    if ctx.invoked_subcommand is None:
        list_history(ctx, limit=10, status=None)


@app.command("list")
def list_history(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum entries to show"),
    status: JobStatus | None = typer.Option(None, "--status", "-s", help="Filter by status"),
) -> None:
    """List export jobs, newest first."""
    with build_service(settings_from_context(ctx)) as service:
        jobs = service.list_jobs(status=status, limit=limit)

    if not jobs:
        typer.echo("No export history found.")
        return

    table = Table(title="Export History", box=box.ROUNDED)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Format")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Created")

    for job in jobs:
        style = _STATUS_STYLES[job.status]
        table.add_row(
            job.id,
            job.name,
            job.config.format.value,
            f"[{style}]{job.status.value}[/{style}]",
            str(job.row_count) if job.row_count is not None else "-",
            format_file_size(job.file_size) if job.file_size is not None else "-",
            job.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command("show")
def show_job(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Job ID to display"),
) -> None:
    """Show details of a specific export job."""
    with build_service(settings_from_context(ctx)) as service:
        job = service.get_job(job_id)

    if not job:
        typer.echo(f"Job not found: {job_id}", err=True)
        raise typer.Exit(1)

    config = job.config
    typer.echo(f"\n{'='*60}")
    typer.echo(f"Job: {job.id}")
    typer.echo(f"{'='*60}")
    typer.echo(f"Name:        {job.name}")
    typer.echo(f"Status:      {job.status.value}")
    typer.echo(f"Entity:      {config.entity_type.value}")
    typer.echo(f"Format:      {config.format.value}")
    typer.echo(f"Columns:     {', '.join(config.include_columns)}")
    typer.echo(f"Created:     {job.created_at}")
    for label, moment in (
        ("Started", job.started_at),
        ("Completed", job.completed_at),
        ("Failed", job.failed_at),
        ("Cancelled", job.cancelled_at),
    ):
        if moment:
            typer.echo(f"{label + ':':<13}{moment}")
    if job.filename:
        typer.echo(f"File:        {job.filename}")
    if job.row_count is not None:
        typer.echo(f"Rows:        {job.row_count}")
    if job.file_size is not None:
        typer.echo(f"Size:        {format_file_size(job.file_size)}")
    if job.error:
        typer.echo(f"Error:       {job.error}")

    if config.filters and not config.filters.is_empty:
        typer.echo("\nFilters:")
        for key, value in config.filters.to_wire().items():
            typer.echo(f"  {key}: {value}")


@app.command("delete")
def delete_job(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Job ID to delete"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a specific export job from history."""
    with build_service(settings_from_context(ctx)) as service:
        if service.get_job(job_id) is None:
            typer.echo(f"Job not found: {job_id}", err=True)
            raise typer.Exit(1)

        if not confirm:
            typer.confirm(f"Delete job {job_id}?", abort=True)

        service.delete_job(job_id)
    typer.echo(f"Deleted job: {job_id}")


@app.command("clear")
def clear_history(
    ctx: typer.Context,
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Clear all export history."""
    if not confirm:
        typer.confirm("Clear ALL export history?", abort=True)

    with build_service(settings_from_context(ctx)) as service:
        removed = service.clear_history()
    typer.echo(f"Deleted {removed} jobs from history")


@app.command("rerun")
def rerun_job(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Job ID to run again"),
    input_dir: Path = typer.Option(
        ...,
        "--input-dir",
        "-i",
        exists=True,
        file_okay=False,
        help="Directory holding <entity_type>.json record files",
    ),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Artifact directory"),
) -> None:
    """Submit a stored job's configuration again as a new job."""
    service = build_service(
        settings_from_context(ctx), input_dir=input_dir, output_dir=output_dir
    )
    with service:
        try:
            job = service.rerun(job_id)
        except KeyError:
            typer.echo(f"Job not found: {job_id}", err=True)
            raise typer.Exit(1)

    if job.status != JobStatus.COMPLETED:
        typer.echo(f"Export {job.id} {job.status.value}: {job.error or 'no artifact'}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Exported {job.row_count} rows to {service.downloader.last_path} [{job.id}]")
