from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from wifo_import.config import ImportSettings, load_settings
from wifo_import.errors import ImportPipelineError
from wifo_import.integrations.container import build_container
from wifo_import.integrations.statement_parser import expected_columns
from wifo_import.logging_setup import configure_logging
from wifo_import.models.batch import ImportBatch
from wifo_import.models.entries import StatementFile
from wifo_import.models.enums import BatchStatus, RecordStatus
from wifo_import.models.options import ImportOptions
from wifo_import.models.record import REQUIRED_COLUMNS

app = typer.Typer(help="WIFO commission statement import CLI.")
console = Console()

_STATUS_STYLES = {
    RecordStatus.VALID: "green",
    RecordStatus.WARNING: "yellow",
    RecordStatus.INVALID: "red",
    RecordStatus.IMPORTED: "green",
    RecordStatus.FAILED: "red",
    RecordStatus.SKIPPED: "dim",
}


def _settings(
    employees: Path | None,
    ledger: Path | None,
    batch_dir: Path | None,
) -> ImportSettings:
    """Apply command-line path overrides on top of environment settings."""

    settings = load_settings()
    configure_logging(settings.log_level, console=console)
    updates = {}
    if employees is not None:
        updates["employees_path"] = employees
    if ledger is not None:
        updates["ledger_path"] = ledger
    if batch_dir is not None:
        updates["batch_dir"] = batch_dir
    return settings.model_copy(update=updates)


def _require_employees(settings: ImportSettings) -> None:
    if not settings.employees_path.is_file():
        console.print(f"[red]Employee directory not found:[/red] {escape(str(settings.employees_path))}")
        raise typer.Exit(code=2)


def _read_statement(path: Path) -> StatementFile:
    if not path.is_file():
        console.print(f"[red]File not found:[/red] {escape(str(path))}")
        raise typer.Exit(code=2)
    return StatementFile(name=path.name, content=path.read_bytes())


def _print_statistics(batch: ImportBatch) -> None:
    table = Table(title=f"{batch.file_name} ({batch.status.value})")
    table.add_column("Status")
    table.add_column("Records", justify="right")
    stats = batch.statistics()
    for key in ("total", "valid", "warning", "invalid", "imported", "failed", "skipped", "pending"):
        table.add_row(key, str(stats[key]))
    console.print(table)
    if batch.error_message:
        console.print(f"[red]{escape(batch.error_message)}[/red]")


def _print_issues(batch: ImportBatch) -> None:
    flagged = [r for r in batch.records if r.status in {RecordStatus.INVALID, RecordStatus.WARNING, RecordStatus.FAILED}]
    if not flagged:
        return
    table = Table(title="Rows needing attention")
    table.add_column("Row", justify="right")
    table.add_column("Status")
    table.add_column("Agent")
    table.add_column("Issues")
    for record in flagged:
        style = _STATUS_STYLES.get(record.status, "")
        table.add_row(
            str(record.row_number),
            f"[{style}]{record.status.value}[/{style}]",
            escape(record.agent_name or "-"),
            "\n".join(escape(issue.full_message) for issue in record.issues if not issue.is_info),
        )
    console.print(table)


@app.command()
def validate(
    statement: Path,
    employees: Path | None = typer.Option(None, help="Employee directory JSON file."),
    ledger: Path | None = typer.Option(None, help="Revenue ledger JSON file used for duplicate checks."),
    batch_dir: Path | None = typer.Option(None, help="Directory for persisted batch snapshots."),
) -> None:
    """Parse and validate a statement without importing it."""

    settings = _settings(employees, ledger, batch_dir)
    _require_employees(settings)
    container = build_container(settings)
    file = _read_statement(statement)

    async def _run() -> ImportBatch:
        batch = await container.orchestrator.parse_file(file)
        return await container.orchestrator.validate_batch(batch)

    try:
        batch = asyncio.run(_run())
    except ImportPipelineError as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
    _print_statistics(batch)
    _print_issues(batch)
    console.print(f"batch id: {batch.batch_id}")


@app.command()
def run(
    statement: Path,
    employees: Path | None = typer.Option(None, help="Employee directory JSON file."),
    ledger: Path | None = typer.Option(None, help="Revenue ledger JSON file receiving new entries."),
    batch_dir: Path | None = typer.Option(None, help="Directory for persisted batch snapshots."),
    concurrency: int | None = typer.Option(None, help="Parallel import calls per chunk."),
    chunk_size: int | None = typer.Option(None, help="Records per chunk."),
    retry_count: int | None = typer.Option(None, help="Retries per record after the first attempt."),
    retry_delay: float | None = typer.Option(None, help="Seconds to wait between attempts."),
    stop_on_error: bool = typer.Option(False, help="Stop after the first record that cannot be imported."),
    dry_run: bool = typer.Option(False, help="Validate only, do not write entries."),
) -> None:
    """Parse, validate and import a statement into the revenue ledger."""

    settings = _settings(employees, ledger, batch_dir)
    overrides = {
        "concurrency": concurrency,
        "chunk_size": chunk_size,
        "retry_count": retry_count,
        "retry_delay": retry_delay,
    }
    options_data = settings.options.model_dump()
    options_data.update({key: value for key, value in overrides.items() if value is not None})
    options_data["stop_on_error"] = stop_on_error or settings.options.stop_on_error
    try:
        options = ImportOptions(**options_data)
    except ValueError as exc:
        console.print(f"[red]Invalid import options:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc

    _require_employees(settings)
    container = build_container(settings)
    file = _read_statement(statement)

    def on_progress(processed: int, total: int, info: dict) -> None:
        console.print(
            f"chunk {info['chunk_progress']['current']}/{info['chunk_progress']['total']}: "
            f"{processed}/{total} processed, {info['imported']} imported, {info['failed']} failed"
        )

    async def _run() -> ImportBatch:
        batch = await container.orchestrator.parse_file(file)
        await container.orchestrator.validate_batch(batch)
        if dry_run or not batch.can_import:
            return batch
        return await container.orchestrator.import_batch(batch, options, on_progress)

    try:
        batch = asyncio.run(_run())
    except ImportPipelineError as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
    _print_statistics(batch)
    _print_issues(batch)
    console.print(f"batch id: {batch.batch_id}")
    if batch.status == BatchStatus.FAILED:
        raise typer.Exit(code=1)


@app.command()
def batches(
    limit: int = typer.Option(10, help="Number of batches to list."),
    batch_dir: Path | None = typer.Option(None, help="Directory for persisted batch snapshots."),
) -> None:
    """List recently processed batches."""

    container = build_container(_settings(None, None, batch_dir))
    recent = asyncio.run(container.orchestrator.get_recent_batches(limit))
    if not recent:
        console.print("No batches found.")
        return
    table = Table(title="Recent imports")
    for column in ("Batch", "File", "Uploaded", "Status", "Total", "Imported", "Failed"):
        table.add_column(column)
    for batch in recent:
        table.add_row(
            batch.batch_id,
            batch.file_name,
            batch.uploaded_at.strftime("%Y-%m-%d %H:%M"),
            batch.status.value,
            str(batch.total_records),
            str(batch.imported_records),
            str(batch.failed_records),
        )
    console.print(table)


@app.command()
def columns() -> None:
    """Print the expected statement columns; required ones are marked."""

    for name in expected_columns():
        marker = " [bold](required)[/bold]" if name in REQUIRED_COLUMNS else ""
        console.print(f"{name}{marker}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
