"""
Root Typer application for the docvault CLI.

Commands operate on a file-backed store (``--data-dir`` or
``DOCVAULT_DATA_DIR``). Migration registries live in user code and are
loaded with ``--registry module:factory``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path

import typer

from docvault.cli.migrate import app as migrate_app
from docvault.cli.utils import console, err_console, fail, open_store, output, run
from docvault.core.logging import configure_logging
from docvault.core.settings import get_settings
from docvault.migrations.coordinator import IntegrityReport

app = typer.Typer(
    name="docvault",
    help="docvault: versioned, validated document storage.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

DataDir = typer.Option(None, "--data-dir", "-d", help="Store directory (default: $DOCVAULT_DATA_DIR)")
Registry = typer.Option(None, "--registry", "-r", help="Migration registry as module:factory")


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        try:
            v = pkg_version("docvault")
        except PackageNotFoundError:
            from docvault import __version__ as v
        typer.echo(f"docvault {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override DOCVAULT_LOG_LEVEL."),
) -> None:
    """Inspect, validate, export and migrate the document store."""
    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def info(
    data_dir: Path | None = DataDir,
    registry: str | None = Registry,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show document version and collection counts."""

    async def _info() -> dict:
        async with open_store(data_dir, registry) as store:
            doc = await store.load()
            return {
                "data_dir": str(store.blob_store.data_dir),
                **doc.summary(),
                "latest_version": store.registry.highest_version(),
            }

    output(run(_info()), as_json=json_out, title="Document Store")


@app.command()
def validate(
    data_dir: Path | None = DataDir,
    registry: str | None = Registry,
) -> None:
    """Validate the stored document without loading it into the store."""

    async def _validate() -> IntegrityReport | None:
        async with open_store(data_dir, registry, initialize=False) as store:
            async with store.core.locked() as session:
                doc = await session.read_stored()
            if doc is None:
                return None
            return store.coordinator.validate_integrity(doc)

    report = run(_validate())
    if report is None:
        console.print("[dim]No document stored.[/dim]")
        return
    for warning in report.warnings:
        console.print(f"[yellow]warning[/yellow]: {warning}")
    if not report.is_valid:
        for error in report.errors:
            err_console.print(f"[red]error[/red]: {error}")
        fail(f"{len(report.errors)} validation error(s)")
    console.print("[green]Document is valid.[/green]")


@app.command("export")
def export_document(
    output_path: Path | None = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
    data_dir: Path | None = DataDir,
) -> None:
    """Export the document as JSON."""

    async def _export() -> bytes:
        async with open_store(data_dir) as store:
            return await store.export_data()

    data = run(_export())
    if output_path is None:
        typer.echo(data.decode("utf-8"))
        return
    output_path.write_bytes(data)
    err_console.print(f"[green]Exported[/green] {len(data)} bytes to {output_path}")


@app.command("import")
def import_document(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="JSON export"),
    data_dir: Path | None = DataDir,
) -> None:
    """Replace the stored document with a JSON export (validated first)."""

    async def _import() -> dict:
        async with open_store(data_dir, initialize=False) as store:
            doc = await store.import_data(source.read_bytes())
            return doc.summary()

    output(run(_import()), title="Imported")


app.add_typer(migrate_app, name="migrate", help="Schema migrations, rollback and backups.")
