"""
CLI: ``docvault migrate`` for schema migrations, rollback and backups.
"""

from __future__ import annotations

from pathlib import Path

import typer

from docvault.cli.utils import console, fail, open_store, output, run
from docvault.migrations.coordinator import MigrationFailure, MigrationOutcome

app = typer.Typer(no_args_is_help=True)

DataDir = typer.Option(None, "--data-dir", "-d", help="Store directory (default: $DOCVAULT_DATA_DIR)")
Registry = typer.Option(None, "--registry", "-r", help="Migration registry as module:factory")
JsonOut = typer.Option(False, "--json", help="JSON output")


def _report(outcome: MigrationOutcome, *, as_json: bool, title: str) -> None:
    if isinstance(outcome, MigrationFailure):
        fail(outcome.message)
    output(outcome.to_dict(), as_json=as_json, title=title)


@app.command()
def status(
    data_dir: Path | None = DataDir,
    registry: str | None = Registry,
    json_out: bool = JsonOut,
) -> None:
    """Show the stored version and the registered migrations."""

    async def _status() -> dict:
        async with open_store(data_dir, registry) as store:
            doc = await store.load()
            target = store.registry.highest_version()
            return {
                "current_version": doc.version,
                "latest_version": target,
                "migration_needed": await store.coordinator.is_migration_needed(),
                "path": [m.label for m in store.registry.find_path(doc.version, target)],
                "registered": len(store.registry),
            }

    output(run(_status()), as_json=json_out, title="Migration Status")


@app.command("run")
def run_migrations(
    target: int | None = typer.Option(None, "--target", "-t", help="Target version (default: latest)"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip the pre-migration snapshot"),
    force_validation: bool = typer.Option(False, "--force-validation", help="Validate even when up to date"),
    data_dir: Path | None = DataDir,
    registry: str | None = Registry,
    json_out: bool = JsonOut,
) -> None:
    """Migrate the stored document to the target version."""

    async def _run() -> MigrationOutcome:
        async with open_store(data_dir, registry) as store:
            goal = target if target is not None else store.registry.highest_version()
            return await store.migrate_to_version(
                goal, create_backup=not no_backup, force_validation=force_validation
            )

    _report(run(_run()), as_json=json_out, title="Migration")


@app.command()
def rollback(
    backup: str | None = typer.Option(None, "--backup", "-b", help="Backup filename (default: newest)"),
    data_dir: Path | None = DataDir,
    registry: str | None = Registry,
    json_out: bool = JsonOut,
) -> None:
    """Restore a migration backup as the active document."""

    async def _rollback() -> MigrationOutcome:
        async with open_store(data_dir, registry, initialize=False) as store:
            return await store.rollback(backup)

    _report(run(_rollback()), as_json=json_out, title="Rollback")


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries"),
    data_dir: Path | None = DataDir,
    json_out: bool = JsonOut,
) -> None:
    """Show recent migration history, newest first."""

    async def _history() -> list:
        async with open_store(data_dir, initialize=False) as store:
            return await store.coordinator.history()

    entries = list(reversed(run(_history())))[:limit]
    output(entries, as_json=json_out, title="Migration History")


@app.command()
def backups(
    data_dir: Path | None = DataDir,
    json_out: bool = JsonOut,
) -> None:
    """List migration backups recorded in history."""

    async def _backups() -> list[str]:
        async with open_store(data_dir, initialize=False) as store:
            return await store.coordinator.list_backups()

    names = run(_backups())
    if json_out:
        output([{"backup": n} for n in names], as_json=True)
        return
    if not names:
        console.print("[dim]No backups.[/dim]")
    for name in names:
        console.print(name)


@app.command()
def backup(
    description: str = typer.Option("", "--description", "-m", help="Note stored in history"),
    data_dir: Path | None = DataDir,
) -> None:
    """Snapshot the current document."""

    async def _backup() -> str | None:
        async with open_store(data_dir) as store:
            return await store.coordinator.create_manual_backup(description)

    name = run(_backup())
    if name is None:
        fail("Backup could not be written")
    console.print(f"[green]Backup created[/green]: {name}")
