"""
CLI utility helpers: store construction, registry loading and output formatting.
"""

from __future__ import annotations

import asyncio
import importlib
import json
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from docvault.core.errors import DocVaultError
from docvault.core.settings import get_settings
from docvault.migrations.registry import MigrationRegistry
from docvault.persistence.blob_store import FileBlobStore
from docvault.store import DocumentStore

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


# ── Store helpers ────────────────────────────────────────────────────────


def load_registry(reference: str | None) -> MigrationRegistry:
    """Resolve ``module:factory`` to a registry.

    ``factory`` may be a :class:`MigrationRegistry` instance or a callable
    returning one. ``None`` gives an empty registry.
    """
    if not reference:
        return MigrationRegistry()
    module_name, _, attr = reference.partition(":")
    if not module_name or not attr:
        raise typer.BadParameter(f"Expected 'module:factory', got {reference!r}")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise typer.BadParameter(f"Cannot load registry {reference!r}: {e}") from e
    registry = target() if callable(target) and not isinstance(target, MigrationRegistry) else target
    if not isinstance(registry, MigrationRegistry):
        raise typer.BadParameter(f"{reference!r} did not produce a MigrationRegistry")
    return registry


@asynccontextmanager
async def open_store(
    data_dir: Path | None,
    registry: str | None = None,
    *,
    initialize: bool = True,
) -> AsyncIterator[DocumentStore]:
    """A store over ``data_dir`` (settings default), torn down on exit.

    Migrations are never applied implicitly; use ``docvault migrate run``.
    """
    settings = get_settings()
    store = DocumentStore(
        FileBlobStore(data_dir or settings.data_dir),
        registry=load_registry(registry),
        settings=settings,
    )
    try:
        if initialize:
            await store.initialize(auto_migrate=False)
        yield store
    finally:
        await store.teardown()


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning typed errors into a red message and exit code 1."""
    try:
        return asyncio.run(coro)
    except DocVaultError as e:
        fail(e.user_message())


def fail(message: str) -> None:
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a value, or a list of values, to the terminal."""
    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        print_table(data, title=title)
    else:
        print_dict(_to_dict(data), title=title)


def print_table(items: list, *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


__all__ = [
    "console",
    "err_console",
    "fail",
    "load_registry",
    "open_store",
    "output",
    "print_dict",
    "print_table",
    "run",
]
