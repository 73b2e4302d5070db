"""
Migration building blocks: the Migration base class, progress and cancellation.

A migration transforms a document from ``from_version`` to ``to_version``
and returns a NEW document; the input is never mutated. Progress is reported
through an optional sink so a long step can drive a progress bar.

Examples:
    >>> class AddPreferences(Migration):
    ...     from_version = 1
    ...     to_version = 2
    ...     name = "add_preferences"
    ...     description = "Add a top-level preferences section"
    ...
    ...     async def apply(self, doc, progress=None):
    ...         self.check_version(doc)
    ...         self.report(progress, 1, 1, "adding preferences")
    ...         return self.advance(doc, preferences={"theme": "system"})

Guardrails:
    ❌ DON'T: Mutate ``doc`` (or its lists) in ``apply``
    ✅ DO: Build the result with ``advance(doc, **changes)``

    ❌ DON'T: Implement ``rollback`` unless the inverse is exact
    ✅ DO: Rely on snapshot rollback, which restores the pre-migration backup

Tags:
    migrations, schema-evolution, progress, cancellation, docvault
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from docvault.core.errors import (
    InvalidVersionError,
    MigrationCancelledError,
    RollbackNotSupportedError,
)
from docvault.models.document import Document
from docvault.validation.result import ValidationResult, ValidationResultBuilder


@dataclass(frozen=True, slots=True)
class MigrationProgress:
    """Progress of a running migration."""

    current_step: int
    total_steps: int
    description: str

    def __post_init__(self) -> None:
        if self.current_step < 0:
            raise ValueError("current_step cannot be negative")
        if self.total_steps < 0:
            raise ValueError("total_steps cannot be negative")
        if self.current_step > self.total_steps:
            raise ValueError("current_step cannot exceed total_steps")
        if not self.description.strip():
            raise ValueError("description cannot be blank")

    @property
    def percent(self) -> int:
        return self.current_step * 100 // max(self.total_steps, 1)

    @property
    def complete(self) -> bool:
        return self.current_step == self.total_steps


ProgressSink = Callable[[MigrationProgress], None]


class CancellationToken:
    """Cooperative cancellation, checked by the coordinator between steps."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str | None = None) -> None:
        self._cancelled = True
        self.reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise MigrationCancelledError(
                f"Migration cancelled: {self.reason}" if self.reason else "Migration cancelled"
            )


class Migration(ABC):
    """
    One version-to-version transformation.

    Subclasses set the class attributes and implement ``apply``. Everything
    else has a sensible default.
    """

    from_version: int
    to_version: int
    name: str = ""
    description: str = ""
    reversible: bool = False

    @property
    def label(self) -> str:
        return self.name or f"v{self.from_version}_to_v{self.to_version}"

    def can_apply(self, doc: Document) -> bool:
        return doc.version == self.from_version

    @abstractmethod
    async def apply(self, doc: Document, progress: ProgressSink | None = None) -> Document:
        """Return the migrated document."""
        ...

    def estimate_steps(self, doc: Document) -> int:
        return 1

    def validate_migration(self, before: Document, after: Document) -> ValidationResult:
        """Check the output of ``apply``. Default: version reached, clock not rewound."""
        builder = ValidationResultBuilder()
        if after.version != self.to_version:
            builder.add_business_error(
                f"{self.label} produced version {after.version}, expected {self.to_version}",
                "version",
                "MIGRATION_VERSION_MISMATCH",
            )
        if after.last_modified < before.last_modified:
            builder.add_business_error(
                f"{self.label} moved lastModified backwards",
                "lastModified",
                "MIGRATION_TIMESTAMP_BACKWARDS",
            )
        return builder.build()

    async def rollback(self, doc: Document, progress: ProgressSink | None = None) -> Document:
        raise RollbackNotSupportedError(
            f"Migration {self.label} (v{self.from_version} -> v{self.to_version}) "
            "does not support rollback"
        )

    # ── Helpers for subclasses ────────────────────────────────────────────

    @staticmethod
    def report(progress: ProgressSink | None, step: int, total: int, description: str) -> None:
        if progress is not None:
            progress(MigrationProgress(step, total, description))

    def check_version(self, doc: Document) -> None:
        if doc.version != self.from_version:
            raise InvalidVersionError(
                f"{self.label} expects version {self.from_version}, got {doc.version}"
            ).with_context(document_version=doc.version, migration=self.label)

    def advance(self, doc: Document, **changes: Any) -> Document:
        """Copy of ``doc`` at ``to_version`` with ``changes`` applied and re-validated."""
        data = doc.model_dump()
        data.update(changes)
        data["version"] = self.to_version
        return Document.model_validate(data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.from_version}->{self.to_version})"


__all__ = [
    "CancellationToken",
    "Migration",
    "MigrationProgress",
    "ProgressSink",
]
