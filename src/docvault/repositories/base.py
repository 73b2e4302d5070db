"""
Repository base: read-modify-write over the persisted document.

A repository never holds state of its own. Every mutation runs inside one
``PersistenceCore.locked()`` session: load the current snapshot, build a
changed copy, save it. Concurrent repository calls therefore never
interleave, and a rejected change leaves the stored document untouched.

Architecture:
    ::

        repo.add(entity)
          └── core.locked() ─┬─ session.load()        current snapshot
                             ├─ change(doc) → doc'     typed errors raised here
                             └─ session.save(doc')     full document validation

Errors:
    DuplicateNameError        name (or id) already taken
    EntityNotFoundError       the target entity does not exist
    ConstraintViolationError  foreign key missing, ceiling reached, entity in use
    ValidationFailure         entity or document rules failed

Tags:
    repository, read-modify-write, docvault
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from typing import Callable, TypeVar

from docvault.core.errors import (
    ConstraintViolationError,
    DuplicateNameError,
    EntityNotFoundError,
    ValidationFailure,
)
from docvault.core.logging import get_logger
from docvault.models.document import Document
from docvault.persistence.core import PersistenceCore
from docvault.validation.document import DocumentValidator
from docvault.validation.result import ValidationResult

logger = get_logger(__name__)

R = TypeVar("R")


def name_key(name: str) -> str:
    """Names compare trimmed and case-insensitively."""
    return name.strip().lower()


class DocumentRepository:
    """Shared plumbing for the entity repositories."""

    entity_type: str = "entity"

    def __init__(self, core: PersistenceCore) -> None:
        self.core = core

    @property
    def validator(self) -> DocumentValidator:
        return self.core.validator

    async def snapshot(self) -> Document:
        return await self.core.load()

    async def mutate(self, change: Callable[[Document], Document]) -> Document:
        """Apply ``change`` to the current snapshot and save the result atomically."""
        async with self.core.locked() as session:
            doc = await session.load()
            return await session.save(change(doc))

    def observe_selection(self, select: Callable[[Document], R]) -> AsyncIterator[R]:
        """Project every published document through ``select``."""

        async def stream() -> AsyncIterator[R]:
            async for doc in self.core.observe():
                yield select(doc)

        return stream()

    # ── Checks shared by the repositories ─────────────────────────────────

    def require_valid(self, result: ValidationResult, action: str) -> None:
        if result.is_failure():
            raise ValidationFailure.from_result(
                result, f"Failed to {action} {self.entity_type}"
            ).with_context(entity_type=self.entity_type)

    def require_unique_name(
        self, name: str, existing: Iterable[tuple[str, str]], *, exclude_id: str | None = None
    ) -> None:
        """``existing`` yields ``(id, name)`` pairs."""
        key = name_key(name)
        for entity_id, other in existing:
            if entity_id != exclude_id and name_key(other) == key:
                raise DuplicateNameError(
                    f"{self.entity_type} '{name.strip()}' already exists"
                ).with_context(entity_type=self.entity_type, entity_id=entity_id)

    def require_new_id(self, entity_id: str, existing_ids: Iterable[str]) -> None:
        if entity_id in set(existing_ids):
            raise DuplicateNameError(
                f"{self.entity_type} with id '{entity_id}' already exists"
            ).with_context(entity_type=self.entity_type, entity_id=entity_id)

    def require_capacity(self, count: int, ceiling: int, plural: str) -> None:
        if count >= ceiling:
            raise ConstraintViolationError(
                f"Cannot add more than {ceiling} {plural}"
            ).with_context(entity_type=self.entity_type)

    def not_found(self, entity_id: str, entity_type: str | None = None) -> EntityNotFoundError:
        label = entity_type or self.entity_type
        error = EntityNotFoundError(f"{label} '{entity_id}' not found")
        error.with_context(entity_type=label, entity_id=entity_id)
        return error


__all__ = [
    "DocumentRepository",
    "name_key",
]
