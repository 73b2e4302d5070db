"""Migration history: a bounded log stored as a JSON array under one key.

Every migration, rollback and manual backup appends a
:class:`MigrationLogEntry`. Only the most recent ``limit`` entries (50 by
default) are kept. History is bookkeeping: failing to read or write it is
logged and never fails the operation being recorded.
"""

from __future__ import annotations

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from docvault.core.errors import DocVaultError
from docvault.core.logging import get_logger
from docvault.core.timestamps import now_ms
from docvault.models.entities import EntityModel
from docvault.persistence.core import PersistenceSession

logger = get_logger(__name__)

DEFAULT_HISTORY_KEY = "migration_log"
DEFAULT_HISTORY_LIMIT = 50


class MigrationLogEntry(EntityModel):
    """One history record. ``duration`` is in milliseconds."""

    timestamp: int
    from_version: int
    to_version: int
    success: bool
    duration: int
    description: str
    backup_filename: str | None = None
    error_details: str | None = None

    @classmethod
    def now(cls, **fields) -> MigrationLogEntry:
        return cls(timestamp=now_ms(), **fields)


_entries = TypeAdapter(list[MigrationLogEntry])


class MigrationHistory:
    """Reads and appends the history key through a locked persistence session."""

    def __init__(self, key: str = DEFAULT_HISTORY_KEY, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self.key = key
        self.limit = limit

    async def entries(self, session: PersistenceSession) -> list[MigrationLogEntry]:
        """Oldest first. Unreadable history reads as empty."""
        try:
            data = await session.get_blob(self.key)
        except DocVaultError as e:
            logger.warning("migration_history_read_failed", error=e.message)
            return []
        if not data:
            return []
        try:
            return _entries.validate_json(data)
        except PydanticValidationError as e:
            logger.warning("migration_history_corrupted", key=self.key, errors=e.error_count())
            return []

    async def append(self, session: PersistenceSession, entry: MigrationLogEntry) -> None:
        entries = await self.entries(session)
        entries.append(entry)
        await self._write(session, entries[-self.limit:])

    async def clear(self, session: PersistenceSession) -> None:
        try:
            await session.delete_blob(self.key)
        except DocVaultError as e:
            logger.warning("migration_history_clear_failed", error=e.message)

    async def _write(self, session: PersistenceSession, entries: list[MigrationLogEntry]) -> None:
        data = _entries.dump_json(entries, by_alias=True)
        try:
            await session.put_blob(self.key, data)
        except DocVaultError as e:
            logger.warning("migration_history_write_failed", error=e.message)


__all__ = [
    "DEFAULT_HISTORY_KEY",
    "DEFAULT_HISTORY_LIMIT",
    "MigrationHistory",
    "MigrationLogEntry",
]
