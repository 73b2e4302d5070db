"""
DocumentStore: one explicit object owning the whole persistence stack.

Construct it once, ``initialize()`` it, pass it to whatever needs data, and
``teardown()`` it on shutdown. There is no module-level singleton.

Architecture:
    ::

        DocumentStore
          ├── core          PersistenceCore (blob store, codec, validator, cache)
          ├── registry      MigrationRegistry
          ├── coordinator   MigrationCoordinator
          ├── identities    IdentityRepository
          ├── server_profiles ServerProfileRepository
          ├── projects      ProjectRepository
          └── messages      MessageRepository

Examples:
    >>> async with DocumentStore(InMemoryBlobStore(), registry=registry) as store:
    ...     doc = await store.load()
    ...     await store.identities.add(identity)

Guardrails:
    ❌ DON'T: Build a second PersistenceCore over the same blob store
    ✅ DO: Share one DocumentStore; its lock is what serializes writes

Tags:
    facade, lifecycle, docvault
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from typing import Callable

from docvault.core.errors import InitializationError
from docvault.core.logging import get_logger
from docvault.core.settings import DocVaultSettings, get_settings
from docvault.core.timestamps import now_ms
from docvault.migrations.base import CancellationToken, MigrationProgress
from docvault.migrations.coordinator import (
    MigrationCoordinator,
    MigrationFailure,
    MigrationOutcome,
)
from docvault.migrations.history import MigrationHistory
from docvault.migrations.observers import MigrationObserver
from docvault.migrations.registry import MigrationRegistry
from docvault.models.document import Document
from docvault.persistence.blob_store import BlobStore, FileBlobStore
from docvault.persistence.core import PersistenceCore
from docvault.repositories import (
    IdentityRepository,
    MessageRepository,
    ProjectRepository,
    ServerProfileRepository,
)
from docvault.validation.document import DocumentValidator
from docvault.validation.result import ValidationResult

logger = get_logger(__name__)


class DocumentStore:
    """Facade over persistence, migrations and the entity repositories."""

    def __init__(
        self,
        blob_store: BlobStore | None = None,
        *,
        registry: MigrationRegistry | None = None,
        validator: DocumentValidator | None = None,
        observers: Iterable[MigrationObserver] = (),
        settings: DocVaultSettings | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings or get_settings()
        self.blob_store = blob_store or FileBlobStore(self.settings.data_dir)
        self.validator = validator or DocumentValidator()
        self.core = PersistenceCore(
            self.blob_store,
            validator=self.validator,
            document_key=self.settings.document_key,
            clock=clock,
        )
        self.registry = registry or MigrationRegistry()
        self.coordinator = MigrationCoordinator(
            self.core,
            self.registry,
            history=MigrationHistory(self.settings.history_key, self.settings.history_limit),
            backup_prefix=self.settings.backup_prefix,
            observers=observers,
            clock=clock,
        )
        self.identities = IdentityRepository(self.core)
        self.server_profiles = ServerProfileRepository(self.core)
        self.projects = ProjectRepository(self.core)
        self.messages = MessageRepository(self.core)

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def initialize(self, *, auto_migrate: bool = True) -> Document:
        """Load (or create) the document, then bring it to the latest version.

        Raises:
            InitializationError: The stored document is unusable, or the
                automatic migration failed.
        """
        doc = await self.core.initialize()
        if not auto_migrate or doc.version >= self.registry.highest_version():
            return doc

        outcome = await self.coordinator.migrate_to_latest()
        if isinstance(outcome, MigrationFailure):
            raise InitializationError(
                f"Automatic migration failed: {outcome.error.message}", cause=outcome.error
            )
        logger.info("store_auto_migrated", from_version=doc.version, to_version=outcome.document.version)
        return outcome.document

    async def teardown(self) -> None:
        await self.coordinator.close()
        await self.core.teardown()

    async def __aenter__(self) -> DocumentStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.teardown()

    # ── Documents ─────────────────────────────────────────────────────────

    async def load(self) -> Document:
        return await self.core.load()

    async def save(self, doc: Document) -> Document:
        return await self.core.save(doc)

    def validate(self, doc: Document) -> ValidationResult:
        return self.validator.validate(doc)

    async def import_data(self, data: bytes | str) -> Document:
        return await self.core.import_data(data)

    async def export_data(self) -> bytes:
        return await self.core.export_data()

    def observe(self) -> AsyncIterator[Document]:
        return self.core.observe()

    # ── Migrations ────────────────────────────────────────────────────────

    async def migrate_to_latest(
        self, *, create_backup: bool = True, cancel_token: CancellationToken | None = None
    ) -> MigrationOutcome:
        return await self.coordinator.migrate_to_latest(
            create_backup=create_backup, cancel_token=cancel_token
        )

    async def migrate_to_version(
        self,
        target: int,
        *,
        create_backup: bool = True,
        force_validation: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> MigrationOutcome:
        return await self.coordinator.migrate_to_version(
            target,
            create_backup=create_backup,
            force_validation=force_validation,
            cancel_token=cancel_token,
        )

    async def rollback(self, backup_filename: str | None = None) -> MigrationOutcome:
        return await self.coordinator.rollback(backup_filename)

    def observe_migration_progress(self) -> AsyncIterator[MigrationProgress]:
        return self.coordinator.observe_progress()

    def is_migrating(self) -> bool:
        return self.coordinator.is_migrating()


__all__ = ["DocumentStore"]
