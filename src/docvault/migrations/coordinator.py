"""
MigrationCoordinator: validated, backed-up, all-or-nothing schema upgrades.

Runs the migration path between the stored document's version and a target
version. Either every step succeeds and the final document is persisted, or
nothing is persisted and the previously stored document stays
authoritative. Public entry points never raise: every outcome is a tagged
``MigrationSuccess | MigrationSkipped | MigrationFailure``.

Manifesto:
    - **All or nothing:** intermediate documents live only in memory; the
      store is written once, after the final validation
    - **Snapshot rollback:** rollback restores a backup taken before the
      run instead of trying to invert migrations
    - **One at a time:** a single lock serializes migrations and rollbacks,
      and the persistence lock is held for the whole run so no save can
      interleave
    - **Backups are best effort:** a failed backup is a warning, not a
      reason to refuse an upgrade

Architecture:
    ::

        migrate_to_version(target)
          IDLE
           │ 1 VALIDATING         (force_validation or version < target)
           ├─ 2 SKIPPED           (version == target) ───────────► Skipped
           │ 3 resolve path       (empty → MigrationNotFound) ────► Failure
           │ 4 BACKING_UP         (failure only logged)
           │ 5 MIGRATING          per step: cancelled? can_apply?
           │                      apply(progress) → validate_migration
           │ 6 FINAL_VALIDATING   full document validation
           │ 7 persist + history  ─────────────────────────────────► Success
           └─ any exception → FAILED, history entry with traceback ► Failure

        rollback(backup?)  backup (or newest in history) → decode →
                           validate → replace stored document

Examples:
    >>> coordinator = MigrationCoordinator(core, registry)
    >>> outcome = await coordinator.migrate_to_latest()
    >>> match outcome:
    ...     case MigrationSuccess(to_version=v):
    ...         print(f"now at v{v}")
    ...     case MigrationSkipped():
    ...         print("up to date")
    ...     case MigrationFailure(error=e):
    ...         print(e.user_message())

Guardrails:
    ❌ DON'T: Catch exceptions around ``migrate_to_version``; it never raises
    ✅ DO: Match on the outcome type

    ❌ DON'T: Call ``core.save()`` from a progress observer
    ✅ DO: Treat observers as read-only; the persistence lock is held

Tags:
    migrations, coordinator, backup, rollback, state-machine, docvault

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import asyncio
import traceback
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from docvault.core.broadcast import Broadcaster
from docvault.core.errors import (
    DocVaultError,
    MigrationExecutionError,
    MigrationNotFoundError,
    MigrationValidationError,
    RollbackFailedError,
    ValidationFailure,
    as_docvault_error,
)
from docvault.core.logging import LogContext, get_logger
from docvault.core.result import Err, Ok
from docvault.core.timestamps import generate_ulid, now_ms
from docvault.migrations.base import CancellationToken, Migration, MigrationProgress
from docvault.migrations.history import MigrationHistory, MigrationLogEntry
from docvault.migrations.observers import MigrationObserver
from docvault.migrations.registry import MigrationRegistry
from docvault.models.document import SYSTEM_MESSAGES_KEY, Document
from docvault.persistence.core import PersistenceCore, PersistenceSession
from docvault.validation.business import BusinessRuleValidator
from docvault.validation.document import DocumentValidator

logger = get_logger(__name__)

DEFAULT_BACKUP_PREFIX = "migration_backup_"

# Undelivered progress events kept per stream; older ones are dropped.
PROGRESS_BUFFER_SIZE = 100


class MigrationState(str, Enum):
    """State of the current (or last) run."""

    IDLE = "idle"
    VALIDATING = "validating"
    SKIPPED = "skipped"
    BACKING_UP = "backing_up"
    MIGRATING = "migrating"
    FINAL_VALIDATING = "final_validating"
    ROLLING_BACK = "rolling_back"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATES = frozenset({
    MigrationState.VALIDATING,
    MigrationState.BACKING_UP,
    MigrationState.MIGRATING,
    MigrationState.FINAL_VALIDATING,
    MigrationState.ROLLING_BACK,
})


# =============================================================================
# OUTCOMES
# =============================================================================


@dataclass(frozen=True, slots=True)
class MigrationSuccess:
    """The run (or rollback) completed and the result is persisted."""

    from_version: int
    to_version: int
    document: Document
    duration_ms: int
    backup_filename: str | None = None
    message: str = "Migration completed successfully"

    def is_success(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "success",
            "from_version": self.from_version,
            "to_version": self.to_version,
            "duration_ms": self.duration_ms,
            "backup_filename": self.backup_filename,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class MigrationSkipped:
    """Already at the target version; nothing was touched."""

    version: int
    document: Document
    message: str = "No migration needed - already at target version"

    def is_success(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"status": "skipped", "version": self.version, "message": self.message}


@dataclass(frozen=True, slots=True)
class MigrationFailure:
    """Nothing was persisted. ``error`` carries the taxonomy kind and cause."""

    error: DocVaultError
    from_version: int | None = None
    to_version: int | None = None
    duration_ms: int = 0
    backup_filename: str | None = None

    def is_success(self) -> bool:
        return False

    @property
    def kind(self) -> str:
        return self.error.kind

    @property
    def message(self) -> str:
        return self.error.user_message()

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "failure",
            "kind": self.kind,
            "message": self.error.message,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "duration_ms": self.duration_ms,
            "backup_filename": self.backup_filename,
        }


MigrationOutcome = MigrationSuccess | MigrationSkipped | MigrationFailure


@dataclass(frozen=True)
class IntegrityReport:
    """Blocking errors and non-blocking warnings about one document."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# COORDINATOR
# =============================================================================


class MigrationCoordinator:
    """Runs migrations and rollbacks against one :class:`PersistenceCore`."""

    def __init__(
        self,
        core: PersistenceCore,
        registry: MigrationRegistry,
        *,
        validator: DocumentValidator | None = None,
        history: MigrationHistory | None = None,
        backup_prefix: str = DEFAULT_BACKUP_PREFIX,
        observers: Iterable[MigrationObserver] = (),
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.core = core
        self.registry = registry
        self.validator = validator or core.validator
        self.advisor = BusinessRuleValidator()
        self.history_log = history or MigrationHistory()
        self.backup_prefix = backup_prefix
        self._observers: list[MigrationObserver] = list(observers)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._state = MigrationState.IDLE
        self._progress: Broadcaster[MigrationProgress] = Broadcaster(
            name="migration_progress", buffer_size=PROGRESS_BUFFER_SIZE
        )
        self._pending: list[asyncio.Task[None]] = []

    # ── State & observation ───────────────────────────────────────────────

    @property
    def state(self) -> MigrationState:
        return self._state

    def is_migrating(self) -> bool:
        return self._state in ACTIVE_STATES

    def add_observer(self, observer: MigrationObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: MigrationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def observe_progress(self) -> AsyncIterator[MigrationProgress]:
        """Latest progress first, then every update."""
        return self._progress.stream()

    async def close(self) -> None:
        await self._progress.close()

    # ── Queries ───────────────────────────────────────────────────────────

    async def is_migration_needed(self, target: int | None = None) -> bool:
        goal = target if target is not None else self.registry.highest_version()
        async with self.core.locked() as session:
            doc = await self._current(session)
        return doc.version < goal

    def validate_integrity(self, doc: Document) -> IntegrityReport:
        result = self.validator.validate(doc)
        warnings: list[str] = []

        supported = self.registry.highest_version()
        if doc.version > supported:
            warnings.append(
                f"Data version {doc.version} is newer than supported version {supported}"
            )
        project_ids = {p.id for p in doc.projects}
        orphaned = [k for k in doc.messages if k != SYSTEM_MESSAGES_KEY and k not in project_ids]
        if orphaned:
            warnings.append(f"Found orphaned messages for projects: {', '.join(orphaned)}")
        warnings.extend(self.advisor.advisories(doc).error_messages())

        return IntegrityReport(
            is_valid=result.is_success(),
            errors=result.error_messages(),
            warnings=warnings,
        )

    async def history(self) -> list[MigrationLogEntry]:
        async with self.core.locked() as session:
            return await self.history_log.entries(session)

    async def clear_history(self) -> None:
        async with self.core.locked() as session:
            await self.history_log.clear(session)
        logger.info("migration_history_cleared")

    async def list_backups(self) -> list[str]:
        """Distinct backup filenames recorded in history, newest first."""
        entries = await self.history()
        names: list[str] = []
        for entry in reversed(entries):
            if entry.backup_filename and entry.backup_filename not in names:
                names.append(entry.backup_filename)
        return names

    async def create_manual_backup(self, description: str = "") -> str | None:
        """Snapshot the current document; None if it could not be written."""
        async with self._lock, self.core.locked() as session:
            try:
                doc = await session.load()
            except DocVaultError as e:
                logger.warning("manual_backup_failed", kind=e.kind, error=e.message)
                return None
            name = f"{self.backup_prefix}manual_{self._clock()}.backup"
            if not await self._write_backup(session, doc, name):
                return None
            await self.history_log.append(
                session,
                MigrationLogEntry.now(
                    from_version=doc.version,
                    to_version=doc.version,
                    success=True,
                    duration=0,
                    description=f"Manual backup: {description}" if description else "Manual backup",
                    backup_filename=name,
                ),
            )
            logger.info("manual_backup_created", backup=name)
            return name

    # ── Migration ─────────────────────────────────────────────────────────

    async def migrate_to_latest(
        self,
        *,
        create_backup: bool = True,
        cancel_token: CancellationToken | None = None,
    ) -> MigrationOutcome:
        return await self.migrate_to_version(
            self.registry.highest_version(),
            create_backup=create_backup,
            cancel_token=cancel_token,
        )

    async def migrate_to_version(
        self,
        target: int,
        *,
        document: Document | None = None,
        create_backup: bool = True,
        force_validation: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> MigrationOutcome:
        """Bring the document to ``target``. Never raises."""
        token = cancel_token or CancellationToken()
        async with self._lock, self.core.locked() as session:
            async with LogContext(migration_id=generate_ulid(), target_version=target):
                return await self._run(session, target, document, create_backup, force_validation, token)

    async def _run(
        self,
        session: PersistenceSession,
        target: int,
        document: Document | None,
        create_backup: bool,
        force_validation: bool,
        token: CancellationToken,
    ) -> MigrationOutcome:
        started = self._clock()
        from_version: int | None = None
        backup_name: str | None = None
        try:
            doc = document or await self._current(session)
            from_version = doc.version

            # 1. validate input
            if force_validation or doc.version < target:
                self._state = MigrationState.VALIDATING
                result = self.validator.validate(doc)
                if result.is_failure():
                    raise ValidationFailure.from_result(result, "Data integrity validation failed")

            # 2. nothing to do
            if doc.version == target:
                self._state = MigrationState.SKIPPED
                logger.info("migration_skipped", version=doc.version)
                return MigrationSkipped(version=doc.version, document=doc)

            # 3. resolve
            path = self.registry.find_path(doc.version, target)
            if not path:
                raise MigrationNotFoundError(doc.version, target)

            self._notify("on_started", doc.version, target)
            logger.info(
                "migration_path_resolved",
                from_version=doc.version,
                to_version=target,
                steps=[m.label for m in path],
            )

            # 4. backup (best effort)
            if create_backup:
                self._state = MigrationState.BACKING_UP
                name = f"{self.backup_prefix}v{doc.version}_{self._clock()}.backup"
                if await self._write_backup(session, doc, name):
                    backup_name = name
                else:
                    logger.warning("migration_continuing_without_backup")

            # 5. apply each step in memory
            self._state = MigrationState.MIGRATING
            migrated = await self._apply_path(doc, path, token)

            # 6. final validation
            token.raise_if_cancelled()
            self._state = MigrationState.FINAL_VALIDATING
            result = self.validator.validate(migrated)
            if result.is_failure():
                raise ValidationFailure.from_result(result, "Final data integrity validation failed")

            # 7. persist + history
            saved = await session.save(migrated)
            duration = self._clock() - started
            await self.history_log.append(
                session,
                MigrationLogEntry.now(
                    from_version=from_version,
                    to_version=saved.version,
                    success=True,
                    duration=duration,
                    description="Migration completed successfully",
                    backup_filename=backup_name,
                ),
            )
            self._state = MigrationState.COMPLETED
            outcome = MigrationSuccess(
                from_version=from_version,
                to_version=saved.version,
                document=saved,
                duration_ms=duration,
                backup_filename=backup_name,
            )
            self._notify("on_completed", outcome)
            return outcome

        except Exception as e:
            error = as_docvault_error(e, MigrationExecutionError)
            duration = self._clock() - started
            self._state = MigrationState.FAILED
            logger.error(
                "migration_failed",
                kind=error.kind,
                error=error.message,
                from_version=from_version,
                to_version=target,
            )
            await self.history_log.append(
                session,
                MigrationLogEntry.now(
                    from_version=from_version if from_version is not None else 0,
                    to_version=target,
                    success=False,
                    duration=duration,
                    description=f"Migration failed: {error.message}",
                    backup_filename=backup_name,
                    error_details=traceback.format_exc(),
                ),
            )
            self._notify("on_failed", error)
            return MigrationFailure(
                error=error,
                from_version=from_version,
                to_version=target,
                duration_ms=duration,
                backup_filename=backup_name,
            )
        finally:
            await self._flush_progress()

    async def _apply_path(
        self, doc: Document, path: list[Migration], token: CancellationToken
    ) -> Document:
        total = sum(max(m.estimate_steps(doc), 1) for m in path)
        offset = 0
        current = doc

        for migration in path:
            token.raise_if_cancelled()
            if not migration.can_apply(current):
                raise MigrationValidationError(
                    f"Migration {migration.label} cannot be applied to current data"
                ).with_context(migration=migration.label, document_version=current.version)

            self._emit(MigrationProgress(offset, total, f"{migration.label}: starting"))

            def sink(progress: MigrationProgress, _offset=offset, _label=migration.label) -> None:
                self._emit(MigrationProgress(
                    min(_offset + progress.current_step, total),
                    total,
                    f"{_label}: {progress.description}",
                ))

            try:
                after = await migration.apply(current, sink)
            except DocVaultError:
                raise
            except Exception as e:
                raise MigrationExecutionError(
                    f"Migration {migration.label} failed: {e}", cause=e
                ).with_context(migration=migration.label) from e

            check = migration.validate_migration(current, after)
            if check.is_failure():
                raise MigrationValidationError(
                    f"Migration validation failed for {migration.label}: "
                    f"{check.first_error_message()}"
                ).with_context(migration=migration.label)

            logger.info(
                "migration_step_applied",
                migration=migration.label,
                from_version=current.version,
                to_version=after.version,
            )
            offset += max(migration.estimate_steps(doc), 1)
            current = after

        self._emit(MigrationProgress(total, total, "Migration steps applied"))
        return current

    # ── Rollback ──────────────────────────────────────────────────────────

    async def rollback(self, backup_filename: str | None = None) -> MigrationOutcome:
        """Make a backup snapshot the active document. Never raises."""
        async with self._lock, self.core.locked() as session:
            started = self._clock()
            self._state = MigrationState.ROLLING_BACK
            current_version: int | None = None
            name: str | None = backup_filename
            try:
                try:
                    current_version = (await self._current(session)).version
                except DocVaultError as e:
                    logger.warning("rollback_current_unreadable", kind=e.kind, error=e.message)
                self._notify("on_rollback_started", current_version or 0)

                if name is None:
                    name = await self._latest_backup(session)
                if name is None:
                    raise RollbackFailedError("No backup file available for rollback")

                backup = await self._read_backup(session, name)
                restored = await session.replace(backup)
                duration = self._clock() - started

                await self.history_log.append(
                    session,
                    MigrationLogEntry.now(
                        from_version=current_version if current_version is not None else 0,
                        to_version=restored.version,
                        success=True,
                        duration=duration,
                        description="Rollback completed successfully",
                        backup_filename=name,
                    ),
                )
                self._state = MigrationState.COMPLETED
                outcome = MigrationSuccess(
                    from_version=current_version if current_version is not None else restored.version,
                    to_version=restored.version,
                    document=restored,
                    duration_ms=duration,
                    backup_filename=name,
                    message="Rollback completed successfully",
                )
                logger.info("rollback_completed", backup=name, version=restored.version)
                self._notify("on_rollback_completed", outcome)
                return outcome

            except Exception as e:
                error = as_docvault_error(e, RollbackFailedError)
                if not isinstance(error, RollbackFailedError):
                    error = RollbackFailedError(f"Rollback failed: {error.message}", cause=error)
                error.with_context(backup_filename=name)
                duration = self._clock() - started
                self._state = MigrationState.FAILED
                logger.error("rollback_failed", backup=name, error=error.message)
                await self.history_log.append(
                    session,
                    MigrationLogEntry.now(
                        from_version=current_version if current_version is not None else 0,
                        to_version=current_version if current_version is not None else 0,
                        success=False,
                        duration=duration,
                        description=f"Rollback failed: {error.message}",
                        backup_filename=name,
                        error_details=traceback.format_exc(),
                    ),
                )
                self._notify("on_rollback_failed", error)
                return MigrationFailure(
                    error=error,
                    from_version=current_version,
                    duration_ms=duration,
                    backup_filename=name,
                )

    # ── Internals ─────────────────────────────────────────────────────────

    async def _current(self, session: PersistenceSession) -> Document:
        """Cached document, else the stored one undecorated by validation."""
        cached = self.core.cached
        if cached is not None:
            return cached
        stored = await session.read_stored()
        if stored is not None:
            return stored
        return await session.load()

    async def _write_backup(self, session: PersistenceSession, doc: Document, name: str) -> bool:
        try:
            await session.put_blob(name, self.core.codec.encode(doc))
        except DocVaultError as e:
            logger.warning("migration_backup_failed", backup=name, kind=e.kind, error=e.message)
            return False
        logger.info("migration_backup_created", backup=name, version=doc.version)
        return True

    async def _latest_backup(self, session: PersistenceSession) -> str | None:
        for entry in reversed(await self.history_log.entries(session)):
            if entry.backup_filename:
                return entry.backup_filename
        return None

    async def _read_backup(self, session: PersistenceSession, name: str) -> Document:
        data = await session.get_blob(name)
        if data is None:
            raise RollbackFailedError(f"Backup file not found: {name}")
        match self.core.codec.decode(data):
            case Ok(doc):
                pass
            case Err(error):
                raise RollbackFailedError(f"Backup file is corrupted: {name}", cause=error)
        result = self.validator.validate(doc)
        if result.is_failure():
            raise RollbackFailedError(
                "Backup data integrity validation failed: " + ", ".join(result.error_messages())
            )
        return doc

    def _emit(self, progress: MigrationProgress) -> None:
        self._notify("on_progress", progress)
        self._pending.append(asyncio.ensure_future(self._progress.publish(progress)))

    async def _flush_progress(self) -> None:
        pending, self._pending = self._pending, []
        if pending:
            await asyncio.gather(*pending)

    def _notify(self, event: str, *args: Any) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, event)(*args)
            except Exception as e:
                logger.warning(
                    "migration_observer_error",
                    observer=type(observer).__name__,
                    callback=event,
                    error=str(e),
                )


__all__ = [
    "ACTIVE_STATES",
    "DEFAULT_BACKUP_PREFIX",
    "IntegrityReport",
    "MigrationCoordinator",
    "MigrationFailure",
    "MigrationOutcome",
    "MigrationSkipped",
    "MigrationState",
    "MigrationSuccess",
]
