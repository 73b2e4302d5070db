"""Migration observers.

Observers receive lifecycle callbacks from the coordinator. Callbacks are
synchronous and must be quick; an observer that raises is logged and
skipped, it never fails the migration it is watching.

For async consumers the coordinator also publishes every
:class:`MigrationProgress` through ``observe_progress()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from docvault.core.errors import DocVaultError
from docvault.core.logging import get_logger
from docvault.migrations.base import MigrationProgress

if TYPE_CHECKING:
    from docvault.migrations.coordinator import MigrationOutcome

logger = get_logger(__name__)


@runtime_checkable
class MigrationObserver(Protocol):
    def on_started(self, from_version: int, to_version: int) -> None: ...

    def on_progress(self, progress: MigrationProgress) -> None: ...

    def on_completed(self, outcome: MigrationOutcome) -> None: ...

    def on_failed(self, error: DocVaultError) -> None: ...

    def on_rollback_started(self, from_version: int) -> None: ...

    def on_rollback_completed(self, outcome: MigrationOutcome) -> None: ...

    def on_rollback_failed(self, error: DocVaultError) -> None: ...


class BaseMigrationObserver:
    """No-op observer; override what you need."""

    def on_started(self, from_version: int, to_version: int) -> None:
        pass

    def on_progress(self, progress: MigrationProgress) -> None:
        pass

    def on_completed(self, outcome: MigrationOutcome) -> None:
        pass

    def on_failed(self, error: DocVaultError) -> None:
        pass

    def on_rollback_started(self, from_version: int) -> None:
        pass

    def on_rollback_completed(self, outcome: MigrationOutcome) -> None:
        pass

    def on_rollback_failed(self, error: DocVaultError) -> None:
        pass


class LoggingMigrationObserver(BaseMigrationObserver):
    """Writes every callback to the structured log."""

    def on_started(self, from_version: int, to_version: int) -> None:
        logger.info("migration_started", from_version=from_version, to_version=to_version)

    def on_progress(self, progress: MigrationProgress) -> None:
        logger.debug(
            "migration_progress",
            step=progress.current_step,
            total=progress.total_steps,
            percent=progress.percent,
            description=progress.description,
        )

    def on_completed(self, outcome: MigrationOutcome) -> None:
        logger.info("migration_completed", **outcome.to_dict())

    def on_failed(self, error: DocVaultError) -> None:
        logger.error("migration_failed", kind=error.kind, error=error.message)

    def on_rollback_started(self, from_version: int) -> None:
        logger.info("rollback_started", from_version=from_version)

    def on_rollback_completed(self, outcome: MigrationOutcome) -> None:
        logger.info("rollback_completed", **outcome.to_dict())

    def on_rollback_failed(self, error: DocVaultError) -> None:
        logger.error("rollback_failed", kind=error.kind, error=error.message)


__all__ = [
    "BaseMigrationObserver",
    "LoggingMigrationObserver",
    "MigrationObserver",
]
