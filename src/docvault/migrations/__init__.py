"""docvault schema migrations.

Architecture::

    base.py         Migration ABC, MigrationProgress, CancellationToken
    registry.py     Version graph, BFS path resolution
    history.py      Bounded migration log stored under "migration_log"
    observers.py    Lifecycle callbacks (logging observer included)
    coordinator.py  State machine: validate, backup, migrate, verify, persist
"""

from docvault.migrations.base import CancellationToken, Migration, MigrationProgress, ProgressSink
from docvault.migrations.coordinator import (
    IntegrityReport,
    MigrationCoordinator,
    MigrationFailure,
    MigrationOutcome,
    MigrationSkipped,
    MigrationState,
    MigrationSuccess,
)
from docvault.migrations.history import (
    DEFAULT_HISTORY_KEY,
    DEFAULT_HISTORY_LIMIT,
    MigrationHistory,
    MigrationLogEntry,
)
from docvault.migrations.observers import (
    BaseMigrationObserver,
    LoggingMigrationObserver,
    MigrationObserver,
)
from docvault.migrations.registry import CURRENT_VERSION, MigrationRegistry

__all__ = [
    "CancellationToken",
    "Migration",
    "MigrationProgress",
    "ProgressSink",
    "IntegrityReport",
    "MigrationCoordinator",
    "MigrationFailure",
    "MigrationOutcome",
    "MigrationSkipped",
    "MigrationState",
    "MigrationSuccess",
    "DEFAULT_HISTORY_KEY",
    "DEFAULT_HISTORY_LIMIT",
    "MigrationHistory",
    "MigrationLogEntry",
    "BaseMigrationObserver",
    "LoggingMigrationObserver",
    "MigrationObserver",
    "CURRENT_VERSION",
    "MigrationRegistry",
]
