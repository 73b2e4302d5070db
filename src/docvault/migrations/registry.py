"""
MigrationRegistry: registered migrations as edges of a version graph.

Each migration is an edge ``from_version -> to_version``. ``find_path`` runs
a breadth-first search and returns the shortest chain of migrations between
two versions. Among equally short chains the one taking the smallest next
``to_version`` at each step wins, so the answer is deterministic for a given
set of registrations. An unreachable target yields ``[]``.

Registering a second migration for the same ``(from, to)`` pair is rejected
unless ``replace=True`` is passed.

Examples:
    >>> registry = MigrationRegistry()
    >>> registry.register(AddPreferences())          # 1 -> 2
    >>> registry.register(SplitMessages())           # 2 -> 3
    >>> [m.to_version for m in registry.find_path(1, 3)]
    [2, 3]
    >>> registry.has_path(3, 1)
    False

Tags:
    migrations, registry, graph, bfs, docvault
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from docvault.core.logging import get_logger
from docvault.migrations.base import Migration
from docvault.validation.result import ValidationResult, ValidationResultBuilder

logger = get_logger(__name__)

CURRENT_VERSION = 1


class MigrationRegistry:
    """Directed graph of migrations over integer versions."""

    def __init__(self, migrations: Iterable[Migration] = ()) -> None:
        self._migrations: dict[tuple[int, int], Migration] = {}
        for migration in migrations:
            self.register(migration)

    def register(self, migration: Migration, *, replace: bool = False) -> None:
        """Add an edge.

        Raises:
            ValueError: Self-loop, or the pair is taken and ``replace`` is False.
        """
        key = (migration.from_version, migration.to_version)
        if migration.from_version == migration.to_version:
            raise ValueError(f"Migration {migration.label} does not change the version")
        if key in self._migrations and not replace:
            raise ValueError(
                f"Migration from version {key[0]} to {key[1]} already registered"
            )
        if key in self._migrations:
            logger.warning("migration_replaced", from_version=key[0], to_version=key[1])
        self._migrations[key] = migration
        logger.debug("migration_registered", migration=migration.label, from_version=key[0], to_version=key[1])

    def unregister(self, from_version: int, to_version: int) -> Migration | None:
        return self._migrations.pop((from_version, to_version), None)

    def clear(self) -> None:
        self._migrations.clear()

    # ── Queries ───────────────────────────────────────────────────────────

    def all(self) -> list[Migration]:
        return sorted(self._migrations.values(), key=lambda m: (m.from_version, m.to_version))

    def find(self, from_version: int, to_version: int) -> Migration | None:
        return self._migrations.get((from_version, to_version))

    def migrations_from(self, version: int) -> list[Migration]:
        return sorted(
            (m for m in self._migrations.values() if m.from_version == version),
            key=lambda m: m.to_version,
        )

    def migrations_to(self, version: int) -> list[Migration]:
        return sorted(
            (m for m in self._migrations.values() if m.to_version == version),
            key=lambda m: m.from_version,
        )

    def highest_version(self) -> int:
        return max((m.to_version for m in self._migrations.values()), default=CURRENT_VERSION)

    def lowest_version(self) -> int:
        return min((m.from_version for m in self._migrations.values()), default=CURRENT_VERSION)

    def has_path(self, from_version: int, to_version: int) -> bool:
        return from_version == to_version or bool(self.find_path(from_version, to_version))

    def find_path(self, from_version: int, to_version: int) -> list[Migration]:
        """Shortest chain, smallest next ``to_version`` first on ties."""
        if from_version == to_version:
            return []

        previous: dict[int, Migration] = {}
        visited = {from_version}
        queue = deque([from_version])

        while queue:
            version = queue.popleft()
            for migration in self.migrations_from(version):
                nxt = migration.to_version
                if nxt in visited:
                    continue
                visited.add(nxt)
                previous[nxt] = migration
                if nxt == to_version:
                    return self._unwind(previous, from_version, to_version)
                queue.append(nxt)
        return []

    @staticmethod
    def _unwind(previous: dict[int, Migration], start: int, end: int) -> list[Migration]:
        path: list[Migration] = []
        version = end
        while version != start:
            migration = previous[version]
            path.append(migration)
            version = migration.from_version
        path.reverse()
        return path

    def validate_chain(self) -> ValidationResult:
        """Report version gaps and cycles among the registered edges."""
        builder = ValidationResultBuilder()
        versions = sorted({v for key in self._migrations for v in key})
        for current, nxt in zip(versions, versions[1:]):
            if not self.has_path(current, nxt):
                builder.add_business_error(
                    f"No migration path from version {current} to {nxt}",
                    "version",
                    "MIGRATION_CHAIN_GAP",
                )
        if self._has_cycle():
            builder.add_business_error(
                "Circular dependency detected in migration chain",
                "version",
                "MIGRATION_CHAIN_CYCLE",
            )
        return builder.build()

    def _has_cycle(self) -> bool:
        visiting: set[int] = set()
        done: set[int] = set()

        def visit(version: int) -> bool:
            if version in visiting:
                return True
            if version in done:
                return False
            visiting.add(version)
            found = any(visit(m.to_version) for m in self.migrations_from(version))
            visiting.discard(version)
            done.add(version)
            return found

        return any(visit(from_version) for from_version, _ in self._migrations)

    def __len__(self) -> int:
        return len(self._migrations)

    def __contains__(self, key: object) -> bool:
        return key in self._migrations


__all__ = [
    "CURRENT_VERSION",
    "MigrationRegistry",
]
