"""Tests for Migration, MigrationProgress and CancellationToken."""

import pytest

from docvault.core.errors import InvalidVersionError, MigrationCancelledError, RollbackNotSupportedError
from docvault.migrations import CancellationToken, MigrationProgress
from docvault.models import Document

from conftest import AddPreferences


class TestMigrationProgress:
    def test_percent(self):
        assert MigrationProgress(1, 4, "step").percent == 25
        assert MigrationProgress(0, 0, "nothing").percent == 0

    def test_complete(self):
        assert MigrationProgress(3, 3, "done").complete
        assert not MigrationProgress(2, 3, "working").complete

    @pytest.mark.parametrize(
        "current, total, description",
        [(-1, 3, "x"), (1, -1, "x"), (4, 3, "x"), (1, 3, "  ")],
    )
    def test_rejects_bad_values(self, current, total, description):
        with pytest.raises(ValueError):
            MigrationProgress(current, total, description)


class TestCancellationToken:
    def test_not_cancelled_by_default(self):
        token = CancellationToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel_with_reason(self):
        token = CancellationToken()
        token.cancel("user request")
        with pytest.raises(MigrationCancelledError, match="Migration cancelled: user request"):
            token.raise_if_cancelled()


class TestMigration:
    @pytest.mark.asyncio
    async def test_apply_returns_new_document(self, populated_doc):
        migrated = await AddPreferences().apply(populated_doc)

        assert migrated.version == 2
        assert migrated.preferences == {"theme": "system"}
        assert populated_doc.version == 1
        assert not hasattr(populated_doc, "preferences")
        assert migrated.identities == populated_doc.identities

    @pytest.mark.asyncio
    async def test_reports_progress(self):
        seen = []
        await AddPreferences().apply(Document(), seen.append)
        assert [(p.current_step, p.total_steps) for p in seen] == [(1, 1)]

    @pytest.mark.asyncio
    async def test_check_version(self):
        with pytest.raises(InvalidVersionError, match="expects version 1, got 3"):
            await AddPreferences().apply(Document(version=3))

    def test_validate_migration_catches_wrong_version(self):
        migration = AddPreferences()
        result = migration.validate_migration(Document(), Document())
        assert result.has_code("MIGRATION_VERSION_MISMATCH")

    def test_validate_migration_catches_rewound_clock(self):
        migration = AddPreferences()
        before = Document(last_modified=200)
        after = Document(version=2, last_modified=100)
        assert migration.validate_migration(before, after).has_code("MIGRATION_TIMESTAMP_BACKWARDS")

    def test_label_and_can_apply(self):
        migration = AddPreferences()
        assert migration.label == "add_preferences"
        assert migration.can_apply(Document())
        assert not migration.can_apply(Document(version=2))

    @pytest.mark.asyncio
    async def test_rollback_not_supported_by_default(self):
        with pytest.raises(RollbackNotSupportedError):
            await AddPreferences().rollback(Document(version=2))
