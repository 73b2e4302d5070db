"""
Shared pytest fixtures for docvault tests.

This module provides:
- Entity factories with valid defaults (override any field by keyword)
- In-memory blob store, PersistenceCore and DocumentStore fixtures
- Sample migrations used across the migration and store tests
- Settings isolation

Usage:
    def test_something(make_identity, core):
        identity = make_identity(name="Dev")
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from docvault.core.settings import reset_settings
from docvault.migrations import Migration, MigrationRegistry
from docvault.models import Document, Identity, Message, Project, ServerProfile
from docvault.persistence import InMemoryBlobStore, PersistenceCore
from docvault.store import DocumentStore

BASE_TS = 1_700_000_000_000


# =============================================================================
# Settings isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Point settings at a temp dir and drop the cached instance around each test."""
    monkeypatch.setenv("DOCVAULT_DATA_DIR", str(tmp_path / "store"))
    monkeypatch.setenv("DOCVAULT_LOG_LEVEL", "WARNING")
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# Entity factories
# =============================================================================


@pytest.fixture
def make_identity() -> Callable[..., Identity]:
    counter = itertools.count(1)

    def factory(**overrides: Any) -> Identity:
        n = next(counter)
        fields: dict[str, Any] = {
            "name": f"Identity {n}",
            "encrypted_private_key": "encrypted-key-material-0001",
            "public_key_fingerprint": f"ab:cd:ef:{n:02x}",
            "created_at": BASE_TS,
        }
        fields.update(overrides)
        return Identity(**fields)

    return factory


@pytest.fixture
def make_profile() -> Callable[..., ServerProfile]:
    counter = itertools.count(1)

    def factory(ssh_identity_id: str, **overrides: Any) -> ServerProfile:
        n = next(counter)
        fields: dict[str, Any] = {
            "name": f"Server {n}",
            "hostname": f"host{n}.example.com",
            "username": "ops",
            "ssh_identity_id": ssh_identity_id,
            "created_at": BASE_TS,
        }
        fields.update(overrides)
        return ServerProfile(**fields)

    return factory


@pytest.fixture
def make_project() -> Callable[..., Project]:
    counter = itertools.count(1)

    def factory(server_profile_id: str, **overrides: Any) -> Project:
        n = next(counter)
        fields: dict[str, Any] = {
            "name": f"Project {n}",
            "server_profile_id": server_profile_id,
            "project_path": f"/home/ops/project{n}",
            "created_at": BASE_TS,
        }
        fields.update(overrides)
        return Project(**fields)

    return factory


@pytest.fixture
def make_message() -> Callable[..., Message]:
    counter = itertools.count(1)

    def factory(**overrides: Any) -> Message:
        n = next(counter)
        fields: dict[str, Any] = {"content": f"message {n}", "timestamp": BASE_TS + n}
        fields.update(overrides)
        return Message(**fields)

    return factory


@pytest.fixture
def populated_doc(make_identity, make_profile, make_project, make_message) -> Document:
    """One identity, one profile, one project with two messages."""
    identity = make_identity(name="Dev")
    profile = make_profile(identity.id, name="Dev Box")
    project = make_project(profile.id, name="Website")
    return Document(
        identities=[identity],
        server_profiles=[profile],
        projects=[project],
        messages={project.id: [make_message(), make_message()]},
        last_modified=BASE_TS,
    )


# =============================================================================
# Persistence
# =============================================================================


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def core(blob_store: InMemoryBlobStore) -> PersistenceCore:
    return PersistenceCore(blob_store)


# =============================================================================
# Migrations
# =============================================================================


class AddPreferences(Migration):
    """1 -> 2: adds a top-level ``preferences`` section."""

    from_version = 1
    to_version = 2
    name = "add_preferences"
    description = "Add default preferences"

    async def apply(self, doc, progress=None):
        self.check_version(doc)
        self.report(progress, 1, 1, "adding preferences")
        return self.advance(doc, preferences={"theme": "system"})


class RenameTheme(Migration):
    """2 -> 3: renames the preferences theme key."""

    from_version = 2
    to_version = 3
    name = "rename_theme"

    async def apply(self, doc, progress=None):
        prefs = dict(getattr(doc, "preferences", None) or {})
        prefs["colorScheme"] = prefs.pop("theme", "system")
        return self.advance(doc, preferences=prefs)


class ExplodingMigration(Migration):
    """2 -> 3 that always raises."""

    from_version = 2
    to_version = 3
    name = "exploding"

    async def apply(self, doc, progress=None):
        raise RuntimeError("disk on fire")


@pytest.fixture
def registry() -> MigrationRegistry:
    return MigrationRegistry([AddPreferences()])


@pytest.fixture
def store(blob_store: InMemoryBlobStore, registry: MigrationRegistry) -> DocumentStore:
    return DocumentStore(blob_store, registry=registry)
