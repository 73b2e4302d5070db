"""The root aggregate: one versioned document holding every collection.

``Document`` is replaced wholesale on every write (copy-on-write); nothing
outside a repository's read-modify-write ever holds a mutable reference to
the cached instance. Top-level keys this version does not know about are
preserved (``extra="allow"``) so a document written by a newer schema, or a
migration that introduces a new section, round-trips without loss.

Examples:
    >>> doc = Document()
    >>> doc.version, doc.entity_count()
    (1, 0)
    >>> doc.summary()["identities"]
    0
"""

from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from docvault.core.timestamps import generate_ulid, now_ms
from docvault.models.entities import EntityModel, Identity, Message, Project, ServerProfile

# ── Ceilings ─────────────────────────────────────────────────────
MAX_IDENTITIES = 50
MAX_SERVER_PROFILES = 100
MAX_PROJECTS = 200
MAX_MESSAGES_PER_PROJECT = 1000
MAX_TOTAL_MESSAGES = 10000
MAX_MESSAGE_METADATA_ENTRIES = 20

# Message key not tied to a project
SYSTEM_MESSAGES_KEY = "system"

INITIAL_VERSION = 1


class DocumentMetadata(EntityModel):
    """Bookkeeping about the document itself."""

    created_at: int = Field(default_factory=now_ms)
    device_id: str = Field(default_factory=generate_ulid)
    backup_enabled: bool = True
    data_size: int = 0
    last_backup: int | None = None


class Document(EntityModel):
    """Versioned root aggregate."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    version: int = INITIAL_VERSION
    identities: list[Identity] = Field(default_factory=list)
    server_profiles: list[ServerProfile] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    messages: dict[str, list[Message]] = Field(default_factory=dict)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    last_modified: int = Field(default_factory=now_ms)

    # ── Lookups ──────────────────────────────────────────────────

    def find_identity(self, identity_id: str) -> Identity | None:
        return next((i for i in self.identities if i.id == identity_id), None)

    def find_server_profile(self, profile_id: str) -> ServerProfile | None:
        return next((p for p in self.server_profiles if p.id == profile_id), None)

    def find_project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def messages_for(self, project_id: str) -> list[Message]:
        return list(self.messages.get(project_id, []))

    def profiles_for_identity(self, identity_id: str) -> list[ServerProfile]:
        return [p for p in self.server_profiles if p.ssh_identity_id == identity_id]

    def projects_for_server(self, profile_id: str) -> list[Project]:
        return [p for p in self.projects if p.server_profile_id == profile_id]

    # ── Counts ───────────────────────────────────────────────────

    def total_messages(self) -> int:
        return sum(len(items) for items in self.messages.values())

    def entity_count(self) -> int:
        """Identities + server profiles + projects."""
        return len(self.identities) + len(self.server_profiles) + len(self.projects)

    def is_empty(self) -> bool:
        return self.entity_count() == 0 and self.total_messages() == 0

    def summary(self) -> dict[str, int]:
        """Per-collection counts, plus version and last_modified."""
        return {
            "version": self.version,
            "identities": len(self.identities),
            "server_profiles": len(self.server_profiles),
            "projects": len(self.projects),
            "message_threads": len(self.messages),
            "messages": self.total_messages(),
            "last_modified": self.last_modified,
        }


__all__ = [
    "Document",
    "DocumentMetadata",
    "INITIAL_VERSION",
    "MAX_IDENTITIES",
    "MAX_SERVER_PROFILES",
    "MAX_PROJECTS",
    "MAX_MESSAGES_PER_PROJECT",
    "MAX_TOTAL_MESSAGES",
    "MAX_MESSAGE_METADATA_ENTRIES",
    "SYSTEM_MESSAGES_KEY",
]
