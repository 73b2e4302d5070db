"""Entity models stored inside the document.

Pydantic v2 models with snake_case attributes and camelCase JSON keys
(``ssh_identity_id`` ⇄ ``"sshIdentityId"``). The models carry types and
defaults only; every length, format and cross-field rule lives in
:mod:`docvault.validation`, so an invalid entity can always be constructed,
inspected and reported on instead of failing at parse time.

Entities are treated as immutable values: repositories produce changed
copies with ``model_copy(update=...)`` and never mutate in place.

Key Concepts:
    Identity: An SSH key pair reference (the private key is stored
        encrypted by the blob store's caller, never decrypted here).
    ServerProfile: A remote host reached with one Identity.
    Project: A working directory on one ServerProfile.
    Message: One conversation entry, stored per project.

Tags:
    models, pydantic, entities, camelcase, docvault
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docvault.core.timestamps import DAY_MS, generate_ulid, now_ms

STALE_AFTER_DAYS = 30


class EntityModel(BaseModel):
    """Base for all stored models: camelCase on the wire, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict:
        """Dump with JSON aliases, as stored."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ConnectionStatus(str, Enum):
    """Connection state of a server profile."""

    NEVER_CONNECTED = "NEVER_CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    ERROR = "ERROR"


class ProjectStatus(str, Enum):
    """Lifecycle state of a project."""

    INACTIVE = "INACTIVE"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    DISCONNECTED = "DISCONNECTED"
    ERROR = "ERROR"


class MessageType(str, Enum):
    """Origin of a message."""

    USER_INPUT = "USER_INPUT"
    CLAUDE_RESPONSE = "CLAUDE_RESPONSE"
    SYSTEM_MESSAGE = "SYSTEM_MESSAGE"
    ERROR_MESSAGE = "ERROR_MESSAGE"
    STATUS_UPDATE = "STATUS_UPDATE"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class Identity(EntityModel):
    """SSH identity: a named key pair reference."""

    id: str = Field(default_factory=generate_ulid)
    name: str
    encrypted_private_key: str
    public_key_fingerprint: str
    description: str | None = None
    created_at: int = Field(default_factory=now_ms)
    last_used_at: int | None = None

    @property
    def short_fingerprint(self) -> str:
        """Abbreviated fingerprint for display."""
        fp = self.public_key_fingerprint
        if fp.startswith("SHA256:"):
            return fp[7:19]
        if ":" in fp:
            return ":".join(fp.split(":")[:4])
        return fp[:12]

    def is_stale(self, now: int | None = None) -> bool:
        """Last used more than 30 days ago."""
        if self.last_used_at is None:
            return False
        current = now if now is not None else now_ms()
        return self.last_used_at < current - STALE_AFTER_DAYS * DAY_MS

    def mark_used(self, at: int | None = None) -> Identity:
        return self.model_copy(update={"last_used_at": at if at is not None else now_ms()})

    def matches(self, query: str) -> bool:
        needle = query.strip().lower()
        return needle in self.name.lower() or needle in (self.description or "").lower()

    def to_export(self) -> dict:
        """JSON dict without the encrypted private key."""
        data = self.to_json_dict()
        data.pop("encryptedPrivateKey", None)
        return data


class ServerProfile(EntityModel):
    """A remote host reached through one identity."""

    id: str = Field(default_factory=generate_ulid)
    name: str
    hostname: str
    port: int = 22
    username: str
    ssh_identity_id: str
    wrapper_port: int = 8080
    status: ConnectionStatus = ConnectionStatus.NEVER_CONNECTED
    last_connected_at: int | None = None
    created_at: int = Field(default_factory=now_ms)

    @property
    def connection_string(self) -> str:
        return f"{self.username}@{self.hostname}:{self.port}"

    @property
    def wrapper_url(self) -> str:
        return f"http://{self.hostname}:{self.wrapper_port}"

    @property
    def host_key(self) -> str:
        """``hostname:port`` normalised for uniqueness checks."""
        return f"{self.hostname.lower()}:{self.port}"

    def matches(self, query: str) -> bool:
        needle = query.strip().lower()
        return (
            needle in self.name.lower()
            or needle in self.hostname.lower()
            or needle in self.username.lower()
        )


class Project(EntityModel):
    """A working directory on a server profile."""

    id: str = Field(default_factory=generate_ulid)
    name: str
    server_profile_id: str
    project_path: str
    scripts_folder: str = "scripts"
    session_id: str | None = None
    status: ProjectStatus = ProjectStatus.INACTIVE
    created_at: int = Field(default_factory=now_ms)
    last_active_at: int | None = None
    repository_url: str | None = None
    last_error: str | None = None

    @property
    def scripts_path(self) -> str:
        return f"{self.project_path.rstrip('/')}/{self.scripts_folder}"

    @property
    def folder_name(self) -> str:
        return self.project_path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def activity_at(self) -> int:
        """Sort key: last activity, falling back to creation."""
        return self.last_active_at if self.last_active_at is not None else self.created_at

    def matches(self, query: str) -> bool:
        needle = query.strip().lower()
        return (
            needle in self.name.lower()
            or needle in self.project_path.lower()
            or needle in (self.repository_url or "").lower()
        )


class Message(EntityModel):
    """One conversation entry."""

    id: str = Field(default_factory=generate_ulid)
    content: str
    type: MessageType = MessageType.USER_INPUT
    timestamp: int = Field(default_factory=now_ms)
    is_partial: bool = False
    metadata: dict[str, str] = Field(default_factory=dict)

    def preview(self, max_length: int = 100) -> str:
        if len(self.content) <= max_length:
            return self.content
        return self.content[:max_length] + "..."

    @property
    def tool_requests(self) -> list[str]:
        raw = self.metadata.get("tool_requests")
        if not raw:
            return []
        return [part.strip() for part in raw.split(",") if part.strip()]

    def matches(self, query: str) -> bool:
        return query.strip().lower() in self.content.lower()


__all__ = [
    "EntityModel",
    "ConnectionStatus",
    "ProjectStatus",
    "MessageType",
    "Identity",
    "ServerProfile",
    "Project",
    "Message",
    "STALE_AFTER_DAYS",
]
