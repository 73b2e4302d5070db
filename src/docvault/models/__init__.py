"""Document and entity models."""

from docvault.models.document import (
    INITIAL_VERSION,
    MAX_IDENTITIES,
    MAX_MESSAGE_METADATA_ENTRIES,
    MAX_MESSAGES_PER_PROJECT,
    MAX_PROJECTS,
    MAX_SERVER_PROFILES,
    MAX_TOTAL_MESSAGES,
    SYSTEM_MESSAGES_KEY,
    Document,
    DocumentMetadata,
)
from docvault.models.entities import (
    ConnectionStatus,
    Identity,
    Message,
    MessageType,
    Project,
    ProjectStatus,
    ServerProfile,
)

__all__ = [
    "Document",
    "DocumentMetadata",
    "Identity",
    "ServerProfile",
    "Project",
    "Message",
    "ConnectionStatus",
    "ProjectStatus",
    "MessageType",
    "INITIAL_VERSION",
    "MAX_IDENTITIES",
    "MAX_SERVER_PROFILES",
    "MAX_PROJECTS",
    "MAX_MESSAGES_PER_PROJECT",
    "MAX_TOTAL_MESSAGES",
    "MAX_MESSAGE_METADATA_ENTRIES",
    "SYSTEM_MESSAGES_KEY",
]
