"""
docvault - versioned, validated storage for a single application document.

Layers (bottom-up):
- docvault.core: errors, results, logging, settings, cache, retry, broadcast
- docvault.models: the Document aggregate and its entities
- docvault.validation: composable, non-throwing validation rules
- docvault.persistence: blob stores, JSON codec, PersistenceCore
- docvault.migrations: registry, coordinator, history, observers
- docvault.repositories: per-entity read-modify-write APIs
- docvault.store: DocumentStore facade owning all of the above
"""

__version__ = "0.1.0"

from docvault.core.errors import DocVaultError
from docvault.migrations import (
    Migration,
    MigrationFailure,
    MigrationRegistry,
    MigrationSkipped,
    MigrationSuccess,
)
from docvault.models import Document
from docvault.persistence import FileBlobStore, InMemoryBlobStore, PersistenceCore
from docvault.store import DocumentStore

__all__ = [
    "__version__",
    "DocVaultError",
    "Document",
    "DocumentStore",
    "FileBlobStore",
    "InMemoryBlobStore",
    "Migration",
    "MigrationFailure",
    "MigrationRegistry",
    "MigrationSkipped",
    "MigrationSuccess",
    "PersistenceCore",
]
