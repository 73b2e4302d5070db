"""docvault persistence: blob stores, the JSON codec and PersistenceCore."""

from docvault.persistence.blob_store import BlobStore, FileBlobStore, InMemoryBlobStore
from docvault.persistence.codec import DocumentCodec
from docvault.persistence.core import DEFAULT_DOCUMENT_KEY, PersistenceCore, PersistenceSession

__all__ = [
    "BlobStore",
    "FileBlobStore",
    "InMemoryBlobStore",
    "DocumentCodec",
    "DEFAULT_DOCUMENT_KEY",
    "PersistenceCore",
    "PersistenceSession",
]
