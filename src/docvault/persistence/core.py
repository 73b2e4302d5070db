"""
PersistenceCore: the cached, mutex-serialized owner of the document.

Every read and write of the document goes through one ``asyncio.Lock``. The
lock is FIFO, so callers are served in the order they asked and a caller
never observes another caller's half-finished read-modify-write.

Manifesto:
    - **One lock, no reader/writer split:** a low-write local store does not
      need more, and one lock makes every operation trivially atomic
    - **Cache follows disk:** the cache is updated only after the blob store
      accepted the bytes; a failed save leaves the previous value in place
    - **Observers see only valid documents:** publication happens after
      validation and after the write, inside the lock, in commit order
    - **The cache is private:** callers and observers get deep copies, so
      editing a loaded document in place never reaches the cache

Architecture:
    ::

        load()  ── cache hit ─────────────────────────────────────► Document
                └─ miss: blob.get → decode → validate → cache → publish

        save(doc)  validate → stamp lastModified → encode → blob.put
                   → cache → publish            (any failure: cache intact)

        locked() ─► PersistenceSession   unlocked load / save / replace /
                                         blob access for multi-step callers
                                         (repositories, migration coordinator)

        observe() ─► async iterator, replays the latest document first

Examples:
    >>> core = PersistenceCore(InMemoryBlobStore())
    >>> doc = await core.initialize()
    >>> doc.version
    1
    >>> async with core.locked() as session:
    ...     current = await session.load()
    ...     await session.save(current.model_copy(update={"projects": []}))

Guardrails:
    ❌ DON'T: Call ``core.load()`` / ``core.save()`` while holding ``locked()``
    ✅ DO: Use the session's methods; the lock is not re-entrant

    ❌ DON'T: Call back into the core from a ``subscribe`` handler
    ✅ DO: Use the document the handler receives, or iterate ``observe()``

Tags:
    persistence, asyncio, lock, cache, observer, docvault

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from docvault.core.broadcast import Broadcaster
from docvault.core.errors import (
    DocVaultError,
    InitializationError,
    SaveFailedError,
    StorageError,
    ValidationFailure,
)
from docvault.core.logging import get_logger
from docvault.core.result import Err, Ok
from docvault.core.timestamps import now_ms
from docvault.models.document import Document
from docvault.persistence.blob_store import BlobStore
from docvault.persistence.codec import DocumentCodec
from docvault.validation.document import DocumentValidator

logger = get_logger(__name__)

DEFAULT_DOCUMENT_KEY = "app_data"


class PersistenceSession:
    """
    Unlocked view of a :class:`PersistenceCore` handed out by ``locked()``.

    Valid only inside the ``async with`` block that produced it.
    """

    def __init__(self, core: PersistenceCore) -> None:
        self._core = core

    async def load(self) -> Document:
        return await self._core._load()

    async def read_stored(self) -> Document | None:
        """Decode the stored document without validating or caching it."""
        return await self._core._read_stored()

    async def save(self, doc: Document) -> Document:
        return await self._core._write(doc, stamp=True)

    async def replace(self, doc: Document) -> Document:
        """Like ``save`` but keeps ``lastModified`` as given (snapshot restore)."""
        return await self._core._write(doc, stamp=False)

    async def get_blob(self, key: str) -> bytes | None:
        return await self._core._blob_call(self._core.blob_store.get, key)

    async def put_blob(self, key: str, data: bytes) -> None:
        await self._core._blob_call(self._core.blob_store.put, key, data)

    async def delete_blob(self, key: str) -> None:
        await self._core._blob_call(self._core.blob_store.delete, key)


class PersistenceCore:
    """Cached, lock-serialized document persistence over a :class:`BlobStore`."""

    def __init__(
        self,
        blob_store: BlobStore,
        *,
        validator: DocumentValidator | None = None,
        codec: DocumentCodec | None = None,
        document_key: str = DEFAULT_DOCUMENT_KEY,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.blob_store = blob_store
        self.validator = validator or DocumentValidator()
        self.codec = codec or DocumentCodec()
        self.document_key = document_key
        self._clock = clock
        self._lock = asyncio.Lock()
        self._cache: Document | None = None
        self._updates: Broadcaster[Document] = Broadcaster(name="document")
        self._initialized = False

    # ── Lifecycle ─────────────────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def cached(self) -> Document | None:
        """Copy of the current cache value (no I/O, no lock)."""
        return _detach(self._cache)

    async def initialize(self) -> Document:
        """Load the stored document, creating an empty one on first run.

        Raises:
            InitializationError: The stored document is unreadable or invalid,
                or the empty document could not be written.
        """
        async with self._lock:
            if self._initialized and self._cache is not None:
                return _detach(self._cache)
            try:
                doc = await self._load()
            except DocVaultError as e:
                logger.error("persistence_initialize_failed", kind=e.kind, error=e.message)
                raise InitializationError(
                    f"Failed to initialize document store: {e.message}", cause=e
                ) from e
            self._initialized = True
            logger.info("persistence_initialized", version=doc.version, entities=doc.entity_count())
            return doc

    async def teardown(self) -> None:
        """Close every observer stream and drop the cache. Not reusable afterwards."""
        async with self._lock:
            await self._updates.close()
            self._cache = None
            self._initialized = False
        logger.debug("persistence_teardown")

    # ── Public operations (each takes the lock) ───────────────────────────

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[PersistenceSession]:
        """Hold the lock across several operations."""
        async with self._lock:
            yield PersistenceSession(self)

    async def load(self) -> Document:
        async with self._lock:
            return await self._load()

    async def save(self, doc: Document) -> Document:
        """Validate, stamp, persist, then cache and publish.

        Returns the stored document (with the new ``lastModified``).

        Raises:
            ValidationFailure: ``doc`` breaks an invariant.
            SaveFailedError: Serialization or the blob store write failed.
        """
        async with self._lock:
            return await self._write(doc, stamp=True)

    async def import_data(self, data: bytes | str) -> Document:
        """Replace the document with an external JSON export.

        Raises:
            CorruptedDataError: ``data`` is not a readable document.
            ValidationFailure: It decodes but breaks an invariant.
        """
        doc = self.codec.decode(data).unwrap()
        async with self._lock:
            saved = await self._write(doc, stamp=True)
        logger.info("document_imported", version=saved.version, entities=saved.entity_count())
        return saved

    async def export_data(self) -> bytes:
        """Serialize the current (validated) document."""
        async with self._lock:
            doc = await self._load()
        return self.codec.encode(doc)

    async def create_backup(self) -> str | None:
        """Snapshot the whole blob store."""
        async with self._lock:
            name = await self._blob_call(self.blob_store.create_backup)
        logger.info("store_backup_created", backup=name)
        return name

    async def list_backups(self) -> list[str]:
        return await self._blob_call(self.blob_store.list_backups)

    async def restore_backup(self, name: str) -> Document:
        """Restore a whole-store snapshot and reload from it.

        Raises:
            StorageError: No snapshot with that name.
        """
        async with self._lock:
            restored = await self._blob_call(self.blob_store.restore_backup, name)
            if not restored:
                raise StorageError(f"Backup not found: {name}").with_context(backup_filename=name)
            self._cache = None
            doc = await self._load()
        logger.info("store_backup_restored", backup=name, version=doc.version)
        return doc

    async def clear_all(self) -> Document:
        """Delete every key and start over with an empty document."""
        async with self._lock:
            keys = await self._blob_call(self.blob_store.keys)
            for key in keys:
                await self._blob_call(self.blob_store.delete, key)
            self._cache = None
            doc = await self._write(Document(), stamp=True)
        logger.warning("store_cleared", deleted_keys=len(keys))
        return doc

    # ── Observation ───────────────────────────────────────────────────────

    def observe(self) -> AsyncIterator[Document]:
        """Latest document first, then committed updates; a slow reader skips to the newest."""
        return self._updates.stream()

    async def subscribe(self, handler: Callable[[Document], Awaitable[None]]) -> str:
        return await self._updates.subscribe(handler)

    async def unsubscribe(self, subscription_id: str) -> None:
        await self._updates.unsubscribe(subscription_id)

    # ── Unlocked internals (caller holds the lock) ────────────────────────

    async def _blob_call(self, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except DocVaultError:
            raise
        except Exception as e:
            raise StorageError(f"Blob store operation failed: {e}", cause=e) from e

    async def _read_stored(self) -> Document | None:
        data = await self._blob_call(self.blob_store.get, self.document_key)
        if data is None:
            return None
        match self.codec.decode(data):
            case Ok(doc):
                return doc
            case Err(error):
                logger.error("document_decode_failed", key=self.document_key, error=str(error))
                raise error

    async def _load(self) -> Document:
        if self._cache is not None:
            return _detach(self._cache)

        doc = await self._read_stored()
        if doc is None:
            logger.info("document_created", key=self.document_key)
            return await self._write(Document(), stamp=True)

        result = self.validator.validate(doc)
        if result.is_failure():
            logger.error("document_invalid_on_load", errors=result.error_messages())
            raise ValidationFailure.from_result(result, "Stored document is invalid")

        self._cache = doc
        logger.debug("document_loaded", version=doc.version, entities=doc.entity_count())
        await self._updates.publish(_detach(doc))
        return _detach(doc)

    async def _write(self, doc: Document, *, stamp: bool) -> Document:
        result = self.validator.validate(doc)
        if result.is_failure():
            logger.warning("document_rejected", errors=result.error_messages())
            raise ValidationFailure.from_result(result)

        # Deep copy: the caller keeps its object, the cache keeps this one.
        update = {"last_modified": self._clock()} if stamp else None
        doc = doc.model_copy(update=update, deep=True)

        data = self.codec.encode(doc)
        try:
            await self._blob_call(self.blob_store.put, self.document_key, data)
        except StorageError as e:
            logger.error("document_save_failed", error=e.message)
            raise SaveFailedError("Failed to write document", cause=e.cause or e) from e

        self._cache = doc
        logger.info(
            "document_saved",
            version=doc.version,
            entities=doc.entity_count(),
            messages=doc.total_messages(),
            bytes=len(data),
        )
        await self._updates.publish(_detach(doc))
        return _detach(doc)


def _detach(doc: Document | None) -> Document | None:
    return doc.model_copy(deep=True) if doc is not None else None


__all__ = [
    "PersistenceCore",
    "PersistenceSession",
    "DEFAULT_DOCUMENT_KEY",
]
