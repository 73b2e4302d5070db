"""
Blob store protocol and the two bundled implementations.

The persistence core treats the blob store as an opaque, durable key -> bytes
map. Encryption and device-key handling belong to whoever implements the
protocol; docvault only ever hands it already-serialized bytes.

The protocol is SYNCHRONOUS. :class:`~docvault.persistence.core.PersistenceCore`
runs every call through ``asyncio.to_thread`` so a slow disk never blocks the
event loop.

Architecture:
    ::

        BlobStore (Protocol, sync)
        ┌───────────────────────────────────────────────────────────┐
        │ get(key) → bytes | None       put(key, data)   delete(key)│
        │ keys() → list[str]                                        │
        │ create_backup() → name | None   (snapshot of every key)   │
        │ restore_backup(name) → bool     list_backups() → [name]   │
        └───────────────────────────────────────────────────────────┘
                 │                                  │
        ┌────────▼─────────┐            ┌───────────▼──────────────┐
        │ InMemoryBlobStore│            │ FileBlobStore(data_dir)  │
        │ dict, tests      │            │ one file per key,        │
        │                  │            │ atomic replace, backups/ │
        └──────────────────┘            └──────────────────────────┘

Guardrails:
    ❌ DON'T: Catch OSError inside an implementation and return None
    ✅ DO: Let it propagate; the core wraps it as SaveFailedError / StorageError

Tags:
    storage, protocol, blob-store, files, docvault

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import os
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import Protocol, runtime_checkable

from docvault.core.errors import StorageError
from docvault.core.logging import get_logger

logger = get_logger(__name__)

BACKUPS_DIRNAME = "backups"
_KEY_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


def validate_key(key: str) -> str:
    """Keys are flat file names: no separators, no leading dot."""
    if not _KEY_RE.fullmatch(key):
        raise StorageError(f"Invalid blob key: {key!r}")
    return key


def _backup_name() -> str:
    return f"backup_{time.time_ns() // 1_000_000}"


@runtime_checkable
class BlobStore(Protocol):
    """Durable key -> bytes store. SYNC."""

    def get(self, key: str) -> bytes | None:
        ...

    def put(self, key: str, data: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        ...

    def create_backup(self) -> str | None:
        """Snapshot every key; return the backup name, or None if empty."""
        ...

    def restore_backup(self, name: str) -> bool:
        """Replace every key with the snapshot; False if it does not exist."""
        ...

    def list_backups(self) -> list[str]:
        """Backup names, newest first."""
        ...


class InMemoryBlobStore:
    """Dict-backed store for tests and ephemeral use."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})
        self._backups: dict[str, dict[str, bytes]] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(validate_key(key))

    def put(self, key: str, data: bytes) -> None:
        self._data[validate_key(key)] = bytes(data)

    def delete(self, key: str) -> None:
        self._data.pop(validate_key(key), None)

    def keys(self) -> list[str]:
        return sorted(self._data)

    def create_backup(self) -> str | None:
        if not self._data:
            return None
        name = _backup_name()
        while name in self._backups:
            name = f"{name}_1"
        self._backups[name] = dict(self._data)
        return name

    def restore_backup(self, name: str) -> bool:
        snapshot = self._backups.get(validate_key(name))
        if snapshot is None:
            return False
        self._data = dict(snapshot)
        return True

    def list_backups(self) -> list[str]:
        return sorted(self._backups, reverse=True)


class FileBlobStore:
    """
    One file per key under ``data_dir``.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace`` so a crash never leaves a half-written blob.
    Backups are copies of every key under ``data_dir/backups/<name>/``.

    Examples:
        >>> store = FileBlobStore(tmp_path)
        >>> store.put("app_data", b"{}")
        >>> store.get("app_data")
        b'{}'
    """

    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir).expanduser()
        self.backups_dir = self.data_dir / BACKUPS_DIRNAME

    def _path(self, key: str) -> Path:
        return self.data_dir / validate_key(key)

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        if not self.data_dir.is_dir():
            return []
        return sorted(
            p.name for p in self.data_dir.iterdir()
            if p.is_file() and not p.name.startswith(".")
        )

    def create_backup(self) -> str | None:
        keys = self.keys()
        if not keys:
            return None
        name = _backup_name()
        target = self.backups_dir / name
        while target.exists():
            name = f"{name}_1"
            target = self.backups_dir / name
        target.mkdir(parents=True)
        for key in keys:
            shutil.copy2(self.data_dir / key, target / key)
        logger.debug("blob_backup_created", backup=name, keys=len(keys))
        return name

    def restore_backup(self, name: str) -> bool:
        source = self.backups_dir / validate_key(name)
        if not source.is_dir():
            return False
        for key in self.keys():
            self.delete(key)
        for item in source.iterdir():
            if item.is_file():
                self.put(item.name, item.read_bytes())
        logger.debug("blob_backup_restored", backup=name)
        return True

    def list_backups(self) -> list[str]:
        if not self.backups_dir.is_dir():
            return []
        return sorted((p.name for p in self.backups_dir.iterdir() if p.is_dir()), reverse=True)


__all__ = [
    "BlobStore",
    "InMemoryBlobStore",
    "FileBlobStore",
    "validate_key",
]
