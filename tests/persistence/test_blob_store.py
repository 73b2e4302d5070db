"""Tests for the bundled blob stores."""

import pytest

from docvault.core.errors import StorageError
from docvault.persistence import BlobStore, FileBlobStore, InMemoryBlobStore


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryBlobStore()
    return FileBlobStore(tmp_path / "blobs")


class TestBlobStoreContract:
    def test_satisfies_protocol(self, any_store):
        assert isinstance(any_store, BlobStore)

    def test_get_missing_returns_none(self, any_store):
        assert any_store.get("app_data") is None

    def test_put_get_delete(self, any_store):
        any_store.put("app_data", b"{}")
        assert any_store.get("app_data") == b"{}"
        assert any_store.keys() == ["app_data"]

        any_store.delete("app_data")
        assert any_store.get("app_data") is None
        any_store.delete("app_data")

    def test_invalid_keys_rejected(self, any_store):
        with pytest.raises(StorageError, match="Invalid blob key"):
            any_store.put("../escape", b"x")
        with pytest.raises(StorageError):
            any_store.put(".hidden", b"x")

    @pytest.mark.parametrize("call", ["get", "delete", "restore_backup"])
    def test_invalid_keys_rejected_on_every_call(self, any_store, call):
        with pytest.raises(StorageError, match="Invalid blob key"):
            getattr(any_store, call)("../escape")

    def test_backup_of_empty_store(self, any_store):
        assert any_store.create_backup() is None
        assert any_store.list_backups() == []

    def test_backup_and_restore(self, any_store):
        any_store.put("app_data", b"v1")
        name = any_store.create_backup()
        assert name is not None
        assert any_store.list_backups() == [name]

        any_store.put("app_data", b"v2")
        any_store.put("extra", b"x")
        assert any_store.restore_backup(name) is True

        assert any_store.get("app_data") == b"v1"
        assert any_store.get("extra") is None

    def test_restore_unknown_backup(self, any_store):
        assert any_store.restore_backup("backup_0") is False


class TestFileBlobStore:
    def test_writes_one_file_per_key(self, tmp_path):
        store = FileBlobStore(tmp_path)
        store.put("app_data", b"payload")
        assert (tmp_path / "app_data").read_bytes() == b"payload"

    def test_no_temp_files_left_behind(self, tmp_path):
        store = FileBlobStore(tmp_path)
        store.put("app_data", b"a")
        store.put("app_data", b"b")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["app_data"]

    def test_backups_live_in_subdirectory(self, tmp_path):
        store = FileBlobStore(tmp_path)
        store.put("app_data", b"a")
        name = store.create_backup()
        assert (tmp_path / "backups" / name / "app_data").read_bytes() == b"a"
        assert store.keys() == ["app_data"]

    def test_missing_directory_has_no_keys(self, tmp_path):
        assert FileBlobStore(tmp_path / "nope").keys() == []
