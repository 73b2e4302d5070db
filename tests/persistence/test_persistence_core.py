"""Tests for PersistenceCore: cache, lock, observation and import/export."""

import asyncio
import json

import pytest

from docvault.core.errors import (
    CorruptedDataError,
    InitializationError,
    SaveFailedError,
    StorageError,
    ValidationFailure,
)
from docvault.models import Document
from docvault.persistence import DocumentCodec, InMemoryBlobStore, PersistenceCore


class FailingPutStore(InMemoryBlobStore):
    """Accepts reads, rejects writes once armed."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_puts = False

    def put(self, key, data):
        if self.fail_puts:
            raise OSError("disk full")
        super().put(key, data)


def ticking_clock(start=2_000_000_000_000):
    state = {"now": start}

    def clock():
        state["now"] += 1
        return state["now"]

    return clock


class TestLoad:
    @pytest.mark.asyncio
    async def test_first_load_creates_empty_document(self, core, blob_store):
        doc = await core.load()
        assert doc.is_empty()
        assert doc.version == 1
        assert blob_store.get("app_data") is not None

    @pytest.mark.asyncio
    async def test_load_is_cached(self, core, blob_store, populated_doc):
        await core.save(populated_doc)
        first = await core.load()
        blob_store.put("app_data", b"garbage")
        assert await core.load() == first

    @pytest.mark.asyncio
    async def test_corrupted_blob(self, blob_store):
        blob_store.put("app_data", b"{broken")
        with pytest.raises(CorruptedDataError):
            await PersistenceCore(blob_store).load()

    @pytest.mark.asyncio
    async def test_invalid_stored_document(self, blob_store, make_profile):
        orphan = Document(server_profiles=[make_profile("missing")])
        blob_store.put("app_data", DocumentCodec().encode(orphan))
        with pytest.raises(ValidationFailure, match="Stored document is invalid"):
            await PersistenceCore(blob_store).load()

    @pytest.mark.asyncio
    async def test_initialize_wraps_errors(self, blob_store):
        blob_store.put("app_data", b"{broken")
        core = PersistenceCore(blob_store)
        with pytest.raises(InitializationError) as exc:
            await core.initialize()
        assert isinstance(exc.value.cause, CorruptedDataError)
        assert core.initialized is False


class TestSave:
    @pytest.mark.asyncio
    async def test_save_stamps_last_modified(self, blob_store, populated_doc):
        core = PersistenceCore(blob_store, clock=lambda: 1_800_000_000_000)
        saved = await core.save(populated_doc)
        assert saved.last_modified == 1_800_000_000_000
        assert core.cached == saved

        stored = json.loads(blob_store.get("app_data"))
        assert stored["lastModified"] == 1_800_000_000_000

    @pytest.mark.asyncio
    async def test_invalid_document_rejected(self, core, make_profile):
        before = await core.load()
        with pytest.raises(ValidationFailure) as exc:
            await core.save(Document(server_profiles=[make_profile("missing")]))
        assert exc.value.errors[0].field == "sshIdentityId"
        assert core.cached == before

    @pytest.mark.asyncio
    async def test_failed_write_leaves_cache(self, populated_doc):
        store = FailingPutStore()
        core = PersistenceCore(store)
        before = await core.load()
        store.fail_puts = True

        with pytest.raises(SaveFailedError) as exc:
            await core.save(populated_doc)

        assert isinstance(exc.value.cause, OSError)
        assert core.cached == before
        assert (await core.load()).is_empty()

    @pytest.mark.asyncio
    async def test_concurrent_read_modify_write_is_serialized(self, core, make_identity):
        await core.load()

        async def add_one(n):
            async with core.locked() as session:
                doc = await session.load()
                await asyncio.sleep(0)
                identity = make_identity(name=f"Key {n}")
                await session.save(doc.model_copy(update={"identities": [*doc.identities, identity]}))

        await asyncio.gather(*(add_one(n) for n in range(10)))
        assert len((await core.load()).identities) == 10

    @pytest.mark.asyncio
    async def test_replace_keeps_timestamp(self, blob_store, populated_doc):
        core = PersistenceCore(blob_store, clock=ticking_clock())
        async with core.locked() as session:
            restored = await session.replace(populated_doc)
        assert restored.last_modified == populated_doc.last_modified


class TestCacheIsolation:
    @pytest.mark.asyncio
    async def test_editing_loaded_document_in_place_does_not_touch_cache(
        self, core, populated_doc, make_profile
    ):
        await core.save(populated_doc)
        doc = await core.load()
        doc.server_profiles.append(make_profile("x", name="Broken"))

        with pytest.raises(ValidationFailure):
            await core.save(doc)

        reloaded = await core.load()
        assert [p.name for p in reloaded.server_profiles] == ["Dev Box"]
        assert core.validator.validate(reloaded).is_success()

    @pytest.mark.asyncio
    async def test_caller_keeps_its_objects_after_save(self, core, populated_doc):
        saved = await core.save(populated_doc)
        populated_doc.identities.clear()
        saved.projects.clear()

        reloaded = await core.load()
        assert len(reloaded.identities) == 1
        assert len(reloaded.projects) == 1

    @pytest.mark.asyncio
    async def test_observed_documents_are_copies(self, core, populated_doc):
        await core.save(populated_doc)
        stream = core.observe()
        observed = await anext(stream)
        observed.messages.clear()
        await stream.aclose()

        assert (await core.load()).total_messages() == 2

    @pytest.mark.asyncio
    async def test_cached_property_is_a_copy(self, core, populated_doc):
        await core.save(populated_doc)
        core.cached.identities.clear()
        assert len(core.cached.identities) == 1


class TestObserve:
    @pytest.mark.asyncio
    async def test_replays_latest_then_updates(self, core, populated_doc):
        await core.load()
        stream = core.observe()

        first = await anext(stream)
        assert first.is_empty()

        await core.save(populated_doc)
        second = await anext(stream)
        assert second.entity_count() == 3
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_subscribers_see_commits_in_order(self, blob_store, make_identity):
        core = PersistenceCore(blob_store)
        seen = []

        async def on_doc(doc):
            seen.append(len(doc.identities))

        await core.subscribe(on_doc)
        doc = await core.load()
        for _ in range(3):
            doc = await core.save(doc.model_copy(update={"identities": [*doc.identities, make_identity()]}))

        assert seen == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_rejected_save_is_not_published(self, core, make_profile):
        seen = []

        async def on_doc(doc):
            seen.append(doc)

        await core.load()
        await core.subscribe(on_doc)
        with pytest.raises(ValidationFailure):
            await core.save(Document(server_profiles=[make_profile("missing")]))
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_teardown_ends_streams(self, core):
        await core.load()
        stream = core.observe()
        await anext(stream)
        await core.teardown()
        with pytest.raises(StopAsyncIteration):
            await anext(stream)


class TestImportExport:
    @pytest.mark.asyncio
    async def test_export_then_import_into_fresh_store(self, core, populated_doc):
        await core.save(populated_doc)
        exported = await core.export_data()

        other = PersistenceCore(InMemoryBlobStore())
        imported = await other.import_data(exported)

        assert imported.identities == populated_doc.identities
        assert imported.messages == populated_doc.messages

    @pytest.mark.asyncio
    async def test_import_garbage(self, core):
        with pytest.raises(CorruptedDataError):
            await core.import_data(b"not json at all")

    @pytest.mark.asyncio
    async def test_import_invalid_document_keeps_current(self, core, populated_doc, make_profile):
        current = await core.save(populated_doc)
        bad = DocumentCodec().encode(Document(server_profiles=[make_profile("missing")]))
        with pytest.raises(ValidationFailure):
            await core.import_data(bad)
        assert await core.load() == current


class TestBackups:
    @pytest.mark.asyncio
    async def test_restore_whole_store_backup(self, core, populated_doc):
        await core.save(populated_doc)
        name = await core.create_backup()
        await core.save(Document())

        restored = await core.restore_backup(name)

        assert restored.entity_count() == 3
        assert await core.list_backups() == [name]

    @pytest.mark.asyncio
    async def test_restore_unknown_backup(self, core):
        await core.load()
        with pytest.raises(StorageError, match="Backup not found"):
            await core.restore_backup("backup_0")

    @pytest.mark.asyncio
    async def test_clear_all(self, core, populated_doc):
        await core.save(populated_doc)
        doc = await core.clear_all()
        assert doc.is_empty()
        assert (await core.load()).is_empty()
