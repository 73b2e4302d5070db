"""Tests for MessageRepository: ordering, eviction and lookups."""

import pytest
import pytest_asyncio

from docvault.core.errors import (
    ConstraintViolationError,
    DuplicateNameError,
    EntityNotFoundError,
    ValidationFailure,
)
from docvault.models import Message
from docvault.repositories import MessageRepository

from conftest import BASE_TS


@pytest_asyncio.fixture
async def project_id(core, populated_doc):
    await core.save(populated_doc)
    return populated_doc.projects[0].id


@pytest.fixture
def messages(core):
    return MessageRepository(core)


class TestAppend:
    @pytest.mark.asyncio
    async def test_append_keeps_timestamp_order(self, messages, project_id):
        await messages.append(project_id, Message(content="late", timestamp=BASE_TS + 100))
        await messages.append(project_id, Message(content="early", timestamp=BASE_TS - 100))

        contents = [m.content for m in await messages.list(project_id)]
        assert contents == ["early", "message 1", "message 2", "late"]

    @pytest.mark.asyncio
    async def test_evicts_oldest_past_the_cap(self, core, project_id):
        small = MessageRepository(core, per_project_limit=3)
        for n in range(3, 6):
            await small.append(project_id, Message(content=f"m{n}", timestamp=BASE_TS + n))

        contents = [m.content for m in await small.list(project_id)]
        assert contents == ["m3", "m4", "m5"]

    @pytest.mark.asyncio
    async def test_full_thread_refuses_message_older_than_all(self, core, project_id):
        small = MessageRepository(core, per_project_limit=2)
        with pytest.raises(ConstraintViolationError, match="Thread is full"):
            await small.append(project_id, Message(content="arrived late", timestamp=BASE_TS - 5))

        contents = [m.content for m in await small.list(project_id)]
        assert contents == ["message 1", "message 2"]

    @pytest.mark.asyncio
    async def test_thousand_and_first_message(self, core, populated_doc, messages):
        project = populated_doc.projects[0]
        thread = [Message(content=f"m{n}", timestamp=BASE_TS + n) for n in range(1000)]
        await core.save(populated_doc.model_copy(update={"messages": {project.id: thread}}))

        newest = Message(content="newest", timestamp=BASE_TS + 5000)
        await messages.append(project.id, newest)

        stored = (await core.load()).messages_for(project.id)
        assert len(stored) == 1000
        assert stored[-1] == newest
        assert stored[0].content == "m1"
        assert await messages.count(project.id) == 1000

    @pytest.mark.asyncio
    async def test_unknown_project(self, messages, project_id):
        with pytest.raises(EntityNotFoundError, match="Project 'ghost' not found"):
            await messages.append("ghost", Message(content="hello"))

    @pytest.mark.asyncio
    async def test_system_thread_needs_no_project(self, messages, project_id):
        await messages.append("system", Message(content="store opened", timestamp=BASE_TS))
        assert await messages.count("system") == 1

    @pytest.mark.asyncio
    async def test_duplicate_id(self, messages, project_id):
        message = await messages.append(project_id, Message(content="once", timestamp=BASE_TS + 10))
        with pytest.raises(DuplicateNameError):
            await messages.append(project_id, message)

    @pytest.mark.asyncio
    async def test_blank_content(self, messages, project_id):
        with pytest.raises(ValidationFailure, match="Message content cannot be blank"):
            await messages.append(project_id, Message(content=" "))


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_limit_returns_newest(self, messages, project_id):
        assert [m.content for m in await messages.list(project_id, limit=1)] == ["message 2"]
        assert await messages.list(project_id, limit=0) == []

    @pytest.mark.asyncio
    async def test_counts(self, messages, project_id):
        await messages.append("system", Message(content="hi", timestamp=BASE_TS))
        assert await messages.count(project_id) == 2
        assert await messages.total_count() == 3
        assert await messages.count("nothing-here") == 0

    @pytest.mark.asyncio
    async def test_recent_across_threads(self, messages, project_id):
        await messages.append("system", Message(content="newest", timestamp=BASE_TS + 999))
        recent = await messages.recent(limit=2)
        assert [(key, m.content) for key, m in recent] == [
            ("system", "newest"),
            (project_id, "message 2"),
        ]

    @pytest.mark.asyncio
    async def test_search_content_and_metadata(self, messages, project_id):
        await messages.append(
            project_id,
            Message(content="ran the build", timestamp=BASE_TS + 10, metadata={"tool": "Makefile"}),
        )
        assert [m.content for _, m in await messages.search("makefile")] == ["ran the build"]
        assert [m.content for _, m in await messages.search("MESSAGE", project_id)] == [
            "message 2",
            "message 1",
        ]
        assert await messages.search("") == []

    @pytest.mark.asyncio
    async def test_clear(self, messages, project_id):
        assert await messages.clear(project_id) == 2
        assert await messages.count(project_id) == 0

    @pytest.mark.asyncio
    async def test_observe_thread(self, messages, project_id):
        stream = messages.observe(project_id)
        assert len(await anext(stream)) == 2
        await messages.append(project_id, Message(content="next", timestamp=BASE_TS + 10))
        assert len(await anext(stream)) == 3
        await stream.aclose()
