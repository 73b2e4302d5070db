"""
Message repository: bounded, timestamp-ordered threads per project.

Each project owns one thread under ``doc.messages[project_id]``; the
``"system"`` key holds messages that belong to no project. A thread keeps at
most 1000 messages. Appending to a full thread evicts the oldest message in
the same write, unless the new message is itself the oldest: that append is
refused rather than dropped. Across all threads the document holds at most
10000 messages; an append that would exceed that is refused.

Examples:
    >>> await messages.append(project.id, Message(content="ls -la"))
    >>> [m.content for m in await messages.list(project.id, limit=1)]
    ['ls -la']

Tags:
    repository, messages, eviction, docvault
"""

from __future__ import annotations

import bisect
from collections.abc import AsyncIterator

from docvault.core.errors import ConstraintViolationError
from docvault.core.logging import get_logger
from docvault.models.document import (
    MAX_MESSAGES_PER_PROJECT,
    MAX_TOTAL_MESSAGES,
    SYSTEM_MESSAGES_KEY,
    Document,
)
from docvault.models.entities import Message
from docvault.repositories.base import DocumentRepository

logger = get_logger(__name__)


class MessageRepository(DocumentRepository):
    entity_type = "Message"

    def __init__(self, core, *, per_project_limit: int = MAX_MESSAGES_PER_PROJECT) -> None:
        super().__init__(core)
        self.per_project_limit = per_project_limit

    async def list(self, project_id: str, limit: int = 100) -> list[Message]:
        """The newest ``limit`` messages, oldest first."""
        thread = (await self.snapshot()).messages_for(project_id)
        return sorted(thread[-limit:] if limit > 0 else [], key=lambda m: m.timestamp)

    async def append(self, project_id: str, message: Message) -> Message:
        """
        Insert ``message`` in timestamp order, evicting the oldest past the cap.

        Raises:
            ValidationFailure: The message breaks a field rule.
            EntityNotFoundError: ``project_id`` names no project.
            DuplicateNameError: The thread already holds this message id.
            ConstraintViolationError: The document-wide message ceiling is reached,
                or the thread is full and ``message`` is older than all of it.
        """
        self.require_valid(self.validator.messages.validate(message), "add")
        evicted: list[Message] = []

        def change(doc: Document) -> Document:
            if project_id != SYSTEM_MESSAGES_KEY and doc.find_project(project_id) is None:
                raise self.not_found(project_id, "Project")
            previous = doc.messages_for(project_id)
            self.require_new_id(message.id, (m.id for m in previous))

            thread = list(previous)
            bisect.insort(thread, message, key=lambda m: m.timestamp)
            overflow = len(thread) - self.per_project_limit
            if overflow > 0:
                dropped = thread[:overflow]
                if any(m.id == message.id for m in dropped):
                    raise ConstraintViolationError(
                        "Thread is full and message is older than all "
                        f"{self.per_project_limit} stored messages"
                    ).with_context(entity_type=self.entity_type, entity_id=message.id)
                evicted.extend(dropped)
                thread = thread[overflow:]

            total = doc.total_messages() - len(previous) + len(thread)
            if total > MAX_TOTAL_MESSAGES:
                raise ConstraintViolationError(
                    f"Cannot store more than {MAX_TOTAL_MESSAGES} messages in total"
                ).with_context(entity_type=self.entity_type, entity_id=message.id)

            return doc.model_copy(update={"messages": {**doc.messages, project_id: thread}})

        await self.mutate(change)
        if evicted:
            logger.debug("messages_evicted", project_id=project_id, count=len(evicted))
        return message

    async def clear(self, project_id: str) -> int:
        """Drop a thread; returns how many messages it held."""
        removed: list[int] = []

        def change(doc: Document) -> Document:
            removed.append(len(doc.messages_for(project_id)))
            messages = {k: v for k, v in doc.messages.items() if k != project_id}
            return doc.model_copy(update={"messages": messages})

        await self.mutate(change)
        logger.info("messages_cleared", project_id=project_id, count=removed[0])
        return removed[0]

    async def count(self, project_id: str) -> int:
        return len((await self.snapshot()).messages_for(project_id))

    async def total_count(self) -> int:
        return (await self.snapshot()).total_messages()

    async def recent(self, limit: int = 50) -> list[tuple[str, Message]]:
        """Newest first, across every thread."""
        doc = await self.snapshot()
        pairs = [(key, m) for key, thread in doc.messages.items() for m in thread]
        pairs.sort(key=lambda pair: pair[1].timestamp, reverse=True)
        return pairs[:limit]

    async def search(self, query: str, project_id: str | None = None) -> list[tuple[str, Message]]:
        """Case-insensitive match on content or metadata values, newest first."""
        needle = query.strip().lower()
        if not needle:
            return []
        doc = await self.snapshot()
        threads = {project_id: doc.messages_for(project_id)} if project_id else doc.messages
        results = [
            (key, m)
            for key, thread in threads.items()
            for m in thread
            if m.matches(needle) or any(needle in v.lower() for v in m.metadata.values())
        ]
        results.sort(key=lambda pair: pair[1].timestamp, reverse=True)
        return results

    def observe(self, project_id: str) -> AsyncIterator[list[Message]]:
        return self.observe_selection(lambda doc: list(doc.messages_for(project_id)))


__all__ = ["MessageRepository"]
