"""
Replay-latest broadcaster.

A single-value channel: every published value replaces the previous one and
is delivered to all current subscribers, and every new subscriber first
receives the most recent value (if any). The persistence core publishes each
committed document through one; the migration coordinator publishes its
progress through another.

Two ways to listen:

- ``await subscribe(handler)`` registers an async callback and returns a
  subscription id; handler errors are logged and never reach the publisher.
- ``async for value in stream()`` yields values until the broadcaster is
  closed or the consumer stops iterating. Each stream buffers at most
  ``buffer_size`` undelivered values and drops the oldest past that, so a
  stalled consumer holds a bounded amount of memory. The default of 1 keeps
  only the latest value, which suits full-state snapshots. A closed stream
  still delivers what it buffered before ending.

Manifesto:
    Observers should never see a half-applied state and should never have to
    issue a separate ``load()`` to learn the current value. Publishing under
    the broadcaster lock gives both properties.

Examples:
    >>> hub: Broadcaster[int] = Broadcaster(name="counter")
    >>> await hub.publish(1)
    >>> seen = []
    >>> async def on_value(v): seen.append(v)
    >>> await hub.subscribe(on_value)   # replays 1 immediately
    >>> await hub.publish(2)
    >>> seen
    [1, 2]

Tags:
    observer, broadcast, asyncio, replay-latest, docvault

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from docvault.core.logging import get_logger

T = TypeVar("T")

Handler = Callable[[T], Awaitable[None]]

logger = get_logger(__name__)

_CLOSED = object()


@dataclass
class Subscription(Generic[T]):
    """Internal subscription record."""

    id: str
    handler: Callable[[T], Awaitable[None]]


class _StreamBuffer:
    """Pending values for one stream, oldest dropped past ``maxlen``."""

    def __init__(self, maxlen: int) -> None:
        self.items: deque[Any] = deque(maxlen=maxlen)
        self.closed = False
        self.ready = asyncio.Event()

    def push(self, value: Any) -> None:
        self.items.append(value)
        self.ready.set()

    def close(self) -> None:
        self.closed = True
        self.ready.set()

    async def next(self) -> Any:
        while not self.items:
            if self.closed:
                return _CLOSED
            self.ready.clear()
            await self.ready.wait()
        return self.items.popleft()


class Broadcaster(Generic[T]):
    """In-process, replay-latest value broadcaster."""

    def __init__(self, name: str = "broadcast", *, buffer_size: int = 1) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self.name = name
        self.buffer_size = buffer_size
        self._subscriptions: dict[str, Subscription[T]] = {}
        self._streams: dict[str, _StreamBuffer] = {}
        self._lock = asyncio.Lock()
        self._latest: T | None = None
        self._has_latest = False
        self._closed = False

    @property
    def latest(self) -> T | None:
        """Most recently published value, or None."""
        return self._latest

    @property
    def subscription_count(self) -> int:
        """Number of active handlers and streams."""
        return len(self._subscriptions) + len(self._streams)

    @property
    def closed(self) -> bool:
        return self._closed

    async def publish(self, value: T) -> None:
        """Replace the latest value and deliver it to every subscriber."""
        if self._closed:
            return

        async with self._lock:
            self._latest = value
            self._has_latest = True
            for buffer in self._streams.values():
                buffer.push(value)
            handlers = list(self._subscriptions.values())

        if handlers:
            await asyncio.gather(*[self._safe_call(sub, value) for sub in handlers])

    async def subscribe(self, handler: Callable[[T], Awaitable[None]]) -> str:
        """Register ``handler``; it immediately receives the latest value."""
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        subscription = Subscription(id=sub_id, handler=handler)

        async with self._lock:
            self._subscriptions[sub_id] = subscription
            replay = self._has_latest
            latest = self._latest

        if replay:
            await self._safe_call(subscription, latest)
        return sub_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription."""
        async with self._lock:
            self._subscriptions.pop(subscription_id, None)

    async def stream(self) -> AsyncIterator[T]:
        """Yield the latest value, then each new one, until closed."""
        buffer = _StreamBuffer(self.buffer_size)
        stream_id = f"stream_{uuid.uuid4().hex[:12]}"

        async with self._lock:
            if self._closed:
                return
            if self._has_latest:
                buffer.push(self._latest)
            self._streams[stream_id] = buffer

        try:
            while True:
                item = await buffer.next()
                if item is _CLOSED:
                    return
                yield item
        finally:
            self._streams.pop(stream_id, None)

    async def close(self) -> None:
        """End every stream and drop all subscriptions."""
        self._closed = True
        async with self._lock:
            for buffer in self._streams.values():
                buffer.close()
            self._subscriptions.clear()

    async def _safe_call(self, subscription: Subscription[T], value: Any) -> None:
        try:
            await subscription.handler(value)
        except Exception as e:
            logger.warning(
                "broadcast_handler_error",
                broadcaster=self.name,
                subscription_id=subscription.id,
                error=str(e),
            )


__all__ = [
    "Broadcaster",
    "Handler",
]
