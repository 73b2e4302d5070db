"""Retry strategies and an async retry loop.

Used by the ``with_retry`` validation combinator. A retry is triggered either
by an exception or, when ``retry_on_result`` is given, by a returned value
the predicate rejects (a validation Failure).

Example:
    >>> from docvault.core.retry import ConstantBackoff, RetryContext
    >>> ctx = RetryContext(ConstantBackoff(max_retries=2, delay=0.1))
    >>> result = await ctx.run_async(check_remote)  # up to 3 attempts
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from docvault.core.timestamps import utc_now


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Delay in seconds before the attempt following ``attempt``."""
        ...

    @abstractmethod
    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Whether another attempt is allowed after ``attempt`` attempts."""
        ...


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between retries.

    ``max_retries`` counts retries after the first attempt, so the operation
    runs at most ``max_retries + 1`` times.
    """

    max_retries: int = 3
    delay: float = 1.0

    def next_delay(self, attempt: int) -> float:
        return self.delay

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        return attempt <= self.max_retries


@dataclass
class RetryContext:
    """Context tracking retry state.

    Example:
        >>> ctx = RetryContext(ConstantBackoff(max_retries=3, delay=0.05))
        >>> result = await ctx.run_async(rule, value)
    """

    strategy: RetryStrategy
    on_retry: Callable[[int, Exception | None, float], None] | None = None
    retry_on_result: Callable[[Any], bool] | None = None

    attempt: int = field(default=0, init=False)
    last_error: Exception | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utc_now, init=False)
    errors: list[tuple[int, Exception, datetime]] = field(default_factory=list, init=False)

    @property
    def attempts(self) -> int:
        """Number of attempts made."""
        return self.attempt

    async def run_async(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Execute an async function with retry logic.

        Returns the first accepted result. If the last attempt returns a
        rejected result, that result is returned as-is.

        Raises:
            The last exception if every attempt raised.
        """
        while True:
            self.attempt += 1
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempt, e, utc_now()))

                if not self.strategy.should_retry(self.attempt, e):
                    raise
            else:
                if self.retry_on_result is None or not self.retry_on_result(result):
                    return result
                if not self.strategy.should_retry(self.attempt):
                    return result

            delay = self.strategy.next_delay(self.attempt)

            if self.on_retry:
                self.on_retry(self.attempt, self.last_error, delay)

            await asyncio.sleep(delay)


__all__ = [
    "RetryStrategy",
    "ConstantBackoff",
    "RetryContext",
]
