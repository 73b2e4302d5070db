"""
Asynchronous validation combinators.

Some checks need a lookup (is this name already taken? does this host
answer?) and so are coroutines. An async rule is any callable
``T -> Awaitable[ValidationResult]``; the wrappers below compose them and
never raise. A rule that raises is reported as an ``internal`` error.

Architecture:
    ::

        parallel(r1, r2, r3)        gather, union of every error
        sequential(r1, r2, r3)      stop at the first Failure
        with_timeout(r, seconds)    VALIDATION_TIMEOUT instead of hanging
        with_retry(r, n, delay)     up to n+1 attempts, fixed delay
        memoize(r, key, ttl)        cache results per caller-supplied key
        with_fallback(r, backup)    run backup when r fails or raises
        to_async(sync_rule)         lift a sync rule

        AsyncWorkflow()             builder: steps, conditional steps,
          .fail_fast(bool)          parallel groups; fail-fast or
          .add_step(r) ...          collect-all
          .build() → AsyncRule

Examples:
    >>> async def name_is_free(name: str) -> ValidationResult:
    ...     taken = await lookup(name)
    ...     return from_condition(not taken, "name already taken", "name")
    >>> check = with_timeout(memoize(name_is_free, key=str.lower, ttl_seconds=30), 2.0)
    >>> (await check("Dev")).is_success()
    True

Guardrails:
    ❌ DON'T: Use ``parallel`` when a later rule assumes an earlier one passed
    ✅ DO: Use ``sequential`` (or a fail-fast workflow) for dependent checks

    ❌ DON'T: Memoize a rule whose answer depends on state outside its key
    ✅ DO: Put everything the answer depends on into the cache key

Tags:
    validation, asyncio, timeout, retry, memoize, docvault

Doc-Types:
    - API Reference
    - Validation Guide
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Callable, Generic, TypeVar

from docvault.core.cache import InMemoryCache
from docvault.core.logging import get_logger
from docvault.core.retry import ConstantBackoff, RetryContext
from docvault.core.settings import get_settings
from docvault.validation.result import (
    SUCCESS,
    ValidationErrorType,
    ValidationResult,
    combine,
    failure,
)
from docvault.validation.rules import Rule

T = TypeVar("T")

AsyncRule = Callable[[T], Awaitable[ValidationResult]]

VALIDATION_TIMEOUT = "VALIDATION_TIMEOUT"
VALIDATION_RETRY_EXHAUSTED = "VALIDATION_RETRY_EXHAUSTED"

logger = get_logger(__name__)


def _internal(message: str, code: str | None = None) -> ValidationResult:
    return failure(message, type=ValidationErrorType.INTERNAL, code=code)


async def _guarded(rule: AsyncRule[T], value: T, prefix: str) -> ValidationResult:
    try:
        return await rule(value)
    except Exception as e:
        return _internal(f"{prefix}: {e}")


# =============================================================================
# COMBINATORS
# =============================================================================


def parallel(*rules: AsyncRule[T]) -> AsyncRule[T]:
    """Run every rule concurrently and union their errors."""

    async def check(value: T) -> ValidationResult:
        results = await asyncio.gather(
            *[_guarded(r, value, "Async validation failed") for r in rules]
        )
        return combine(results)

    return check


def sequential(*rules: AsyncRule[T]) -> AsyncRule[T]:
    """Run rules in order, stopping at the first failure."""

    async def check(value: T) -> ValidationResult:
        for r in rules:
            result = await _guarded(r, value, "Async validation failed")
            if result.is_failure():
                return result
        return SUCCESS

    return check


def with_timeout(rule: AsyncRule[T], seconds: float | None = None) -> AsyncRule[T]:
    """Fail with ``VALIDATION_TIMEOUT`` when ``rule`` exceeds its deadline.

    The deadline defaults to ``validation_timeout_seconds`` from settings.
    The rule is cancelled on timeout.
    """

    async def check(value: T) -> ValidationResult:
        deadline = seconds if seconds is not None else get_settings().validation_timeout_seconds
        try:
            return await asyncio.wait_for(rule(value), timeout=deadline)
        except TimeoutError:
            logger.warning("validation_timeout", timeout_seconds=deadline)
            return _internal(
                f"Validation timed out after {int(deadline * 1000)}ms",
                code=VALIDATION_TIMEOUT,
            )
        except Exception as e:
            return _internal(f"Async validation failed: {e}")

    return check


def with_retry(
    rule: AsyncRule[T],
    max_retries: int = 3,
    delay_seconds: float = 0.1,
) -> AsyncRule[T]:
    """Retry on failure or exception, up to ``max_retries + 1`` attempts.

    The last Failure is returned unchanged. If every attempt raised, the
    result carries ``VALIDATION_RETRY_EXHAUSTED``.
    """

    async def check(value: T) -> ValidationResult:
        ctx = RetryContext(
            ConstantBackoff(max_retries=max_retries, delay=delay_seconds),
            retry_on_result=lambda result: result.is_failure(),
        )
        try:
            return await ctx.run_async(rule, value)
        except Exception as e:
            logger.warning("validation_retry_exhausted", attempts=ctx.attempts, error=str(e))
            return _internal(
                f"Async validation failed after {max_retries} retries: {e}",
                code=VALIDATION_RETRY_EXHAUSTED,
            )

    return check


def memoize(
    rule: AsyncRule[T],
    key: Callable[[T], str],
    ttl_seconds: float | None = None,
    cache: InMemoryCache | None = None,
) -> AsyncRule[T]:
    """Cache results per ``key(value)`` for ``ttl_seconds``.

    Exceptions are converted to an internal Failure and not cached. A TTL of
    zero disables caching.
    """
    ttl = ttl_seconds if ttl_seconds is not None else get_settings().memo_ttl_seconds
    store = cache or InMemoryCache(max_size=1_000, default_ttl_seconds=ttl)

    async def check(value: T) -> ValidationResult:
        cache_key = key(value)
        cached = store.get(cache_key)
        if cached is not None:
            return cached
        try:
            result = await rule(value)
        except Exception as e:
            return _internal(f"Cached async validation failed: {e}")
        if ttl > 0:
            store.set(cache_key, result, ttl_seconds=ttl)
        return result

    check.cache = store  # type: ignore[attr-defined]
    return check


def with_fallback(primary: AsyncRule[T], fallback: AsyncRule[T]) -> AsyncRule[T]:
    """Use ``fallback`` when ``primary`` fails or raises."""

    async def check(value: T) -> ValidationResult:
        try:
            result = await primary(value)
            if result.is_success():
                return result
        except Exception as primary_error:
            try:
                return await fallback(value)
            except Exception as fallback_error:
                return _internal(
                    "Both primary and fallback validations failed: "
                    f"{primary_error}, {fallback_error}"
                )
        return await _guarded(fallback, value, "Fallback validation failed")

    return check


def to_async(rule: Rule[T]) -> AsyncRule[T]:
    """Lift a synchronous rule."""

    async def check(value: T) -> ValidationResult:
        return rule(value)

    return check


# =============================================================================
# WORKFLOW
# =============================================================================


class AsyncWorkflow(Generic[T]):
    """
    Builder for multi-step async validation.

    In fail-fast mode (default) the first failing step ends the run. In
    collect-all mode every step runs and the errors are unioned. A parallel
    group counts as one step whose members run concurrently.

    Examples:
        >>> workflow = (
        ...     AsyncWorkflow()
        ...     .add_step(to_async(entity_name("name")))
        ...     .add_conditional_step(lambda v: v != "", name_is_free)
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        self._steps: list[AsyncRule[T]] = []
        self._fail_fast = True

    def fail_fast(self, enabled: bool = True) -> AsyncWorkflow[T]:
        self._fail_fast = enabled
        return self

    def add_step(self, rule: AsyncRule[T]) -> AsyncWorkflow[T]:
        self._steps.append(rule)
        return self

    def add_conditional_step(
        self, condition: Callable[[T], bool], rule: AsyncRule[T]
    ) -> AsyncWorkflow[T]:
        async def step(value: T) -> ValidationResult:
            if not condition(value):
                return SUCCESS
            return await rule(value)

        self._steps.append(step)
        return self

    def add_parallel_group(self, *rules: AsyncRule[T]) -> AsyncWorkflow[T]:
        group = parallel(*rules)

        async def step(value: T) -> ValidationResult:
            try:
                return await group(value)
            except Exception as e:
                return _internal(f"Parallel validation step failed: {e}")

        self._steps.append(step)
        return self

    def build(self) -> AsyncRule[T]:
        steps = list(self._steps)
        fail_fast = self._fail_fast

        async def run(value: T) -> ValidationResult:
            if fail_fast:
                return await sequential(*steps)(value)
            results: list[ValidationResult] = []
            for step in steps:
                results.append(await _guarded(step, value, "Workflow step failed"))
            return combine(results)

        return run


__all__ = [
    "AsyncRule",
    "VALIDATION_TIMEOUT",
    "VALIDATION_RETRY_EXHAUSTED",
    "parallel",
    "sequential",
    "with_timeout",
    "with_retry",
    "memoize",
    "with_fallback",
    "to_async",
    "AsyncWorkflow",
]
