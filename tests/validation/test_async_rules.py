"""Tests for async validation combinators."""

import asyncio

import pytest

from docvault.core.cache import InMemoryCache
from docvault.validation.async_rules import (
    VALIDATION_RETRY_EXHAUSTED,
    VALIDATION_TIMEOUT,
    AsyncWorkflow,
    memoize,
    parallel,
    sequential,
    to_async,
    with_fallback,
    with_retry,
    with_timeout,
)
from docvault.validation.result import SUCCESS, ValidationErrorType, failure
from docvault.validation.rules import not_blank


async def ok(value):
    return SUCCESS


async def fails(value):
    return failure(f"bad {value}", "value")


async def raises(value):
    raise RuntimeError("backend down")


class CountingRule:
    def __init__(self, results):
        self.calls = 0
        self.results = list(results)

    async def __call__(self, value):
        self.calls += 1
        outcome = self.results[min(self.calls, len(self.results)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestParallelSequential:
    @pytest.mark.asyncio
    async def test_parallel_unions_errors(self):
        result = await parallel(ok, fails, fails)("x")
        assert result.error_messages() == ["bad x", "bad x"]

    @pytest.mark.asyncio
    async def test_parallel_converts_exceptions(self):
        result = await parallel(ok, raises)("x")
        assert result.error_messages() == ["Async validation failed: backend down"]
        assert result.errors[0].type == ValidationErrorType.INTERNAL

    @pytest.mark.asyncio
    async def test_parallel_runs_concurrently(self):
        async def slow(value):
            await asyncio.sleep(0.05)
            return SUCCESS

        started = asyncio.get_running_loop().time()
        await parallel(slow, slow, slow, slow)("x")
        assert asyncio.get_running_loop().time() - started < 0.15

    @pytest.mark.asyncio
    async def test_sequential_stops_at_first_failure(self):
        counter = CountingRule([SUCCESS])
        result = await sequential(fails, counter)("x")
        assert result.is_failure()
        assert counter.calls == 0


class TestTimeout:
    @pytest.mark.asyncio
    async def test_timeout(self):
        async def hang(value):
            await asyncio.sleep(10)
            return SUCCESS

        result = await with_timeout(hang, seconds=0.01)("x")
        assert result.has_code(VALIDATION_TIMEOUT)
        assert result.error_messages() == ["Validation timed out after 10ms"]

    @pytest.mark.asyncio
    async def test_fast_rule_passes_through(self):
        assert (await with_timeout(fails, seconds=1)("x")).error_messages() == ["bad x"]


class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        counter = CountingRule([failure("flaky"), RuntimeError("blip"), SUCCESS])
        result = await with_retry(counter, max_retries=3, delay_seconds=0)("x")
        assert result.is_success()
        assert counter.calls == 3

    @pytest.mark.asyncio
    async def test_last_failure_returned(self):
        counter = CountingRule([failure("still bad")])
        result = await with_retry(counter, max_retries=2, delay_seconds=0)("x")
        assert result.error_messages() == ["still bad"]
        assert counter.calls == 3

    @pytest.mark.asyncio
    async def test_exhausted_exceptions(self):
        result = await with_retry(raises, max_retries=1, delay_seconds=0)("x")
        assert result.has_code(VALIDATION_RETRY_EXHAUSTED)
        assert result.first_error_message() == "Async validation failed after 1 retries: backend down"


class TestMemoize:
    @pytest.mark.asyncio
    async def test_cached_by_key(self):
        counter = CountingRule([failure("nope")])
        check = memoize(counter, key=str.lower, ttl_seconds=60)
        await check("A")
        await check("a")
        assert counter.calls == 1

    @pytest.mark.asyncio
    async def test_expiry(self):
        now = [0.0]
        cache = InMemoryCache(default_ttl_seconds=1, clock=lambda: now[0])
        counter = CountingRule([SUCCESS])
        check = memoize(counter, key=str, ttl_seconds=1, cache=cache)
        await check("k")
        now[0] = 2.0
        await check("k")
        assert counter.calls == 2

    @pytest.mark.asyncio
    async def test_exceptions_not_cached(self):
        counter = CountingRule([RuntimeError("x"), SUCCESS])
        check = memoize(counter, key=str, ttl_seconds=60)
        first = await check("k")
        assert first.first_error_message() == "Cached async validation failed: x"
        assert (await check("k")).is_success()


class TestFallbackAndWorkflow:
    @pytest.mark.asyncio
    async def test_fallback_used_on_failure(self):
        assert (await with_fallback(fails, ok)("x")).is_success()

    @pytest.mark.asyncio
    async def test_both_raise(self):
        result = await with_fallback(raises, raises)("x")
        assert result.first_error_message().startswith("Both primary and fallback validations failed")

    @pytest.mark.asyncio
    async def test_workflow_fail_fast(self):
        counter = CountingRule([SUCCESS])
        workflow = AsyncWorkflow().add_step(to_async(not_blank("name"))).add_step(counter).build()
        result = await workflow("")
        assert result.error_messages() == ["name cannot be blank"]
        assert counter.calls == 0

    @pytest.mark.asyncio
    async def test_workflow_collect_all(self):
        workflow = (
            AsyncWorkflow()
            .fail_fast(False)
            .add_step(fails)
            .add_conditional_step(lambda v: v == "skip", fails)
            .add_parallel_group(fails, ok)
            .build()
        )
        assert (await workflow("x")).error_messages() == ["bad x", "bad x"]
