"""Tests for the optimistic update retry loop."""

from unittest.mock import AsyncMock

import pytest

from core.exceptions import (
    ConcurrencyExhausted,
    ConcurrentModificationError,
    ExternalDependencyFailure,
    NotFoundError,
)
from services.optimistic_update import retry_delay_seconds, run_optimistic_update


@pytest.mark.unit
class TestRetryDelay:
    def test_linear_backoff_without_jitter(self):
        assert retry_delay_seconds(1, 50, rng=lambda: 0.0) == pytest.approx(0.05)
        assert retry_delay_seconds(2, 50, rng=lambda: 0.0) == pytest.approx(0.10)

    def test_jitter_adds_at_most_half(self):
        assert retry_delay_seconds(2, 50, rng=lambda: 1.0) == pytest.approx(0.15)


@pytest.mark.unit
class TestRunOptimisticUpdate:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        operation = AsyncMock(return_value="ok")
        sleep = AsyncMock()

        result = await run_optimistic_update(operation, label="test", sleep=sleep)

        assert result == "ok"
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_on_conflict(self):
        operation = AsyncMock(side_effect=[ConcurrentModificationError("conflict"), "ok"])
        sleep = AsyncMock()

        result = await run_optimistic_update(
            operation, label="test", max_attempts=3, base_delay_ms=50, sleep=sleep
        )

        assert result == "ok"
        assert operation.await_count == 2
        sleep.assert_awaited_once()
        delay = sleep.await_args.args[0]
        assert 0.05 <= delay <= 0.075

    @pytest.mark.asyncio
    async def test_retries_on_dependency_failure(self):
        operation = AsyncMock(side_effect=[ExternalDependencyFailure("down"), "ok"])

        result = await run_optimistic_update(operation, label="test", sleep=AsyncMock())

        assert result == "ok"

    @pytest.mark.asyncio
    async def test_exhaustion_raises(self):
        operation = AsyncMock(side_effect=ConcurrentModificationError("conflict"))
        sleep = AsyncMock()

        with pytest.raises(ConcurrencyExhausted) as exc_info:
            await run_optimistic_update(operation, label="register_vote:123", max_attempts=3, sleep=sleep)

        assert exc_info.value.attempts == 3
        assert exc_info.value.label == "register_vote:123"
        assert operation.await_count == 3
        # No sleep after the final attempt
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_errors_propagate(self):
        operation = AsyncMock(side_effect=NotFoundError("missing"))
        sleep = AsyncMock()

        with pytest.raises(NotFoundError):
            await run_optimistic_update(operation, label="test", sleep=sleep)

        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_attempts_rejected(self):
        operation = AsyncMock(return_value="ok")

        with pytest.raises(ValueError):
            await run_optimistic_update(operation, label="test", max_attempts=0)

        operation.assert_not_awaited()
