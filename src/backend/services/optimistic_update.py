"""
Optimistic read-modify-write with bounded retries.

The product vote store has no multi-document transactions, so every
mutation is a single read -> compute -> conditional write cycle. When the
conditional write loses against a concurrent writer (ETag mismatch, or a
concurrent create of the same barcode) the whole cycle is re-run after a
jittered, linearly growing delay.

Correctness comes from the store's version check; this loop only makes
losing a race recoverable.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from core.config import settings
from core.exceptions import (
    ConcurrencyExhausted,
    ConcurrentModificationError,
    ExternalDependencyFailure,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Errors worth re-running the cycle for; everything else propagates immediately
RETRYABLE_ERRORS = (ConcurrentModificationError, ExternalDependencyFailure)


def retry_delay_seconds(attempt: int, base_delay_ms: int, rng: Callable[[], float] = random.random) -> float:
    """base * attempt, plus up to 50% jitter."""
    base = base_delay_ms * attempt
    jitter = rng() * base * 0.5
    return (base + jitter) / 1000


async def run_optimistic_update(
    operation: Callable[[], Awaitable[T]],
    *,
    label: str,
    max_attempts: Optional[int] = None,
    base_delay_ms: Optional[int] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run a read-modify-write operation, retrying on write conflicts.

    Args:
        operation: Performs one complete read -> compute -> conditional write
        label: Name used in logs and in the exhaustion error
        max_attempts: Total attempts (default VOTE_RETRY_MAX_ATTEMPTS)
        base_delay_ms: Delay unit (default VOTE_RETRY_BASE_DELAY_MS)
        sleep: Injectable sleep for tests

    Raises:
        ConcurrencyExhausted: Every attempt failed with a retryable error
        ValueError: max_attempts is less than 1
    """
    attempts_allowed = settings.VOTE_RETRY_MAX_ATTEMPTS if max_attempts is None else max_attempts
    if attempts_allowed < 1:
        raise ValueError("max_attempts must be at least 1")
    delay_ms = settings.VOTE_RETRY_BASE_DELAY_MS if base_delay_ms is None else base_delay_ms

    for attempt in range(1, attempts_allowed + 1):
        try:
            return await operation()
        except RETRYABLE_ERRORS as e:
            if attempt >= attempts_allowed:
                logger.error(
                    "optimistic_update_exhausted",
                    label=label,
                    attempts=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ConcurrencyExhausted(label, attempt) from e

            delay = retry_delay_seconds(attempt, delay_ms)
            logger.warning(
                "optimistic_update_retry",
                label=label,
                attempt=attempt,
                max_attempts=attempts_allowed,
                delay_ms=round(delay * 1000, 1),
                error_type=type(e).__name__,
            )
            await sleep(delay)

    # Unreachable with attempts_allowed >= 1
    raise ConcurrencyExhausted(label, attempts_allowed)
