# ============================================================================
# RETRY EXECUTOR
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Diagnostics - Generic backoff retry
# PURPOSE: Retry fallible async operations with bounded exponential backoff
# CREATED: 19 OCT 2026
# ============================================================================
"""
Retry Executor

Wraps any zero-argument async callable:
- Attempts run strictly one after another (no overlap, no cancellation)
- Delay starts at base_delay_ms, doubles per failure when exponential,
  clamped to cap_ms
- After max_attempts failures, RetryExhaustedError is raised with the last
  failure chained as its cause

The executor does not know whether the wrapped call is idempotent. Heap dump
generation writes through a temp file and renames, so retrying it cannot
leave partial dumps behind.

Usage:
    executor = RetryExecutor(RetryPolicy(max_attempts=3, base_delay_ms=10))
    health = await executor.run(aggregator.check, operation_name="health")
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional, TypeVar

from core.config import RetryPolicy
from core.errors import RetryExhaustedError
from core.logging import ComponentType, get_logger, log_context

logger = get_logger(__name__, ComponentType.RETRY)

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]


def backoff_delays(policy: RetryPolicy, failures: int) -> List[int]:
    """
    Delays (ms) slept after each of the first `failures` failed attempts.

    Only failures that are followed by another attempt incur a delay, so
    at most max_attempts - 1 delays are returned.
    """
    count = min(failures, policy.max_attempts - 1)
    delays = []
    delay = policy.base_delay_ms
    for _ in range(count):
        delays.append(min(delay, policy.cap_ms))
        if policy.exponential:
            delay = delay * 2
    return delays


class RetryExecutor:
    """
    Executes async operations with retry and backoff.

    A default policy is supplied at construction; run() accepts a
    per-call override.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize executor.

        Args:
            policy: Default retry policy (RetryPolicy() if None)
            sleep: Awaitable sleep taking seconds; replaceable in tests
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        operation_name: str = "operation",
        retry_on: Optional[RetryPredicate] = None,
    ) -> T:
        """
        Run operation until it succeeds or the policy is exhausted.

        Args:
            operation: Zero-argument async callable
            policy: Override for the executor's default policy
            operation_name: Name used in logs and the exhaustion error
            retry_on: Optional predicate; failures it rejects are re-raised
                immediately without further attempts

        Returns:
            The operation's result from the first successful attempt

        Raises:
            RetryExhaustedError: After max_attempts consecutive failures
        """
        policy = policy or self.policy
        delay_ms = policy.base_delay_ms
        last_error: Optional[BaseException] = None
        start = time.monotonic()

        for attempt in range(1, policy.max_attempts + 1):
            with log_context(operation=operation_name, attempt=attempt):
                try:
                    result = await operation()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    last_error = e

                    if retry_on is not None and not retry_on(e):
                        logger.warning(
                            f"{operation_name} failed with non-retryable error: {e}"
                        )
                        raise

                    logger.warning(
                        f"{operation_name} attempt {attempt}/{policy.max_attempts} failed: {e}"
                    )

                    if attempt < policy.max_attempts:
                        wait_ms = min(delay_ms, policy.cap_ms)
                        await self._sleep(wait_ms / 1000)
                        if policy.exponential:
                            delay_ms = delay_ms * 2
                    continue

            if attempt > 1:
                logger.info(
                    f"{operation_name} succeeded on attempt {attempt} "
                    f"({(time.monotonic() - start) * 1000:.1f}ms)"
                )
            return result

        logger.error(
            f"{operation_name} failed after {policy.max_attempts} attempts",
            extra={"error": str(last_error)},
        )
        raise RetryExhaustedError(
            operation_name, policy.max_attempts, last_error
        ) from last_error


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "RetryExecutor",
    "RetryPredicate",
    "backoff_delays",
]
