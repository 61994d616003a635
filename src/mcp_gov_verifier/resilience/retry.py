"""Exponential backoff with jitter.

Attempt ``n`` (1-based) that fails with a retryable error is followed by a
sleep of ``base_delay * 2**(n-1)`` plus up to 30% random jitter, capped at
``cap_delay``. A :class:`NonRetryableError` ends the loop at once.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional

from ..config.mcp_logger import logger
from ..exceptions import NonRetryableError

JITTER_RATIO = 0.3


class RetryPolicy:
    """Bounded retry loop with exponential backoff.

    Args:
        max_attempts: Total attempts, including the first one.
        base_delay: Delay after the first failed attempt, in seconds.
        cap_delay: Upper bound for any single delay, in seconds.
        rand: Source of uniform floats in ``[0, 1)``. Injectable for tests.
        sleep: Coroutine used to wait between attempts. Injectable for tests.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        cap_delay: float = 30.0,
        rand: Callable[[], float] = random.random,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        name: str = "retry"
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.cap_delay = cap_delay
        self._rand = rand
        self._sleep = sleep
        self.logger = logger.bind(retry_policy=name)

    def next_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt``."""
        exponential = self.base_delay * (2 ** (attempt - 1))
        jitter = self._rand() * JITTER_RATIO * exponential
        return min(exponential + jitter, self.cap_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[Any]],
        on_retry: Optional[Callable[[int, BaseException, float], None]] = None
    ) -> Any:
        """Run ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument coroutine function performing one attempt.
            on_retry: Optional callback ``(attempt, error, delay)`` invoked
                before each backoff sleep.

        Returns:
            Whatever the first successful attempt returns.

        Raises:
            NonRetryableError: Immediately, as raised by the operation.
            Exception: The last error once every attempt has failed.
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except NonRetryableError:
                raise
            except Exception as e:
                last_error = e
                self.logger.warning(
                    "attempt_failed",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(e) or e.__class__.__name__
                )
                if attempt == self.max_attempts:
                    break
                delay = self.next_delay(attempt)
                if on_retry:
                    on_retry(attempt, e, delay)
                await self._sleep(delay)

        raise last_error
