"""Circuit breaker guarding calls to unreliable external portals.

The breaker has three states:
- CLOSED: Normal operation, requests pass through
- OPEN: The portal is failing, requests are rejected without being attempted
- HALF_OPEN: One probe request is let through to test recovery

Only consecutive failures count towards opening the circuit; any success in
CLOSED resets the streak. While HALF_OPEN, exactly one caller holds the probe;
everyone else is rejected until that probe reports back.

State lives in memory only and is mutated under an ``asyncio.Lock``, so the
threshold is respected even when many tasks fail at the same time.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..config.mcp_logger import logger


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation, allows calls
    OPEN = "open"      # Failure detected, blocks calls
    HALF_OPEN = "half_open"  # Single probe allowed


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit.
        recovery_timeout: Seconds the circuit stays open before a probe is allowed.
    """
    failure_threshold: int = 5
    recovery_timeout: float = 60.0


@dataclass
class CircuitBreakerState:
    """Internal state of the circuit breaker.

    ``last_failure_time`` is when the circuit last opened, read from the
    breaker's clock rather than wall time.
    """
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    last_failure_time: Optional[float] = None
    probe_in_flight: bool = False


class CircuitBreakerOpen(Exception):
    """Raised by :meth:`CircuitBreaker.call` when the circuit rejects a call."""
    pass


class CircuitBreaker:
    """Circuit breaker for protecting external services.

    Gateways drive it explicitly through :meth:`allow`, :meth:`record_success`
    and :meth:`record_failure`. Simpler callers (captcha solvers) wrap a
    coroutine with :meth:`call`.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize the circuit breaker.

        Args:
            name: Name of the protected service (for logging and identification).
            config: Circuit breaker configuration. Uses defaults if not provided.
            clock: Monotonic time source in seconds. Injectable for tests.
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitBreakerState()
        self._lock = asyncio.Lock()
        self.logger = logger.bind(circuit_breaker=name)

    @property
    def current_state(self) -> CircuitState:
        """Get the current state of the circuit breaker."""
        return self._state.state

    def is_open(self) -> bool:
        """Check if the circuit is open (blocking calls)."""
        return self._state.state == CircuitState.OPEN

    def is_closed(self) -> bool:
        """Check if the circuit is closed (allowing calls)."""
        return self._state.state == CircuitState.CLOSED

    def _transition_to(self, new_state: CircuitState) -> None:
        # Caller must hold the lock
        old_state = self._state.state
        if old_state == new_state:
            return
        self._state.state = new_state

        if new_state == CircuitState.CLOSED:
            self._state.consecutive_failures = 0
            self._state.probe_in_flight = False

        self.logger.info(
            "circuit_breaker_state_change",
            old_state=old_state.value,
            new_state=new_state.value,
            failures=self._state.consecutive_failures
        )

    def _recovery_elapsed(self) -> bool:
        last = self._state.last_failure_time
        return last is not None and self._clock() - last >= self.config.recovery_timeout

    async def allow(self) -> bool:
        """Decide whether a call may proceed.

        In OPEN, once the recovery timeout has elapsed the circuit moves to
        HALF_OPEN and the caller becomes the single probe.

        Returns:
            True if the caller may attempt the protected operation.
        """
        async with self._lock:
            state = self._state.state

            if state == CircuitState.CLOSED:
                return True

            if state == CircuitState.OPEN:
                if not self._recovery_elapsed():
                    return False
                self._transition_to(CircuitState.HALF_OPEN)
                self._state.probe_in_flight = True
                return True

            # HALF_OPEN
            if self._state.probe_in_flight:
                return False
            self._state.probe_in_flight = True
            return True

    async def record_success(self) -> None:
        """Record a successful call; closes the circuit from HALF_OPEN."""
        async with self._lock:
            self._state.consecutive_failures = 0
            if self._state.state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        """Record a failed call.

        In CLOSED, opens the circuit once consecutive failures reach the
        threshold. In HALF_OPEN, reopens it with a fresh timestamp. Late
        failures arriving while already OPEN do not extend the recovery window.
        """
        async with self._lock:
            self._state.consecutive_failures += 1

            if self._state.state == CircuitState.CLOSED:
                if self._state.consecutive_failures >= self.config.failure_threshold:
                    self._state.last_failure_time = self._clock()
                    self._transition_to(CircuitState.OPEN)
            elif self._state.state == CircuitState.HALF_OPEN:
                self._state.probe_in_flight = False
                self._state.last_failure_time = self._clock()
                self._transition_to(CircuitState.OPEN)

    async def release_probe(self) -> None:
        """Give up a HALF_OPEN probe without reporting an outcome.

        Used when the probing call is cancelled, so the next caller can probe.
        """
        async with self._lock:
            self._state.probe_in_flight = False

    async def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Execute a coroutine function protected by the circuit breaker.

        Args:
            func: The async function to execute.
            *args: Positional arguments for the function.
            **kwargs: Keyword arguments for the function.

        Returns:
            The result of the function call if successful.

        Raises:
            CircuitBreakerOpen: If the circuit rejects the call.
            Any exception raised by the wrapped function.
        """
        if not await self.allow():
            raise CircuitBreakerOpen(f"Circuit breaker '{self.name}' is open")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            await self.record_failure()
            raise
        await self.record_success()
        return result

    def snapshot(self) -> Dict[str, Any]:
        """Get the current status of the circuit breaker for health reporting."""
        return {
            "name": self.name,
            "state": self._state.state.value,
            "failures": self._state.consecutive_failures,
            "last_failure_time": self._state.last_failure_time,
        }
