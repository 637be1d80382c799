"""
Circuit breaker pattern for ledger RPC resilience.
"""

import asyncio
import time
from enum import Enum
from typing import Callable, Optional

from monnayeur.domain.exceptions.ledger import ChainUnavailableError
from monnayeur.infrastructure.monitoring.logger import get_logger
from monnayeur.infrastructure.monitoring.metrics import circuit_breaker_state

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


_STATE_GAUGE = {
    CircuitState.CLOSED: 0,
    CircuitState.OPEN: 1,
    CircuitState.HALF_OPEN: 2,
}


class CircuitBreakerError(ChainUnavailableError):
    """Raised when circuit is open. Transient like any outage."""


class CircuitBreaker:
    """
    Circuit breaker for external service calls.

    Tracks failures and automatically stops calling failing services.
    After a timeout, allows a test request to check if service recovered.
    Only expected_exception counts as failure, so a contract revert does
    not trip the breaker.
    """

    def __init__(
        self,
        name: str = "ledger",
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        expected_exception: type = ChainUnavailableError,
        time_func: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Service label used in logs and metrics
            failure_threshold: Number of failures before opening circuit
            recovery_timeout: Seconds to wait before trying again (half-open)
            expected_exception: Exception type that counts as failure
            time_func: Monotonic time source
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self._time = time_func

        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._state = CircuitState.CLOSED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state

    @property
    def failure_count(self) -> int:
        """Get current failure count."""
        return self._failure_count

    async def call(self, func: Callable, *args, **kwargs):
        """
        Execute function with circuit breaker protection.

        Args:
            func: Async function to call
            *args: Positional arguments for function
            **kwargs: Keyword arguments for function

        Returns:
            Function result

        Raises:
            CircuitBreakerError: If circuit is open
            Exception: Original exception from function
        """
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self._should_attempt_reset():
                    self._set_state(CircuitState.HALF_OPEN)
                else:
                    raise CircuitBreakerError(
                        f"Circuit breaker '{self.name}' is OPEN. "
                        f"Failures: {self._failure_count}/{self.failure_threshold}. "
                        f"Retry after {self.recovery_timeout}s."
                    )

        try:
            result = await func(*args, **kwargs)
        except self.expected_exception:
            await self._on_failure()
            raise

        await self._on_success()
        return result

    async def _on_success(self) -> None:
        """Handle successful call."""
        async with self._lock:
            self._failure_count = 0
            self._last_failure_time = None
            if self._state == CircuitState.HALF_OPEN:
                self._set_state(CircuitState.CLOSED)

    async def _on_failure(self) -> None:
        """Handle failed call."""
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._time()

            if (
                self._state == CircuitState.HALF_OPEN
                or self._failure_count >= self.failure_threshold
            ):
                self._set_state(CircuitState.OPEN)

    def _should_attempt_reset(self) -> bool:
        """
        Check if enough time passed to try again.

        Returns:
            True if should attempt reset to HALF_OPEN
        """
        if self._last_failure_time is None:
            return False

        return (self._time() - self._last_failure_time) >= self.recovery_timeout

    def _set_state(self, state: CircuitState) -> None:
        if state != self._state:
            logger.warning(
                f"Circuit breaker '{self.name}': "
                f"{self._state.value} -> {state.value}"
            )
        self._state = state
        circuit_breaker_state.labels(service=self.name).set(_STATE_GAUGE[state])

    async def reset(self) -> None:
        """Manually reset circuit breaker to CLOSED state."""
        async with self._lock:
            self._failure_count = 0
            self._last_failure_time = None
            self._set_state(CircuitState.CLOSED)

    def get_stats(self) -> dict:
        """
        Get circuit breaker statistics.

        Returns:
            Dict with state, failure_count, last_failure_time
        """
        return {
            "state": self._state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self._last_failure_time,
            "recovery_timeout": self.recovery_timeout,
        }
