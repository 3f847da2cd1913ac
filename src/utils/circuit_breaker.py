"""
Circuit Breaker for Model Provider Degradation

Protects the research and chat providers from hammering a failing model API.
When consecutive failures exceed the threshold the circuit opens: research
falls back to domain-derived data and chat turns end with an error frame,
without calling the API at all.
"""

import asyncio
import datetime as dt
from enum import StrEnum
from dataclasses import dataclass
from typing import Optional, Callable, TypeVar, Awaitable, Dict
from src.config import get_settings
from src.utils.observability import logger

T = TypeVar("T")


class CircuitState(StrEnum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation, requests flow through
    OPEN = "open"          # Failing, reject requests immediately
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitStats:
    """Circuit breaker statistics."""
    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    last_failure_time: Optional[dt.datetime] = None
    last_success_time: Optional[dt.datetime] = None
    opened_at: Optional[dt.datetime] = None
    state_changes: int = 0


class CircuitOpenError(Exception):
    """Raised by acquire() when the circuit rejects a call."""

    def __init__(self, name: str):
        super().__init__(f"Circuit '{name}' is open")
        self.name = name


class CircuitBreaker:
    """
    Circuit breaker for protecting against cascading failures.

    States:
    - CLOSED: Normal operation. Failures are counted.
    - OPEN: Provider is down. Requests fail fast.
    - HALF_OPEN: Testing recovery. Limited requests allowed.

    Two ways to use it:
        # request/response calls with a degraded answer
        result = await breaker.call_with_fallback(func, fallback)

        # streaming calls that cannot be wrapped in one awaitable
        await breaker.acquire()          # raises CircuitOpenError
        try:
            ...
            await breaker.record_success()
        except Exception as e:
            await breaker.record_failure(e)
            raise
    """

    def __init__(
        self,
        name: str,
        failure_threshold: Optional[int] = None,
        recovery_timeout: Optional[float] = None,
        half_open_max_calls: Optional[int] = None,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Identifier for this circuit (for logging)
            failure_threshold: Consecutive failures before opening
            recovery_timeout: Seconds before trying recovery
            half_open_max_calls: Max calls allowed in half-open state
        """
        settings = get_settings()
        self.name = name
        self._failure_threshold = failure_threshold or settings.circuit_breaker_failure_threshold
        self._recovery_timeout = recovery_timeout if recovery_timeout is not None else settings.circuit_breaker_recovery_timeout
        self._half_open_max_calls = half_open_max_calls or settings.circuit_breaker_half_open_max_calls

        self._state = CircuitState.CLOSED
        self._stats = CircuitStats()
        self._half_open_calls = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def stats(self) -> CircuitStats:
        return self._stats

    async def acquire(self) -> None:
        """
        Admit one call or reject it.

        Raises:
            CircuitOpenError: When the circuit is open or the half-open probe budget is spent
        """
        async with self._lock:
            self._check_state_transition()

            if self._state == CircuitState.OPEN:
                logger.warning(f"Circuit '{self.name}' is OPEN, rejecting call")
                raise CircuitOpenError(self.name)

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self._half_open_max_calls:
                    logger.warning(f"Circuit '{self.name}' HALF_OPEN limit reached, rejecting call")
                    raise CircuitOpenError(self.name)
                self._half_open_calls += 1

    def release(self) -> None:
        """Return an admitted call that ended with neither success nor failure."""
        if self._state == CircuitState.HALF_OPEN and self._half_open_calls > 0:
            self._half_open_calls -= 1

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Execute func through the circuit.

        Raises:
            CircuitOpenError: When the circuit rejects the call
            Exception: Whatever func raised (after being counted)
        """
        await self.acquire()

        # Execute outside lock to allow concurrency
        try:
            result = await func()
        except Exception as e:
            await self.record_failure(e)
            raise
        await self.record_success()
        return result

    async def call_with_fallback(
        self,
        func: Callable[[], Awaitable[T]],
        fallback: Callable[[], T],
    ) -> T:
        """
        Execute func, returning fallback() when the circuit is open or func fails.
        Never raises.
        """
        try:
            return await self.call(func)
        except CircuitOpenError:
            return fallback()
        except Exception as e:
            logger.error(f"Circuit '{self.name}' call failed, using fallback: {e}")
            return fallback()

    def _check_state_transition(self) -> None:
        """Move OPEN -> HALF_OPEN once the recovery timeout has elapsed."""
        if self._state != CircuitState.OPEN or not self._stats.opened_at:
            return

        elapsed = (dt.datetime.now(dt.UTC) - self._stats.opened_at).total_seconds()
        if elapsed >= self._recovery_timeout:
            self._transition_to(CircuitState.HALF_OPEN)
            self._half_open_calls = 0

    async def record_success(self) -> None:
        async with self._lock:
            self._stats.consecutive_failures = 0
            self._stats.total_successes += 1
            self._stats.last_success_time = dt.datetime.now(dt.UTC)

            if self._state == CircuitState.HALF_OPEN:
                logger.info(f"Circuit '{self.name}' recovered, closing")
                self._transition_to(CircuitState.CLOSED)

    async def record_failure(self, error: Exception) -> None:
        async with self._lock:
            self._stats.consecutive_failures += 1
            self._stats.total_failures += 1
            self._stats.last_failure_time = dt.datetime.now(dt.UTC)

            logger.warning(
                f"Circuit '{self.name}' failure {self._stats.consecutive_failures}/{self._failure_threshold}: {error}"
            )

            if self._state == CircuitState.HALF_OPEN:
                logger.warning(f"Circuit '{self.name}' probe failed, reopening")
                self._transition_to(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED and self._stats.consecutive_failures >= self._failure_threshold:
                logger.error(f"Circuit '{self.name}' threshold reached, opening")
                self._transition_to(CircuitState.OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1

        if new_state == CircuitState.OPEN:
            self._stats.opened_at = dt.datetime.now(dt.UTC)

        logger.info(f"Circuit '{self.name}' state: {old_state.value} -> {new_state.value}")

    async def reset(self) -> None:
        """Manually reset circuit to closed state."""
        async with self._lock:
            self._transition_to(CircuitState.CLOSED)
            self._stats.consecutive_failures = 0
            self._half_open_calls = 0

    async def force_open(self) -> None:
        """Manually open circuit (for testing/maintenance)."""
        async with self._lock:
            self._transition_to(CircuitState.OPEN)

    def get_status(self) -> dict:
        """Get circuit status for monitoring."""
        return {
            "name": self.name,
            "state": self._state.value,
            "consecutive_failures": self._stats.consecutive_failures,
            "total_failures": self._stats.total_failures,
            "total_successes": self._stats.total_successes,
            "failure_threshold": self._failure_threshold,
            "recovery_timeout_seconds": self._recovery_timeout,
            "last_failure": self._stats.last_failure_time.isoformat() if self._stats.last_failure_time else None,
            "last_success": self._stats.last_success_time.isoformat() if self._stats.last_success_time else None,
            "opened_at": self._stats.opened_at.isoformat() if self._stats.opened_at else None,
        }


# One circuit per provider role ("research", "chat")
_circuits: Dict[str, CircuitBreaker] = {}


def get_circuit(name: str) -> CircuitBreaker:
    """Get or create the named circuit breaker singleton."""
    if name not in _circuits:
        _circuits[name] = CircuitBreaker(name=name)
    return _circuits[name]


def all_circuits() -> Dict[str, CircuitBreaker]:
    return dict(_circuits)


def reset_circuits() -> None:
    """Drop every circuit. Used by tests."""
    _circuits.clear()
