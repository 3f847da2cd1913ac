"""
Tests for Circuit Breaker

Validates circuit breaker behavior for model provider degradation.
"""

import asyncio
import pytest
from src.utils.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    CircuitOpenError,
    all_circuits,
    get_circuit,
    reset_circuits,
)


class TestCircuitBreaker:
    """Tests for CircuitBreaker class."""

    @pytest.fixture
    def breaker(self):
        """Create circuit breaker with fast settings for testing."""
        return CircuitBreaker(
            name="test",
            failure_threshold=3,
            recovery_timeout=0.1,  # 100ms for fast tests
            half_open_max_calls=1,
        )

    @staticmethod
    async def fail():
        raise ValueError("API error")

    @staticmethod
    async def succeed():
        return "ok"

    async def open_circuit(self, breaker):
        for _ in range(3):
            with pytest.raises(ValueError):
                await breaker.call(self.fail)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_starts_closed(self, breaker):
        """Circuit should start in closed state."""
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_successful_calls_stay_closed(self, breaker):
        """Successful calls should keep circuit closed."""
        for _ in range(10):
            assert await breaker.call(self.succeed) == "ok"

        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.total_successes == 10
        assert breaker.stats.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_opens_after_threshold_failures(self, breaker):
        """Circuit should open after consecutive failures reach threshold."""
        for _ in range(2):
            with pytest.raises(ValueError):
                await breaker.call(self.fail)
            assert breaker.state == CircuitState.CLOSED

        with pytest.raises(ValueError):
            await breaker.call(self.fail)

        assert breaker.state == CircuitState.OPEN
        assert breaker.stats.consecutive_failures == 3

    @pytest.mark.asyncio
    async def test_open_circuit_rejects_without_calling(self, breaker):
        """Open circuit should raise CircuitOpenError without calling function."""
        await self.open_circuit(breaker)
        called = False

        async def tracked():
            nonlocal called
            called = True
            return "ok"

        with pytest.raises(CircuitOpenError):
            await breaker.call(tracked)
        assert called is False

    @pytest.mark.asyncio
    async def test_open_circuit_returns_fallback(self, breaker):
        """call_with_fallback should degrade while open."""
        await self.open_circuit(breaker)

        result = await breaker.call_with_fallback(self.succeed, lambda: "fallback")
        assert result == "fallback"

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        """A success between failures resets the consecutive count."""
        for _ in range(2):
            with pytest.raises(ValueError):
                await breaker.call(self.fail)

        await breaker.call(self.succeed)

        assert breaker.stats.consecutive_failures == 0
        with pytest.raises(ValueError):
            await breaker.call(self.fail)
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_after_timeout(self, breaker):
        """Circuit should admit a probe after the recovery timeout and close on success."""
        await self.open_circuit(breaker)
        await asyncio.sleep(0.15)

        assert await breaker.call(self.succeed) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker):
        await self.open_circuit(breaker)
        await asyncio.sleep(0.15)

        with pytest.raises(ValueError):
            await breaker.call(self.fail)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_half_open_limits_probes(self, breaker):
        """Only half_open_max_calls probes are admitted at once."""
        await self.open_circuit(breaker)
        await asyncio.sleep(0.15)

        await breaker.acquire()
        assert breaker.state == CircuitState.HALF_OPEN

        with pytest.raises(CircuitOpenError):
            await breaker.acquire()

    @pytest.mark.asyncio
    async def test_release_returns_half_open_slot(self, breaker):
        """A released half-open slot lets the next call through without changing state."""
        await self.open_circuit(breaker)
        await asyncio.sleep(0.15)

        await breaker.acquire()
        breaker.release()
        await breaker.acquire()

        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.stats.total_failures == 3

    @pytest.mark.asyncio
    async def test_acquire_and_record_for_streams(self, breaker):
        """Manual acquire/record is equivalent to call()."""
        for _ in range(3):
            await breaker.acquire()
            await breaker.record_failure(RuntimeError("stream dropped"))

        with pytest.raises(CircuitOpenError):
            await breaker.acquire()

    @pytest.mark.asyncio
    async def test_call_with_fallback_never_raises(self, breaker):
        result = await breaker.call_with_fallback(self.fail, lambda: "fallback")
        assert result == "fallback"
        assert breaker.stats.total_failures == 1

    @pytest.mark.asyncio
    async def test_manual_reset(self, breaker):
        await self.open_circuit(breaker)

        await breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert await breaker.call(self.succeed) == "ok"

    @pytest.mark.asyncio
    async def test_force_open(self, breaker):
        await breaker.force_open()
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_get_status(self, breaker):
        with pytest.raises(ValueError):
            await breaker.call(self.fail)

        status = breaker.get_status()

        assert status["name"] == "test"
        assert status["state"] == "closed"
        assert status["consecutive_failures"] == 1
        assert status["failure_threshold"] == 3
        assert status["last_failure"] is not None
        assert status["opened_at"] is None


class TestCircuitRegistry:
    """Tests for named circuit singletons."""

    def test_returns_same_instance(self):
        assert get_circuit("research") is get_circuit("research")

    def test_circuits_are_per_name(self):
        assert get_circuit("research") is not get_circuit("chat")
        assert set(all_circuits()) == {"research", "chat"}

    def test_reset_circuits(self):
        first = get_circuit("research")
        reset_circuits()
        assert get_circuit("research") is not first
