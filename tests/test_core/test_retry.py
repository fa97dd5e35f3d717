"""
Tests for Retry and Circuit Breaker

Tests for filmflow/core/retry.py
"""

import pytest

from filmflow.core.exceptions import AllProvidersFailed, ImageGenerationError
from filmflow.core.retry import (
    CircuitBreaker,
    RetryConfig,
    async_retry,
    calculate_delay,
    retry_async_call,
)

from conftest import RecordingSleep


class Flaky:
    """Fails a fixed number of times, then succeeds."""

    def __init__(self, failures, error=ImageGenerationError("fake", "boom")):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self, value="ok"):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return value


class TestCalculateDelay:
    """Tests for backoff delays."""

    def test_exponential_growth(self):
        """Test delays double per attempt."""
        config = RetryConfig(base_delay=2.0, exponential_base=2.0, max_delay=100.0)

        assert [calculate_delay(i, config) for i in range(3)] == [2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        """Test delay never exceeds max_delay."""
        config = RetryConfig(base_delay=10.0, max_delay=15.0)

        assert calculate_delay(5, config) == 15.0

    def test_jitter_within_range(self):
        """Test jitter stays within the configured multiplier range."""
        config = RetryConfig(base_delay=10.0, jitter=True, jitter_range=(0.5, 1.5))

        for _ in range(20):
            assert 5.0 <= calculate_delay(0, config) <= 15.0


class TestRetryAsyncCall:
    """Tests for retry_async_call."""

    @pytest.mark.asyncio
    async def test_succeeds_after_retries(self):
        """Test a call that recovers within the attempt budget."""
        sleep = RecordingSleep()
        func = Flaky(failures=2)

        result = await retry_async_call(
            func, "done",
            config=RetryConfig(max_attempts=3, base_delay=1.0),
            sleep=sleep,
        )

        assert result == "done"
        assert func.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_reraises_last_error(self):
        """Test the final error propagates unchanged."""
        sleep = RecordingSleep()
        error = ImageGenerationError("fake", "still down")
        func = Flaky(failures=5, error=error)

        with pytest.raises(ImageGenerationError) as exc_info:
            await retry_async_call(func, config=RetryConfig(max_attempts=3), sleep=sleep)

        assert exc_info.value is error
        assert func.calls == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self):
        """Test errors outside retryable_exceptions are not retried."""
        sleep = RecordingSleep()
        func = Flaky(failures=1, error=ValueError("bad input"))
        config = RetryConfig(max_attempts=3, retryable_exceptions=(ImageGenerationError,))

        with pytest.raises(ValueError):
            await retry_async_call(func, config=config, sleep=sleep)

        assert func.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retryable_predicate(self):
        """Test the predicate can veto a retry."""
        sleep = RecordingSleep()
        func = Flaky(failures=1, error=AllProvidersFailed(["gpt-4o"]))
        config = RetryConfig(max_attempts=3, retryable=lambda e: False)

        with pytest.raises(AllProvidersFailed):
            await retry_async_call(func, config=config, sleep=sleep)

        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        """Test on_retry sees each failed attempt."""
        seen = []
        func = Flaky(failures=2)

        await retry_async_call(
            func,
            config=RetryConfig(max_attempts=3),
            on_retry=lambda e, attempt: seen.append(attempt),
            sleep=RecordingSleep(),
        )

        assert seen == [0, 1]

    @pytest.mark.asyncio
    async def test_decorator(self):
        """Test the async_retry decorator wraps a coroutine function."""
        func = Flaky(failures=1)

        @async_retry(max_attempts=2, base_delay=0.0)
        async def call():
            return await func()

        assert await call() == "ok"
        assert func.calls == 2


class TestCircuitBreaker:
    """Tests for CircuitBreaker."""

    def test_rejects_zero_threshold(self):
        """Test threshold must be at least one."""
        with pytest.raises(ValueError):
            CircuitBreaker(failure_threshold=0)

    @pytest.mark.asyncio
    async def test_closed_does_not_pause(self):
        """Test no pause below the threshold."""
        sleep = RecordingSleep()
        breaker = CircuitBreaker(failure_threshold=3, cooldown_seconds=60.0, sleep=sleep)

        breaker.record_failure()
        breaker.record_failure()

        assert await breaker.wait_if_open() is False
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_opens_at_threshold_and_pauses(self):
        """Test the breaker pauses for the cool-down once open, then closes."""
        sleep = RecordingSleep()
        breaker = CircuitBreaker(failure_threshold=3, cooldown_seconds=60.0, sleep=sleep)

        for _ in range(3):
            breaker.record_failure()

        assert breaker.is_open
        assert await breaker.wait_if_open() is True
        assert sleep.delays == [60.0]
        assert breaker.trips == 1
        assert not breaker.is_open

    @pytest.mark.asyncio
    async def test_success_resets_count(self):
        """Test a success clears the consecutive failure count."""
        breaker = CircuitBreaker(failure_threshold=2, sleep=RecordingSleep())

        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()

        assert breaker.consecutive_failures == 1
        assert await breaker.wait_if_open() is False
