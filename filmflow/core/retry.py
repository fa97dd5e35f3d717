"""
Retry utilities with exponential backoff, plus a circuit breaker.

Retry handles transient per-call errors; the circuit breaker handles
sustained outages across a batch of items. Call sites compose the two
explicitly (casting, VFX, storyboard generation).
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from filmflow.core.exceptions import CircuitOpen
from filmflow.core.logging_config import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


def _retry_everything(error: Exception) -> bool:
    return True


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3  # Total attempts, including the first
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 60.0  # Maximum delay in seconds
    exponential_base: float = 2.0  # Multiplier for exponential backoff
    jitter: bool = False  # Add random jitter to prevent thundering herd
    jitter_range: Tuple[float, float] = (0.5, 1.5)  # Jitter multiplier range
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)
    retryable: Callable[[Exception], bool] = _retry_everything

    def should_retry(self, error: Exception) -> bool:
        """Whether an error is worth another attempt."""
        return isinstance(error, self.retryable_exceptions) and self.retryable(error)


DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay before the next attempt.

    Uses exponential backoff: base_delay * exponential_base ** attempt,
    capped at max_delay, with optional jitter.

    Args:
        attempt: Index of the attempt that just failed (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds before next attempt
    """
    delay = config.base_delay * (config.exponential_base ** attempt)
    delay = min(delay, config.max_delay)

    if config.jitter:
        delay *= random.uniform(*config.jitter_range)

    return delay


async def retry_async_call(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    sleep: SleepFunc = asyncio.sleep,
    **kwargs: Any
) -> T:
    """
    Retry an async function call with exponential backoff.

    Non-retryable errors propagate immediately. After the final attempt the
    last error is re-raised unchanged.

    Args:
        func: Async function to call
        *args: Positional arguments for the function
        config: Retry configuration (uses defaults if not provided)
        on_retry: Optional callback called with (exception, attempt) before sleeping
        sleep: Awaitable sleep function
        **kwargs: Keyword arguments for the function

    Returns:
        Result of the function call

    Example:
        url = await retry_async_call(
            backend.generate,
            prompt,
            config=RetryConfig(max_attempts=3, base_delay=2.0),
        )
    """
    config = config or DEFAULT_RETRY_CONFIG
    attempts = max(1, config.max_attempts)

    for attempt in range(attempts):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not config.should_retry(e):
                raise

            if attempt >= attempts - 1:
                logger.error(f"All {attempts} attempts failed. Last error: {e}")
                raise

            delay = calculate_delay(attempt, config)
            logger.warning(
                f"Attempt {attempt + 1}/{attempts} failed: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            if on_retry:
                on_retry(e, attempt)
            await sleep(delay)

    raise RuntimeError("Retry logic failed unexpectedly")


def async_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = False,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    retryable: Callable[[Exception], bool] = _retry_everything,
) -> Callable:
    """
    Decorator for async functions with retry logic.

    Example:
        @async_retry(max_attempts=3, retryable_exceptions=(httpx.TransportError,))
        async def post(...):
            ...
    """
    config = RetryConfig(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        exponential_base=exponential_base,
        jitter=jitter,
        retryable_exceptions=retryable_exceptions,
        retryable=retryable,
    )

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_async_call(func, *args, config=config, **kwargs)
        return wrapper
    return decorator


# Common retry configurations for different call sites
LLM_RETRY_CONFIG = RetryConfig(max_attempts=3, base_delay=2.0, max_delay=30.0)

CASTING_RETRY_CONFIG = RetryConfig(max_attempts=2, base_delay=1.0, max_delay=10.0)

IMAGE_GENERATION_RETRY_CONFIG = RetryConfig(max_attempts=3, base_delay=2.0, max_delay=60.0)


# =============================================================================
# CIRCUIT BREAKER
# =============================================================================

class CircuitBreaker:
    """
    Consecutive-failure circuit breaker for sequential batches.

    The caller records the outcome of each item. Once the number of
    consecutive failures reaches the threshold, the next call to
    wait_if_open() pauses for the cool-down and closes the circuit again.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        cooldown_seconds: float = 60.0,
        sleep: SleepFunc = asyncio.sleep,
        name: str = "batch",
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.name = name
        self._sleep = sleep
        self._consecutive_failures = 0
        self._trips = 0

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def trips(self) -> int:
        """Number of times the circuit has opened."""
        return self._trips

    @property
    def is_open(self) -> bool:
        return self._consecutive_failures >= self.failure_threshold

    def record_success(self) -> None:
        self._consecutive_failures = 0

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        if self.is_open:
            logger.warning(
                f"Circuit '{self.name}' reached {self._consecutive_failures} "
                f"consecutive failure(s)"
            )

    def reset(self) -> None:
        self._consecutive_failures = 0

    async def wait_if_open(self) -> bool:
        """
        Pause for the cool-down if the circuit is open.

        Returns:
            True if the batch paused, False otherwise
        """
        if not self.is_open:
            return False

        signal = CircuitOpen(self._consecutive_failures, self.cooldown_seconds)
        self._trips += 1
        logger.warning(f"[{self.name}] {signal}")
        await self._sleep(self.cooldown_seconds)
        self.reset()
        logger.info(f"[{self.name}] Cool-down finished, resuming")
        return True
