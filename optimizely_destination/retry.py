"""
Retry utility with exponential backoff and jitter.
"""

import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar, Optional, Generic

import httpx

from optimizely_destination.errors import DestinationError

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    """Maximum number of retry attempts."""

    base_delay_ms: int = 500
    """Base delay in milliseconds."""

    max_delay_ms: int = 30000
    """Maximum delay in milliseconds."""

    jitter_factor: float = 0.1
    """Jitter factor 0-1 to randomize delays."""


@dataclass
class RetryResult(Generic[T]):
    """Result of a retry operation."""

    success: bool
    data: Optional[T] = None
    error: Optional[Exception] = None
    attempts: int = 1


DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_backoff(attempt: int, config: RetryConfig) -> float:
    """
    Calculate backoff delay with exponential increase and jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    # Exponential: base_delay * 2^attempt
    exponential_delay = config.base_delay_ms * (2**attempt)

    capped_delay = min(exponential_delay, config.max_delay_ms)

    # Add jitter: random value between -jitter and +jitter
    jitter = capped_delay * config.jitter_factor * (random.random() * 2 - 1)

    delay_ms = max(0, capped_delay + jitter)
    return delay_ms / 1000.0


def is_retryable_error(error: Exception) -> bool:
    """
    Check if an error is retryable.

    Args:
        error: The exception to check

    Returns:
        True if the error should be retried
    """
    if isinstance(error, DestinationError):
        return error.retryable

    # Transport level failures (connect, read, timeouts)
    if isinstance(error, httpx.TransportError):
        return True

    message = str(error).lower()

    network_indicators = [
        "econnrefused",
        "etimedout",
        "enotfound",
        "econnreset",
        "network",
        "connection",
        "timeout",
        "dns",
    ]
    if any(indicator in message for indicator in network_indicators):
        return True

    server_errors = ["500", "502", "503", "504"]
    if any(code in message for code in server_errors):
        return True

    if "429" in message or "too many requests" in message:
        return True

    return False


def call_with_retry(
    fn: Callable[[], T],
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RetryResult[T]:
    """
    Execute a function with retry logic and exponential backoff.

    Args:
        fn: Function to execute
        config: Retry configuration
        sleep: Sleep function, injectable for tests

    Returns:
        RetryResult with success status and data/error
    """
    cfg = config or DEFAULT_RETRY_CONFIG
    last_error: Optional[Exception] = None

    for attempt in range(cfg.max_retries + 1):
        try:
            data = fn()
            return RetryResult(success=True, data=data, attempts=attempt + 1)
        except Exception as error:
            last_error = error

            if not is_retryable_error(error):
                return RetryResult(success=False, error=error, attempts=attempt + 1)

            # Don't sleep after the last attempt
            if attempt < cfg.max_retries:
                sleep(calculate_backoff(attempt, cfg))

    return RetryResult(
        success=False,
        error=last_error or Exception("Retry exhausted"),
        attempts=cfg.max_retries + 1,
    )
