"""Tests for retry logic."""

import httpx
import pytest

from optimizely_destination.errors import (
    ConfigurationUnavailableError,
    DispatchError,
    InitializationError,
)
from optimizely_destination.retry import (
    RetryConfig,
    calculate_backoff,
    call_with_retry,
    is_retryable_error,
)


class TestCalculateBackoff:
    """Tests for calculate_backoff function."""

    def test_exponential_increase(self):
        """Backoff should increase exponentially."""
        config = RetryConfig(
            base_delay_ms=100,
            max_delay_ms=10000,
            jitter_factor=0,  # No jitter for predictable testing
        )

        assert calculate_backoff(0, config) == pytest.approx(0.1, rel=0.01)
        assert calculate_backoff(1, config) == pytest.approx(0.2, rel=0.01)
        assert calculate_backoff(2, config) == pytest.approx(0.4, rel=0.01)

    def test_capped_at_max_delay(self):
        """Backoff should be capped at max_delay."""
        config = RetryConfig(base_delay_ms=100, max_delay_ms=500, jitter_factor=0)

        assert calculate_backoff(10, config) == pytest.approx(0.5, rel=0.01)

    def test_jitter_stays_in_range(self):
        """Jitter should stay within the configured factor."""
        config = RetryConfig(base_delay_ms=1000, max_delay_ms=10000, jitter_factor=0.5)

        delays = [calculate_backoff(0, config) for _ in range(100)]

        assert min(delays) < max(delays)
        for delay in delays:
            assert 0.5 <= delay <= 1.5


class TestIsRetryableError:
    """Tests for is_retryable_error function."""

    def test_destination_errors_use_flag(self):
        """Destination errors carry their own retryable flag."""
        assert is_retryable_error(InitializationError("boom"))
        assert is_retryable_error(DispatchError("bad gateway", status_code=502))
        assert is_retryable_error(DispatchError("throttled", status_code=429))
        assert not is_retryable_error(DispatchError("bad request", status_code=400))
        assert not is_retryable_error(ConfigurationUnavailableError())

    def test_transport_errors_are_retryable(self):
        """httpx transport failures should be retried."""
        assert is_retryable_error(httpx.ConnectError("refused"))
        assert is_retryable_error(httpx.ReadTimeout("slow"))

    def test_message_based_classification(self):
        """Plain exceptions are classified by message."""
        assert is_retryable_error(Exception("Connection reset"))
        assert is_retryable_error(Exception("503 Service Unavailable"))
        assert is_retryable_error(Exception("429 Too Many Requests"))
        assert not is_retryable_error(Exception("404 Not Found"))
        assert not is_retryable_error(ValueError("bad value"))


class TestCallWithRetry:
    """Tests for call_with_retry function."""

    def test_success_first_attempt(self):
        """A successful call should not retry."""
        result = call_with_retry(lambda: "ok", RetryConfig(max_retries=3))

        assert result.success is True
        assert result.data == "ok"
        assert result.attempts == 1

    def test_retries_then_succeeds(self):
        """Retryable failures should be retried."""
        attempts = []
        sleeps = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise DispatchError("unavailable", status_code=503)
            return "ok"

        config = RetryConfig(max_retries=3, base_delay_ms=10, jitter_factor=0)
        result = call_with_retry(flaky, config, sleep=sleeps.append)

        assert result.success is True
        assert result.attempts == 3
        assert sleeps == [pytest.approx(0.01), pytest.approx(0.02)]

    def test_non_retryable_stops(self):
        """Non-retryable failures should return immediately."""
        error = DispatchError("bad request", status_code=400)

        def fail():
            raise error

        result = call_with_retry(fail, RetryConfig(max_retries=3), sleep=lambda _: None)

        assert result.success is False
        assert result.error is error
        assert result.attempts == 1

    def test_exhausts_retries(self):
        """Retries should stop after max_retries."""
        sleeps = []

        def fail():
            raise DispatchError("unavailable", status_code=503)

        result = call_with_retry(fail, RetryConfig(max_retries=2), sleep=sleeps.append)

        assert result.success is False
        assert result.attempts == 3
        assert len(sleeps) == 2
