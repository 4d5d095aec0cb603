"""
Event dispatcher delivering Optimizely log events over httpx.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from optimizely_destination.errors import DispatchError, classify_error
from optimizely_destination.retry import RetryConfig, call_with_retry

logger = logging.getLogger("optimizely_destination.dispatcher")


@dataclass
class DispatcherConfig:
    """Configuration for event dispatch."""

    timeout_ms: int = 10000
    """Request timeout in milliseconds."""

    retry: RetryConfig = field(
        default_factory=lambda: RetryConfig(max_retries=2, base_delay_ms=200, max_delay_ms=2000)
    )
    """Retry configuration for failed deliveries."""


class HttpxEventDispatcher:
    """
    Sends Optimizely log events (``url``, ``params``, ``http_verb``, ``headers``)
    to the event endpoint.

    Retryable failures (transport errors, 429, 5xx) are retried with backoff;
    delivery failures are logged and never raised to the SDK.
    """

    def __init__(
        self,
        config: Optional[DispatcherConfig] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self._config = config or DispatcherConfig()
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.Client(timeout=self._config.timeout_ms / 1000)
        self._sleep = sleep
        self._closed = False

    def dispatch_event(self, log_event: Any) -> None:
        """Deliver one log event."""
        if self._closed:
            logger.warning("Dispatcher is closed, dropping event")
            return

        kwargs = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep

        result = call_with_retry(lambda: self._send(log_event), self._config.retry, **kwargs)
        if not result.success:
            classified = classify_error(result.error)
            logger.error(
                f"Failed to dispatch event after {result.attempts} attempt(s): {classified.message}"
            )

    def _send(self, log_event: Any) -> None:
        headers = dict(log_event.headers or {})
        headers.setdefault("Content-Type", "application/json")
        method = (getattr(log_event, "http_verb", None) or "POST").upper()

        if method == "GET":
            response = self._http_client.get(
                log_event.url, params=log_event.params, headers=headers
            )
        else:
            response = self._http_client.request(
                method,
                log_event.url,
                content=json.dumps(log_event.params),
                headers=headers,
            )

        if not response.is_success:
            raise DispatchError(
                f"Event endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

    def close(self) -> None:
        self._closed = True
        if self._owns_client:
            self._http_client.close()
