"""Test doubles for the host analytics client and the experimentation SDK."""

from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from optimizely_destination import (
    Analytics,
    ExperimentationClient,
    ExperimentationUserContext,
    NotificationCenter,
    NotificationType,
    OptimizelyFullStack,
    RetryConfig,
    Subscription,
)


class RecordingAnalytics(Analytics):
    """Host double recording tracked events and log lines."""

    def __init__(self):
        self.tracked: List[Tuple[str, Optional[Dict[str, Any]]]] = []
        self.logs: List[str] = []

    def track(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        self.tracked.append((name, properties))

    def log(self, message: str) -> None:
        self.logs.append(message)


class FakeUserContext(ExperimentationUserContext):
    def __init__(self, client: "FakeExperimentationClient", user_id: str, attributes):
        self._client = client
        self.user_id = user_id
        self.attributes = attributes

    def track_event(self, event_key: str, event_tags: Optional[Dict[str, Any]] = None) -> None:
        self._client.calls.append(("track_event", self.user_id, event_key, event_tags))
        if self._client.track_error is not None:
            raise self._client.track_error

    def decide(self, key: str) -> Any:
        self._client.calls.append(("decide", self.user_id, key))
        if self._client.decide_error is not None:
            raise self._client.decide_error
        return None


class FakeNotificationCenter(NotificationCenter):
    def __init__(self, calls: List[tuple]):
        self._calls = calls
        self._listeners: Dict[int, Tuple[NotificationType, Callable]] = {}
        self._next_id = 1

    def subscribe(self, notification_type: NotificationType, callback: Callable) -> Subscription:
        self._calls.append(("subscribe", notification_type))
        listener_id = self._next_id
        self._next_id += 1
        self._listeners[listener_id] = (notification_type, callback)
        return Subscription(notification_type, lambda: self._listeners.pop(listener_id, None))

    def clear_all(self) -> None:
        self._calls.append(("clear_all",))
        self._listeners.clear()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def types(self) -> List[NotificationType]:
        return [notification_type for notification_type, _ in self._listeners.values()]

    def send(self, notification_type: NotificationType, *args) -> None:
        for registered_type, callback in list(self._listeners.values()):
            if registered_type == notification_type:
                callback(*args)


class FakeExperimentationClient(ExperimentationClient):
    """
    SDK double recording every call in order.

    ``start_results`` lists the outcome of successive start() calls
    (None for success, an exception for failure); once exhausted, start succeeds.
    """

    def __init__(self, start_results: Optional[List[Optional[Exception]]] = None):
        self.calls: List[tuple] = []
        self._center = FakeNotificationCenter(self.calls)
        self.start_results = list(start_results) if start_results is not None else []
        self.user_contexts: List[FakeUserContext] = []
        self.revision: Optional[str] = "42"
        self.revision_error: Optional[Exception] = None
        self.track_error: Optional[Exception] = None
        self.decide_error: Optional[Exception] = None
        self.closed = False

    @property
    def notification_center(self) -> FakeNotificationCenter:
        return self._center

    def start(self, callback) -> None:
        self.calls.append(("start",))
        result = self.start_results.pop(0) if self.start_results else None
        callback(result)

    def create_user_context(self, user_id: str, attributes=None) -> FakeUserContext:
        self.calls.append(("create_user_context", user_id, attributes))
        user_context = FakeUserContext(self, user_id, attributes)
        self.user_contexts.append(user_context)
        return user_context

    def activate(self, experiment_key: str, user_id: str, attributes=None) -> Optional[str]:
        self.calls.append(("activate", experiment_key, user_id, attributes))
        return "variation_a"

    def get_config_revision(self) -> Optional[str]:
        if self.revision_error is not None:
            raise self.revision_error
        return self.revision

    def close(self) -> None:
        self.closed = True

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


def make_settings(**overrides) -> Dict[str, Any]:
    """Host settings payload scoped to the Optimizely X plugin key."""
    plugin_settings: Dict[str, Any] = {
        "apiKey": "k1",
        "trackKnownUsers": True,
        "listen": True,
    }
    plugin_settings.update(overrides)
    return {"integrations": {"Optimizely X": plugin_settings}}


class PluginHarness:
    """Wires a destination to a fake SDK and a recording host."""

    def __init__(self, start_results=None, **plugin_kwargs):
        self.client = FakeExperimentationClient(start_results)
        self.analytics = RecordingAnalytics()
        self.factory_calls: List[Any] = []
        plugin_kwargs.setdefault("experiment_key", "checkout_flow")
        plugin_kwargs.setdefault(
            "retry", RetryConfig(max_retries=2, base_delay_ms=0, max_delay_ms=0, jitter_factor=0)
        )
        self.plugin = OptimizelyFullStack(client_factory=self._factory, **plugin_kwargs)
        self.plugin.configure(self.analytics)

    def _factory(self, settings):
        self.factory_calls.append(settings)
        return self.client


@pytest.fixture
def harness():
    """Create a destination wired to test doubles."""
    return PluginHarness()


@pytest.fixture
def make_harness():
    """Factory for harnesses with custom options."""
    harnesses: List[PluginHarness] = []

    def _make(start_results=None, **plugin_kwargs) -> PluginHarness:
        created = PluginHarness(start_results, **plugin_kwargs)
        harnesses.append(created)
        return created

    yield _make

    for created in harnesses:
        created.plugin.shutdown()
