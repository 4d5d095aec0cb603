"""
Optimizely Full Stack destination plugin.

Forwards host identify/track calls to the Optimizely SDK and relays the
SDK's experiment notifications back to the host as "Experiment Viewed"
track events.
"""

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from optimizely_destination.errors import (
    ConfigurationUnavailableError,
    ErrorCategory,
    classify_error,
)
from optimizely_destination.events import (
    EXPERIMENT_VIEWED,
    Analytics,
    DestinationPlugin,
    IdentifyEvent,
    TrackEvent,
    UpdateType,
    UserContext,
)
from optimizely_destination.notifications import (
    NotificationListener,
    NotificationMode,
    NotificationType,
    SubscriptionSet,
)
from optimizely_destination.optimizely_client import OptimizelyExperimentationClient
from optimizely_destination.retry import RetryConfig, calculate_backoff
from optimizely_destination.sdk import ExperimentationClient, ExperimentationUserContext
from optimizely_destination.settings import PLUGIN_KEY, PluginSettings, decode_settings

logger = logging.getLogger("optimizely_destination")

ClientFactory = Callable[[PluginSettings], ExperimentationClient]

KNOWN_USERS_WARNING = (
    "Segment will only track users associated with a userId "
    "when the trackKnownUsers setting is enabled."
)


class AdapterState(str, Enum):
    """Initialization states of the destination."""

    UNINITIALIZED = "uninitialized"
    """No usable settings received yet."""

    INITIALIZING = "initializing"
    """Client created, SDK start in progress or being retried."""

    READY = "ready"
    """SDK started successfully."""

    FAILED = "failed"
    """SDK start failed and retries are exhausted."""


class OptimizelyFullStack(DestinationPlugin, NotificationListener):
    """
    Destination plugin bridging analytics events to Optimizely Full Stack.

    Example:
        ```python
        plugin = OptimizelyFullStack(experiment_key="checkout_flow")
        plugin.configure(analytics)
        plugin.update(remote_settings, UpdateType.INITIAL)

        plugin.identify(IdentifyEvent(user_id="u1"))
        plugin.track(TrackEvent(event="Purchase", properties={"amount": 9.99}, user_id="u1"))
        ```

    Host calls may arrive from any thread and before the SDK is ready; they
    never raise. Before settings arrive they make no SDK calls.
    """

    key = PLUGIN_KEY

    def __init__(
        self,
        experiment_key: str = "",
        notification_mode: NotificationMode = NotificationMode.DECISION,
        retry: Optional[RetryConfig] = None,
        client_factory: Optional[ClientFactory] = None,
        analytics: Optional[Analytics] = None,
    ):
        """
        Initialize the destination.

        Args:
            experiment_key: Flag/experiment key evaluated after each track call
            notification_mode: Subscribe to decision or legacy activate notifications
            retry: Backoff policy for failed SDK starts
            client_factory: Builds the experimentation client from settings
            analytics: Host analytics client; may also be set via configure()
        """
        self.analytics = analytics
        self._experiment_key = experiment_key or ""
        self._notification_mode = notification_mode
        self._retry = retry or RetryConfig()
        self._client_factory = client_factory or OptimizelyExperimentationClient.from_settings

        self._lock = threading.RLock()
        self._state = AdapterState.UNINITIALIZED
        self._settings: Optional[PluginSettings] = None
        self._client: Optional[ExperimentationClient] = None
        self._user_context: Optional[UserContext] = None
        self._subscriptions = SubscriptionSet()
        self._start_failures = 0
        self._retry_timer: Optional[threading.Timer] = None
        self._settled = threading.Event()
        self._closing = False

        self._callbacks: Dict[str, List[Callable]] = {
            "ready": [],
            "failed": [],
        }

    @staticmethod
    def version() -> str:
        from optimizely_destination import __version__

        return __version__

    # Status

    @property
    def state(self) -> AdapterState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == AdapterState.READY

    @property
    def settings(self) -> Optional[PluginSettings]:
        return self._settings

    @property
    def user_context(self) -> Optional[UserContext]:
        with self._lock:
            return self._user_context

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the SDK start settles.

        Args:
            timeout: Seconds to wait, None to wait forever

        Returns:
            True if the destination is ready
        """
        self._settled.wait(timeout)
        return self.is_ready

    def on(self, event: str, callback: Callable) -> "OptimizelyFullStack":
        """
        Register a status callback ("ready" or "failed").

        Returns:
            Self for chaining
        """
        if event in self._callbacks:
            self._callbacks[event].append(callback)
        return self

    def off(self, event: str, callback: Callable) -> "OptimizelyFullStack":
        """Remove a status callback."""
        if event in self._callbacks and callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)
        return self

    def _emit(self, event: str, *args) -> None:
        for callback in self._callbacks.get(event, []):
            try:
                callback(*args)
            except Exception as e:
                logger.warning(f"Error in status callback: {e}")

    def _log(self, message: str, level: int = logging.INFO) -> None:
        logger.log(level, message)
        analytics = self.analytics
        if analytics is None:
            return
        try:
            analytics.log(message)
        except Exception as e:
            logger.warning(f"Host log sink failed: {e}")

    # Initialization

    def update(self, settings: Dict[str, Any], type: UpdateType) -> None:
        if type != UpdateType.INITIAL:
            return

        with self._lock:
            if self._client is not None:
                return

            try:
                decoded = decode_settings(settings, self.key)
            except ConfigurationUnavailableError as e:
                self._log(f"Optimizely settings unavailable: {e.message}", logging.ERROR)
                return

            try:
                client = self._client_factory(decoded)
            except Exception as e:
                classified = classify_error(e, ErrorCategory.INITIALIZATION)
                self._log(f"Could not create Optimizely client: {classified.message}", logging.ERROR)
                return

            self._settings = decoded
            self._client = client
            self._state = AdapterState.INITIALIZING
            # Listeners go in before start so startup notifications are not missed
            self._add_notification_listeners(client)

        self._start_client()

    def _add_notification_listeners(self, client: ExperimentationClient) -> None:
        if self._notification_mode == NotificationMode.ACTIVATE:
            experiment_listener = (NotificationType.ACTIVATE, self.on_activate)
        else:
            experiment_listener = (NotificationType.DECISION, self.on_decision)

        listeners = [
            experiment_listener,
            (NotificationType.TRACK, self.on_track),
            (NotificationType.DATAFILE_CHANGE, self.on_datafile_change),
        ]

        center = client.notification_center
        for notification_type, callback in listeners:
            try:
                self._subscriptions.add(center.subscribe(notification_type, callback))
            except Exception as e:
                self._log(
                    f"Failed to add {notification_type.value} listener: {e}",
                    logging.WARNING,
                )

    def _start_client(self) -> None:
        with self._lock:
            client = self._client
            self._retry_timer = None
            if client is None or self._closing:
                return

        try:
            client.start(self._on_start_complete)
        except Exception as e:
            self._on_start_complete(classify_error(e, ErrorCategory.INITIALIZATION))

    def _on_start_complete(self, error: Optional[Exception]) -> None:
        if error is None:
            with self._lock:
                if self._closing:
                    return
                self._state = AdapterState.READY
            self._log("Optimizely SDK initialized successfully!")
            self._emit("ready")
            self._settled.set()
            return

        self._log(f"Optimizely SDK initialization failed: {error}", logging.ERROR)

        timer: Optional[threading.Timer] = None
        with self._lock:
            if self._closing:
                return
            self._start_failures += 1
            failures = self._start_failures
            if failures > self._retry.max_retries:
                self._state = AdapterState.FAILED
            else:
                delay = calculate_backoff(failures - 1, self._retry)
                timer = threading.Timer(delay, self._start_client)
                timer.daemon = True
                self._retry_timer = timer

        if timer is None:
            self._log(
                f"Giving up on Optimizely SDK after {failures} failed start attempt(s)",
                logging.ERROR,
            )
            self._emit("failed", error)
            self._settled.set()
            return

        logger.info(f"Retrying Optimizely SDK start in {delay:.2f}s")
        timer.start()

    # Host events

    def identify(self, event: IdentifyEvent) -> Optional[IdentifyEvent]:
        if event.user_id:
            traits = dict(event.traits) if event.traits else None
            with self._lock:
                self._user_context = UserContext(user_id=event.user_id, traits=traits)
        return event

    def track(self, event: TrackEvent) -> Optional[TrackEvent]:
        with self._lock:
            client = self._client
            settings = self._settings
            held = self._user_context

        if client is None or settings is None:
            return event

        user_id = self._resolve_user_id(event, settings)
        if user_id is None:
            return event

        attributes = held.traits if held is not None and held.user_id == user_id else None

        try:
            user_context = client.create_user_context(user_id, attributes)
        except Exception as e:
            classified = classify_error(e, ErrorCategory.TRACKING)
            self._log(f"Error - {classified.message}", logging.ERROR)
            return event

        self._track_user(user_context, event)

        # An "Experiment Viewed" event must not trigger another evaluation
        if event.event != EXPERIMENT_VIEWED:
            self._evaluate(client, user_context, user_id, attributes)

        return event

    def _resolve_user_id(self, event: TrackEvent, settings: PluginSettings) -> Optional[str]:
        if settings.track_known_users:
            if not event.user_id:
                self._log(KNOWN_USERS_WARNING, logging.WARNING)
                return None
            return event.user_id

        if not event.anonymous_id:
            self._log("Track event has no anonymousId, skipping Optimizely", logging.WARNING)
            return None
        return event.anonymous_id

    def _track_user(self, user_context: ExperimentationUserContext, event: TrackEvent) -> None:
        event_tags = dict(event.properties) if event.properties else None
        try:
            user_context.track_event(event.event, event_tags)
        except Exception as e:
            classified = classify_error(e, ErrorCategory.TRACKING)
            self._log(f"Error - {classified.message}", logging.ERROR)
            return

        if event_tags is not None:
            self._log(f"Tracked with eventTags - {event_tags}")
        else:
            self._log("Tracked with event Only!")

    def _evaluate(
        self,
        client: ExperimentationClient,
        user_context: ExperimentationUserContext,
        user_id: str,
        attributes: Optional[Dict[str, Any]],
    ) -> None:
        if not self._experiment_key:
            logger.debug("No experiment key configured, skipping evaluation")
            return

        try:
            if self._notification_mode == NotificationMode.ACTIVATE:
                client.activate(self._experiment_key, user_id, attributes)
            else:
                user_context.decide(self._experiment_key)
        except Exception as e:
            classified = classify_error(e, ErrorCategory.TRACKING)
            self._log(
                f"Evaluation of {self._experiment_key!r} failed: {classified.message}",
                logging.ERROR,
            )

    def reset(self) -> None:
        with self._lock:
            client = self._client
        if client is None:
            return

        released = self._subscriptions.release_all()
        try:
            client.notification_center.clear_all()
        except Exception as e:
            self._log(f"Failed to clear notification listeners: {e}", logging.WARNING)
        logger.info(f"Released {released} notification subscription(s)")

    def shutdown(self) -> None:
        """Stop start retries, release subscriptions and close the SDK client."""
        with self._lock:
            if self._closing:
                return
            self._closing = True
            timer = self._retry_timer
            self._retry_timer = None
            client = self._client

        if timer is not None:
            timer.cancel()
        self._subscriptions.release_all()
        self._settled.set()

        if client is not None:
            try:
                client.close()
            except Exception as e:
                logger.warning(f"Error closing Optimizely client: {e}")

    # Notifications

    def on_decision(
        self,
        type: str,
        user_id: str,
        attributes: Optional[Dict[str, Any]],
        decision_info: Dict[str, Any],
    ) -> None:
        self._log(
            f"Received decision notification: {type} {user_id} {attributes} {decision_info}"
        )
        settings = self._settings
        if settings is None or not settings.listen:
            return

        self._emit_experiment_viewed(
            {
                "type": type,
                "userId": user_id,
                "attributes": attributes or {},
                "decisionInfo": decision_info,
            }
        )

    def on_activate(
        self,
        experiment: Any,
        user_id: str,
        attributes: Optional[Dict[str, Any]],
        variation: Any,
        event: Any,
    ) -> None:
        self._log(
            f"Received activate notification: {getattr(experiment, 'key', experiment)} "
            f"{user_id} {attributes} {getattr(variation, 'key', variation)}"
        )
        settings = self._settings
        if settings is None or not settings.listen:
            return

        self._emit_experiment_viewed(
            {
                "experimentId": getattr(experiment, "id", None),
                "experimentName": getattr(experiment, "key", None),
                "variationId": getattr(variation, "id", None),
                "variationName": getattr(variation, "key", None),
            }
        )

    def on_track(
        self,
        event_key: str,
        user_id: str,
        attributes: Optional[Dict[str, Any]],
        event_tags: Optional[Dict[str, Any]],
        event: Any,
    ) -> None:
        self._log(
            f"Received track notification: {event_key} {user_id} {attributes} {event_tags}"
        )

    def on_datafile_change(self) -> None:
        self._log("Datafile changed")
        client = self._client
        if client is None:
            return
        try:
            revision = client.get_config_revision()
        except Exception as e:
            logger.debug(f"Could not read Optimizely config revision: {e}")
            return
        if revision is not None:
            self._log(f"[OptimizelyConfig] revision = {revision}")

    def _emit_experiment_viewed(self, properties: Dict[str, Any]) -> None:
        analytics = self.analytics
        if analytics is None:
            logger.warning("No analytics client attached, dropping Experiment Viewed")
            return
        try:
            analytics.track(EXPERIMENT_VIEWED, properties)
        except Exception as e:
            logger.warning(f"Failed to track {EXPERIMENT_VIEWED}: {e}")
