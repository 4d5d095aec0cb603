"""
Binding of the experimentation SDK interface onto the Optimizely Python SDK.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from optimizely import optimizely as optimizely_sdk
from optimizely.config_manager import PollingConfigManager
from optimizely.helpers import enums
from optimizely.notification_center import NotificationCenter as SdkNotificationCenter

from optimizely_destination.dispatcher import HttpxEventDispatcher
from optimizely_destination.errors import (
    ErrorCategory,
    DestinationError,
    InitializationError,
    TrackingError,
    classify_error,
)
from optimizely_destination.notifications import NotificationType, Subscription
from optimizely_destination.sdk import (
    ExperimentationClient,
    ExperimentationUserContext,
    NotificationCenter,
    StartCallback,
)
from optimizely_destination.settings import PluginSettings

logger = logging.getLogger("optimizely_destination.sdk")

_SDK_NOTIFICATION_TYPES = {
    NotificationType.DECISION: enums.NotificationTypes.DECISION,
    NotificationType.ACTIVATE: enums.NotificationTypes.ACTIVATE,
    NotificationType.TRACK: enums.NotificationTypes.TRACK,
    NotificationType.DATAFILE_CHANGE: enums.NotificationTypes.OPTIMIZELY_CONFIG_UPDATE,
}


def _off_poller_thread(callback: Callable[..., None]) -> Callable[..., None]:
    # Datafile listeners read the config back; keep them off the polling thread
    def run(*args) -> None:
        threading.Thread(
            target=callback,
            args=args,
            name="optimizely-datafile-change",
            daemon=True,
        ).start()

    return run


class OptimizelyNotificationCenter(NotificationCenter):
    """Wraps ``optimizely.notification_center.NotificationCenter``."""

    def __init__(self, center: SdkNotificationCenter):
        self._center = center

    @property
    def sdk_center(self) -> SdkNotificationCenter:
        return self._center

    def subscribe(
        self, notification_type: NotificationType, callback: Callable[..., None]
    ) -> Subscription:
        if notification_type == NotificationType.DATAFILE_CHANGE:
            callback = _off_poller_thread(callback)
        listener_id = self._center.add_notification_listener(
            _SDK_NOTIFICATION_TYPES[notification_type], callback
        )
        if listener_id == -1:
            raise DestinationError(
                f"Could not register {notification_type.value} listener"
            )
        return Subscription(
            notification_type,
            lambda: self._center.remove_notification_listener(listener_id),
        )

    def clear_all(self) -> None:
        self._center.clear_all_notification_listeners()


class OptimizelyUserContextAdapter(ExperimentationUserContext):
    """Wraps ``optimizely.optimizely_user_context.OptimizelyUserContext``."""

    def __init__(self, user_context: Any):
        self._user_context = user_context

    def track_event(self, event_key: str, event_tags: Optional[Dict[str, Any]] = None) -> None:
        self._user_context.track_event(event_key, event_tags)

    def decide(self, key: str) -> Any:
        return self._user_context.decide(key)


class OptimizelyExperimentationClient(ExperimentationClient):
    """
    Experimentation client backed by ``optimizely.optimizely.Optimizely``.

    The SDK instance is built lazily in ``start()`` so that listeners
    subscribed beforehand see the first datafile load. Start runs on a
    daemon thread that waits for the polling config manager to produce a
    config, then reports through the callback.

    Example:
        ```python
        client = OptimizelyExperimentationClient("sdk-key", update_interval=60)
        client.notification_center.subscribe(NotificationType.TRACK, on_track)
        client.start(lambda error: print("ready" if error is None else error))
        ```
    """

    def __init__(
        self,
        sdk_key: str,
        update_interval: Optional[int] = None,
        blocking_timeout: int = 10,
        event_dispatcher: Optional[HttpxEventDispatcher] = None,
    ):
        self._sdk_key = sdk_key
        self._update_interval = update_interval
        self._blocking_timeout = blocking_timeout
        self._event_dispatcher = event_dispatcher or HttpxEventDispatcher()
        self._notification_center = OptimizelyNotificationCenter(SdkNotificationCenter(logger))
        self._client: Optional[optimizely_sdk.Optimizely] = None
        self._config_manager: Optional[PollingConfigManager] = None
        self._config_manager_built = threading.Event()
        self._started = threading.Event()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: PluginSettings) -> "OptimizelyExperimentationClient":
        """Build a client from decoded plugin settings."""
        return cls(settings.sdk_key, update_interval=settings.periodic_download_interval)

    @property
    def notification_center(self) -> OptimizelyNotificationCenter:
        return self._notification_center

    @property
    def config_manager(self) -> Optional[PollingConfigManager]:
        """The datafile poller, once start() has built it."""
        return self._config_manager

    def start(self, callback: StartCallback) -> None:
        self._started.set()
        thread = threading.Thread(
            target=self._run_start,
            args=(callback,),
            name="optimizely-start",
            daemon=True,
        )
        thread.start()

    def _build_client(self) -> optimizely_sdk.Optimizely:
        config_manager = PollingConfigManager(
            sdk_key=self._sdk_key,
            update_interval=self._update_interval,
            blocking_timeout=self._blocking_timeout,
            logger=logger,
            notification_center=self._notification_center.sdk_center,
        )
        self._config_manager = config_manager
        self._config_manager_built.set()
        return optimizely_sdk.Optimizely(
            config_manager=config_manager,
            notification_center=self._notification_center.sdk_center,
            event_dispatcher=self._event_dispatcher,
            logger=logger,
        )

    def _run_start(self, callback: StartCallback) -> None:
        try:
            with self._lock:
                if self._client is None:
                    self._client = self._build_client()
                client = self._client

            if client.config_manager.get_config() is None:
                raise InitializationError(
                    f"No datafile loaded within {self._blocking_timeout}s"
                )
            if not client.is_valid:
                raise InitializationError("Optimizely instance is invalid")
        except Exception as e:
            callback(classify_error(e, ErrorCategory.INITIALIZATION))
            return

        callback(None)

    def _require_client(self) -> optimizely_sdk.Optimizely:
        client = self._client
        if client is None:
            raise TrackingError("Optimizely client has not been started")
        return client

    def create_user_context(
        self, user_id: str, attributes: Optional[Dict[str, Any]] = None
    ) -> OptimizelyUserContextAdapter:
        user_context = self._require_client().create_user_context(user_id, attributes)
        if user_context is None:
            raise TrackingError(f"Could not create user context for {user_id!r}")
        return OptimizelyUserContextAdapter(user_context)

    def activate(
        self,
        experiment_key: str,
        user_id: str,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        return self._require_client().activate(experiment_key, user_id, attributes)

    def get_config_revision(self) -> Optional[str]:
        if not self._started.is_set():
            return None
        # The first datafile can be published before _build_client returns
        if not self._config_manager_built.wait(self._blocking_timeout):
            return None
        config = self._config_manager.get_config()
        return config.revision if config else None

    def close(self) -> None:
        with self._lock:
            client = self._client
            self._client = None
        if client is not None:
            client.close()
        self._event_dispatcher.close()
