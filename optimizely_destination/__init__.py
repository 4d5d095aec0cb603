"""
Optimizely Full Stack destination for analytics pipelines.

Usage:
    from optimizely_destination import OptimizelyFullStack, UpdateType

    plugin = OptimizelyFullStack(experiment_key="checkout_flow")
    plugin.configure(analytics)
    plugin.update(settings, UpdateType.INITIAL)
"""

from optimizely_destination.destination import (
    AdapterState,
    OptimizelyFullStack,
    KNOWN_USERS_WARNING,
)
from optimizely_destination.dispatcher import DispatcherConfig, HttpxEventDispatcher
from optimizely_destination.errors import (
    DestinationError,
    ConfigurationUnavailableError,
    InitializationError,
    TrackingError,
    DispatchError,
    ErrorCategory,
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
    Subscription,
    SubscriptionSet,
)
from optimizely_destination.optimizely_client import OptimizelyExperimentationClient
from optimizely_destination.retry import RetryConfig, calculate_backoff, is_retryable_error
from optimizely_destination.sdk import (
    ExperimentationClient,
    ExperimentationUserContext,
    NotificationCenter,
)
from optimizely_destination.settings import PLUGIN_KEY, PluginSettings, decode_settings

__version__ = "1.0.0"
__all__ = [
    # Destination
    "OptimizelyFullStack",
    "AdapterState",
    "KNOWN_USERS_WARNING",
    # Settings
    "PLUGIN_KEY",
    "PluginSettings",
    "decode_settings",
    # Host events
    "EXPERIMENT_VIEWED",
    "Analytics",
    "DestinationPlugin",
    "IdentifyEvent",
    "TrackEvent",
    "UpdateType",
    "UserContext",
    # Notifications
    "NotificationListener",
    "NotificationMode",
    "NotificationType",
    "Subscription",
    "SubscriptionSet",
    # SDK
    "ExperimentationClient",
    "ExperimentationUserContext",
    "NotificationCenter",
    "OptimizelyExperimentationClient",
    # Dispatch
    "DispatcherConfig",
    "HttpxEventDispatcher",
    # Retry
    "RetryConfig",
    "calculate_backoff",
    "is_retryable_error",
    # Errors
    "DestinationError",
    "ConfigurationUnavailableError",
    "InitializationError",
    "TrackingError",
    "DispatchError",
    "ErrorCategory",
]
