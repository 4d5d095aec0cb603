"""
Notification subscriptions between the experimentation SDK and the adapter.

The adapter implements ``NotificationListener``; the SDK's notification
center hands back a ``Subscription`` per registered callback, and the
adapter keeps them in a ``SubscriptionSet`` so they can be released together.
"""

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("optimizely_destination.notifications")


class NotificationType(str, Enum):
    """Notification kinds emitted by the experimentation SDK."""

    DECISION = "decision"
    ACTIVATE = "activate"
    TRACK = "track"
    DATAFILE_CHANGE = "datafile_change"


class NotificationMode(str, Enum):
    """
    Which experiment notification family an adapter subscribes to.

    DECISION uses the decide API; ACTIVATE uses the legacy activate API.
    An adapter instance uses exactly one of them.
    """

    DECISION = "decision"
    ACTIVATE = "activate"


class NotificationListener(ABC):
    """Observer interface for experimentation SDK notifications."""

    @abstractmethod
    def on_decision(
        self,
        type: str,
        user_id: str,
        attributes: Optional[Dict[str, Any]],
        decision_info: Dict[str, Any],
    ) -> None:
        """A variation decision was computed."""

    @abstractmethod
    def on_activate(
        self,
        experiment: Any,
        user_id: str,
        attributes: Optional[Dict[str, Any]],
        variation: Any,
        event: Any,
    ) -> None:
        """A user was activated into an experiment (legacy API)."""

    @abstractmethod
    def on_track(
        self,
        event_key: str,
        user_id: str,
        attributes: Optional[Dict[str, Any]],
        event_tags: Optional[Dict[str, Any]],
        event: Any,
    ) -> None:
        """The SDK tracked a conversion event."""

    @abstractmethod
    def on_datafile_change(self) -> None:
        """The SDK loaded a new datafile revision."""


class Subscription:
    """Handle for one registered notification callback."""

    def __init__(
        self,
        notification_type: NotificationType,
        unsubscribe: Callable[[], None],
    ):
        self.notification_type = notification_type
        self._unsubscribe = unsubscribe
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Remove the callback. Safe to call more than once."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
        self._unsubscribe()


class SubscriptionSet:
    """Collects subscriptions so they can be released together."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def add(self, subscription: Subscription) -> Subscription:
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def release_all(self) -> int:
        """
        Cancel every held subscription.

        Returns:
            Number of subscriptions released
        """
        with self._lock:
            subscriptions = self._subscriptions
            self._subscriptions = []

        for subscription in subscriptions:
            try:
                subscription.cancel()
            except Exception as e:
                logger.warning(
                    f"Failed to release {subscription.notification_type.value} subscription: {e}"
                )
        return len(subscriptions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
