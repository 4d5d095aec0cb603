"""
Interface of the experimentation SDK consumed by the destination.

``optimizely_client.OptimizelyExperimentationClient`` binds it to the
Optimizely Python SDK; tests bind it to in-memory doubles.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from optimizely_destination.notifications import NotificationType, Subscription

StartCallback = Callable[[Optional[Exception]], None]
"""Called once start completes: None on success, the error on failure."""


class ExperimentationUserContext(ABC):
    """SDK object binding a user id and attributes to decide/track calls."""

    @abstractmethod
    def track_event(self, event_key: str, event_tags: Optional[Dict[str, Any]] = None) -> None:
        """Track a conversion event. Raises on failure."""

    @abstractmethod
    def decide(self, key: str) -> Any:
        """Evaluate a flag for this user."""


class NotificationCenter(ABC):
    """Registry of SDK notification callbacks."""

    @abstractmethod
    def subscribe(
        self, notification_type: NotificationType, callback: Callable[..., None]
    ) -> Subscription:
        """Register a callback and return its unsubscribe handle."""

    @abstractmethod
    def clear_all(self) -> None:
        """Remove every registered callback."""


class ExperimentationClient(ABC):
    """Handle to an experimentation SDK instance."""

    @property
    @abstractmethod
    def notification_center(self) -> NotificationCenter:
        ...

    @abstractmethod
    def start(self, callback: StartCallback) -> None:
        """Begin asynchronous initialization. Must not block."""

    @abstractmethod
    def create_user_context(
        self, user_id: str, attributes: Optional[Dict[str, Any]] = None
    ) -> ExperimentationUserContext:
        ...

    @abstractmethod
    def activate(
        self,
        experiment_key: str,
        user_id: str,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """Activate a user into an experiment (legacy API). Returns the variation key."""

    @abstractmethod
    def get_config_revision(self) -> Optional[str]:
        """Revision of the currently loaded datafile, if any."""

    def close(self) -> None:
        pass
