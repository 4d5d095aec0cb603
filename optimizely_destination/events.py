"""
Host-facing types: analytics events, the host interface and the plugin base.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any

EXPERIMENT_VIEWED = "Experiment Viewed"
"""Name of the track event synthesized from experiment notifications."""


class UpdateType(str, Enum):
    """Kind of settings update delivered by the host."""

    INITIAL = "initial"
    REFRESH = "refresh"


@dataclass
class IdentifyEvent:
    """An identify call from the host pipeline."""

    user_id: Optional[str] = None
    anonymous_id: Optional[str] = None
    traits: Optional[Dict[str, Any]] = None


@dataclass
class TrackEvent:
    """A track call from the host pipeline."""

    event: str
    properties: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None
    anonymous_id: Optional[str] = None


@dataclass(frozen=True)
class UserContext:
    """Identity held between identify and track calls."""

    user_id: str
    traits: Optional[Dict[str, Any]] = None


class Analytics(ABC):
    """The host analytics client, as seen by a destination plugin."""

    @abstractmethod
    def track(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        """Enqueue a track event into the host pipeline."""

    @abstractmethod
    def log(self, message: str) -> None:
        """Write to the host's logging sink."""


class DestinationPlugin(ABC):
    """
    Base class for destination plugins.

    The host calls ``update`` with its remote settings and then routes every
    identify/track/reset call through the plugin. Event methods return the
    event they were given, or None to drop it.
    """

    key: str = ""
    analytics: Optional[Analytics] = None

    def configure(self, analytics: Analytics) -> None:
        """Attach the plugin to a host analytics client."""
        self.analytics = analytics

    @abstractmethod
    def update(self, settings: Dict[str, Any], type: UpdateType) -> None:
        """Receive a settings update from the host."""

    def identify(self, event: IdentifyEvent) -> Optional[IdentifyEvent]:
        return event

    def track(self, event: TrackEvent) -> Optional[TrackEvent]:
        return event

    def reset(self) -> None:
        pass
