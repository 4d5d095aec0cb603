"""
Error types for the Optimizely destination.

None of these escape the plugin's host-facing methods; they classify
failures so they can be logged and, where it makes sense, retried.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Categories of errors for classification."""

    CONFIGURATION = "configuration"
    INITIALIZATION = "initialization"
    TRACKING = "tracking"
    NETWORK = "network"
    UNKNOWN = "unknown"


class DestinationError(Exception):
    """Base exception for all destination errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code
        self.retryable = retryable

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, category={self.category})"


class ConfigurationUnavailableError(DestinationError):
    """Raised when the plugin settings cannot be decoded."""

    def __init__(self, message: str = "Optimizely settings unavailable"):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


class InitializationError(DestinationError):
    """Raised when the experimentation SDK fails to start."""

    def __init__(self, message: str = "Optimizely SDK initialization failed"):
        super().__init__(
            message,
            category=ErrorCategory.INITIALIZATION,
            retryable=True,
        )


class TrackingError(DestinationError):
    """Raised when a track, decide or activate call fails."""

    def __init__(self, message: str = "Optimizely tracking failed"):
        super().__init__(
            message,
            category=ErrorCategory.TRACKING,
            retryable=False,
        )


class DispatchError(DestinationError):
    """Raised when an event batch cannot be delivered to Optimizely."""

    def __init__(
        self,
        message: str = "Event dispatch failed",
        status_code: Optional[int] = None,
    ):
        retryable = status_code is None or status_code == 429 or status_code >= 500
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            status_code=status_code,
            retryable=retryable,
        )


def classify_error(
    error: Exception, category: ErrorCategory = ErrorCategory.UNKNOWN
) -> DestinationError:
    """
    Classify an exception into a DestinationError.

    Args:
        error: The original exception
        category: Category to use when the error is not network related

    Returns:
        A classified DestinationError
    """
    if isinstance(error, DestinationError):
        return error

    message = str(error) or error.__class__.__name__

    network_indicators = [
        "connection",
        "timeout",
        "econnrefused",
        "etimedout",
        "enotfound",
        "network",
        "dns",
    ]
    if any(indicator in message.lower() for indicator in network_indicators):
        return DispatchError(message)

    if category == ErrorCategory.CONFIGURATION:
        return ConfigurationUnavailableError(message)
    if category == ErrorCategory.INITIALIZATION:
        return InitializationError(message)
    if category == ErrorCategory.TRACKING:
        return TrackingError(message)

    return DestinationError(message)
