"""Settings decoding for the Optimizely destination."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from optimizely_destination.errors import ConfigurationUnavailableError

PLUGIN_KEY = "Optimizely X"


@dataclass(frozen=True)
class PluginSettings:
    """Plugin configuration delivered by the host's remote settings."""

    sdk_key: str
    """Optimizely SDK key (``apiKey`` or ``sdkKey`` in the payload)."""

    track_known_users: bool
    """Only track users that carry a userId."""

    listen: bool = False
    """Relay decision notifications as "Experiment Viewed" events."""

    periodic_download_interval: Optional[int] = None
    """Datafile polling interval in seconds. None keeps the SDK default."""


def _plugin_settings(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    integrations = payload.get("integrations")
    if isinstance(integrations, Mapping):
        scoped = integrations.get(key)
        if not isinstance(scoped, Mapping):
            raise ConfigurationUnavailableError(f"No settings found for {key!r}")
        return scoped
    return payload


def decode_settings(payload: Any, key: str = PLUGIN_KEY) -> PluginSettings:
    """
    Decode plugin settings from a host settings payload.

    The payload may be the full host settings (``{"integrations": {key: {...}}}``)
    or the plugin's own mapping.

    Args:
        payload: Settings payload
        key: Plugin key the settings are scoped to

    Returns:
        Decoded PluginSettings

    Raises:
        ConfigurationUnavailableError: If required fields are missing or malformed
    """
    if not isinstance(payload, Mapping):
        raise ConfigurationUnavailableError("Settings payload is not a mapping")

    settings = _plugin_settings(payload, key)

    sdk_key = settings.get("apiKey") or settings.get("sdkKey")
    if not isinstance(sdk_key, str) or not sdk_key:
        raise ConfigurationUnavailableError("Missing required setting: apiKey")

    track_known_users = settings.get("trackKnownUsers")
    if not isinstance(track_known_users, bool):
        raise ConfigurationUnavailableError("Missing required setting: trackKnownUsers")

    listen = settings.get("listen", False)
    if not isinstance(listen, bool):
        raise ConfigurationUnavailableError("Setting 'listen' must be a boolean")

    interval = settings.get("periodicDownloadInterval")
    if interval is not None and (isinstance(interval, bool) or not isinstance(interval, int)):
        raise ConfigurationUnavailableError(
            "Setting 'periodicDownloadInterval' must be an integer"
        )

    return PluginSettings(
        sdk_key=sdk_key,
        track_known_users=track_known_users,
        listen=listen,
        periodic_download_interval=interval,
    )
