"""
Bot configuration.

Defaults are the sample bot's fixed constants. ``from_env`` overlays
``SAMPLEBOT_*`` environment variables (``run.py`` loads a ``.env`` file
first), and the CLI overrides individual fields from flags.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Mapping

# env var -> field name
_ENV_FIELDS = {
    "SAMPLEBOT_SERVER_URL": "server_url",
    "SAMPLEBOT_WEBSOCKET_URL": "websocket_url",
    "SAMPLEBOT_EMAIL": "email",
    "SAMPLEBOT_PASSWORD": "password",
    "SAMPLEBOT_USERNAME": "username",
    "SAMPLEBOT_FIRST_NAME": "first_name",
    "SAMPLEBOT_LAST_NAME": "last_name",
    "SAMPLEBOT_TEAM": "team_name",
    "SAMPLEBOT_LOG_CHANNEL": "log_channel_name",
}


@dataclass
class BotConfig:
    """Everything the bootstrap sequencer needs to know."""

    name: str = "Mattermost Bot Sample"

    # Server
    server_url: str = "http://localhost:8065"
    websocket_url: str = ""             # Empty = derived from server_url
    request_timeout: float | None = None  # None = wait forever

    # Credentials
    email: str = "bot@example.com"
    password: str = "1qaz@WSX3edc"

    # Desired display identity
    username: str = "samplebot"
    first_name: str = "Sample"
    last_name: str = "Bot"

    # Team / logging channel
    team_name: str = "localteam"
    log_channel_name: str = "debugging-for-sample-bot"
    log_channel_display_name: str = "Debugging For Sample Bot"
    log_channel_purpose: str = "This is used as a test channel for logging bot debug messages"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BotConfig":
        """Build a config from defaults plus ``SAMPLEBOT_*`` variables."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for key, field_name in _ENV_FIELDS.items():
            val = env.get(key, "").strip()
            if val:
                values[field_name] = val

        timeout = env.get("SAMPLEBOT_REQUEST_TIMEOUT", "").strip()
        if timeout:
            try:
                values["request_timeout"] = float(timeout)
            except ValueError:
                raise ValueError(
                    f"SAMPLEBOT_REQUEST_TIMEOUT must be a number, got {timeout!r}"
                ) from None

        return cls(**values)  # type: ignore[arg-type]

    def replace(self, **changes: object) -> "BotConfig":
        """Return a copy with non-empty ``changes`` applied."""
        known = {f.name for f in fields(self)}
        current = {name: getattr(self, name) for name in known}
        for key, val in changes.items():
            if key not in known:
                raise TypeError(f"Unknown config field: {key!r}")
            if val not in (None, ""):
                current[key] = val
        return type(self)(**current)  # type: ignore[arg-type]

    @property
    def ws_url(self) -> str:
        """Websocket base URL (without the /api/v4/websocket path)."""
        if self.websocket_url:
            return self.websocket_url.rstrip("/")
        url = self.server_url.rstrip("/")
        if url.startswith("https://"):
            return "wss://" + url[len("https://"):]
        if url.startswith("http://"):
            return "ws://" + url[len("http://"):]
        return url

    @property
    def started_message(self) -> str:
        return f"_{self.name} has **started** running_"

    @property
    def stopped_message(self) -> str:
        return f"_{self.name} has **stopped** running_"
