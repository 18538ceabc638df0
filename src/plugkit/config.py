"""Runtime settings for plugin processes.

Settings come from the process environment overlaid by an optional
``.env`` file (the file wins). They are built once at startup by
``load_settings`` and passed to whatever needs them.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from plugkit.engine import DEFAULT_MAX_DEPTH

# Settings field -> environment variable
ENV_KEYS = {
    "hub_mode": "HUB_MODE",
    "hub_ws_url": "HUB_WS_URL",
    "hub_debug_api_key": "HUB_DEBUG_API_KEY",
    "hub_organization_id": "HUB_ORGANIZATION_ID",
    "environment": "PLUGKIT_ENV",
    "debug": "DEBUG",
    "max_schema_depth": "PLUGKIT_MAX_SCHEMA_DEPTH",
}

WEBSOCKET_SCHEMES = ("ws", "wss")


class ConfigError(Exception):
    """Raised when runtime settings are missing or invalid."""


class RuntimeSettings(BaseModel):
    """Resolved settings of a plugin process."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    hub_mode: Literal["debug", "release"] = Field(
        default="debug",
        description="Hub server runtime mode",
    )
    hub_ws_url: str = Field(description="WebSocket URL of the hub server")
    hub_debug_api_key: str | None = Field(
        default=None,
        description="API key used against the hub in debug mode",
    )
    hub_organization_id: str | None = Field(
        default=None,
        description="Organization the plugin belongs to",
    )
    environment: Literal["development", "production", "test"] = Field(
        default="development",
        description="Deployment environment",
    )
    debug: bool = Field(default=True, description="Whether debug output is enabled")
    max_schema_depth: int = Field(
        default=DEFAULT_MAX_DEPTH,
        ge=1,
        description="Nesting limit applied to property schemas",
    )

    @field_validator("hub_ws_url")
    @classmethod
    def validate_hub_ws_url(cls, v: str) -> str:
        """Validate that the hub URL is a WebSocket URL."""
        parsed = urlparse(v)
        if parsed.scheme not in WEBSOCKET_SCHEMES or not parsed.netloc:
            msg = "must be a valid WebSocket URL (ws:// or wss://)"
            raise ValueError(msg)
        return v


def load_env_file(path: Path) -> dict[str, str]:
    """Load environment variables from a .env file.

    Args:
        path: Path to the .env file.

    Returns:
        Dictionary of environment variable names to values.
        Returns empty dict if file doesn't exist.
    """
    if not path.exists():
        return {}

    raw_values = dotenv_values(path)
    return {k: v for k, v in raw_values.items() if v is not None}


def resolve_debug(value: str | None, environment: str) -> bool:
    """Resolve the DEBUG flag.

    Unset means enabled outside production; otherwise only ``true``
    (any case) enables it.
    """
    if value is None:
        return environment != "production"
    return value.strip().lower() == "true"


def _format_error(error: ValidationError) -> str:
    messages = []
    for err in error.errors(include_url=False):
        field = str(err["loc"][0]) if err["loc"] else ""
        key = ENV_KEYS.get(field, field)
        if err["type"] == "missing":
            messages.append(f"'{key}': variable is required")
        else:
            messages.append(f"'{key}': {err['msg'].lower()}")
    return "; ".join(messages)


def load_settings(
    environ: Mapping[str, str] | None = None,
    env_file: Path | None = None,
) -> RuntimeSettings:
    """Build runtime settings.

    Args:
        environ: Variables to read; defaults to the process environment.
        env_file: Optional .env file whose values override environ.

    Returns:
        The resolved settings.

    Raises:
        ConfigError: If a variable is missing or invalid.
    """
    source = dict(os.environ if environ is None else environ)
    if env_file is not None:
        source.update(load_env_file(env_file))

    data: dict[str, object] = {
        field: source[key]
        for field, key in ENV_KEYS.items()
        if key in source and field != "debug"
    }
    environment = source.get(ENV_KEYS["environment"], "development")
    data["debug"] = resolve_debug(source.get(ENV_KEYS["debug"]), environment)

    try:
        return RuntimeSettings.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid configuration: {_format_error(e)}"
        raise ConfigError(msg) from e
