"""Shared test fixtures for plugkit tests."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml
from typer.testing import CliRunner

from plugkit.config import RuntimeSettings

EN = {"en_US": "Label"}


def prop(name: str, type_: str = "string", **fields: Any) -> dict[str, Any]:
    """Build a raw property descriptor."""
    return {"name": name, "type": type_, **fields}


def branch(name: str, tag: Any, *children: dict[str, Any], discriminator: str = "kind") -> dict[str, Any]:
    """Build an object branch of a polymorphic group.

    The branch declares a discriminator child carrying ``tag`` as constant.
    Booleans become boolean properties, numbers number properties.
    """
    if isinstance(tag, bool):
        tag_type = "boolean"
    elif isinstance(tag, (int, float)):
        tag_type = "number"
    else:
        tag_type = "string"
    return prop(
        name,
        "object",
        properties=[prop(discriminator, tag_type, constant=tag), *children],
    )


def header(name: str = "web-search") -> dict[str, Any]:
    """Build the fields shared by every definition."""
    return {
        "name": name,
        "display_name": {"en_US": "Web Search"},
        "description": {"en_US": "Searches the web"},
        "icon": "search",
    }


def plugin_raw(**overrides: Any) -> dict[str, Any]:
    """Build a valid raw plugin definition."""
    return {
        **header("search-kit"),
        "author": "Jane Doe",
        "email": "jane@example.com",
        "repo": "https://github.com/example/search-kit",
        "version": "1.0.0",
        "locales": ["en_US", "zh_Hans"],
        **overrides,
    }


def tool_raw(name: str = "web-search", **overrides: Any) -> dict[str, Any]:
    """Build a valid raw tool definition with a query parameter."""
    return {
        **header(name),
        "parameters": [
            prop("query", required=True, min_length=1),
            prop("limit", "integer", default=10, minimum=1, maximum=50),
        ],
        **overrides,
    }


def model_raw(**overrides: Any) -> dict[str, Any]:
    """Build a valid raw model definition."""
    return {
        **header("openai/gpt-4o"),
        "model_type": "llm",
        "input_modalities": ["text", "image"],
        "output_modalities": ["text"],
        "unsupported_parameters": ["seed"],
        **overrides,
    }


def write_yaml(path: Path, data: Any) -> Path:
    """Write data as YAML and return the path."""
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


class FakeTransport:
    """In-memory transport recording pushed messages."""

    def __init__(self) -> None:
        """Create a transport with no subscribers."""
        self.pushed: list[tuple[str, dict[str, Any]]] = []
        self.handlers: dict[str, Callable[[dict[str, Any]], None]] = {}
        self.closed = False

    def push(self, event: str, payload: dict[str, Any]) -> None:
        self.pushed.append((event, payload))

    def on(self, event: str, handler: Callable[[dict[str, Any]], None]) -> None:
        self.handlers[event] = handler

    def close(self) -> None:
        self.closed = True

    def deliver(self, event: str, message: dict[str, Any]) -> None:
        """Simulate an incoming message from the hub."""
        self.handlers[event](message)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def settings() -> RuntimeSettings:
    """Provide runtime settings for a test environment."""
    return RuntimeSettings(hub_ws_url="ws://localhost:4000/socket", environment="test", debug=False)
