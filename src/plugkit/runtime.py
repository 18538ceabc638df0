"""Runtime glue between a plugin's features and the hub.

``Plugin`` owns the registry of a plugin process: it defines and registers
features, validates invocation payloads against tool parameters and
answers invocation messages coming over a transport. The network transport
itself is supplied by the host.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, cast

from plugkit import cli_logger
from plugkit.config import RuntimeSettings
from plugkit.definitions import (
    Definition,
    DefinitionKind,
    Invoker,
    PluginDefinition,
    ToolDefinition,
    ToolHandler,
    define,
)
from plugkit.registry import FeatureNotFoundError, Registry
from plugkit.validation import ValidationIssue
from plugkit.values import validate_value

REGISTER_EVENT = "register"
INVOKE_EVENT = "invoke"
INVOKE_RESULT_EVENT = "invoke_result"

__all__ = ["InvocationResult", "Invoker", "Plugin", "Transport"]


class Transport(Protocol):
    """Bidirectional message channel to the hub."""

    def push(self, event: str, payload: dict[str, Any]) -> None:
        """Send a message."""
        ...

    def on(self, event: str, handler: Callable[[dict[str, Any]], None]) -> None:
        """Subscribe to incoming messages of an event."""
        ...

    def close(self) -> None:
        """Close the channel."""
        ...


@dataclass
class InvocationResult:
    """Outcome of a tool invocation.

    Attributes:
        ok: True if the tool ran and returned.
        value: The tool's return value when ok.
        issues: Parameter validation issues, if any.
        error: Description of why the invocation failed.
    """

    ok: bool
    value: Any = None
    issues: list[ValidationIssue] = field(default_factory=list)
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-ready message payload."""
        return {
            "ok": self.ok,
            "value": self.value,
            "issues": [
                {"kind": issue.kind.value, "path": list(issue.path), "message": issue.message}
                for issue in self.issues
            ],
            "error": self.error,
        }


def _call(handler: ToolHandler, parameters: dict[str, Any], context: dict[str, Any] | None) -> Any:
    if isinstance(handler, Invoker):
        return handler.invoke(parameters, context)
    return handler(parameters, context)


class Plugin:
    """A plugin process: its definition, features and settings."""

    def __init__(self, definition: PluginDefinition | dict[str, Any], settings: RuntimeSettings) -> None:
        """Create the plugin and register its definition.

        Raises:
            SchemaDefinitionError: If a raw definition is malformed.
        """
        if not isinstance(definition, PluginDefinition):
            definition = cast(PluginDefinition, define(DefinitionKind.PLUGIN, definition))
        self.definition = definition
        self.settings = settings
        self.registry = Registry()
        self.registry.register_plugin(self.definition)
        self._transport: Transport | None = None

    def add_feature(
        self,
        kind: DefinitionKind | str,
        raw: dict[str, Any],
        invoke: ToolHandler | None = None,
    ) -> Definition:
        """Define a feature and register it.

        Raises:
            ValueError: If a tool has no invoke handler.
            SchemaDefinitionError: If the definition is malformed.
            DuplicateFeatureError: If the name is taken for this kind.
        """
        kind = DefinitionKind(kind)
        if kind is DefinitionKind.TOOL and invoke is None:
            msg = f"tool '{raw.get('name')}' needs an invoke handler"
            raise ValueError(msg)
        definition = define(kind, raw, invoke, max_depth=self.settings.max_schema_depth)
        self.registry.register(kind, definition)
        if self.settings.debug:
            cli_logger.dim(f"registered {kind.value} '{definition.name}'")
        return definition

    def invoke(
        self,
        tool_name: str,
        parameters: object,
        context: dict[str, Any] | None = None,
    ) -> InvocationResult:
        """Validate parameters and run a tool.

        Never raises for unknown tools, bad payloads or failing handlers;
        those are reported in the result.
        """
        try:
            tool = cast(ToolDefinition, self.registry.resolve(DefinitionKind.TOOL, tool_name))
        except FeatureNotFoundError as e:
            return InvocationResult(ok=False, error=str(e))

        checked = validate_value(tool.parameters, parameters)
        if not checked.is_valid or checked.value is None:
            return InvocationResult(ok=False, issues=checked.issues, error="invalid parameters")

        try:
            value = _call(tool.invoke, checked.value, context)
        except Exception as e:
            if self.settings.debug:
                cli_logger.error(f"tool '{tool_name}' failed: {e}")
            return InvocationResult(ok=False, error=f"{type(e).__name__}: {e}")
        return InvocationResult(ok=True, value=value)

    def run(self, transport: Transport) -> None:
        """Announce the registry and start answering invocations.

        Raises:
            RegistryError: If the registry cannot be serialized.
        """
        self._transport = transport
        transport.on(INVOKE_EVENT, self._on_invoke)
        transport.push(REGISTER_EVENT, self.registry.serialize())

    def stop(self) -> None:
        """Close the transport if running."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def _on_invoke(self, message: dict[str, Any]) -> None:
        if self._transport is None:
            return
        tool_name = message.get("tool")
        if not isinstance(tool_name, str):
            result = InvocationResult(ok=False, error="message has no tool name")
        else:
            result = self.invoke(tool_name, message.get("parameters", {}), message.get("context"))
        payload = {"tool": tool_name, **result.to_payload()}
        if "id" in message:
            payload["id"] = message["id"]
        self._transport.push(INVOKE_RESULT_EVENT, payload)
