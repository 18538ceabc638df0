"""In-process registry of a plugin's features.

Features are keyed by kind and name. A name can be registered once per
kind; the snapshot produced by ``serialize`` is what gets announced to the
hub.
"""

from typing import Any

from plugkit.definitions import (
    DEFINITION_MODELS,
    FEATURE_KINDS,
    Definition,
    DefinitionKind,
    PluginDefinition,
    serialize_definition,
)


class RegistryError(Exception):
    """Raised when the registry is used inconsistently."""


class DuplicateFeatureError(RegistryError):
    """Raised when a feature name is already registered for its kind."""

    def __init__(self, kind: DefinitionKind, name: str) -> None:
        """Initialize with the conflicting kind and name."""
        self.kind = kind
        self.name = name
        super().__init__(f"{kind.value} '{name}' is already registered")


class FeatureNotFoundError(RegistryError):
    """Raised when resolving a feature that was never registered."""

    def __init__(self, kind: DefinitionKind, name: str) -> None:
        """Initialize with the missing kind and name."""
        self.kind = kind
        self.name = name
        super().__init__(f"{kind.value} '{name}' is not registered")


def _feature_kind(kind: DefinitionKind | str) -> DefinitionKind:
    kind = DefinitionKind(kind)
    if kind not in FEATURE_KINDS:
        msg = f"'{kind.value}' is not a feature kind"
        raise ValueError(msg)
    return kind


class Registry:
    """Name-keyed store of validated definitions."""

    def __init__(self) -> None:
        """Create an empty registry."""
        self.plugin: PluginDefinition | None = None
        self._features: dict[DefinitionKind, dict[str, Definition]] = {
            kind: {} for kind in FEATURE_KINDS
        }

    def register_plugin(self, plugin: PluginDefinition) -> None:
        """Record the plugin definition.

        Raises:
            RegistryError: If a plugin is already registered.
        """
        if self.plugin is not None:
            msg = f"plugin '{self.plugin.name}' is already registered"
            raise RegistryError(msg)
        self.plugin = plugin

    def register(self, kind: DefinitionKind | str, definition: Definition) -> None:
        """Register a feature definition.

        Raises:
            TypeError: If the definition does not match kind.
            DuplicateFeatureError: If kind already has a feature with this name.
        """
        kind = _feature_kind(kind)
        expected = DEFINITION_MODELS[kind]
        if type(definition) is not expected:
            msg = f"expected {expected.__name__} for {kind.value}, got {type(definition).__name__}"
            raise TypeError(msg)

        features = self._features[kind]
        if definition.name in features:
            raise DuplicateFeatureError(kind, definition.name)
        features[definition.name] = definition

    def resolve(self, kind: DefinitionKind | str, name: str) -> Definition:
        """Look up a registered feature.

        Raises:
            FeatureNotFoundError: If no feature of kind has this name.
        """
        kind = _feature_kind(kind)
        try:
            return self._features[kind][name]
        except KeyError:
            raise FeatureNotFoundError(kind, name) from None

    def features(self, kind: DefinitionKind | str) -> list[Definition]:
        """Return the features of a kind in registration order."""
        return list(self._features[_feature_kind(kind)].values())

    def serialize(self) -> dict[str, Any]:
        """Snapshot every definition in wire form, without handlers.

        Raises:
            RegistryError: If no plugin is registered.
        """
        if self.plugin is None:
            msg = "Plugin is not registered"
            raise RegistryError(msg)
        snapshot: dict[str, Any] = {"plugin": serialize_definition(self.plugin)}
        for kind in FEATURE_KINDS:
            snapshot[kind.value] = [
                serialize_definition(definition) for definition in self._features[kind].values()
            ]
        return snapshot
