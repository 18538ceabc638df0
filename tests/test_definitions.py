"""Tests for feature definitions."""

from typing import Any

import pytest

from plugkit.definitions import (
    DefinitionKind,
    ModelDefinition,
    PluginDefinition,
    SchemaDefinitionError,
    ToolDefinition,
    define,
    serialize_definition,
    validate_definition,
)
from plugkit.validation import IssueKind
from tests.conftest import header, model_raw, plugin_raw, prop, tool_raw


def search(parameters: dict[str, Any], context: dict[str, Any] | None = None) -> list[str]:
    return [parameters["query"]]


class TestDefinitionName:
    """Tests for the naming rules shared by plugins and features."""

    @pytest.mark.parametrize(
        "name",
        ["abcde", "Abcdef", "abcde1", "abc-def", "abc_def", "a-b_c-d", "a" * 64],
    )
    def test_accepts_valid_names(self, name: str) -> None:
        """Verify names within the rules are accepted."""
        assert validate_definition("credential", {**header(name), "parameters": []}).is_valid

    @pytest.mark.parametrize(
        "name",
        [
            "abc",
            "abc-",
            "a" * 65,
            "1abcde",
            "_abcde",
            "-abcde",
            "abcde_",
            "abcde-",
            "abc--def",
            "abc__def",
            "abc-_def",
            "abc def",
            "abc@def",
            "abc.def",
        ],
    )
    def test_rejects_invalid_names(self, name: str) -> None:
        """Verify length, edge characters and separators are enforced."""
        # When
        result = validate_definition("credential", {**header(name), "parameters": []})

        # Then
        assert result.kinds() == [IssueKind.INVALID_NAME]
        assert result.issues[0].path == ("name",)


class TestPluginDefinition:
    """Tests for the plugin definition."""

    def test_accepts_valid_plugin(self) -> None:
        """Verify a complete plugin document is accepted."""
        result = validate_definition(DefinitionKind.PLUGIN, plugin_raw())

        assert result.is_valid
        assert isinstance(result.value, PluginDefinition)
        assert result.value.email == "jane@example.com"

    def test_repo_and_version_are_optional(self) -> None:
        """Verify repo and version may be omitted."""
        raw = plugin_raw()
        del raw["repo"], raw["version"]

        assert validate_definition("plugin", raw).is_valid

    @pytest.mark.parametrize(
        ("field", "value"),
        [("email", "not-an-email"), ("repo", "not a url"), ("author", 42)],
    )
    def test_rejects_bad_fields(self, field: str, value: Any) -> None:
        """Verify e-mail, repository URL and author are checked."""
        result = validate_definition("plugin", plugin_raw(**{field: value}))

        assert result.kinds() == [IssueKind.INVALID_FIELD]
        assert result.issues[0].path == (field,)

    def test_locales_require_en_us(self) -> None:
        """Verify en_US must be listed."""
        result = validate_definition("plugin", plugin_raw(locales=["zh_Hans"]))

        assert result.issues[0].path == ("locales",)
        assert "en_US" in result.issues[0].message

    def test_locales_must_be_well_formed(self) -> None:
        """Verify every locale has the <lang>_<Region> form."""
        result = validate_definition("plugin", plugin_raw(locales=["en_US", "zh-hans"]))

        assert "invalid locale" in result.issues[0].message

    def test_rejects_unknown_fields(self) -> None:
        """Verify plugin documents are closed-world."""
        result = validate_definition("plugin", plugin_raw(homepage="https://example.com"))

        assert result.issues[0].path == ("homepage",)

    def test_missing_header_fields(self) -> None:
        """Verify every header field is reported when absent."""
        result = validate_definition("plugin", {"name": "search-kit"})

        paths = [issue.path for issue in result.issues]
        assert ("display_name",) in paths
        assert ("email",) in paths
        assert ("locales",) in paths


class TestFeatureDefinitions:
    """Tests for tool, credential and data source definitions."""

    def test_tool_with_handler(self) -> None:
        """Verify a tool keeps its handler attached."""
        result = validate_definition("tool", tool_raw(), search)

        assert isinstance(result.value, ToolDefinition)
        assert result.value.invoke is search
        assert [p.name for p in result.value.parameters] == ["query", "limit"]

    def test_handler_must_be_callable(self) -> None:
        """Verify a non-callable handler is rejected."""
        result = validate_definition("tool", {**tool_raw(), "invoke": "search"})

        assert result.kinds() == [IssueKind.INVALID_FIELD]
        assert result.issues[0].path == ("invoke",)

    def test_handler_only_for_tools(self) -> None:
        """Verify passing a handler for another kind is a programming error."""
        with pytest.raises(ValueError, match="only applies to tools"):
            validate_definition("credential", {**header(), "parameters": []}, search)

    def test_property_issue_paths(self) -> None:
        """Verify property issues are located under their list."""
        # Given
        raw = tool_raw(parameters=[prop("query"), prop("query")], settings=[prop("a.b")])

        # When
        result = validate_definition("tool", raw)

        # Then
        assert [(issue.kind, issue.path) for issue in result.issues] == [
            (IssueKind.DUPLICATE_PROPERTY_NAME, ("parameters", 1, "name")),
            (IssueKind.INVALID_NAME, ("settings", 0, "name")),
        ]

    def test_header_and_property_issues_together(self) -> None:
        """Verify header issues come first, then property issues."""
        raw = tool_raw(name="ws", parameters=[prop("n", "number", default="={{ 1 }}")])

        result = validate_definition("tool", raw)

        assert result.kinds() == [IssueKind.INVALID_NAME, IssueKind.EXPRESSION_NOT_ALLOWED]

    def test_parameters_must_be_a_list(self) -> None:
        """Verify a non-list property field is a header issue."""
        result = validate_definition("credential", {**header(), "parameters": {"query": "string"}})

        assert result.kinds() == [IssueKind.INVALID_FIELD]
        assert result.issues[0].path == ("parameters",)

    def test_data_source_settings_are_optional(self) -> None:
        """Verify data sources may omit settings."""
        assert validate_definition("data_source", {**header(), "parameters": []}).is_valid

    def test_credential_has_no_settings(self) -> None:
        """Verify credentials only carry parameters."""
        result = validate_definition("credential", {**header(), "parameters": [], "settings": []})

        assert result.issues[0].path == ("settings",)

    def test_rejects_non_object(self) -> None:
        """Verify a definition must be an object."""
        result = validate_definition("tool", ["web-search"])

        assert result.kinds() == [IssueKind.INVALID_FIELD]
        assert result.issues[0].path == ()

    def test_unknown_kind(self) -> None:
        """Verify an unknown kind raises ValueError."""
        with pytest.raises(ValueError):
            validate_definition("agent", {})

    def test_depth_limit_applies_to_properties(self) -> None:
        """Verify the nesting limit is passed to the engine."""
        raw = tool_raw(parameters=[prop("filters", "object", properties=[prop("lang")])])

        result = validate_definition("tool", raw, max_depth=2)

        assert result.kinds() == [IssueKind.SCHEMA_TOO_DEEP]
        assert result.issues[0].path == ("parameters",)


class TestModelDefinition:
    """Tests for model definitions."""

    def test_accepts_valid_model(self) -> None:
        """Verify a model with provider/model name is accepted."""
        raw = model_raw(
            context_window=128000,
            pricing={"currency": "USD", "input": 2.5, "output": 10},
            override_parameters={"temperature": {"default": 1, "minimum": 0, "maximum": 2}},
        )

        result = validate_definition("model", raw)

        assert isinstance(result.value, ModelDefinition)
        assert result.value.name == "openai/gpt-4o"

    @pytest.mark.parametrize("name", ["gpt-4o", "/gpt-4o", "openai/"])
    def test_rejects_names_without_provider(self, name: str) -> None:
        """Verify the name must be provider/model."""
        result = validate_definition("model", model_raw(name=name))

        assert result.kinds() == [IssueKind.INVALID_NAME]
        assert "model_provider/model_name" in result.issues[0].message

    def test_short_model_names_are_allowed(self) -> None:
        """Verify feature length rules do not apply to model names."""
        assert validate_definition("model", model_raw(name="a/b")).is_valid

    def test_rejects_unknown_unsupported_parameter(self) -> None:
        """Verify unsupported_parameters is a closed set."""
        result = validate_definition("model", model_raw(unsupported_parameters=["top_k"]))

        assert result.issues[0].path == ("unsupported_parameters", 0)

    def test_rejects_bad_verbosity(self) -> None:
        """Verify verbosity defaults are low, medium or high."""
        raw = model_raw(override_parameters={"verbosity": {"default": "loud"}})

        assert not validate_definition("model", raw).is_valid

    def test_rejects_non_positive_context_window(self) -> None:
        """Verify the context window is a positive integer."""
        assert not validate_definition("model", model_raw(context_window=0)).is_valid


class TestDefine:
    """Tests for define."""

    def test_returns_definition(self) -> None:
        """Verify define returns the typed definition."""
        tool = define("tool", tool_raw(), search)

        assert isinstance(tool, ToolDefinition)

    def test_raises_with_every_issue(self) -> None:
        """Verify define raises SchemaDefinitionError listing all issues."""
        # Given
        raw = tool_raw(name="ws", parameters=[prop("q"), prop("q")])

        # When / Then
        with pytest.raises(SchemaDefinitionError, match="Invalid tool definition") as exc_info:
            define("tool", raw)
        assert exc_info.value.kind is DefinitionKind.TOOL
        assert len(exc_info.value.issues) == 2


class TestSerializeDefinition:
    """Tests for serialize_definition."""

    def test_omits_handler_and_unset_fields(self) -> None:
        """Verify the wire form has no handler and no null fields."""
        tool = define("tool", tool_raw(), search)

        data = serialize_definition(tool)

        assert "invoke" not in data
        assert "settings" not in data
        assert data["name"] == "web-search"
        assert data["parameters"][1] == {
            "name": "limit",
            "type": "integer",
            "default": 10,
            "maximum": 50,
            "minimum": 1,
        }

    def test_urls_become_strings(self) -> None:
        """Verify URL fields serialize as plain strings."""
        data = serialize_definition(define("plugin", plugin_raw()))

        assert data["repo"] == "https://github.com/example/search-kit"
        assert data["email"] == "jane@example.com"
