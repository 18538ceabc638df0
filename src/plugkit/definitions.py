"""Feature definition schemas using Pydantic.

A plugin declares itself once and then any number of features: tools,
credentials, models and data sources. Every feature shares a small header
(name, labels, icon); tools, credentials and data sources also describe
their inputs with property lists, which are validated by
``plugkit.engine``.
"""

import re
from collections.abc import Callable
from enum import Enum
from typing import Annotated, Any, Literal, Protocol, TypeAlias, runtime_checkable

from pydantic import (
    AfterValidator,
    EmailStr,
    Field,
    HttpUrl,
    PositiveInt,
    StrictStr,
    ValidationError,
    field_validator,
)
from pydantic_core import PydanticCustomError

from plugkit.base import StrictModel, StrictNumber
from plugkit.engine import DEFAULT_MAX_DEPTH, issues_from_validation_error, validate_properties
from plugkit.i18n import DEFAULT_LOCALE, I18nText, is_valid_locale
from plugkit.property_schema import NodeProperty
from plugkit.validation import IssueKind, ValidationIssue, ValidationResult

MIN_NAME_LENGTH = 5
MAX_NAME_LENGTH = 64

# Letter first, alphanumeric last, single separators in between
_NAME_PATTERN = re.compile(r"^[A-Za-z](?:[-_]?[A-Za-z0-9])*$")

PROPERTY_FIELDS = ("parameters", "settings")


class DefinitionKind(str, Enum):
    """Kinds of definitions a plugin can declare."""

    PLUGIN = "plugin"
    CREDENTIAL = "credential"
    DATA_SOURCE = "data_source"
    MODEL = "model"
    TOOL = "tool"


FEATURE_KINDS = (
    DefinitionKind.CREDENTIAL,
    DefinitionKind.DATA_SOURCE,
    DefinitionKind.MODEL,
    DefinitionKind.TOOL,
)


@runtime_checkable
class Invoker(Protocol):
    """Capability that executes a tool."""

    def invoke(self, parameters: dict[str, Any], context: dict[str, Any] | None = None) -> Any:
        """Run the tool with validated parameters and return its result."""
        ...


ToolHandler: TypeAlias = Invoker | Callable[..., Any]


class SchemaDefinitionError(Exception):
    """Raised when a definition is malformed.

    Definition errors are author mistakes, so they abort plugin startup.
    """

    def __init__(self, kind: DefinitionKind, issues: list[ValidationIssue]) -> None:
        """Initialize with the definition kind and every issue found."""
        self.kind = kind
        self.issues = issues
        details = "; ".join(str(issue) for issue in issues)
        super().__init__(f"Invalid {kind.value} definition: {details}")


def validate_definition_name(name: str) -> str:
    """Check the naming rules shared by plugins and features."""
    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        raise PydanticCustomError(
            "invalid_name",
            "name must be between {min} and {max} characters",
            {"min": MIN_NAME_LENGTH, "max": MAX_NAME_LENGTH},
        )
    if not _NAME_PATTERN.match(name):
        raise PydanticCustomError(
            "invalid_name",
            "name must start with a letter and end with a letter or digit, "
            "using only letters, digits and single '-' or '_' separators",
        )
    return name


def validate_model_name(name: str) -> str:
    """Model names take the form ``provider/model``."""
    provider, slash, model = name.partition("/")
    if not slash or not provider or not model:
        raise PydanticCustomError(
            "invalid_name",
            "Invalid model name, should be in the format of 'model_provider/model_name'",
        )
    return name


def _check_handler(value: Any) -> Any:
    if isinstance(value, Invoker) or callable(value):
        return value
    msg = "invoke must be callable or provide an invoke(parameters, context) method"
    raise ValueError(msg)


DefinitionName = Annotated[StrictStr, AfterValidator(validate_definition_name)]
ModelName = Annotated[StrictStr, AfterValidator(validate_model_name)]


class DefinitionHeader(StrictModel):
    """Fields every definition carries."""

    name: DefinitionName = Field(description="Unique name within its kind")
    display_name: I18nText = Field(description="Label shown to users")
    description: I18nText = Field(description="What the definition provides")
    icon: StrictStr = Field(description="Icon name or URL")


class PluginDefinition(DefinitionHeader):
    """The plugin itself."""

    author: StrictStr = Field(description="Plugin author")
    email: EmailStr = Field(description="Contact e-mail")
    repo: HttpUrl | None = Field(default=None, description="Source repository URL")
    version: StrictStr | None = Field(default=None, description="Plugin version")
    locales: list[StrictStr] = Field(description="Supported locales; en_US is required")

    @field_validator("locales")
    @classmethod
    def validate_locales(cls, v: list[str]) -> list[str]:
        """Locales must be well-formed and include the default locale."""
        for locale in v:
            if not is_valid_locale(locale):
                msg = f"invalid locale '{locale}', expected <lang>_<Region>"
                raise ValueError(msg)
        if DEFAULT_LOCALE not in v:
            msg = f"locales must include '{DEFAULT_LOCALE}'"
            raise ValueError(msg)
        return v


class CredentialDefinition(DefinitionHeader):
    """A credential users configure once and tools reference by name."""

    parameters: list[NodeProperty] = Field(description="Credential fields")


class DataSourceDefinition(DefinitionHeader):
    """A data source the hub can query."""

    parameters: list[NodeProperty] = Field(description="Query parameters")
    settings: list[NodeProperty] | None = Field(default=None, description="Per-install settings")


class ToolDefinition(DataSourceDefinition):
    """A tool the hub can invoke.

    ``invoke`` is attached in code, never read from documents, and is left
    out of serialization.
    """

    invoke: Annotated[Any, AfterValidator(_check_handler)] = Field(default=None, exclude=True)


class ParameterBounds(StrictModel):
    default: StrictNumber | None = None
    maximum: StrictNumber | None = None
    minimum: StrictNumber | None = None


class MaxTokensOverride(StrictModel):
    default: StrictNumber | None = None
    maximum: StrictNumber | None = None


class VerbosityOverride(StrictModel):
    default: Literal["low", "medium", "high"] | None = None


class OverrideParameters(StrictModel):
    """Provider-specific bounds and defaults for common LLM parameters."""

    temperature: ParameterBounds | None = None
    frequency_penalty: ParameterBounds | None = None
    max_tokens: MaxTokensOverride | None = None
    verbosity: VerbosityOverride | None = None


class ModelPricing(StrictModel):
    """Prices per unit; the currency applies to every entry."""

    currency: StrictStr | None = None
    input: StrictNumber | None = None
    input_cache_read: StrictNumber | None = None
    input_cache_write: StrictNumber | None = None
    output: StrictNumber | None = None
    request: StrictNumber | None = None


UnsupportedParameter = Literal[
    "endpoint",
    "temperature",
    "frequency_penalty",
    "seed",
    "max_tokens",
    "json_schema",
    "stream",
    "stream_options",
    "structured_outputs",
    "parallel_tool_calls",
    "verbosity",
]


class ModelDefinition(DefinitionHeader):
    """A language model offered by the plugin."""

    name: ModelName = Field(description="Model name as provider/model")
    model_type: Literal["llm"] = Field(description="Model family")
    default_endpoint: HttpUrl | None = Field(default=None, description="Default API endpoint")
    context_window: PositiveInt | None = Field(default=None, description="Context size in tokens")
    input_modalities: list[Literal["file", "image", "text"]]
    output_modalities: list[Literal["text"]]
    pricing: ModelPricing | None = None
    override_parameters: OverrideParameters | None = None
    unsupported_parameters: list[UnsupportedParameter] = Field(
        description="Parameters the model rejects"
    )


Definition: TypeAlias = (
    PluginDefinition | CredentialDefinition | DataSourceDefinition | ModelDefinition | ToolDefinition
)

DEFINITION_MODELS: dict[DefinitionKind, type[DefinitionHeader]] = {
    DefinitionKind.PLUGIN: PluginDefinition,
    DefinitionKind.CREDENTIAL: CredentialDefinition,
    DefinitionKind.DATA_SOURCE: DataSourceDefinition,
    DefinitionKind.MODEL: ModelDefinition,
    DefinitionKind.TOOL: ToolDefinition,
}


def validate_definition(
    kind: DefinitionKind | str,
    raw: object,
    invoke: ToolHandler | None = None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> ValidationResult[Definition]:
    """Validate a raw definition of the given kind.

    Property lists are checked by the validation engine, everything else by
    the definition model; issues from both are reported together with
    paths relative to the definition.

    Args:
        kind: Definition kind.
        raw: Decoded definition document.
        invoke: Tool handler; only valid for tools.
        max_depth: Nesting limit for each property list.

    Returns:
        ValidationResult with the typed definition, or every issue found.

    Raises:
        ValueError: If kind is unknown, or invoke is given for a non-tool.
    """
    kind = DefinitionKind(kind)
    if invoke is not None and kind is not DefinitionKind.TOOL:
        msg = f"invoke only applies to tools, not {kind.value}"
        raise ValueError(msg)

    if not isinstance(raw, dict):
        return ValidationResult.failure(
            [ValidationIssue(IssueKind.INVALID_FIELD, (), "definition must be an object")]
        )

    model = DEFINITION_MODELS[kind]
    data = dict(raw)
    if invoke is not None:
        data["invoke"] = invoke

    # Property lists are swapped out so the model only reports on the header
    probe = dict(data)
    property_issues: list[ValidationIssue] = []
    for field_name in PROPERTY_FIELDS:
        if field_name in model.model_fields and isinstance(data.get(field_name), list):
            result = validate_properties(data[field_name], max_depth=max_depth, path=(field_name,))
            property_issues.extend(result.issues)
            probe[field_name] = []

    issues: list[ValidationIssue] = []
    try:
        model.model_validate(probe)
    except ValidationError as e:
        issues.extend(issues_from_validation_error(e, probe))
    issues.extend(property_issues)

    if issues:
        return ValidationResult.failure(issues)
    return ValidationResult.success(model.model_validate(data))


def define(
    kind: DefinitionKind | str,
    raw: object,
    invoke: ToolHandler | None = None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Definition:
    """Build a definition or fail loudly.

    Raises:
        SchemaDefinitionError: If the definition has any issue.
    """
    kind = DefinitionKind(kind)
    result = validate_definition(kind, raw, invoke, max_depth=max_depth)
    if not result.is_valid or result.value is None:
        raise SchemaDefinitionError(kind, result.issues)
    return result.value


def serialize_definition(definition: Definition) -> dict[str, Any]:
    """Serialize a definition to its JSON wire form, without handlers."""
    return definition.model_dump(mode="json", exclude_none=True)
