"""Property descriptor schema definitions using Pydantic.

A property descriptor describes one parameter or setting of a plugin
feature: its value type, constraints, display metadata and UI hints. The
``type`` field selects the variant. Object and array variants nest further
descriptors, so the schema is recursive.

These models check the shape of each node. Rules that span several nodes
(unique sibling names, expression gating, UI shape agreement, polymorphic
item integrity) are enforced by ``plugkit.engine``.
"""

import re
from collections.abc import Iterator
from typing import Annotated, Any, ClassVar, Literal

from pydantic import (
    AfterValidator,
    AliasChoices,
    Discriminator,
    Field,
    StrictBool,
    StrictStr,
    Tag,
    TypeAdapter,
)
from pydantic_core import PydanticCustomError

from plugkit.base import StrictModel, StrictNumber
from plugkit.conditions import PropertyDisplay
from plugkit.i18n import I18nText
from plugkit.json_value import JsonField, JsonObject, is_expression
from plugkit.property_ui import PropertyUI, ShapeCategory

PROPERTY_TYPES = (
    "string",
    "number",
    "integer",
    "boolean",
    "array",
    "object",
    "credential_id",
    "encrypted_string",
    "discriminated_union",
)

# Characters reserved for path addressing (e.g. "items[0].name")
RESERVED_NAME_CHARACTERS = (".", "[", "]")
_LEADING_FORBIDDEN = re.compile(r"^[\s$]")


def validate_property_name(name: str) -> str:
    """Check the lexical rules of a property name.

    Stops at the first failing rule so later rules never report on a name
    that is already invalid.
    """
    if not name:
        raise PydanticCustomError("invalid_name", "name cannot be empty")
    if _LEADING_FORBIDDEN.match(name):
        raise PydanticCustomError("invalid_name", "name cannot start with $ or whitespace")
    if any(char in name for char in RESERVED_NAME_CHARACTERS):
        raise PydanticCustomError(
            "invalid_name", 'name cannot contain ".", "[", or "]" characters'
        )
    return name


def _check_expression(value: str) -> str:
    if not is_expression(value):
        raise PydanticCustomError(
            "invalid_expression", "string values must be expressions of the form '={{ ... }}'"
        )
    return value


PropertyName = Annotated[StrictStr, AfterValidator(validate_property_name)]
Expression = Annotated[StrictStr, AfterValidator(_check_expression)]
NonNegativeInt = Annotated[int, Field(ge=0, strict=True)]


class PropertyAI(StrictModel):
    """Model-facing documentation of a property."""

    llm_description: I18nText | None = None


class PropertyBase(StrictModel):
    """Fields shared by every property variant."""

    shape: ClassVar[ShapeCategory]

    name: PropertyName
    display_name: I18nText | None = None
    required: StrictBool | None = None
    display: PropertyDisplay | None = None
    ai: PropertyAI | None = None
    ui: PropertyUI | None = None

    @property
    def supports_expression(self) -> bool:
        """Whether the UI lets users enter expressions for this property."""
        return self.ui is not None and self.ui.support_expression is True

    def payload_values(self) -> Iterator[tuple[tuple[str | int, ...], Any]]:
        """Yield (path, value) for the constant, the default and each enum entry."""
        for field_name in ("constant", "default"):
            value = getattr(self, field_name, None)
            if value is not None:
                yield (field_name,), value
        for index, item in enumerate(getattr(self, "enum", None) or []):
            yield ("enum", index), item


class StringProperty(PropertyBase):
    """Free-form text."""

    shape = ShapeCategory.STRING

    type: Literal["string"]
    constant: StrictStr | None = None
    default: StrictStr | None = None
    enum: list[StrictStr] | None = None
    max_length: NonNegativeInt | None = None
    min_length: NonNegativeInt | None = None


class NumberProperty(PropertyBase):
    """A number, or an integer when ``type`` is ``integer``."""

    shape = ShapeCategory.NUMBER

    type: Literal["number", "integer"]
    constant: StrictNumber | Expression | None = None
    default: StrictNumber | Expression | None = None
    enum: list[StrictNumber | Expression] | None = None
    maximum: StrictNumber | None = None
    minimum: StrictNumber | None = None


class BooleanProperty(PropertyBase):
    shape = ShapeCategory.BOOLEAN

    type: Literal["boolean"]
    constant: StrictBool | Expression | None = None
    default: StrictBool | Expression | None = None
    enum: list[StrictBool | Expression] | None = None


class ObjectProperty(PropertyBase):
    """A structured value whose keys are described by nested properties."""

    shape = ShapeCategory.OBJECT

    type: Literal["object"]
    properties: list["NodeProperty"]
    constant: JsonObject | Expression | None = None
    default: JsonObject | Expression | None = None
    enum: list[JsonObject | Expression] | None = None


class DiscriminatedItems(StrictModel):
    """Polymorphic array items: one object branch per discriminator value.

    Every branch declares a child named by ``discriminator`` whose
    ``constant`` tells the branches apart.
    """

    any_of: list[ObjectProperty] = Field(
        min_length=2, validation_alias=AliasChoices("any_of", "anyOf")
    )
    discriminator: Annotated[StrictStr, Field(min_length=1)]
    discriminator_ui: PropertyUI | None = Field(
        default=None, validation_alias=AliasChoices("discriminator_ui", "discriminatorUi")
    )


class ArrayProperty(PropertyBase):
    """A list of values described by ``items``."""

    shape = ShapeCategory.ARRAY

    type: Literal["array"]
    items: "PropertyItems"
    constant: list[JsonField] | Expression | None = None
    default: list[JsonField] | Expression | None = None
    enum: list[list[JsonField] | Expression] | None = None
    max_items: NonNegativeInt | None = None
    min_items: NonNegativeInt | None = None


class CredentialIdProperty(PropertyBase):
    """Reference to a credential the host resolves at runtime."""

    shape = ShapeCategory.CREDENTIAL_ID

    type: Literal["credential_id"]
    credential_name: Annotated[StrictStr, Field(min_length=1)]
    constant: StrictStr | None = None
    default: StrictStr | None = None
    enum: list[StrictStr] | None = None


class EncryptedStringProperty(PropertyBase):
    """A secret string that is never echoed back in plain form."""

    shape = ShapeCategory.ENCRYPTED_STRING

    type: Literal["encrypted_string"]
    constant: StrictStr | None = None
    default: StrictStr | None = None
    enum: list[StrictStr] | None = None


class DiscriminatedUnionProperty(PropertyBase):
    """An object taking one of several shapes, selected by a tag field."""

    shape = ShapeCategory.DISCRIMINATED_UNION

    type: Literal["discriminated_union"]
    any_of: list[ObjectProperty] = Field(
        min_length=2, validation_alias=AliasChoices("any_of", "anyOf")
    )
    discriminator: Annotated[StrictStr, Field(min_length=1)]
    discriminator_ui: PropertyUI | None = Field(
        default=None, validation_alias=AliasChoices("discriminator_ui", "discriminatorUi")
    )
    constant: JsonObject | Expression | None = None
    default: JsonObject | Expression | None = None
    enum: list[JsonObject | Expression] | None = None


NodeProperty = Annotated[
    StringProperty
    | NumberProperty
    | BooleanProperty
    | ArrayProperty
    | ObjectProperty
    | CredentialIdProperty
    | EncryptedStringProperty
    | DiscriminatedUnionProperty,
    Field(discriminator="type"),
]


def _items_kind(value: Any) -> str | None:
    """Tell a nested property apart from a polymorphic items group."""
    if isinstance(value, DiscriminatedItems):
        return "group"
    if isinstance(value, PropertyBase):
        return "property"
    if isinstance(value, dict):
        if "type" in value:
            return "property"
        if "any_of" in value or "anyOf" in value:
            return "group"
    return None


PropertyItems = Annotated[
    Annotated[NodeProperty, Tag("property")] | Annotated[DiscriminatedItems, Tag("group")],
    Discriminator(
        _items_kind,
        custom_error_type="unknown_property_type",
        custom_error_message="items must be a property with a 'type' or an 'any_of' group",
    ),
]

ObjectProperty.model_rebuild()
DiscriminatedItems.model_rebuild()
ArrayProperty.model_rebuild()
DiscriminatedUnionProperty.model_rebuild()

property_list_adapter: TypeAdapter[list[NodeProperty]] = TypeAdapter(list[NodeProperty])


def find_property(properties: list[NodeProperty], name: str) -> NodeProperty | None:
    """Return the first property called name, or None."""
    return next((prop for prop in properties if prop.name == name), None)


def discriminator_constant(branch: ObjectProperty, discriminator: str) -> Any:
    """Return a branch's discriminator constant, or None if it has none."""
    field = find_property(branch.properties, discriminator)
    return getattr(field, "constant", None) if field is not None else None


def parse_properties(raw: object) -> list[NodeProperty]:
    """Validate the shape of a property list.

    Raises:
        pydantic.ValidationError: With one entry per malformed field.
    """
    return property_list_adapter.validate_python(raw)


def dump_properties(properties: list[NodeProperty]) -> list[dict[str, Any]]:
    """Serialize properties to the JSON wire format."""
    return property_list_adapter.dump_python(properties, mode="json", exclude_none=True)
