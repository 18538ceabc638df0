"""UI component descriptors for properties.

A property may carry a ``ui`` object describing how a host renders it. The
``component`` field selects one closed variant; each variant accepts the
common fields plus its own and nothing else. Every component belongs to one
or more shape categories, which must agree with the property's ``type``.
"""

import math
import re
from enum import Enum
from typing import Annotated, Literal

from pydantic import Field, StrictBool, StrictInt, StrictStr, TypeAdapter, field_validator

from plugkit.base import StrictModel, StrictNumber
from plugkit.i18n import I18nText
from plugkit.json_value import JsonField

MIN_INDENTATION = 2
MAX_INDENTATION = 80

# Slider mark positions: JSON numbers written as object keys
MARK_POSITION_PATTERN = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")


class ShapeCategory(str, Enum):
    """Coarse value kinds a UI component can edit."""

    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    CREDENTIAL_ID = "credential_id"
    ENCRYPTED_STRING = "encrypted_string"
    DISCRIMINATED_UNION = "discriminated_union"


class UICommonProps(StrictModel):
    """Fields every UI component accepts."""

    disabled: StrictBool | None = None
    hint: I18nText | None = None
    placeholder: I18nText | None = None
    readonly: StrictBool | None = None
    sensitive: StrictBool | None = None
    support_expression: StrictBool | None = None
    width: Literal["small", "medium", "full"] | None = None
    indentation: StrictInt | None = None

    @field_validator("indentation")
    @classmethod
    def validate_indentation(cls, v: int | None) -> int | None:
        """Indentation must be an even number of columns from 2 to 80."""
        if v is not None and (v < MIN_INDENTATION or v > MAX_INDENTATION or v % 2):
            msg = f"indentation must be an even integer between {MIN_INDENTATION} and {MAX_INDENTATION}"
            raise ValueError(msg)
        return v


class UIOption(StrictModel):
    """A selectable option of select-like components."""

    icon: StrictStr | None = None
    label: I18nText
    value: StrictStr | StrictNumber | StrictBool


class InputUI(UICommonProps):
    component: Literal["input"]


class EncryptedInputUI(UICommonProps):
    component: Literal["encrypted-input"]


class TextareaUI(UICommonProps):
    component: Literal["textarea"]
    max_height: StrictNumber | None = None
    min_height: StrictNumber | None = None


class ExpressionInputUI(UICommonProps):
    component: Literal["expression-input", "expression-textarea"]
    max_height: StrictNumber | None = None
    min_height: StrictNumber | None = None


class NumberInputUI(UICommonProps):
    component: Literal["number-input"]
    step: StrictNumber | None = None
    suffix: StrictStr | None = None


class CodeEditorUI(UICommonProps):
    component: Literal["code-editor"]
    language: Literal["json", "javascript", "python3", "html"] | None = None
    line_numbers: StrictBool | None = None
    max_height: StrictNumber | None = None
    min_height: StrictNumber | None = None


class _SelectProps(UICommonProps):
    clearable: StrictBool | None = None
    options: list[UIOption] | None = None
    searchable: StrictBool | None = None


class SelectUI(_SelectProps):
    component: Literal["select"]


class RadioGroupUI(_SelectProps):
    component: Literal["radio-group"]


class MultiSelectUI(_SelectProps):
    component: Literal["multi-select"]


class SwitchUI(UICommonProps):
    component: Literal["switch"]


class CheckboxUI(UICommonProps):
    component: Literal["checkbox"]


class SliderUI(UICommonProps):
    component: Literal["slider"]
    marks: dict[str, StrictStr] | None = None
    show_value: StrictBool | None = None
    step: StrictNumber | None = None

    @field_validator("marks")
    @classmethod
    def validate_marks(cls, v: dict[str, str] | None) -> dict[str, str] | None:
        """Mark positions are numbers (serialized as object keys)."""
        for position in v or {}:
            if not MARK_POSITION_PATTERN.fullmatch(position) or not math.isfinite(float(position)):
                msg = f"slider mark position '{position}' is not a finite number"
                raise ValueError(msg)
        return v


class KeyValueEditorUI(UICommonProps):
    component: Literal["key-value-editor"]
    add_button_label: I18nText | None = None
    default_item: JsonField = None
    empty_description: I18nText | None = None
    section_header: I18nText | None = None


class TagInputUI(UICommonProps):
    component: Literal["tag-input"]


class CredentialSelectUI(UICommonProps):
    component: Literal["credential-select"]
    clearable: StrictBool | None = None
    searchable: StrictBool | None = None


class JsonSchemaEditorUI(UICommonProps):
    component: Literal["json-schema-editor"]


class ConditionsEditorUI(UICommonProps):
    component: Literal["conditions-editor"]


class VariablesSchemaSectionUI(UICommonProps):
    component: Literal["variables-schema-section"]


class VariablesValuesSectionUI(UICommonProps):
    component: Literal["variables-values-section"]


class ArraySectionUI(UICommonProps):
    component: Literal["array-section"]
    add_label: I18nText | None = None
    collapsible: StrictBool | None = None
    default_item: JsonField = None
    empty_message: I18nText | None = None
    remove_tooltip: I18nText | None = None
    sortable: StrictBool | None = None


class CollapsiblePanelUI(UICommonProps):
    component: Literal["collapsible-panel"]
    collapsible: StrictBool | None = None
    default_collapsed: StrictBool | None = None
    panel_title: I18nText | None = None
    remove_tooltip: I18nText | None = None
    sortable: StrictBool | None = None


PropertyUI = Annotated[
    InputUI
    | TextareaUI
    | ExpressionInputUI
    | NumberInputUI
    | CodeEditorUI
    | SelectUI
    | RadioGroupUI
    | MultiSelectUI
    | SwitchUI
    | CheckboxUI
    | SliderUI
    | KeyValueEditorUI
    | TagInputUI
    | CredentialSelectUI
    | JsonSchemaEditorUI
    | ConditionsEditorUI
    | VariablesSchemaSectionUI
    | VariablesValuesSectionUI
    | ArraySectionUI
    | CollapsiblePanelUI
    | EncryptedInputUI,
    Field(discriminator="component"),
]

SHAPE_CATEGORIES: dict[ShapeCategory, tuple[str, ...]] = {
    ShapeCategory.BOOLEAN: ("switch", "checkbox"),
    ShapeCategory.NUMBER: ("number-input", "slider"),
    ShapeCategory.STRING: (
        "input",
        "textarea",
        "expression-input",
        "expression-textarea",
        "code-editor",
        "select",
        "credential-select",
        "radio-group",
    ),
    ShapeCategory.ARRAY: (
        "multi-select",
        "tag-input",
        "key-value-editor",
        "slider",
        "array-section",
    ),
    ShapeCategory.OBJECT: (
        "collapsible-panel",
        "json-schema-editor",
        "conditions-editor",
        "variables-schema-section",
        "code-editor",
        "variables-values-section",
    ),
    ShapeCategory.CREDENTIAL_ID: ("credential-select",),
    ShapeCategory.ENCRYPTED_STRING: ("encrypted-input",),
    ShapeCategory.DISCRIMINATED_UNION: ("collapsible-panel",),
}

# Components allowed to render the tag selector of a polymorphic value
DISCRIMINATOR_UI_COMPONENTS = ("switch", "select", "radio-group")

ALL_COMPONENTS: frozenset[str] = frozenset(
    component for components in SHAPE_CATEGORIES.values() for component in components
)

_ui_adapter: TypeAdapter[PropertyUI] = TypeAdapter(PropertyUI)


class UnknownComponentError(ValueError):
    """Raised when a component name is not a known UI component."""

    def __init__(self, component: str) -> None:
        """Initialize with the unknown component name."""
        self.component = component
        super().__init__(f"Unknown UI component '{component}'")


def validate_ui_descriptor(raw: object) -> PropertyUI:
    """Validate a raw UI descriptor against its component variant.

    Raises:
        pydantic.ValidationError: If the component is unknown or a field
            does not belong to the variant.
    """
    return _ui_adapter.validate_python(raw)


def shape_category_of(component: str) -> frozenset[ShapeCategory]:
    """Return every shape category a component can edit.

    Most components have exactly one category; ``code-editor`` edits both
    strings and objects, ``slider`` numbers and arrays.

    Raises:
        UnknownComponentError: If the component is not known.
    """
    categories = frozenset(
        category for category, components in SHAPE_CATEGORIES.items() if component in components
    )
    if not categories:
        raise UnknownComponentError(component)
    return categories


def components_for(category: ShapeCategory) -> tuple[str, ...]:
    """Return the components allowed for a shape category."""
    return SHAPE_CATEGORIES[category]
