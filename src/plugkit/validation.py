"""Validation result types for plugkit.

Validation never raises for bad input: it returns a ValidationResult
listing every issue found, each tagged with its kind and the path of the
offending node.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")

Path = tuple[str | int, ...]


class IssueKind(str, Enum):
    """Kinds of validation issues."""

    # Schema definition
    INVALID_NAME = "invalid_name"
    UNKNOWN_PROPERTY_TYPE = "unknown_property_type"
    UNKNOWN_COMPONENT = "unknown_component"
    INVALID_FIELD = "invalid_field"
    DUPLICATE_PROPERTY_NAME = "duplicate_property_name"
    UI_SHAPE_MISMATCH = "ui_shape_mismatch"
    EXPRESSION_NOT_ALLOWED = "expression_not_allowed"
    MISSING_DISCRIMINATOR_FIELD = "missing_discriminator_field"
    INVALID_DISCRIMINATOR_CONSTANT = "invalid_discriminator_constant"
    DUPLICATE_DISCRIMINATOR_VALUE = "duplicate_discriminator_value"
    INVALID_DISPLAY_CONDITION = "invalid_display_condition"
    SCHEMA_TOO_DEEP = "schema_too_deep"

    # Runtime values
    TYPE_MISMATCH = "type_mismatch"
    VALUE_OUT_OF_RANGE = "value_out_of_range"
    MISSING_REQUIRED_VALUE = "missing_required_value"


def format_path(path: Path) -> str:
    """Render a path as a dotted location, e.g. ``properties.0.name``."""
    return ".".join(str(part) for part in path)


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation failure.

    Attributes:
        kind: What rule was violated.
        path: Location of the offending node within the validated tree.
        message: Human-readable description.
    """

    kind: IssueKind
    path: Path
    message: str

    @property
    def location(self) -> str:
        """Dotted form of the path (empty string for the root)."""
        return format_path(self.path)

    def __str__(self) -> str:
        location = self.location
        return f"'{location}': {self.message}" if location else self.message


@dataclass
class ValidationResult(Generic[T]):
    """Result of a validation operation.

    Attributes:
        is_valid: True if validation passed, False otherwise.
        issues: Every issue found, in discovery order.
        value: The validated value when validation passed.
    """

    is_valid: bool
    issues: list[ValidationIssue] = field(default_factory=list)
    value: T | None = None

    @classmethod
    def success(cls, value: T) -> "ValidationResult[T]":
        """Build a passing result carrying the validated value."""
        return cls(is_valid=True, value=value)

    @classmethod
    def failure(cls, issues: list[ValidationIssue]) -> "ValidationResult[T]":
        """Build a failing result."""
        return cls(is_valid=False, issues=list(issues))

    @property
    def errors(self) -> list[str]:
        """Issue messages prefixed with their location."""
        return [str(issue) for issue in self.issues]

    def kinds(self) -> list[IssueKind]:
        """Issue kinds, in discovery order."""
        return [issue.kind for issue in self.issues]
