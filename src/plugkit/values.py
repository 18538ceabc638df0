"""Runtime value validation.

Checks a parameter or credential payload against the property list that
describes it. Every problem is collected; nothing raises for bad input.
"""

from collections.abc import Mapping
from typing import Any

from plugkit.conditions import is_visible
from plugkit.json_value import is_expression, is_number, json_equal
from plugkit.property_schema import (
    ArrayProperty,
    BooleanProperty,
    CredentialIdProperty,
    DiscriminatedItems,
    DiscriminatedUnionProperty,
    NodeProperty,
    NumberProperty,
    ObjectProperty,
    PropertyBase,
    discriminator_constant,
)
from plugkit.property_ui import ShapeCategory
from plugkit.validation import IssueKind, Path, ValidationIssue, ValidationResult

Branches = list[ObjectProperty]

# Shapes that take expression strings as ordinary text
TEXT_SHAPES = frozenset(
    {ShapeCategory.STRING, ShapeCategory.CREDENTIAL_ID, ShapeCategory.ENCRYPTED_STRING}
)


def validate_value(
    properties: list[NodeProperty],
    values: object,
    *,
    path: Path = (),
) -> ValidationResult[dict[str, Any]]:
    """Validate a payload against a property list.

    Absent values fall back to the property's constant, then its default.
    Hidden properties and keys the schema does not declare are left out of
    the resolved payload.

    Args:
        properties: A validated property list.
        values: The payload, normally a mapping decoded from JSON.
        path: Location of the payload, used to prefix issue paths.

    Returns:
        ValidationResult with the resolved payload, or every issue found.
    """
    issues: list[ValidationIssue] = []
    if not isinstance(values, Mapping):
        issues.append(_mismatch(path, "an object"))
        return ValidationResult.failure(issues)

    resolved = _validate_members(properties, values, path, issues)
    if issues:
        return ValidationResult.failure(issues)
    return ValidationResult.success(resolved)


def _mismatch(path: Path, expected: str) -> ValidationIssue:
    return ValidationIssue(IssueKind.TYPE_MISMATCH, path, f"expected {expected}")


def _out_of_range(path: Path, message: str) -> ValidationIssue:
    return ValidationIssue(IssueKind.VALUE_OUT_OF_RANGE, path, message)


def _fallback(prop: PropertyBase) -> Any:
    constant = getattr(prop, "constant", None)
    return constant if constant is not None else getattr(prop, "default", None)


def _validate_members(
    properties: list[NodeProperty],
    values: Mapping[str, Any],
    path: Path,
    issues: list[ValidationIssue],
) -> dict[str, Any]:
    effective = {key: value for key, value in values.items() if value is not None}
    for prop in properties:
        if prop.name not in effective:
            fallback = _fallback(prop)
            if fallback is not None:
                effective[prop.name] = fallback

    resolved: dict[str, Any] = {}
    for prop in properties:
        if not is_visible(prop.display, effective):
            continue
        member_path = (*path, prop.name)
        if prop.name not in effective:
            if prop.required:
                issues.append(
                    ValidationIssue(
                        IssueKind.MISSING_REQUIRED_VALUE,
                        member_path,
                        f"'{prop.name}' is required",
                    )
                )
            continue
        resolved[prop.name] = _validate_node(prop, effective[prop.name], member_path, issues)
    return resolved


def _validate_node(prop: PropertyBase, value: Any, path: Path, issues: list[ValidationIssue]) -> Any:
    if is_expression(value):
        if prop.supports_expression:
            return value
        if prop.shape not in TEXT_SHAPES:
            issues.append(
                ValidationIssue(
                    IssueKind.TYPE_MISMATCH,
                    path,
                    "expressions are not enabled for this property",
                )
            )
            return value

    count = len(issues)
    resolved = _check_type(prop, value, path, issues)
    if len(issues) == count:
        _check_allowed(prop, value, path, issues)
    return resolved


def _check_type(prop: PropertyBase, value: Any, path: Path, issues: list[ValidationIssue]) -> Any:
    if isinstance(prop, NumberProperty):
        _check_number(prop, value, path, issues)
    elif isinstance(prop, BooleanProperty):
        if not isinstance(value, bool):
            issues.append(_mismatch(path, "a boolean"))
    elif isinstance(prop, CredentialIdProperty):
        if not isinstance(value, str) or not value:
            issues.append(_mismatch(path, "a credential id"))
    elif isinstance(prop, ArrayProperty):
        return _check_array(prop, value, path, issues)
    elif isinstance(prop, ObjectProperty):
        if not isinstance(value, Mapping):
            issues.append(_mismatch(path, "an object"))
            return value
        return _validate_members(prop.properties, value, path, issues)
    elif isinstance(prop, DiscriminatedUnionProperty):
        return _check_tagged(prop.any_of, prop.discriminator, value, path, issues)
    else:
        _check_string(prop, value, path, issues)
    return value


def _check_string(prop: PropertyBase, value: Any, path: Path, issues: list[ValidationIssue]) -> None:
    if not isinstance(value, str):
        issues.append(_mismatch(path, "a string"))
        return
    min_length = getattr(prop, "min_length", None)
    max_length = getattr(prop, "max_length", None)
    if min_length is not None and len(value) < min_length:
        issues.append(_out_of_range(path, f"must be at least {min_length} characters"))
    if max_length is not None and len(value) > max_length:
        issues.append(_out_of_range(path, f"must be at most {max_length} characters"))


def _check_number(prop: NumberProperty, value: Any, path: Path, issues: list[ValidationIssue]) -> None:
    if not is_number(value):
        issues.append(_mismatch(path, "an integer" if prop.type == "integer" else "a number"))
        return
    if prop.type == "integer" and isinstance(value, float) and not value.is_integer():
        issues.append(_mismatch(path, "an integer"))
        return
    if prop.minimum is not None and value < prop.minimum:
        issues.append(_out_of_range(path, f"must be >= {prop.minimum}"))
    if prop.maximum is not None and value > prop.maximum:
        issues.append(_out_of_range(path, f"must be <= {prop.maximum}"))


def _check_array(prop: ArrayProperty, value: Any, path: Path, issues: list[ValidationIssue]) -> Any:
    if not isinstance(value, list):
        issues.append(_mismatch(path, "an array"))
        return value
    if prop.min_items is not None and len(value) < prop.min_items:
        issues.append(_out_of_range(path, f"must contain at least {prop.min_items} items"))
    if prop.max_items is not None and len(value) > prop.max_items:
        issues.append(_out_of_range(path, f"must contain at most {prop.max_items} items"))

    items = prop.items
    if isinstance(items, DiscriminatedItems):
        return [
            _check_tagged(items.any_of, items.discriminator, item, (*path, index), issues)
            for index, item in enumerate(value)
        ]
    return [_validate_node(items, item, (*path, index), issues) for index, item in enumerate(value)]


def _check_tagged(
    branches: Branches,
    discriminator: str,
    value: Any,
    path: Path,
    issues: list[ValidationIssue],
) -> Any:
    """Validate a polymorphic value against the branch its tag selects."""
    if not isinstance(value, Mapping):
        issues.append(_mismatch(path, "an object"))
        return value
    if discriminator not in value:
        issues.append(
            ValidationIssue(
                IssueKind.TYPE_MISMATCH,
                (*path, discriminator),
                f"missing discriminator '{discriminator}'",
            )
        )
        return value

    tag = value[discriminator]
    branch = next(
        (b for b in branches if json_equal(discriminator_constant(b, discriminator), tag)), None
    )
    if branch is None:
        issues.append(
            ValidationIssue(
                IssueKind.TYPE_MISMATCH,
                (*path, discriminator),
                f"no variant has {discriminator} = {tag!r}",
            )
        )
        return value
    return _validate_members(branch.properties, value, path, issues)


def _check_allowed(prop: PropertyBase, value: Any, path: Path, issues: list[ValidationIssue]) -> None:
    constant = getattr(prop, "constant", None)
    if constant is not None and not is_expression(constant) and not json_equal(value, constant):
        issues.append(_out_of_range(path, f"must equal {constant!r}"))
        return
    enum = getattr(prop, "enum", None)
    if enum and not any(json_equal(value, allowed) for allowed in enum):
        allowed = ", ".join(repr(item) for item in enum)
        issues.append(_out_of_range(path, f"must be one of [{allowed}]"))
