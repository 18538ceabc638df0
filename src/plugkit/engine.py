"""Schema validation engine.

Validates a property descriptor tree in three phases and reports every
issue found:

1. Depth guard: refuse trees nested deeper than a limit before any
   recursive processing.
2. Structure: pydantic validation of every node; each field error becomes
   one issue.
3. Invariants: rules spanning several nodes. Only run on a structurally
   valid tree since they need typed nodes.
"""

from collections import deque
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError
from pydantic_core import ErrorDetails

from plugkit.conditions import referenced_names
from plugkit.json_value import is_expression, json_equal
from plugkit.property_schema import (
    ArrayProperty,
    DiscriminatedItems,
    DiscriminatedUnionProperty,
    NodeProperty,
    ObjectProperty,
    PropertyBase,
    parse_properties,
)
from plugkit.property_ui import DISCRIMINATOR_UI_COMPONENTS, ShapeCategory, shape_category_of
from plugkit.validation import IssueKind, Path, ValidationIssue, ValidationResult, format_path

DEFAULT_MAX_DEPTH = 64

# Shapes whose literal payloads may not be strings, so a string there is an
# expression and needs ui.support_expression
EXPRESSION_GATED_SHAPES = frozenset(
    {
        ShapeCategory.NUMBER,
        ShapeCategory.BOOLEAN,
        ShapeCategory.ARRAY,
        ShapeCategory.OBJECT,
        ShapeCategory.DISCRIMINATED_UNION,
    }
)

# Input aliases accepted in place of field names
_FIELD_ALIASES = {"any_of": "anyOf", "discriminator_ui": "discriminatorUi"}


def validate_properties(
    raw: object,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    path: Path = (),
) -> ValidationResult[list[NodeProperty]]:
    """Validate a raw property list.

    Args:
        raw: Decoded JSON/YAML list of property descriptors.
        max_depth: Maximum container nesting accepted in raw.
        path: Location of raw inside a larger document, used to prefix
            issue paths.

    Returns:
        ValidationResult with the typed properties, or every issue found.
    """
    too_deep = check_depth(raw, max_depth, path)
    if too_deep is not None:
        return ValidationResult.failure([too_deep])

    try:
        properties = parse_properties(raw)
    except ValidationError as e:
        return ValidationResult.failure(issues_from_validation_error(e, raw, path))

    issues = check_invariants(properties, path)
    if issues:
        return ValidationResult.failure(issues)
    return ValidationResult.success(properties)


def check_depth(raw: object, max_depth: int, path: Path = ()) -> ValidationIssue | None:
    """Return an issue if raw nests lists/dicts deeper than max_depth."""
    stack: list[tuple[object, int]] = [(raw, 0)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, dict):
            children: Any = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        if depth + 1 > max_depth:
            return ValidationIssue(
                IssueKind.SCHEMA_TOO_DEEP,
                path,
                f"schema nesting exceeds the maximum depth of {max_depth}",
            )
        stack.extend((child, depth + 1) for child in children)
    return None


def _resolve_path(raw: object, loc: tuple[str | int, ...], error_type: str) -> Path:
    """Map a pydantic error location onto the raw document.

    pydantic inserts union tags and member labels (``"string"``,
    ``"function-after[...]"``) into locations. Walking the raw document
    keeps only the parts that address real keys and indices.
    """
    resolved: list[str | int] = []
    node = raw
    for position, part in enumerate(loc):
        is_last = position == len(loc) - 1
        if isinstance(node, dict):
            key = part if part in node else _FIELD_ALIASES.get(str(part))
            if key is not None and key in node:
                resolved.append(part)
                node = node[key]
            elif is_last and error_type == "missing":
                resolved.append(part)
        elif isinstance(node, list) and isinstance(part, int) and 0 <= part < len(node):
            resolved.append(part)
            node = node[part]
    return tuple(resolved)


def _issue_kind(error: ErrorDetails) -> IssueKind:
    error_type = error["type"]
    if error_type == "invalid_name":
        return IssueKind.INVALID_NAME
    if error_type in ("union_tag_invalid", "union_tag_not_found"):
        discriminator = str(error.get("ctx", {}).get("discriminator", ""))
        if "component" in discriminator:
            return IssueKind.UNKNOWN_COMPONENT
        return IssueKind.UNKNOWN_PROPERTY_TYPE
    if error_type == "unknown_property_type":
        return IssueKind.UNKNOWN_PROPERTY_TYPE
    return IssueKind.INVALID_FIELD


def issues_from_validation_error(
    error: ValidationError, raw: object, prefix: Path = ()
) -> list[ValidationIssue]:
    """Convert a pydantic ValidationError into issues.

    Errors that land on the same location (one per member of a failed
    union) are merged into a single issue.
    """
    grouped: dict[Path, list[ErrorDetails]] = {}
    for err in error.errors(include_url=False):
        path = (*prefix, *_resolve_path(raw, tuple(err["loc"]), err["type"]))
        grouped.setdefault(path, []).append(err)

    issues: list[ValidationIssue] = []
    for path, errors in grouped.items():
        specific = [e for e in errors if _issue_kind(e) is not IssueKind.INVALID_FIELD]
        if specific:
            issues.extend(ValidationIssue(_issue_kind(e), path, e["msg"]) for e in specific)
            continue
        messages = list(dict.fromkeys(e["msg"] for e in errors))
        if errors[0]["type"] == "missing":
            message = "field is required"
        elif len(messages) == 1:
            message = messages[0]
        else:
            message = "value matches none of the allowed types: " + "; ".join(messages)
        issues.append(ValidationIssue(IssueKind.INVALID_FIELD, path, message))
    return issues


def check_invariants(properties: list[NodeProperty], path: Path = ()) -> list[ValidationIssue]:
    """Check rules spanning several nodes of a typed property tree.

    The tree is walked breadth-first with an explicit queue. Every violation
    is collected: duplicate sibling names, expression gating, UI shape
    agreement, display conditions naming their own property or a name
    with no sibling, and polymorphic group integrity.
    """
    issues: list[ValidationIssue] = []
    queue: deque[tuple[list[NodeProperty], Path]] = deque([(properties, path)])
    nodes: deque[tuple[PropertyBase, Path, frozenset[str] | None]] = deque()

    while queue or nodes:
        if queue:
            siblings, list_path = queue.popleft()
            issues.extend(_check_sibling_names(siblings, list_path))
            names = frozenset(prop.name for prop in siblings)
            nodes.extend((prop, (*list_path, index), names) for index, prop in enumerate(siblings))
            continue

        node, node_path, sibling_names = nodes.popleft()
        issues.extend(_check_node(node, node_path, sibling_names))
        for child_list, child_path in _child_lists(node, node_path):
            queue.append((child_list, child_path))
        for child, child_path in _child_nodes(node, node_path):
            nodes.append((child, child_path, None))

    return issues


def _child_lists(node: PropertyBase, path: Path) -> Iterator[tuple[list[NodeProperty], Path]]:
    if isinstance(node, ObjectProperty):
        yield node.properties, (*path, "properties")


def _child_nodes(node: PropertyBase, path: Path) -> Iterator[tuple[PropertyBase, Path]]:
    if isinstance(node, ArrayProperty):
        if isinstance(node.items, DiscriminatedItems):
            for index, branch in enumerate(node.items.any_of):
                yield branch, (*path, "items", "any_of", index)
        else:
            yield node.items, (*path, "items")
    elif isinstance(node, DiscriminatedUnionProperty):
        for index, branch in enumerate(node.any_of):
            yield branch, (*path, "any_of", index)


def _check_sibling_names(siblings: list[NodeProperty], path: Path) -> Iterator[ValidationIssue]:
    seen: set[str] = set()
    for index, prop in enumerate(siblings):
        if prop.name in seen:
            yield ValidationIssue(
                IssueKind.DUPLICATE_PROPERTY_NAME,
                (*path, index, "name"),
                f"duplicate property name '{prop.name}'",
            )
        seen.add(prop.name)


def _check_node(
    node: PropertyBase, path: Path, sibling_names: frozenset[str] | None = None
) -> list[ValidationIssue]:
    issues = list(_check_expressions(node, path))

    if node.ui is not None and node.shape not in shape_category_of(node.ui.component):
        issues.append(
            ValidationIssue(
                IssueKind.UI_SHAPE_MISMATCH,
                (*path, "ui", "component"),
                f"component '{node.ui.component}' cannot edit a '{node.shape.value}' property",
            )
        )

    if node.display is not None:
        for rule in ("hide", "show"):
            condition = getattr(node.display, rule)
            if condition is None:
                continue
            names = referenced_names(condition)
            if node.name in names:
                issues.append(
                    ValidationIssue(
                        IssueKind.INVALID_DISPLAY_CONDITION,
                        (*path, "display", rule),
                        f"display condition of '{node.name}' cannot refer to the property itself",
                    )
                )
                continue
            # Only properties inside a list have siblings to refer to
            unknown = sorted(names - sibling_names) if sibling_names is not None else []
            if unknown:
                issues.append(
                    ValidationIssue(
                        IssueKind.INVALID_DISPLAY_CONDITION,
                        (*path, "display", rule),
                        f"display condition of '{node.name}' refers to unknown "
                        f"{'property' if len(unknown) == 1 else 'properties'} "
                        + ", ".join(f"'{name}'" for name in unknown),
                    )
                )

    if isinstance(node, DiscriminatedUnionProperty):
        issues.extend(check_discriminated_group(node, path))
    elif isinstance(node, ArrayProperty) and isinstance(node.items, DiscriminatedItems):
        issues.extend(check_discriminated_group(node.items, (*path, "items")))

    return issues


def _check_expressions(node: PropertyBase, path: Path) -> Iterator[ValidationIssue]:
    if node.shape not in EXPRESSION_GATED_SHAPES or node.supports_expression:
        return
    for sub_path, value in node.payload_values():
        if isinstance(value, str):
            yield ValidationIssue(
                IssueKind.EXPRESSION_NOT_ALLOWED,
                (*path, *sub_path),
                f"{format_path(sub_path)} is an expression but ui.support_expression is not true",
            )


def check_discriminated_group(
    group: DiscriminatedItems | DiscriminatedUnionProperty, path: Path
) -> list[ValidationIssue]:
    """Check the branches of a polymorphic group.

    Every branch is checked for a valid discriminator constant before any
    uniqueness check, since comparing values needs all of them.
    """
    issues: list[ValidationIssue] = []

    if group.discriminator_ui is not None and (
        group.discriminator_ui.component not in DISCRIMINATOR_UI_COMPONENTS
    ):
        issues.append(
            ValidationIssue(
                IssueKind.UI_SHAPE_MISMATCH,
                (*path, "discriminator_ui", "component"),
                f"component '{group.discriminator_ui.component}' cannot select a discriminator",
            )
        )

    constants: list[tuple[int, Any]] = []
    branch_issues: list[ValidationIssue] = []
    for index, branch in enumerate(group.any_of):
        branch_path = (*path, "any_of", index)
        position = next(
            (i for i, p in enumerate(branch.properties) if p.name == group.discriminator), None
        )
        if position is None:
            branch_issues.append(
                ValidationIssue(
                    IssueKind.MISSING_DISCRIMINATOR_FIELD,
                    (*branch_path, "properties"),
                    f"branch '{branch.name}' has no '{group.discriminator}' property",
                )
            )
            continue

        constant = getattr(branch.properties[position], "constant", None)
        if not isinstance(constant, (str, int, float, bool)) or is_expression(constant):
            branch_issues.append(
                ValidationIssue(
                    IssueKind.INVALID_DISCRIMINATOR_CONSTANT,
                    (*branch_path, "properties", position, "constant"),
                    f"'{group.discriminator}' of branch '{branch.name}' needs a "
                    "string, number or boolean constant",
                )
            )
            continue
        constants.append((index, constant))

    if branch_issues:
        return issues + branch_issues

    for position, (index, constant) in enumerate(constants):
        if any(json_equal(constant, other) for _, other in constants[:position]):
            issues.append(
                ValidationIssue(
                    IssueKind.DUPLICATE_DISCRIMINATOR_VALUE,
                    (*path, "any_of", index),
                    f"discriminator value {constant!r} is used by more than one branch",
                )
            )
    return issues
