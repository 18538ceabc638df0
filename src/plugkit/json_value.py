"""JSON value model for plugkit.

Property descriptors store their constant, default and enum payloads as
plain JSON values. This module checks that arbitrary Python objects are
JSON-compatible and compares them the way JSON does (so ``1`` and ``True``
are different values).
"""

import math
import re
from collections.abc import Mapping
from typing import Annotated, Any, TypeAlias

from pydantic import AfterValidator

JsonPrimitive: TypeAlias = str | int | float | bool | None
JsonValue: TypeAlias = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]

# An expression is `={{ ... }}`, optionally padded with whitespace.
EXPRESSION_PATTERN = re.compile(r"^\s*=\{\{.*\}\}\s*$", re.DOTALL)


class InvalidJsonValueError(ValueError):
    """Raised when a value cannot be represented as JSON."""

    def __init__(self, message: str, path: tuple[str | int, ...] = ()) -> None:
        """Initialize with the offending location inside the value."""
        self.path = path
        location = ".".join(str(part) for part in path)
        super().__init__(f"{message} at '{location}'" if location else message)


def is_expression(value: object) -> bool:
    """Return True if value is an expression string such as ``={{ a + 1 }}``."""
    return isinstance(value, str) and EXPRESSION_PATTERN.match(value) is not None


def parse_json_value(value: object) -> JsonValue:
    """Validate that value is a plain JSON value and return it.

    Accepts str, int, float, bool and None, lists (or tuples) of JSON values
    and str-keyed dicts of JSON values. Nested containers are walked with an
    explicit stack so deep values cannot exhaust the interpreter stack.

    Args:
        value: Candidate value.

    Returns:
        The value with tuples converted to lists.

    Raises:
        InvalidJsonValueError: For non-plain objects, callables, non-finite
            floats, non-string keys, or cyclic structures.
    """
    root: list[JsonValue] = [None]
    # (source, parent container, key in parent, path, ids of ancestors)
    stack: list[tuple[object, Any, Any, tuple[str | int, ...], frozenset[int]]] = [
        (value, root, 0, (), frozenset())
    ]

    while stack:
        current, parent, key, path, ancestors = stack.pop()

        if current is None or isinstance(current, (str, bool, int)):
            parent[key] = current
            continue

        if isinstance(current, float):
            if not math.isfinite(current):
                raise InvalidJsonValueError("non-finite numbers are not JSON values", path)
            parent[key] = current
            continue

        if id(current) in ancestors:
            raise InvalidJsonValueError("cyclic structures are not JSON values", path)

        if isinstance(current, (list, tuple)):
            items: list[JsonValue] = [None] * len(current)
            parent[key] = items
            inner = ancestors | {id(current)}
            for index, item in enumerate(current):
                stack.append((item, items, index, (*path, index), inner))
            continue

        if type(current) is dict:
            mapping: dict[str, JsonValue] = {}
            parent[key] = mapping
            inner = ancestors | {id(current)}
            for item_key, item in current.items():
                if not isinstance(item_key, str):
                    raise InvalidJsonValueError("object keys must be strings", path)
                mapping[item_key] = None
                stack.append((item, mapping, item_key, (*path, item_key), inner))
            continue

        raise InvalidJsonValueError(
            f"{type(current).__name__} is not a JSON value", path
        )

    return root[0]


def json_equal(left: object, right: object) -> bool:
    """Compare two JSON values structurally.

    Unlike ``==``, booleans never equal numbers, while ``1`` equals ``1.0``.
    Object key order is ignored; array order is not.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(
            json_equal(a, b) for a, b in zip(left, right, strict=True)
        )
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(
            json_equal(left[k], right[k]) for k in left
        )
    return type(left) is type(right) and left == right


def is_number(value: object) -> bool:
    """Return True for ints and floats, excluding booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_json_value(value: Any) -> JsonValue:
    try:
        return parse_json_value(value)
    except InvalidJsonValueError as e:
        raise ValueError(str(e)) from e


# Field type for descriptor payloads
JsonField = Annotated[Any, AfterValidator(_check_json_value)]
JsonObject: TypeAlias = dict[str, JsonField]
