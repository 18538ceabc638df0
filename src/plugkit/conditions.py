"""Display conditions for conditional property visibility.

A display condition is a MongoDB-style filter evaluated against the values
of a property's siblings. Two shapes are accepted:

- a field map ``{"mode": "advanced", "retries": {"$gte": 3}}``, where every
  key names a sibling and every entry must hold;
- a root filter ``{"$or": [cond, cond], "$nor": [cond]}`` combining nested
  display conditions.

Conditions are stored as validated plain dicts so they serialize verbatim.
"""

import math
import re
from collections.abc import Mapping
from typing import Annotated, Any, TypeAlias

from pydantic import (
    AfterValidator,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from plugkit.base import StrictModel, StrictNumber
from plugkit.json_value import (
    InvalidJsonValueError,
    JsonField,
    is_number,
    json_equal,
    parse_json_value,
)

ROOT_OPERATORS = ("$and", "$or", "$nor")
REGEX_OPTIONS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


class _Missing:
    """Marker for a sibling that has no value."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class FilterOperators(StrictModel):
    """Operator object of a condition, e.g. ``{"$gte": 1, "$lt": 10}``."""

    eq: JsonField = Field(default=None, alias="$eq")
    ne: JsonField = Field(default=None, alias="$ne")
    gt: JsonField = Field(default=None, alias="$gt")
    gte: JsonField = Field(default=None, alias="$gte")
    lt: JsonField = Field(default=None, alias="$lt")
    lte: JsonField = Field(default=None, alias="$lte")
    in_: list[JsonField] | None = Field(default=None, alias="$in")
    nin: list[JsonField] | None = Field(default=None, alias="$nin")
    exists: StrictBool | None = Field(default=None, alias="$exists")
    mod: Annotated[list[StrictNumber], Field(min_length=2, max_length=2)] | None = Field(
        default=None, alias="$mod"
    )
    regex: StrictStr | None = Field(default=None, alias="$regex")
    options: StrictStr | None = Field(default=None, alias="$options")
    size: Annotated[StrictInt, Field(ge=0)] | None = Field(default=None, alias="$size")

    @field_validator("regex")
    @classmethod
    def validate_regex(cls, v: str | None) -> str | None:
        """Validate that the pattern compiles."""
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                msg = f"invalid regular expression: {e}"
                raise ValueError(msg) from e
        return v

    @field_validator("options")
    @classmethod
    def validate_options(cls, v: str | None) -> str | None:
        """Validate regex flags."""
        if v is not None and not set(v) <= REGEX_OPTIONS.keys():
            msg = f"$options may only contain {''.join(REGEX_OPTIONS)}"
            raise ValueError(msg)
        return v


def is_operator_object(condition: object) -> bool:
    """Return True if condition is an operator object rather than a literal."""
    return (
        isinstance(condition, Mapping)
        and len(condition) > 0
        and all(isinstance(k, str) and k.startswith("$") for k in condition)
    )


def is_root_filter(condition: object) -> bool:
    """Return True if condition combines nested conditions with $and/$or/$nor."""
    return (
        isinstance(condition, Mapping)
        and len(condition) > 0
        and all(k in ROOT_OPERATORS for k in condition)
    )


def validate_condition(condition: Any) -> Any:
    """Validate a single field condition (literal or operator object).

    Raises:
        ValueError: If the condition is not a JSON value or uses unknown or
            mistyped operators.
    """
    if isinstance(condition, dict) and any(
        isinstance(k, str) and k.startswith("$") for k in condition
    ):
        if not is_operator_object(condition):
            msg = "a condition cannot mix operators with literal keys"
            raise ValueError(msg)
        try:
            FilterOperators.model_validate(condition)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            msg = f"invalid filter operators ({problems})"
            raise ValueError(msg) from e
        return condition
    try:
        return parse_json_value(condition)
    except InvalidJsonValueError as e:
        raise ValueError(str(e)) from e


def validate_display_condition(condition: Any) -> dict[str, Any]:
    """Validate a display condition without evaluating it.

    Raises:
        ValueError: If the condition is malformed.
    """
    if not isinstance(condition, dict):
        msg = "display condition must be an object"
        raise ValueError(msg)

    if any(k in ROOT_OPERATORS for k in condition):
        if not is_root_filter(condition):
            msg = "$and/$or/$nor cannot be mixed with field conditions"
            raise ValueError(msg)
        for operator, nested in condition.items():
            if not isinstance(nested, list):
                msg = f"{operator} must be a list of display conditions"
                raise ValueError(msg)
            for item in nested:
                validate_display_condition(item)
        return condition

    for name, field_condition in condition.items():
        if not isinstance(name, str) or not name or name.startswith("$"):
            msg = f"unknown root operator or invalid property reference '{name}'"
            raise ValueError(msg)
        validate_condition(field_condition)
    return condition


DisplayCondition: TypeAlias = Annotated[dict[str, Any], AfterValidator(validate_display_condition)]


class PropertyDisplay(StrictModel):
    """Visibility rules of a property, evaluated against sibling values."""

    hide: DisplayCondition | None = None
    show: DisplayCondition | None = None


def referenced_names(condition: Mapping[str, Any]) -> set[str]:
    """Collect every sibling name a display condition refers to."""
    names: set[str] = set()
    pending = [condition]
    while pending:
        current = pending.pop()
        if is_root_filter(current):
            for nested in current.values():
                pending.extend(nested)
        else:
            names.update(current.keys())
    return names


def _compare(value: object, operand: object) -> int | None:
    """Order two values, or return None if they are not comparable."""
    both_numbers = is_number(value) and is_number(operand)
    if not both_numbers and not (isinstance(value, str) and isinstance(operand, str)):
        return None
    if value < operand:  # type: ignore[operator]
        return -1
    return 1 if value > operand else 0  # type: ignore[operator]


def _op_eq(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    return value is not MISSING and json_equal(value, operand)


def _op_ne(value: Any, operand: Any, condition: Mapping[str, Any]) -> bool:
    return not _op_eq(value, operand, condition)


def _op_gt(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    order = _compare(value, operand)
    return order is not None and order > 0


def _op_gte(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    order = _compare(value, operand)
    return order is not None and order >= 0


def _op_lt(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    order = _compare(value, operand)
    return order is not None and order < 0


def _op_lte(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    order = _compare(value, operand)
    return order is not None and order <= 0


def _op_in(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    return value is not MISSING and any(json_equal(value, item) for item in operand)


def _op_nin(value: Any, operand: Any, condition: Mapping[str, Any]) -> bool:
    return not _op_in(value, operand, condition)


def _op_exists(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    return (value is not MISSING) == operand


def _op_mod(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    divisor, remainder = operand
    if not is_number(value) or divisor == 0:
        return False
    # Truncated division, matching MongoDB for negative values
    if isinstance(value, int) and isinstance(divisor, int) and not isinstance(divisor, bool):
        result = abs(value) % abs(divisor)
        return (-result if value < 0 else result) == remainder
    try:
        return math.fmod(value, divisor) == remainder
    except OverflowError:
        return False


def _op_regex(value: Any, operand: Any, condition: Mapping[str, Any]) -> bool:
    if not isinstance(value, str):
        return False
    flags = 0
    for option in condition.get("$options") or "":
        flags |= REGEX_OPTIONS.get(option, 0)
    return re.search(operand, value, flags) is not None


def _op_size(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    return isinstance(value, list) and len(value) == operand


_OPERATORS = {
    "$eq": _op_eq,
    "$ne": _op_ne,
    "$gt": _op_gt,
    "$gte": _op_gte,
    "$lt": _op_lt,
    "$lte": _op_lte,
    "$in": _op_in,
    "$nin": _op_nin,
    "$exists": _op_exists,
    "$mod": _op_mod,
    "$regex": _op_regex,
    "$size": _op_size,
}


def matches_condition(value: Any, condition: Any) -> bool:
    """Test a value against a field condition.

    A literal condition requires structural equality. An operator object
    requires every present operator to hold; operators without an evaluator
    (such as a lone ``$options``) hold vacuously. Pass ``MISSING`` for an
    absent value: it only satisfies ``$exists: false``, ``$ne`` and ``$nin``.
    """
    if is_operator_object(condition):
        for operator, operand in condition.items():
            evaluate = _OPERATORS.get(operator)
            if evaluate is not None and not evaluate(value, operand, condition):
                return False
        return True
    return value is not MISSING and json_equal(value, condition)


def matches_display_condition(siblings: Mapping[str, Any], condition: Mapping[str, Any]) -> bool:
    """Evaluate a display condition against sibling values.

    ``$and`` requires all nested conditions, ``$or`` at least one (an empty
    ``$or`` never holds), ``$nor`` none. Several root operators combine by
    conjunction, as do the keys of a field map.
    """
    if is_root_filter(condition):
        if "$and" in condition and not all(
            matches_display_condition(siblings, c) for c in condition["$and"]
        ):
            return False
        if "$or" in condition and not any(
            matches_display_condition(siblings, c) for c in condition["$or"]
        ):
            return False
        return not (
            "$nor" in condition
            and any(matches_display_condition(siblings, c) for c in condition["$nor"])
        )

    return all(
        matches_condition(siblings.get(name, MISSING), field_condition)
        for name, field_condition in condition.items()
    )


def is_visible(display: PropertyDisplay | None, siblings: Mapping[str, Any]) -> bool:
    """Return True unless hide matches or show is set and does not match."""
    if display is None:
        return True
    if display.hide is not None and matches_display_condition(siblings, display.hide):
        return False
    return not (display.show is not None and not matches_display_condition(siblings, display.show))
