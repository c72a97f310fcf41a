"""Simple condition operators and the value coercions shared with expression trees."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_OPERATORS: frozenset[str] = frozenset(
    {"equals", "not_equals", "contains", "greater_than", "less_than"}
)

_NUMERIC_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")

# ---------------------------------------------------------------------------
# Coercions
# ---------------------------------------------------------------------------


def is_absent(value: object) -> bool:
    """Return True for values that count as "not answered" (None or empty string)."""
    return value is None or value == ""


def to_number(value: object) -> float:
    """Coerce *value* to a float, returning NaN for anything non-numeric.

    Absent values (None, blank strings) become NaN rather than zero, so an
    unanswered field never satisfies a numeric comparison.
    """
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not _NUMERIC_RE.match(text):
            return math.nan
        return float(text)
    return math.nan


def to_text(value: object) -> str:
    """Stringify *value* the way a submitted form field reads."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    return str(value)


def is_truthy(value: object) -> bool:
    """JSON-Logic truthiness: empty sequences and NaN are falsy, ``"0"`` is truthy."""
    if isinstance(value, float) and math.isnan(value):
        return False
    if isinstance(value, (list, tuple, Mapping)):
        return len(value) > 0
    return bool(value)


def strict_equals(left: object, right: object) -> bool:
    """Equality without cross-kind coercion (``"5" != 5``, ``True != 1``)."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    return type(left) is type(right) and left == right


def loose_equals(left: object, right: object) -> bool:
    """Equality with numeric coercion between numbers, booleans and numeric strings."""
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    scalar = (str, int, float)
    if isinstance(left, scalar) and isinstance(right, scalar):
        lhs = to_number(left)
        rhs = to_number(right)
        return not (math.isnan(lhs) or math.isnan(rhs)) and lhs == rhs
    return left == right


# ---------------------------------------------------------------------------
# Operator evaluation
# ---------------------------------------------------------------------------


def _greater(lhs: object, rhs: object) -> bool:
    left = to_number(lhs)
    right = to_number(rhs)
    if math.isnan(left) or math.isnan(right):
        return False
    return left > right


def _less(lhs: object, rhs: object) -> bool:
    left = to_number(lhs)
    right = to_number(rhs)
    if math.isnan(left) or math.isnan(right):
        return False
    return left < right


def evaluate_operator(operator: str, lhs: object, rhs: object) -> bool:
    """Evaluate a simple condition operator.

    Raises ``ValueError`` for an operator outside :data:`VALID_OPERATORS`;
    callers treat that like any other malformed condition.
    """
    if operator == "equals":
        return strict_equals(lhs, rhs)
    if operator == "not_equals":
        return not strict_equals(lhs, rhs)
    if operator == "contains":
        return to_text(rhs) in to_text(lhs)
    if operator == "greater_than":
        return _greater(lhs, rhs)
    if operator == "less_than":
        return _less(lhs, rhs)

    msg = f"unknown operator '{operator}', must be one of {sorted(VALID_OPERATORS)}"
    raise ValueError(msg)
