"""Boolean-expression trees: compile JSON-Logic payloads into typed nodes and evaluate them."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass

from formlogic.rules.operators import (
    is_truthy,
    loose_equals,
    strict_equals,
    to_number,
    to_text,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

COMPARE_OPS: frozenset[str] = frozenset({"==", "===", "!=", "!==", "<", "<=", ">", ">="})
ARITHMETIC_OPS: frozenset[str] = frozenset({"+", "-", "*", "/", "%", "min", "max"})
BOOL_OPS: frozenset[str] = frozenset({"and", "or", "!", "!!"})
CONDITIONAL_OPS: frozenset[str] = frozenset({"if", "?:"})

SUPPORTED_OPS: frozenset[str] = (
    COMPARE_OPS | ARITHMETIC_OPS | BOOL_OPS | CONDITIONAL_OPS | frozenset({"var", "in"})
)

_MISSING = object()

# ---------------------------------------------------------------------------
# Node types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Var:
    """Lookup of a key (or dotted path) in the data context."""

    path: str
    default: object = None


@dataclass(frozen=True)
class Literal:
    """A constant; JSON arrays of constants become tuples."""

    value: object


@dataclass(frozen=True)
class Compare:
    """Equality or ordering comparison; ``<``/``<=`` accept three operands (between)."""

    op: str
    operands: tuple[Expression, ...]


@dataclass(frozen=True)
class Arithmetic:
    op: str
    operands: tuple[Expression, ...]


@dataclass(frozen=True)
class BoolCombinator:
    """``and``/``or`` return the deciding operand, ``!``/``!!`` return a bool."""

    op: str
    operands: tuple[Expression, ...]


@dataclass(frozen=True)
class Conditional:
    """``if`` chain: condition, branch, condition, branch, ..., optional else."""

    branches: tuple[Expression, ...]


@dataclass(frozen=True)
class Membership:
    """``in``: substring test for text, element test for arrays."""

    needle: Expression
    haystack: Expression


Expression = Var | Literal | Compare | Arithmetic | BoolCombinator | Conditional | Membership

_NODE_TYPES = (Var, Literal, Compare, Arithmetic, BoolCombinator, Conditional, Membership)

# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def _check_arity(op: str, args: list[object], low: int, high: int | None, context: str) -> None:
    count = len(args)
    if count < low or (high is not None and count > high):
        expected = f"{low}" if high == low else f"{low}..{high if high is not None else 'n'}"
        msg = f"{context}: operator '{op}' takes {expected} operands, got {count}"
        raise ValueError(msg)


def _compile_var(args: list[object], context: str) -> Var:
    _check_arity("var", args, 0, 2, context)
    path = args[0] if args else ""
    if path is None:
        path = ""
    if not isinstance(path, (str, int)) or isinstance(path, bool):
        msg = f"{context}: 'var' path must be a string or integer"
        raise ValueError(msg)
    default = args[1] if len(args) > 1 else None
    if isinstance(default, (dict, list)):
        msg = f"{context}: 'var' default must be a plain value"
        raise ValueError(msg)
    return Var(path=str(path), default=default)


def _compile_operation(op: str, raw_args: object, context: str) -> Expression:
    args: list[object] = list(raw_args) if isinstance(raw_args, list) else [raw_args]

    if op == "var":
        return _compile_var(args, context)

    operands = tuple(compile_expression(arg, context=f"{context}.{op}") for arg in args)

    if op in COMPARE_OPS:
        high = 3 if op in {"<", "<="} else 2
        _check_arity(op, args, 2, high, context)
        return Compare(op=op, operands=operands)
    if op in ARITHMETIC_OPS:
        if op == "-":
            _check_arity(op, args, 1, 2, context)
        elif op in {"/", "%"}:
            _check_arity(op, args, 2, 2, context)
        else:
            _check_arity(op, args, 1, None, context)
        return Arithmetic(op=op, operands=operands)
    if op in BOOL_OPS:
        if op in {"!", "!!"}:
            _check_arity(op, args, 1, 1, context)
        else:
            _check_arity(op, args, 1, None, context)
        return BoolCombinator(op=op, operands=operands)
    if op in CONDITIONAL_OPS:
        _check_arity(op, args, 1, None, context)
        return Conditional(branches=operands)
    if op == "in":
        _check_arity(op, args, 2, 2, context)
        return Membership(needle=operands[0], haystack=operands[1])

    msg = f"{context}: unknown operator '{op}'"
    raise ValueError(msg)


def compile_expression(payload: object, *, context: str = "expression") -> Expression:
    """Compile a JSON-Logic payload into an :data:`Expression` tree.

    Raises ``ValueError`` for unknown operators, wrong operand counts,
    mappings that are not single-operator objects, and arrays holding
    anything other than constants.
    """
    if isinstance(payload, _NODE_TYPES):
        return payload

    if isinstance(payload, Mapping):
        if len(payload) != 1:
            msg = f"{context}: an operation must be a mapping with exactly one operator key"
            raise ValueError(msg)
        op, raw_args = next(iter(payload.items()))
        return _compile_operation(str(op), raw_args, context)

    if isinstance(payload, (list, tuple)):
        items = [compile_expression(item, context=context) for item in payload]
        if not all(isinstance(item, Literal) for item in items):
            msg = f"{context}: array operands must contain constants only"
            raise ValueError(msg)
        return Literal(value=tuple(item.value for item in items))  # type: ignore[union-attr]

    if payload is None or isinstance(payload, (bool, int, float, str)):
        return Literal(value=payload)

    msg = f"{context}: unsupported value of type {type(payload).__name__}"
    raise ValueError(msg)


def referenced_vars(expr: Expression) -> set[str]:
    """Return every ``var`` path read by *expr* (top-level key only)."""
    found: set[str] = set()
    stack: list[Expression] = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, Var):
            if node.path:
                found.add(node.path.split(".", 1)[0])
        elif isinstance(node, (Compare, Arithmetic, BoolCombinator)):
            stack.extend(node.operands)
        elif isinstance(node, Conditional):
            stack.extend(node.branches)
        elif isinstance(node, Membership):
            stack.extend((node.needle, node.haystack))
    return found


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _lookup(data: object, path: str, default: object) -> object:
    if path == "":
        return data
    if isinstance(data, Mapping) and path in data:
        value = data[path]
        return default if value is None else value

    current: object = data
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                current = _MISSING
        else:
            current = _MISSING
        if current is _MISSING:
            return default
    return default if current is None else current


def _order(left: object, right: object) -> int | None:
    """Three-way compare; None when the operands are not comparable (NaN)."""
    if isinstance(left, str) and isinstance(right, str):
        return (left > right) - (left < right)
    lhs = to_number(left)
    rhs = to_number(right)
    if math.isnan(lhs) or math.isnan(rhs):
        return None
    return (lhs > rhs) - (lhs < rhs)


def _compare(op: str, values: list[object]) -> bool:
    if op == "==":
        return loose_equals(values[0], values[1])
    if op == "===":
        return strict_equals(values[0], values[1])
    if op == "!=":
        return not loose_equals(values[0], values[1])
    if op == "!==":
        return not strict_equals(values[0], values[1])

    accepted = {"<": {-1}, "<=": {-1, 0}, ">": {1}, ">=": {1, 0}}[op]
    for left, right in zip(values, values[1:]):
        order = _order(left, right)
        if order is None or order not in accepted:
            return False
    return True


def _divide(left: float, right: float) -> float:
    if right == 0:
        if math.isnan(left) or left == 0:
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _arithmetic(op: str, values: list[object]) -> float:
    numbers = [to_number(v) for v in values]
    if op == "+":
        return math.fsum(numbers) if not any(math.isnan(n) for n in numbers) else math.nan
    if op == "*":
        product = 1.0
        for n in numbers:
            product *= n
        return product
    if op == "-":
        return -numbers[0] if len(numbers) == 1 else numbers[0] - numbers[1]
    if op == "/":
        return _divide(numbers[0], numbers[1])
    if op == "%":
        if numbers[1] == 0 or math.isnan(numbers[0]) or math.isnan(numbers[1]):
            return math.nan
        return math.fmod(numbers[0], numbers[1])
    if any(math.isnan(n) for n in numbers):
        return math.nan
    return min(numbers) if op == "min" else max(numbers)


def evaluate_expression(expr: Expression, data: object) -> object:
    """Evaluate a compiled expression against *data* (usually the value map)."""
    if isinstance(expr, Literal):
        return expr.value
    if isinstance(expr, Var):
        return _lookup(data, expr.path, expr.default)
    if isinstance(expr, Compare):
        return _compare(expr.op, [evaluate_expression(o, data) for o in expr.operands])
    if isinstance(expr, Arithmetic):
        return _arithmetic(expr.op, [evaluate_expression(o, data) for o in expr.operands])
    if isinstance(expr, BoolCombinator):
        if expr.op == "!":
            return not is_truthy(evaluate_expression(expr.operands[0], data))
        if expr.op == "!!":
            return is_truthy(evaluate_expression(expr.operands[0], data))
        result: object = None
        for operand in expr.operands:
            result = evaluate_expression(operand, data)
            if is_truthy(result) == (expr.op == "or"):
                return result
        return result
    if isinstance(expr, Conditional):
        branches = expr.branches
        for idx in range(0, len(branches) - 1, 2):
            if is_truthy(evaluate_expression(branches[idx], data)):
                return evaluate_expression(branches[idx + 1], data)
        if len(branches) % 2 == 1:
            return evaluate_expression(branches[-1], data)
        return None
    if isinstance(expr, Membership):
        needle = evaluate_expression(expr.needle, data)
        haystack = evaluate_expression(expr.haystack, data)
        if isinstance(haystack, str):
            return to_text(needle) in haystack
        if isinstance(haystack, (list, tuple)):
            return any(strict_equals(needle, item) for item in haystack)
        return False

    msg = f"not an expression node: {type(expr).__name__}"
    raise TypeError(msg)


def apply_rule(payload: object, data: object) -> bool:
    """Compile *payload* and return the truthiness of its value against *data*.

    Compile and evaluation errors propagate; callers isolate them per rule.
    """
    return is_truthy(evaluate_expression(compile_expression(payload), data))
