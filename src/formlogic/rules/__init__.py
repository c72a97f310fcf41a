"""Rules domain: simple condition operators and boolean-expression trees."""

from formlogic.rules.expression import (
    Arithmetic,
    BoolCombinator,
    Compare,
    Conditional,
    Expression,
    Literal,
    Membership,
    Var,
    apply_rule,
    compile_expression,
    evaluate_expression,
    referenced_vars,
)
from formlogic.rules.operators import (
    VALID_OPERATORS,
    evaluate_operator,
    is_absent,
    is_truthy,
    to_number,
    to_text,
)

__all__ = [
    "VALID_OPERATORS",
    "Arithmetic",
    "BoolCombinator",
    "Compare",
    "Conditional",
    "Expression",
    "Literal",
    "Membership",
    "Var",
    "apply_rule",
    "compile_expression",
    "evaluate_expression",
    "evaluate_operator",
    "is_absent",
    "is_truthy",
    "referenced_vars",
    "to_number",
    "to_text",
]
