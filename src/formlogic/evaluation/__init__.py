"""Evaluation domain: validators, visibility resolver, orchestrator."""

from formlogic.evaluation.engine import (
    EvaluationError,
    EvaluationResult,
    evaluate,
    format_json,
    format_porcelain,
    format_rich,
)
from formlogic.evaluation.validation import (
    ValidationIssue,
    ValidationResult,
    validate_element,
    validate_form,
    validate_form_rules,
    validate_page,
)
from formlogic.evaluation.visibility import (
    apply_conditions,
    default_visibility,
    resolve_visibility,
    visibility_key,
)

__all__ = [
    "EvaluationError",
    "EvaluationResult",
    "ValidationIssue",
    "ValidationResult",
    "apply_conditions",
    "default_visibility",
    "evaluate",
    "format_json",
    "format_porcelain",
    "format_rich",
    "resolve_visibility",
    "validate_element",
    "validate_form",
    "validate_form_rules",
    "validate_page",
    "visibility_key",
]
