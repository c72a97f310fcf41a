"""Structure domain: form model, index, loader and structural checks."""

from formlogic.structure.doctor import Check, Severity, run_checks
from formlogic.structure.index import FormIndex, StructureSource
from formlogic.structure.loader import load_form, load_values, parse_form
from formlogic.structure.model import (
    Condition,
    Element,
    ElementTemplate,
    Form,
    FormValidation,
    Group,
    Page,
    ValidationRule,
    merge_template,
)

__all__ = [
    "Check",
    "Condition",
    "Element",
    "ElementTemplate",
    "Form",
    "FormIndex",
    "FormValidation",
    "Group",
    "Page",
    "Severity",
    "StructureSource",
    "ValidationRule",
    "load_form",
    "load_values",
    "merge_template",
    "parse_form",
    "run_checks",
]
