"""Element, page and form validation against submitted values."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from formlogic.config import DEFAULT_CONFIG
from formlogic.rules.expression import apply_rule
from formlogic.rules.operators import is_absent, to_number, to_text
from formlogic.structure.index import FormIndex

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from formlogic.config import EngineConfig
    from formlogic.structure.index import StructureSource
    from formlogic.structure.model import (
        Element,
        Form,
        FormValidation,
        Page,
        ValidationRule,
    )

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationIssue:
    """One failed check.  Form-level issues have no ``element_id``."""

    message: str
    element_id: str | None = None
    rule: object = None
    affected_elements: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"message": self.message}
        if self.element_id is not None:
            data["elementId"] = self.element_id
        if self.rule is not None:
            data["rule"] = self.rule
        if self.affected_elements:
            data["affectedElements"] = list(self.affected_elements)
        return data


@dataclass(frozen=True)
class ValidationResult:
    """Pass/fail plus the issues in evaluation order."""

    valid: bool = True
    errors: tuple[ValidationIssue, ...] = ()

    @classmethod
    def from_issues(cls, issues: Iterable[ValidationIssue]) -> ValidationResult:
        errors = tuple(issues)
        return cls(valid=not errors, errors=errors)

    @classmethod
    def merge(cls, *results: ValidationResult) -> ValidationResult:
        """Concatenate errors; valid only if every part is valid."""
        errors: list[ValidationIssue] = []
        for result in results:
            errors.extend(result.errors)
        return cls(valid=all(r.valid for r in results), errors=tuple(errors))

    def to_dict(self) -> dict[str, object]:
        return {"valid": self.valid, "errors": [issue.to_dict() for issue in self.errors]}


# ---------------------------------------------------------------------------
# Element validation
# ---------------------------------------------------------------------------


def _type_check_issues(element: Element, value: object) -> list[ValidationIssue]:
    """Built-in checks for typed inputs (email format, numeric range)."""
    issues: list[ValidationIssue] = []

    if element.type == "email" and not _EMAIL_RE.match(to_text(value)):
        issues.append(
            ValidationIssue(message="Please enter a valid email address", element_id=element.id)
        )

    if element.type == "number_input":
        number = to_number(value)
        if number != number:  # NaN
            issues.append(
                ValidationIssue(message="Please enter a valid number", element_id=element.id)
            )
            return issues
        minimum = element.properties.get("min")
        if minimum is not None and number < to_number(minimum):
            issues.append(
                ValidationIssue(
                    message=f"Value must be at least {to_text(minimum)}", element_id=element.id
                )
            )
        maximum = element.properties.get("max")
        if maximum is not None and number > to_number(maximum):
            issues.append(
                ValidationIssue(
                    message=f"Value must be at most {to_text(maximum)}", element_id=element.id
                )
            )

    return issues


def _check_rule(
    element: Element, rule: ValidationRule, value: object, config: EngineConfig
) -> ValidationIssue | None:
    if rule.kind == "jsonLogic":
        passed = apply_rule(rule.rule, {element.id: value})
    elif rule.kind == "regex":
        if not isinstance(rule.rule, str):
            msg = f"regex rule on element '{element.id}' must be a pattern string"
            raise TypeError(msg)
        passed = re.search(rule.rule, to_text(value)) is not None
    else:
        logger.debug("Skipping rule of kind '%s' on element '%s'", rule.kind, element.id)
        return None

    if passed:
        return None
    return ValidationIssue(
        message=rule.error_message or config.fallback_message,
        element_id=element.id,
        rule=rule.rule,
    )


def validate_element(
    element: Element, value: object, *, config: EngineConfig | None = None
) -> ValidationResult:
    """Validate one submitted value against an element's required flag and rules.

    An absent required value yields exactly one issue and no rule runs; an
    absent optional value is valid.  Each rule is isolated: an exception
    becomes a single generic issue and the next rule still runs.
    """
    cfg = config or DEFAULT_CONFIG

    if is_absent(value):
        if element.required:
            return ValidationResult.from_issues(
                [ValidationIssue(message=cfg.required_message, element_id=element.id)]
            )
        return ValidationResult()

    issues: list[ValidationIssue] = []
    if cfg.type_checks:
        issues.extend(_type_check_issues(element, value))

    for rule in element.validations:
        try:
            issue = _check_rule(element, rule, value, cfg)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Validation rule (%s) on element '%s' failed: %s", rule.kind, element.id, exc
            )
            issue = ValidationIssue(
                message=cfg.rule_error_message, element_id=element.id, rule=rule.rule
            )
        if issue is not None:
            issues.append(issue)

    return ValidationResult.from_issues(issues)


# ---------------------------------------------------------------------------
# Page / form validation
# ---------------------------------------------------------------------------


def _validate_elements(
    elements: Iterable[Element], values: Mapping[str, object], config: EngineConfig
) -> ValidationResult:
    results = [validate_element(el, values.get(el.id), config=config) for el in elements]
    return ValidationResult.merge(ValidationResult(), *results)


def validate_page(
    page: Page,
    source: StructureSource,
    values: Mapping[str, object],
    *,
    config: EngineConfig | None = None,
) -> ValidationResult:
    """Validate every element on *page* in page order.

    Element ids that *source* cannot resolve are skipped with a warning.
    """
    cfg = config or DEFAULT_CONFIG
    elements: list[Element] = []
    for element_id in page.element_ids:
        element = source.get_element(element_id)
        if element is None:
            logger.warning("Page '%s' references unknown element '%s'", page.id, element_id)
            continue
        elements.append(element)
    return _validate_elements(elements, values, cfg)


def validate_form_rules(
    validations: Iterable[FormValidation],
    values: Mapping[str, object],
    *,
    config: EngineConfig | None = None,
) -> ValidationResult:
    """Evaluate form-level cross-field rules against the whole value map."""
    cfg = config or DEFAULT_CONFIG
    data = dict(values)
    issues: list[ValidationIssue] = []

    for validation in validations:
        try:
            passed = apply_rule(validation.rule, data)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Form validation '%s' failed: %s", validation.name, exc)
            issues.append(
                ValidationIssue(
                    message=cfg.form_rule_error_message,
                    rule=validation.rule,
                    affected_elements=validation.affected_elements,
                )
            )
            continue
        if not passed:
            issues.append(
                ValidationIssue(
                    message=validation.error_message or cfg.fallback_message,
                    rule=validation.rule,
                    affected_elements=validation.affected_elements,
                )
            )

    return ValidationResult.from_issues(issues)


def validate_form(
    form: Form,
    values: Mapping[str, object],
    *,
    config: EngineConfig | None = None,
    index: FormIndex | None = None,
    include_form_rules: bool = True,
) -> ValidationResult:
    """Validate every element of *form*, then its form-level rules.

    Elements are visited in group → page → element order, followed by
    elements that no page places.  Visibility is not consulted.
    """
    cfg = config or DEFAULT_CONFIG
    idx = index or FormIndex.build(form)

    result = _validate_elements(idx.all_elements(), values, cfg)
    if include_form_rules and form.form_validations:
        result = ValidationResult.merge(
            result, validate_form_rules(form.form_validations, values, config=cfg)
        )
    return result
