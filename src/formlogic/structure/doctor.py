"""Doctor: structural integrity checks for a form definition."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from formlogic.rules.expression import compile_expression, referenced_vars
from formlogic.structure.index import FormIndex
from formlogic.structure.model import VALID_RULE_KINDS

if TYPE_CHECKING:
    from formlogic.structure.model import Condition, Form

logger = logging.getLogger(__name__)


class Severity(enum.Enum):
    """Severity level for a check result."""

    OK = "ok"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Check:
    """Result of a single structural check."""

    name: str
    severity: Severity
    description: str


def _check_dangling_refs(form: Form) -> list[Check]:
    """Group page lists and page element lists that name undefined nodes."""
    page_ids = {p.id for p in form.pages}
    element_ids = {e.id for e in form.elements}
    results: list[Check] = []
    for group in form.groups:
        for page_id in group.page_ids:
            if page_id not in page_ids:
                results.append(
                    Check(
                        "dangling_refs",
                        Severity.WARNING,
                        f"Group '{group.id}' references unknown page '{page_id}'.",
                    )
                )
    for page in form.pages:
        for element_id in page.element_ids:
            if element_id not in element_ids:
                results.append(
                    Check(
                        "dangling_refs",
                        Severity.WARNING,
                        f"Page '{page.id}' references unknown element '{element_id}'.",
                    )
                )
    if not results:
        return [Check("dangling_refs", Severity.OK, "All structural references resolve.")]
    return results


def _check_shared_pages(form: Form) -> list[Check]:
    """Pages claimed by more than one group."""
    claims: dict[str, list[str]] = {}
    for group in form.groups:
        for page_id in group.page_ids:
            owners = claims.setdefault(page_id, [])
            if group.id not in owners:
                owners.append(group.id)
    for page in form.pages:
        if page.group_id is not None:
            owners = claims.setdefault(page.id, [])
            if page.group_id not in owners:
                owners.append(page.group_id)

    results = [
        Check(
            "shared_pages",
            Severity.WARNING,
            f"Page '{page_id}' is claimed by groups {', '.join(owners)}; "
            f"only '{owners[0]}' is used.",
        )
        for page_id, owners in claims.items()
        if len(owners) > 1
    ]
    if not results:
        return [Check("shared_pages", Severity.OK, "Every page belongs to at most one group.")]
    return results


def _check_empty_pages(form: Form) -> list[Check]:
    rows = [page.id for page in form.pages if not page.element_ids]
    if not rows:
        return [Check("empty_pages", Severity.OK, "All pages have elements.")]
    return [Check("empty_pages", Severity.INFO, f"Page '{p}' has no elements.") for p in rows]


def _check_unplaced_elements(index: FormIndex) -> list[Check]:
    """Elements defined but not placed on any page."""
    placed = {eid for ids in index.page_elements.values() for eid in ids}
    rows = [eid for eid in index.elements if eid not in placed]
    if not rows:
        return [Check("unplaced_elements", Severity.OK, "All elements are placed on a page.")]
    return [
        Check("unplaced_elements", Severity.INFO, f"Element '{eid}' is not placed on any page.")
        for eid in rows
    ]


def _check_display_elements(form: Form) -> list[Check]:
    """Display-only elements that carry a required flag or validation rules.

    Display elements never receive a value, so a required one always fails.
    """
    results: list[Check] = []
    for element in form.elements:
        if element.is_input:
            continue
        if element.required:
            results.append(
                Check(
                    "display_elements",
                    Severity.WARNING,
                    f"Element '{element.id}' ({element.type}) is display-only but required.",
                )
            )
        if element.validations:
            results.append(
                Check(
                    "display_elements",
                    Severity.INFO,
                    f"Element '{element.id}' ({element.type}) is display-only; "
                    "its validation rules only run on a submitted value.",
                )
            )
    if not results:
        return [Check("display_elements", Severity.OK, "Display elements carry no input rules.")]
    return results


def _target_exists(index: FormIndex, condition: Condition) -> bool:
    lookups = {
        "element": index.elements,
        "page": index.pages,
        "group": index.groups,
    }
    return condition.target_id in lookups.get(condition.target_type, {})


def _check_condition_refs(form: Form, index: FormIndex) -> list[Check]:
    """Conditions whose source element or target node is unknown."""
    results: list[Check] = []
    for condition in form.conditions:
        if not condition.uses_expression:
            source = condition.source_element_id
            if source is None:
                results.append(
                    Check(
                        "condition_refs",
                        Severity.INFO,
                        f"Condition '{condition.id}' has no source element and never applies.",
                    )
                )
            elif source not in index.elements:
                results.append(
                    Check(
                        "condition_refs",
                        Severity.WARNING,
                        f"Condition '{condition.id}' references unknown source element "
                        f"'{source}'.",
                    )
                )
        if not _target_exists(index, condition):
            results.append(
                Check(
                    "condition_refs",
                    Severity.WARNING,
                    f"Condition '{condition.id}' targets unknown {condition.target_type} "
                    f"'{condition.target_id}'.",
                )
            )
    if not results:
        return [Check("condition_refs", Severity.OK, "All condition references resolve.")]
    return results


def _check_rules(form: Form) -> list[Check]:
    """Expressions and patterns that would fail at evaluation time."""
    results: list[Check] = []

    for condition in form.conditions:
        if condition.uses_expression:
            try:
                compile_expression(condition.rule, context=f"Condition '{condition.id}' rule")
            except ValueError as exc:
                results.append(Check("rules", Severity.ERROR, str(exc)))

    for validation in form.form_validations:
        try:
            compile_expression(validation.rule, context=f"Form validation '{validation.name}'")
        except ValueError as exc:
            results.append(Check("rules", Severity.ERROR, str(exc)))

    for element in form.elements:
        for rule in element.validations:
            context = f"Element '{element.id}' {rule.kind} rule"
            if rule.kind == "jsonLogic":
                try:
                    compile_expression(rule.rule, context=context)
                except ValueError as exc:
                    results.append(Check("rules", Severity.ERROR, str(exc)))
            elif rule.kind == "regex":
                if not isinstance(rule.rule, str):
                    results.append(
                        Check("rules", Severity.ERROR, f"{context}: pattern must be a string")
                    )
                    continue
                try:
                    re.compile(rule.rule)
                except re.error as exc:
                    results.append(Check("rules", Severity.ERROR, f"{context}: {exc}"))
            elif rule.kind not in VALID_RULE_KINDS:
                results.append(
                    Check("rules", Severity.INFO, f"{context}: unknown kind is ignored.")
                )

    if not results:
        return [Check("rules", Severity.OK, "All expressions and patterns compile.")]
    return results


def _check_expression_vars(form: Form, index: FormIndex) -> list[Check]:
    """Expressions that read a value no element provides.

    Such a ``var`` always resolves to its default, which usually means a typo.
    Rules that do not compile are reported by :func:`_check_rules` instead.
    """
    sources: list[tuple[str, object]] = [
        (f"Condition '{c.id}'", c.rule) for c in form.conditions if c.uses_expression
    ]
    sources.extend((f"Form validation '{v.name}'", v.rule) for v in form.form_validations)

    results: list[Check] = []
    for label, rule in sources:
        try:
            names = referenced_vars(compile_expression(rule))
        except ValueError:
            continue
        results.extend(
            Check(
                "expression_vars",
                Severity.WARNING,
                f"{label} reads unknown element '{name}'.",
            )
            for name in sorted(names)
            if name not in index.elements
        )
    if not results:
        return [Check("expression_vars", Severity.OK, "Expressions read known elements.")]
    return results


def _descendant_keys(index: FormIndex, condition: Condition) -> set[str]:
    keys: set[str] = set()
    if condition.target_type == "group":
        for page in index.pages_of_group(condition.target_id):
            keys.add(f"page_{page.id}")
            keys.update(f"element_{eid}" for eid in index.page_elements.get(page.id, []))
    elif condition.target_type == "page":
        keys.update(f"element_{eid}" for eid in index.page_elements.get(condition.target_id, []))
    return keys


def _check_ordering(form: Form, index: FormIndex) -> list[Check]:
    """A later condition that writes a node an earlier one can cascade-hide.

    The later write overrides the cascade, which is usually intended but easy
    to get wrong when conditions are reordered.
    """
    results: list[Check] = []
    conditions = list(form.conditions)
    for pos, earlier in enumerate(conditions):
        covered = _descendant_keys(index, earlier)
        if not covered:
            continue
        for later in conditions[pos + 1 :]:
            if later.target_key in covered:
                results.append(
                    Check(
                        "ordering",
                        Severity.INFO,
                        f"Condition '{later.id}' overrides the cascade of condition "
                        f"'{earlier.id}' on {later.target_type} '{later.target_id}'.",
                    )
                )
    if not results:
        return [Check("ordering", Severity.OK, "No cascade overrides between conditions.")]
    return results


def _check_affected_elements(form: Form, index: FormIndex) -> list[Check]:
    results = [
        Check(
            "affected_elements",
            Severity.WARNING,
            f"Form validation '{v.name}' lists unknown element '{eid}'.",
        )
        for v in form.form_validations
        for eid in v.affected_elements
        if eid not in index.elements
    ]
    if not results:
        return [Check("affected_elements", Severity.OK, "Form validations name known elements.")]
    return results


def run_checks(form: Form) -> list[Check]:
    """Run all structural checks and return results."""
    index = FormIndex.build(form)
    results: list[Check] = []
    results.extend(_check_dangling_refs(form))
    results.extend(_check_shared_pages(form))
    results.extend(_check_empty_pages(form))
    results.extend(_check_unplaced_elements(index))
    results.extend(_check_display_elements(form))
    results.extend(_check_condition_refs(form, index))
    results.extend(_check_rules(form))
    results.extend(_check_expression_vars(form, index))
    results.extend(_check_ordering(form, index))
    results.extend(_check_affected_elements(form, index))
    logger.debug("Ran %d structural checks on form '%s'", len(results), form.id)
    return results
