"""Visibility resolver: apply show/hide conditions and cascade hides down the tree.

Conditions are applied strictly in the order given.  A hidden group or page
forces its descendants hidden *at that point* in the sequence; a later
condition that targets a descendant directly overwrites the cascade.  The
result is therefore order-sensitive, and that ordering is part of the
contract.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from formlogic.rules.expression import apply_rule
from formlogic.rules.operators import evaluate_operator

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from formlogic.structure.index import FormIndex
    from formlogic.structure.model import Condition

logger = logging.getLogger(__name__)


def visibility_key(target_type: str, target_id: str) -> str:
    """Namespaced key used in the visibility map (``group_1``, ``page_2``, ...)."""
    return f"{target_type}_{target_id}"


def default_visibility(index: FormIndex) -> dict[str, bool]:
    """Every known group, page and element, all visible."""
    visibility: dict[str, bool] = {}
    for group_id in index.groups:
        visibility[visibility_key("group", group_id)] = True
    for page_id in index.pages:
        visibility[visibility_key("page", page_id)] = True
    for element_id in index.elements:
        visibility[visibility_key("element", element_id)] = True
    return visibility


def _condition_met(condition: Condition, values: Mapping[str, object]) -> bool:
    if condition.uses_expression:
        return apply_rule(condition.rule, dict(values))
    if condition.operator is None:
        msg = f"condition '{condition.id}' has neither an operator nor a rule"
        raise ValueError(msg)
    source_value = values.get(str(condition.source_element_id))
    return evaluate_operator(condition.operator, source_value, condition.value)


def _hide_page(index: FormIndex, page_id: str, visibility: dict[str, bool]) -> None:
    for element_id in index.page_elements.get(page_id, []):
        key = visibility_key("element", element_id)
        if key in visibility:
            visibility[key] = False


def _cascade(
    index: FormIndex, target_type: str, target_id: str, visibility: dict[str, bool]
) -> None:
    """Force every descendant of a hidden group or page to hidden."""
    if target_type == "group":
        for page in index.pages_of_group(target_id):
            visibility[visibility_key("page", page.id)] = False
            _hide_page(index, page.id, visibility)
    elif target_type == "page":
        _hide_page(index, target_id, visibility)


def _apply_condition(
    index: FormIndex,
    condition: Condition,
    values: Mapping[str, object],
    visibility: dict[str, bool],
) -> bool:
    """Apply one condition in place; returns False when it is skipped."""
    if not condition.uses_expression:
        if condition.source_element_id is None:
            logger.debug("Condition '%s' has no source element, skipped", condition.id)
            return False
        if index.get_element(condition.source_element_id) is None:
            logger.warning(
                "Condition '%s' references unknown source element '%s', skipped",
                condition.id,
                condition.source_element_id,
            )
            return False

    key = condition.target_key
    if key not in visibility:
        logger.warning("Condition '%s' targets unknown node '%s', skipped", condition.id, key)
        return False

    met = _condition_met(condition, values)
    visible = met if condition.action == "show" else not met
    logger.debug("Condition '%s' (%s) -> %s=%s", condition.id, condition.action, key, visible)

    visibility[key] = visible
    if not visible:
        _cascade(index, condition.target_type, condition.target_id, visibility)
    return True


def apply_conditions(
    index: FormIndex,
    conditions: Iterable[Condition],
    values: Mapping[str, object],
) -> tuple[dict[str, bool], int]:
    """Compute the visibility map and count the conditions that applied.

    A condition that raises is logged and leaves the map as it was; the
    remaining conditions still apply.  Skipped and failed conditions are not
    counted.
    """
    visibility = default_visibility(index)
    applied = 0

    for condition in conditions:
        # Stage writes so a failure cannot leave a half-applied cascade.
        staged = dict(visibility)
        try:
            if not _apply_condition(index, condition, values, staged):
                continue
        except Exception as exc:  # noqa: BLE001
            logger.warning("Condition '%s' evaluation failed: %s", condition.id, exc)
            continue
        visibility = staged
        applied += 1

    return visibility, applied


def resolve_visibility(
    index: FormIndex,
    conditions: Iterable[Condition],
    values: Mapping[str, object],
) -> dict[str, bool]:
    """Compute the visibility map for the current *values*."""
    visibility, _ = apply_conditions(index, conditions, values)
    return visibility
