"""Form definition loader: parse form YAML/JSON into validated model objects."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import yaml

from formlogic.rules.expression import compile_expression
from formlogic.rules.operators import VALID_OPERATORS
from formlogic.structure.model import (
    VALID_ACTIONS,
    VALID_ELEMENT_TYPES,
    VALID_FORM_STATUSES,
    VALID_TARGET_TYPES,
    Condition,
    Element,
    ElementTemplate,
    Form,
    FormValidation,
    Group,
    Page,
    ValidationRule,
    _frozen_mapping,
    merge_template,
)

if TYPE_CHECKING:
    from pathlib import Path

SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})

# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _require_id(data: dict[str, object], context: str) -> str:
    raw = data.get("id")
    if raw is None or isinstance(raw, bool) or not isinstance(raw, (str, int)):
        msg = f"{context}: missing required 'id' field"
        raise ValueError(msg)
    value = str(raw).strip()
    if not value:
        msg = f"{context}: 'id' must not be empty"
        raise ValueError(msg)
    return value


def _optional_id(raw: object, context: str, field_name: str) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        msg = f"{context}: '{field_name}' must be a string or integer id"
        raise ValueError(msg)
    return str(raw)


def _as_list(raw: object, context: str, field_name: str) -> list[object]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        msg = f"{context}: '{field_name}' must be a list"
        raise ValueError(msg)
    return raw


def _as_mapping(raw: object, context: str, field_name: str) -> dict[str, object]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        msg = f"{context}: '{field_name}' must be a mapping"
        raise ValueError(msg)
    return raw


def _as_int(raw: object, default: int, context: str, field_name: str) -> int:
    if raw is None:
        return default
    if isinstance(raw, bool):
        msg = f"{context}: '{field_name}' must be an integer"
        raise ValueError(msg)
    try:
        return int(raw)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        msg = f"{context}: '{field_name}' must be an integer"
        raise ValueError(msg) from None


def _check_enum(value: str, valid: frozenset[str], context: str, field_name: str) -> str:
    if value not in valid:
        msg = f"{context}: invalid {field_name} '{value}', must be one of {sorted(valid)}"
        raise ValueError(msg)
    return value


# ---------------------------------------------------------------------------
# Collector
# ---------------------------------------------------------------------------


class _Collector:
    """Accumulates parsed nodes in declaration order and rejects duplicate ids."""

    def __init__(self, templates: dict[str, ElementTemplate]) -> None:
        self.templates = templates
        self.groups: list[Group] = []
        self.pages: list[Page] = []
        self.elements: list[Element] = []
        self._seen: dict[str, set[str]] = {"group": set(), "page": set(), "element": set()}

    def _claim(self, kind: str, node_id: str, context: str) -> None:
        if node_id in self._seen[kind]:
            msg = f"{context}: duplicate {kind} id '{node_id}'"
            raise ValueError(msg)
        self._seen[kind].add(node_id)

    # -- elements ------------------------------------------------------------

    def add_element(self, data: dict[str, object], position: int, context: str) -> str:
        element_id = _require_id(data, context)
        ctx = f"{context} '{element_id}'"
        self._claim("element", element_id, ctx)

        validations = tuple(
            _parse_validation_rule(item, f"{ctx} validations[{idx}]")
            for idx, item in enumerate(_as_list(data.get("validations"), ctx, "validations"))
        )
        required = bool(data.get("required", False))
        order = _as_int(data.get("order"), position, ctx, "order")
        properties = _as_mapping(data.get("properties"), ctx, "properties")
        label = data.get("label")

        template_id = _optional_id(data.get("template"), ctx, "template")
        if template_id is not None:
            template = self.templates.get(template_id)
            if template is None:
                msg = f"{ctx}: unknown template '{template_id}'"
                raise ValueError(msg)
            element = merge_template(
                template,
                id=element_id,
                required=required,
                validations=validations,
                label_override=str(label) if label else None,
                properties_override=properties,
                order=order,
            )
        else:
            element_type = _check_enum(str(data.get("type", "")), VALID_ELEMENT_TYPES, ctx, "type")
            element = Element(
                id=element_id,
                type=element_type,
                label=str(label or ""),
                required=required,
                default_value=data.get("default_value"),
                properties=_frozen_mapping(properties),
                validations=validations,
                order=order,
            )

        self.elements.append(element)
        return element_id

    def _element_refs(self, raw: object, context: str) -> tuple[str, ...]:
        ids: list[str] = []
        for idx, item in enumerate(_as_list(raw, context, "elements")):
            if isinstance(item, dict):
                ids.append(self.add_element(item, idx, f"{context} elements[{idx}]"))
            else:
                ref = _optional_id(item, f"{context} elements[{idx}]", "element")
                if ref is None:
                    msg = f"{context}: elements[{idx}] must be an element mapping or id"
                    raise ValueError(msg)
                ids.append(ref)
        return tuple(ids)

    # -- pages ---------------------------------------------------------------

    def add_page(
        self, data: dict[str, object], position: int, context: str, group_id: str | None = None
    ) -> str:
        page_id = _require_id(data, context)
        ctx = f"{context} '{page_id}'"
        self._claim("page", page_id, ctx)

        owner = _optional_id(data.get("group"), ctx, "group") or group_id
        page = Page(
            id=page_id,
            title=str(data.get("title", "")),
            order=_as_int(data.get("order"), position, ctx, "order"),
            active=bool(data.get("active", True)),
            element_ids=self._element_refs(data.get("elements"), ctx),
            group_id=owner,
        )
        self.pages.append(page)
        return page_id

    def _page_refs(self, raw: object, context: str, group_id: str) -> tuple[str, ...]:
        ids: list[str] = []
        for idx, item in enumerate(_as_list(raw, context, "pages")):
            if isinstance(item, dict):
                ids.append(self.add_page(item, idx, f"{context} pages[{idx}]", group_id))
            else:
                ref = _optional_id(item, f"{context} pages[{idx}]", "page")
                if ref is None:
                    msg = f"{context}: pages[{idx}] must be a page mapping or id"
                    raise ValueError(msg)
                ids.append(ref)
        return tuple(ids)

    # -- groups --------------------------------------------------------------

    def add_group(self, data: dict[str, object], position: int, context: str) -> None:
        group_id = _require_id(data, context)
        ctx = f"{context} '{group_id}'"
        self._claim("group", group_id, ctx)
        self.groups.append(
            Group(
                id=group_id,
                title=str(data.get("title", "")),
                order=_as_int(data.get("order"), position, ctx, "order"),
                page_ids=self._page_refs(data.get("pages"), ctx, group_id),
            )
        )


# ---------------------------------------------------------------------------
# Rule parsing
# ---------------------------------------------------------------------------


def _parse_validation_rule(raw: object, context: str) -> ValidationRule:
    if not isinstance(raw, dict):
        msg = f"{context}: validation rule must be a mapping"
        raise ValueError(msg)
    kind = raw.get("type", raw.get("kind"))
    if kind is None or not str(kind).strip():
        msg = f"{context}: validation rule missing required 'type' field"
        raise ValueError(msg)
    if "rule" not in raw:
        msg = f"{context}: validation rule missing required 'rule' field"
        raise ValueError(msg)
    return ValidationRule(
        kind=str(kind),
        rule=raw["rule"],
        error_message=str(raw.get("error_message") or ""),
    )


def _parse_template(raw: object, context: str) -> ElementTemplate:
    if not isinstance(raw, dict):
        msg = f"{context}: template must be a mapping"
        raise ValueError(msg)
    template_id = _require_id(raw, context)
    ctx = f"{context} '{template_id}'"
    return ElementTemplate(
        id=template_id,
        type=_check_enum(str(raw.get("type", "")), VALID_ELEMENT_TYPES, ctx, "type"),
        label=str(raw.get("label", "")),
        default_value=raw.get("default_value"),
        properties=_frozen_mapping(_as_mapping(raw.get("properties"), ctx, "properties")),
    )


def _parse_condition(raw: object, idx: int) -> Condition:
    context = f"conditions[{idx}]"
    if not isinstance(raw, dict):
        msg = f"{context}: condition must be a mapping"
        raise ValueError(msg)

    condition_id = _optional_id(raw.get("id"), context, "id") or f"condition_{idx}"
    ctx = f"Condition '{condition_id}'"

    action = _check_enum(str(raw.get("action", "")), VALID_ACTIONS, ctx, "action")
    target_type = _check_enum(
        str(raw.get("target_type", "")).lower(), VALID_TARGET_TYPES, ctx, "target_type"
    )
    target_id = _optional_id(raw.get("target", raw.get("target_id")), ctx, "target")
    if target_id is None:
        msg = f"{ctx}: missing required 'target' field"
        raise ValueError(msg)

    operator_raw = raw.get("operator")
    has_rule = raw.get("rule") is not None
    if (operator_raw is not None) == has_rule:
        msg = f"{ctx}: must have exactly one of 'operator' or 'rule'"
        raise ValueError(msg)

    operator: str | None = None
    if operator_raw is not None:
        operator = _check_enum(str(operator_raw), VALID_OPERATORS, ctx, "operator")

    return Condition(
        id=condition_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        source_element_id=_optional_id(
            raw.get("source", raw.get("source_element_id")), ctx, "source"
        ),
        operator=operator,
        value=raw.get("value"),
        rule=raw.get("rule"),
        name=str(raw.get("name") or ""),
    )


def _parse_form_validation(raw: object, idx: int) -> FormValidation:
    context = f"validations[{idx}]"
    if not isinstance(raw, dict):
        msg = f"{context}: form validation must be a mapping"
        raise ValueError(msg)
    name = raw.get("name")
    if name is None or not isinstance(name, str) or not name.strip():
        msg = f"{context}: missing required 'name' field"
        raise ValueError(msg)
    if raw.get("rule") is None:
        msg = f"Form validation '{name}': missing required 'rule' field"
        raise ValueError(msg)
    context_name = f"Form validation '{name}'"
    affected = _as_list(raw.get("affected_elements"), context_name, "affected_elements")
    return FormValidation(
        id=_optional_id(raw.get("id"), context, "id") or f"validation_{idx}",
        name=name,
        rule=raw["rule"],
        error_message=str(raw.get("error_message") or ""),
        affected_elements=tuple(str(a) for a in affected),
    )


def _compile_all(form: Form) -> None:
    """Compile every expression and regex, raising on the first malformed one."""
    for condition in form.conditions:
        if condition.uses_expression:
            compile_expression(condition.rule, context=f"Condition '{condition.id}' rule")
    for validation in form.form_validations:
        compile_expression(validation.rule, context=f"Form validation '{validation.name}' rule")
    for element in form.elements:
        for idx, rule in enumerate(element.validations):
            context = f"Element '{element.id}' validations[{idx}]"
            if rule.kind == "jsonLogic":
                compile_expression(rule.rule, context=context)
            elif rule.kind == "regex":
                if not isinstance(rule.rule, str):
                    msg = f"{context}: regex pattern must be a string"
                    raise ValueError(msg)
                try:
                    re.compile(rule.rule)
                except re.error as exc:
                    msg = f"{context}: invalid regex: {exc}"
                    raise ValueError(msg) from exc


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def parse_form(data: object, *, strict: bool = False) -> Form:
    """Build a :class:`Form` from an already-decoded definition mapping.

    Raises ``ValueError`` on schema errors (missing version, bad enums,
    duplicate ids, ...).  With *strict*, malformed expressions and regexes
    are schema errors too; otherwise they are kept and neutralized per
    rule at evaluation time.
    """
    if not isinstance(data, dict):
        msg = "form definition must be a mapping"
        raise ValueError(msg)

    version = data.get("version")
    if version is None:
        msg = "form definition: missing required 'version' field"
        raise ValueError(msg)
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        expected = sorted(SUPPORTED_SCHEMA_VERSIONS)
        msg = f"form definition: unsupported version {version}, expected one of {expected}"
        raise ValueError(msg)

    meta = _as_mapping(data.get("form"), "form definition", "form")
    form_id = _optional_id(meta.get("id"), "form", "id") or "form"
    status = _check_enum(str(meta.get("status", "draft")), VALID_FORM_STATUSES, "form", "status")

    templates: dict[str, ElementTemplate] = {}
    for idx, raw in enumerate(_as_list(data.get("templates"), "form definition", "templates")):
        template = _parse_template(raw, f"templates[{idx}]")
        if template.id in templates:
            msg = f"templates[{idx}]: duplicate template id '{template.id}'"
            raise ValueError(msg)
        templates[template.id] = template

    collector = _Collector(templates)
    for idx, raw in enumerate(_as_list(data.get("groups"), "form definition", "groups")):
        if not isinstance(raw, dict):
            msg = f"groups[{idx}]: group must be a mapping"
            raise ValueError(msg)
        collector.add_group(raw, idx, f"groups[{idx}]")
    for idx, raw in enumerate(_as_list(data.get("pages"), "form definition", "pages")):
        if not isinstance(raw, dict):
            msg = f"pages[{idx}]: page must be a mapping"
            raise ValueError(msg)
        collector.add_page(raw, idx, f"pages[{idx}]")
    for idx, raw in enumerate(_as_list(data.get("elements"), "form definition", "elements")):
        if not isinstance(raw, dict):
            msg = f"elements[{idx}]: element must be a mapping"
            raise ValueError(msg)
        collector.add_element(raw, idx, f"elements[{idx}]")

    conditions = [
        _parse_condition(raw, idx)
        for idx, raw in enumerate(_as_list(data.get("conditions"), "form definition", "conditions"))
    ]
    seen_conditions: set[str] = set()
    for condition in conditions:
        if condition.id in seen_conditions:
            msg = f"Condition '{condition.id}': duplicate condition id"
            raise ValueError(msg)
        seen_conditions.add(condition.id)

    validations = tuple(
        _parse_form_validation(raw, idx)
        for idx, raw in enumerate(
            _as_list(data.get("validations"), "form definition", "validations")
        )
    )

    form = Form(
        id=form_id,
        title=str(meta.get("title", "")),
        version=_as_int(meta.get("version"), 1, "form", "version"),
        groups=tuple(collector.groups),
        pages=tuple(collector.pages),
        elements=tuple(collector.elements),
        conditions=tuple(conditions),
        form_validations=validations,
        status=status,
    )

    if strict:
        _compile_all(form)
    return form


def load_form(form_path: Path, *, strict: bool = False) -> Form:
    """Parse a form definition file (YAML or JSON) and return a validated :class:`Form`."""
    with form_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return parse_form(data, strict=strict)


def load_values(values_path: Path) -> dict[str, object]:
    """Read a submitted-value map (YAML or JSON); keys are normalized to strings."""
    with values_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{values_path.name}: values must be a mapping of element id to value"
        raise ValueError(msg)
    return {str(key): value for key, value in data.items()}
