"""Form structure model: elements, pages, groups, conditions and validation rules."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_ELEMENT_TYPES: frozenset[str] = frozenset(
    {
        "text_input",
        "number_input",
        "email",
        "checkbox",
        "radio",
        "select",
        "textarea",
        "date",
        "image",
        "text",
    }
)
EXTENDED_ELEMENT_TYPES: frozenset[str] = frozenset({"range", "rating", "slider", "switch"})
VALID_ELEMENT_TYPES: frozenset[str] = BASE_ELEMENT_TYPES | EXTENDED_ELEMENT_TYPES

# Display-only types never carry a submitted value.
DISPLAY_ELEMENT_TYPES: frozenset[str] = frozenset({"image", "text"})
INPUT_ELEMENT_TYPES: frozenset[str] = VALID_ELEMENT_TYPES - DISPLAY_ELEMENT_TYPES

VALID_RULE_KINDS: frozenset[str] = frozenset({"jsonLogic", "regex", "custom"})
VALID_ACTIONS: frozenset[str] = frozenset({"show", "hide"})
VALID_TARGET_TYPES: frozenset[str] = frozenset({"element", "page", "group"})
VALID_FORM_STATUSES: frozenset[str] = frozenset({"draft", "published"})


def _frozen_mapping(data: Mapping[str, object] | None) -> Mapping[str, object]:
    return MappingProxyType(dict(data or {}))


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationRule:
    """A per-element constraint.

    ``kind`` is ``jsonLogic`` (``rule`` is an expression payload evaluated
    against ``{element_id: value}``) or ``regex`` (``rule`` is a pattern
    searched in the stringified value).  Other kinds are stored but skipped.
    """

    kind: str
    rule: object
    error_message: str = ""


@dataclass(frozen=True)
class Element:
    """A single form field."""

    id: str
    type: str
    label: str = ""
    required: bool = False
    default_value: object = None
    properties: Mapping[str, object] = field(default_factory=lambda: _frozen_mapping(None))
    validations: tuple[ValidationRule, ...] = ()
    order: int = 0

    @property
    def is_input(self) -> bool:
        return self.type in INPUT_ELEMENT_TYPES


@dataclass(frozen=True)
class ElementTemplate:
    """A reusable element definition that form-specific instances refine."""

    id: str
    type: str
    label: str = ""
    default_value: object = None
    properties: Mapping[str, object] = field(default_factory=lambda: _frozen_mapping(None))


@dataclass(frozen=True)
class Page:
    """An ordered container of elements, optionally owned by a group."""

    id: str
    title: str = ""
    order: int = 0
    active: bool = True
    element_ids: tuple[str, ...] = ()
    group_id: str | None = None


@dataclass(frozen=True)
class Group:
    """An ordered container of pages."""

    id: str
    title: str = ""
    order: int = 0
    page_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class Condition:
    """A show/hide rule for one element, page or group.

    Operator form: ``operator`` and ``value`` compared against the value of
    ``source_element_id``.  Expression form: ``rule`` evaluated against the
    whole value map.  A condition carries one form or the other.
    """

    id: str
    action: str
    target_type: str
    target_id: str
    source_element_id: str | None = None
    operator: str | None = None
    value: object = None
    rule: object = None
    name: str = ""

    @property
    def target_key(self) -> str:
        return f"{self.target_type}_{self.target_id}"

    @property
    def uses_expression(self) -> bool:
        return self.operator is None and self.rule is not None


@dataclass(frozen=True)
class FormValidation:
    """A cross-field rule evaluated against the whole submitted value map."""

    id: str
    name: str
    rule: object
    error_message: str = ""
    affected_elements: tuple[str, ...] = ()


@dataclass(frozen=True)
class Form:
    """Root aggregate: the structural tree plus its conditions and form-level rules.

    ``conditions`` is an ordered sequence; later conditions overwrite earlier
    ones that target the same key.
    """

    id: str
    title: str = ""
    version: int = 1
    groups: tuple[Group, ...] = ()
    pages: tuple[Page, ...] = ()
    elements: tuple[Element, ...] = ()
    conditions: tuple[Condition, ...] = ()
    form_validations: tuple[FormValidation, ...] = ()
    status: str = "draft"
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def revise(self, **changes: object) -> Form:
        """Return an updated copy with the version bumped and ``updated_at`` refreshed."""
        bumped = {"version": self.version + 1, "updated_at": _utcnow()}
        managed = sorted(set(bumped) & set(changes))
        if managed:
            msg = f"{', '.join(managed)} is managed by revise() and cannot be set directly"
            raise ValueError(msg)
        return replace(self, **changes, **bumped)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Template merging
# ---------------------------------------------------------------------------


def merge_template(
    template: ElementTemplate,
    *,
    id: str,  # noqa: A002
    required: bool = False,
    validations: tuple[ValidationRule, ...] = (),
    label_override: str | None = None,
    properties_override: Mapping[str, object] | None = None,
    order: int = 0,
) -> Element:
    """Combine a template with instance settings into a concrete :class:`Element`.

    The instance keeps its own id, required flag and rules.  Its label
    override wins when non-empty and its property overrides are laid over the
    template properties.
    """
    properties = dict(template.properties)
    properties.update(properties_override or {})
    return Element(
        id=id,
        type=template.type,
        label=label_override or template.label,
        required=required,
        default_value=template.default_value,
        properties=_frozen_mapping(properties),
        validations=validations,
        order=order,
    )
