"""Evaluation orchestrator: index the form, resolve visibility, validate, format results."""

from __future__ import annotations

import json
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from formlogic.evaluation.validation import ValidationResult, validate_form
from formlogic.evaluation.visibility import apply_conditions
from formlogic.structure.index import FormIndex
from formlogic.structure.model import Form

if TYPE_CHECKING:
    from formlogic.config import EngineConfig


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class EvaluationError(ValueError):
    """Raised when the caller supplies no usable form structure or value map."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class EvaluationResult:
    """Outcome of one evaluation call."""

    validation: ValidationResult = field(default_factory=ValidationResult)
    visibility: dict[str, bool] = field(default_factory=dict)
    # Conditions that applied; skipped and failed ones are excluded.
    conditions_evaluated: int = 0
    elapsed_ms: float = 0.0

    @property
    def valid(self) -> bool:
        return self.validation.valid

    def hidden_keys(self) -> list[str]:
        """Keys whose final visibility is False, in map order."""
        return [key for key, visible in self.visibility.items() if not visible]

    def to_dict(self) -> dict[str, object]:
        return {
            "result": self.validation.to_dict(),
            "visibility": dict(self.visibility),
        }


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def _check_inputs(form: object, values: object) -> None:
    if form is None:
        msg = "No form structure supplied"
        raise EvaluationError(msg)
    if not isinstance(form, Form):
        msg = f"Expected a Form, got {type(form).__name__}"
        raise EvaluationError(msg)
    if not isinstance(values, Mapping):
        msg = f"Field values must be a mapping of element id to value, got {type(values).__name__}"
        raise EvaluationError(msg)


def evaluate(
    form: Form,
    values: Mapping[str, object],
    *,
    config: EngineConfig | None = None,
) -> EvaluationResult:
    """Compute visibility and validity for *form* given the current *values*.

    Parameters
    ----------
    form:
        The form structure with its conditions and rules.
    values:
        Submitted values keyed by element id.
    config:
        Messages and optional checks; defaults apply when omitted.

    Returns
    -------
    EvaluationResult
        Validation result, visibility map, and timing.

    Raises
    ------
    EvaluationError
        When *form* is missing or not a :class:`Form`, or *values* is not a mapping.
    """
    start = time.monotonic()
    _check_inputs(form, values)

    normalized = {str(key): value for key, value in values.items()}
    index = FormIndex.build(form)

    visibility, applied = apply_conditions(index, form.conditions, normalized)
    validation = validate_form(form, normalized, config=config, index=index)

    elapsed = (time.monotonic() - start) * 1000
    return EvaluationResult(
        validation=validation,
        visibility=visibility,
        conditions_evaluated=applied,
        elapsed_ms=elapsed,
    )


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_rich(result: EvaluationResult) -> str:
    """Render an EvaluationResult for the terminal.

    Shows a status line, the validation issues as a table, and the hidden
    nodes.  Example tail::

        ✗ 2 issues (3 conditions evaluated, 0.4ms)
    """
    from io import StringIO

    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    buf = StringIO()
    console = Console(file=buf, force_terminal=False, width=100, highlight=False)

    if result.validation.errors:
        table = Table(title="Validation issues", show_lines=False)
        table.add_column("Element", style="cyan")
        table.add_column("Message")
        for issue in result.validation.errors:
            target = issue.element_id or ", ".join(issue.affected_elements) or "(form)"
            table.add_row(escape(target), escape(issue.message))
        console.print(table)

    hidden = result.hidden_keys()
    if hidden:
        console.print(f"Hidden: {escape(', '.join(hidden))}")
    else:
        console.print("Hidden: none")

    timing = f"{result.conditions_evaluated} conditions evaluated, {result.elapsed_ms:.1f}ms"
    if result.valid:
        console.print(f"✓ Valid ({timing})")
    else:
        count = len(result.validation.errors)
        console.print(f"✗ {count} issues ({timing})")

    return buf.getvalue().rstrip("\n")


def format_json(result: EvaluationResult) -> str:
    """Format an EvaluationResult as JSON with ``result``, ``visibility`` and ``summary``."""
    output = result.to_dict()
    output["summary"] = {
        "valid": result.valid,
        "issues_count": len(result.validation.errors),
        "hidden_count": len(result.hidden_keys()),
        "conditions_evaluated": result.conditions_evaluated,
        "elapsed_ms": result.elapsed_ms,
    }
    return json.dumps(output, indent=2, default=str)


def format_porcelain(result: EvaluationResult) -> str:
    """One line per issue (``issue:element_id:message``) and hidden node (``hidden:key``).

    Form-level issues have an empty element id.  Returns an empty string when
    the submission is valid and nothing is hidden.
    """
    lines: list[str] = []
    for issue in result.validation.errors:
        element_id = issue.element_id if issue.element_id is not None else ""
        lines.append(f"issue:{element_id}:{issue.message}")
    for key in result.hidden_keys():
        lines.append(f"hidden:{key}")
    return "\n".join(lines)
