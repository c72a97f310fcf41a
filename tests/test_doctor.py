"""Tests for formlogic.structure.doctor: structural integrity checks."""

from __future__ import annotations

from formlogic.structure.doctor import Check, Severity, run_checks
from formlogic.structure.model import (
    Condition,
    Element,
    Form,
    FormValidation,
    Group,
    Page,
    ValidationRule,
)


def _by_name(checks: list[Check], name: str) -> list[Check]:
    return [c for c in checks if c.name == name]


def _problems(checks: list[Check]) -> list[Check]:
    return [c for c in checks if c.severity != Severity.OK]


class TestRunChecks:
    def test_clean_form(self, nested_form: Form) -> None:
        checks = run_checks(nested_form)
        problems = _problems(checks)
        # Element e is intentionally unplaced.
        assert [c.name for c in problems] == ["unplaced_elements"]
        assert problems[0].severity == Severity.INFO

    def test_signup_form_has_no_errors(self, signup_form: Form) -> None:
        checks = run_checks(signup_form)
        assert not [c for c in checks if c.severity in (Severity.WARNING, Severity.ERROR)]

    def test_dangling_refs(self) -> None:
        form = Form(
            id="f",
            groups=(Group(id="g", page_ids=("ghost-page",)),),
            pages=(Page(id="p", element_ids=("ghost-el",)),),
        )
        checks = _by_name(run_checks(form), "dangling_refs")
        descriptions = [c.description for c in checks]
        assert "Group 'g' references unknown page 'ghost-page'." in descriptions
        assert "Page 'p' references unknown element 'ghost-el'." in descriptions
        assert all(c.severity == Severity.WARNING for c in checks)

    def test_shared_pages(self) -> None:
        form = Form(
            id="f",
            groups=(Group(id="g1", page_ids=("p",)), Group(id="g2")),
            pages=(Page(id="p", group_id="g2", element_ids=("a",)),),
            elements=(Element(id="a", type="text_input"),),
        )
        checks = _by_name(run_checks(form), "shared_pages")
        assert len(checks) == 1
        assert checks[0].severity == Severity.WARNING
        assert "only 'g1' is used" in checks[0].description

    def test_empty_pages(self) -> None:
        checks = _by_name(run_checks(Form(id="f", pages=(Page(id="blank"),))), "empty_pages")
        assert checks == [Check("empty_pages", Severity.INFO, "Page 'blank' has no elements.")]

    def test_condition_refs(self, nested_form: Form) -> None:
        form = nested_form.revise(
            conditions=(
                Condition(
                    id="c1",
                    action="hide",
                    target_type="element",
                    target_id="a",
                    source_element_id="ghost",
                    operator="equals",
                    value=1,
                ),
                Condition(
                    id="c2",
                    action="hide",
                    target_type="page",
                    target_id="nowhere",
                    rule={"var": "a"},
                ),
                Condition(
                    id="c3",
                    action="show",
                    target_type="element",
                    target_id="b",
                    operator="equals",
                    value=1,
                ),
            )
        )
        checks = _by_name(run_checks(form), "condition_refs")
        by_severity = {(c.severity, c.description) for c in checks}
        assert (
            Severity.WARNING,
            "Condition 'c1' references unknown source element 'ghost'.",
        ) in by_severity
        assert (Severity.WARNING, "Condition 'c2' targets unknown page 'nowhere'.") in by_severity
        assert (
            Severity.INFO,
            "Condition 'c3' has no source element and never applies.",
        ) in by_severity

    def test_malformed_rules_are_errors(self) -> None:
        form = Form(
            id="f",
            elements=(
                Element(
                    id="a",
                    type="text_input",
                    validations=(
                        ValidationRule(kind="jsonLogic", rule={"nope": []}),
                        ValidationRule(kind="regex", rule="(["),
                        ValidationRule(kind="regex", rule=42),
                        ValidationRule(kind="webhook", rule="x"),
                    ),
                ),
            ),
            conditions=(
                Condition(
                    id="c", action="hide", target_type="element", target_id="a", rule={"x": 1}
                ),
            ),
            form_validations=(FormValidation(id="v", name="total", rule={"+": []}),),
        )
        checks = _by_name(run_checks(form), "rules")
        errors = [c for c in checks if c.severity == Severity.ERROR]
        infos = [c for c in checks if c.severity == Severity.INFO]
        assert len(errors) == 5
        assert any("Condition 'c' rule" in c.description for c in errors)
        assert any("Form validation 'total'" in c.description for c in errors)
        assert [c.description for c in infos] == [
            "Element 'a' webhook rule: unknown kind is ignored."
        ]

    def test_ordering_override(self, nested_form: Form) -> None:
        form = nested_form.revise(
            conditions=(
                Condition(
                    id="hide-g1",
                    action="hide",
                    target_type="group",
                    target_id="g1",
                    rule={"var": "d"},
                ),
                Condition(
                    id="show-b",
                    action="show",
                    target_type="element",
                    target_id="b",
                    rule={"var": "c"},
                ),
            )
        )
        checks = _by_name(run_checks(form), "ordering")
        assert checks == [
            Check(
                "ordering",
                Severity.INFO,
                "Condition 'show-b' overrides the cascade of condition 'hide-g1' "
                "on element 'b'.",
            )
        ]

    def test_ordering_clean_when_direct_write_comes_first(self, nested_form: Form) -> None:
        form = nested_form.revise(
            conditions=(
                Condition(
                    id="show-b",
                    action="show",
                    target_type="element",
                    target_id="b",
                    rule={"var": "c"},
                ),
                Condition(
                    id="hide-p1",
                    action="hide",
                    target_type="page",
                    target_id="p1",
                    rule={"var": "d"},
                ),
            )
        )
        checks = _by_name(run_checks(form), "ordering")
        assert [c.severity for c in checks] == [Severity.OK]

    def test_affected_elements(self, nested_form: Form) -> None:
        form = nested_form.revise(
            form_validations=(
                FormValidation(id="v", name="pair", rule=True, affected_elements=("a", "zz")),
            )
        )
        checks = _by_name(run_checks(form), "affected_elements")
        assert [c.description for c in checks] == [
            "Form validation 'pair' lists unknown element 'zz'."
        ]

    def test_expression_vars(self, nested_form: Form) -> None:
        form = nested_form.revise(
            conditions=(
                Condition(
                    id="typo",
                    action="show",
                    target_type="element",
                    target_id="b",
                    rule={">=": [{"var": "agee"}, 18]},
                ),
                Condition(
                    id="fine",
                    action="hide",
                    target_type="page",
                    target_id="p3",
                    rule={"==": [{"var": "a"}, "x"]},
                ),
                Condition(
                    id="broken",
                    action="hide",
                    target_type="element",
                    target_id="c",
                    rule={"bogus": [{"var": "missing"}]},
                ),
            ),
            form_validations=(
                FormValidation(
                    id="v",
                    name="total",
                    rule={"<=": [{"+": [{"var": "a"}, {"var": "totl"}]}, 100]},
                ),
            ),
        )
        checks = _by_name(run_checks(form), "expression_vars")
        assert checks == [
            Check(
                "expression_vars",
                Severity.WARNING,
                "Condition 'typo' reads unknown element 'agee'.",
            ),
            Check(
                "expression_vars",
                Severity.WARNING,
                "Form validation 'total' reads unknown element 'totl'.",
            ),
        ]

    def test_expression_vars_clean_on_signup(self, signup_form: Form) -> None:
        checks = _by_name(run_checks(signup_form), "expression_vars")
        assert [c.severity for c in checks] == [Severity.OK]

    def test_display_elements(self) -> None:
        form = Form(
            id="f",
            pages=(Page(id="p", element_ids=("logo", "intro", "name")),),
            elements=(
                Element(id="logo", type="image", required=True),
                Element(
                    id="intro",
                    type="text",
                    validations=(ValidationRule(kind="regex", rule="."),),
                ),
                Element(id="name", type="text_input", required=True),
            ),
        )
        checks = _by_name(run_checks(form), "display_elements")
        assert [(c.severity, c.description) for c in checks] == [
            (Severity.WARNING, "Element 'logo' (image) is display-only but required."),
            (
                Severity.INFO,
                "Element 'intro' (text) is display-only; "
                "its validation rules only run on a submitted value.",
            ),
        ]
