"""Shared test fixtures for Formlogic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from formlogic.structure.loader import parse_form
from formlogic.structure.model import (
    Element,
    Form,
    Group,
    Page,
)

if TYPE_CHECKING:
    from pathlib import Path

SIGNUP_YAML = """\
version: 1
form:
  id: signup
  title: Signup
templates:
  - id: email-field
    type: email
    label: Email address
    properties:
      placeholder: you@example.com
groups:
  - id: applicant
    title: Applicant
    pages:
      - id: details
        title: Details
        elements:
          - id: name
            type: text_input
            label: Full name
            required: true
          - id: age
            type: number_input
            label: Age
            required: true
            validations:
              - type: jsonLogic
                rule: {">=": [{"var": "age"}, 0]}
                error_message: Age cannot be negative
          - id: guardian_consent
            type: checkbox
            label: Guardian consent
      - id: contact
        title: Contact
        elements:
          - id: email
            template: email-field
            validations:
              - type: regex
                rule: "@example\\\\.com$"
                error_message: Use your company address
  - id: extras
    title: Extras
    pages:
      - id: marketing
        elements:
          - id: newsletter
            type: switch
conditions:
  - id: minor-consent
    source: age
    operator: less_than
    value: 18
    action: show
    target: guardian_consent
    target_type: element
  - id: hide-extras
    rule: {"==": [{"var": "name"}, "skip"]}
    action: hide
    target: extras
    target_type: group
validations:
  - name: consent-for-minors
    rule: {"or": [{">=": [{"var": "age"}, 18]}, {"==": [{"var": "guardian_consent"}, true]}]}
    error_message: Minors need guardian consent
    affected_elements: [age, guardian_consent]
"""

VALID_VALUES_YAML = """\
name: Ann
age: 30
email: ann@example.com
"""

INVALID_VALUES_YAML = """\
age: 15
email: ann@other.org
"""


@pytest.fixture()
def signup_form() -> Form:
    """The signup form parsed from :data:`SIGNUP_YAML`."""
    import yaml

    return parse_form(yaml.safe_load(SIGNUP_YAML))


@pytest.fixture()
def signup_file(tmp_path: Path) -> Path:
    path = tmp_path / "signup.yml"
    path.write_text(SIGNUP_YAML, encoding="utf-8")
    return path


@pytest.fixture()
def valid_values_file(tmp_path: Path) -> Path:
    path = tmp_path / "valid.yml"
    path.write_text(VALID_VALUES_YAML, encoding="utf-8")
    return path


@pytest.fixture()
def invalid_values_file(tmp_path: Path) -> Path:
    path = tmp_path / "invalid.yml"
    path.write_text(INVALID_VALUES_YAML, encoding="utf-8")
    return path


@pytest.fixture()
def nested_form() -> Form:
    """Two groups, three pages, five elements; no conditions.

    g1 -> p1 (a, b), p2 (c)
    g2 -> p3 (d)
    e is defined but placed on no page.
    """
    return Form(
        id="nested",
        groups=(
            Group(id="g1", page_ids=("p1", "p2")),
            Group(id="g2", order=1, page_ids=("p3",)),
        ),
        pages=(
            Page(id="p1", element_ids=("a", "b")),
            Page(id="p2", order=1, element_ids=("c",)),
            Page(id="p3", element_ids=("d",)),
        ),
        elements=(
            Element(id="a", type="text_input"),
            Element(id="b", type="number_input"),
            Element(id="c", type="checkbox"),
            Element(id="d", type="select"),
            Element(id="e", type="textarea"),
        ),
    )

