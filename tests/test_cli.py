"""Tests for the formlogic CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from formlogic import __version__
from formlogic.cli import main

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _broken_form(tmp_path: Path) -> Path:
    """A loadable form whose condition expression cannot compile."""
    path = tmp_path / "broken.yml"
    path.write_text(
        "version: 1\n"
        "pages:\n"
        "  - id: p\n"
        "    elements:\n"
        "      - id: a\n"
        "        type: text_input\n"
        "conditions:\n"
        "  - id: c1\n"
        "    rule: {bogus: [1]}\n"
        "    action: hide\n"
        "    target: a\n"
        "    target_type: element\n"
    )
    return path


def _config(tmp_path: Path) -> Path:
    path = tmp_path / "config.yml"
    path.write_text("engine:\n  required_message: Please answer\n")
    return path


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


class TestMain:
    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("check", "visibility", "validate", "evaluate"):
            assert command in result.output


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


class TestCheck:
    def test_clean(self, signup_file: Path) -> None:
        result = CliRunner().invoke(main, ["check", str(signup_file)])
        assert result.exit_code == 0, result.output
        assert "[ok]" in result.output
        assert "[ERR]" not in result.output

    def test_malformed_expression(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["check", str(_broken_form(tmp_path))])
        assert result.exit_code == 2
        assert "[ERR]" in result.output
        assert "unknown operator 'bogus'" in result.output

    def test_invalid_definition(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yml"
        path.write_text("pages: []\n")
        result = CliRunner().invoke(main, ["check", str(path)])
        assert result.exit_code == 2
        assert "Error: form definition: missing required 'version' field" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["check", str(tmp_path / "nope.yml")])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# visibility
# ---------------------------------------------------------------------------


class TestVisibility:
    def test_text(self, signup_file: Path, valid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main, ["visibility", str(signup_file), str(valid_values_file)]
        )
        assert result.exit_code == 0, result.output
        assert "[hidden] element_guardian_consent" in result.output
        assert "[shown] group_extras" in result.output

    def test_json(self, signup_file: Path, invalid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main, ["visibility", str(signup_file), str(invalid_values_file), "--json"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["element_guardian_consent"] is True
        assert len(data) == 10


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestValidate:
    def test_valid(self, signup_file: Path, valid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main, ["validate", str(signup_file), str(valid_values_file), "--strict"]
        )
        assert result.exit_code == 0, result.output
        assert "Valid." in result.output

    def test_invalid_without_strict(self, signup_file: Path, invalid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main, ["validate", str(signup_file), str(invalid_values_file)]
        )
        assert result.exit_code == 0
        assert "[ERR] name: This field is required" in result.output
        assert "[ERR] age, guardian_consent: Minors need guardian consent" in result.output

    def test_invalid_with_strict(self, signup_file: Path, invalid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main, ["validate", str(signup_file), str(invalid_values_file), "--strict"]
        )
        assert result.exit_code == 1

    def test_strict_rejects_broken_condition(self, tmp_path: Path) -> None:
        values = tmp_path / "values.yml"
        values.write_text("a: x\n")
        broken = str(_broken_form(tmp_path))

        lenient = CliRunner().invoke(main, ["validate", broken, str(values)])
        assert lenient.exit_code == 0
        assert "Valid." in lenient.output

        strict = CliRunner().invoke(main, ["validate", broken, str(values), "--strict"])
        assert strict.exit_code == 2
        assert "unknown operator 'bogus'" in strict.output

    def test_single_element(self, signup_file: Path, invalid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main,
            [
                "validate",
                str(signup_file),
                str(invalid_values_file),
                "--element",
                "email",
                "--json",
            ],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["valid"] is False
        assert [e["elementId"] for e in data["errors"]] == ["email"]

    def test_single_page(self, signup_file: Path, invalid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main,
            ["validate", str(signup_file), str(invalid_values_file), "--page", "details", "--json"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [e["elementId"] for e in data["errors"]] == ["name"]

    def test_unknown_element(self, signup_file: Path, valid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main,
            ["validate", str(signup_file), str(valid_values_file), "--element", "ghost"],
        )
        assert result.exit_code == 2
        assert "unknown element 'ghost'" in result.output

    def test_element_and_page_exclusive(
        self, signup_file: Path, valid_values_file: Path
    ) -> None:
        result = CliRunner().invoke(
            main,
            [
                "validate",
                str(signup_file),
                str(valid_values_file),
                "--element",
                "name",
                "--page",
                "details",
            ],
        )
        assert result.exit_code == 2

    def test_config_messages(
        self, tmp_path: Path, signup_file: Path, invalid_values_file: Path
    ) -> None:
        result = CliRunner().invoke(
            main,
            [
                "validate",
                str(signup_file),
                str(invalid_values_file),
                "--config",
                str(_config(tmp_path)),
            ],
        )
        assert "[ERR] name: Please answer" in result.output

    def test_values_not_mapping(self, tmp_path: Path, signup_file: Path) -> None:
        values = tmp_path / "values.yml"
        values.write_text("- 1\n")
        result = CliRunner().invoke(main, ["validate", str(signup_file), str(values)])
        assert result.exit_code == 2
        assert "values must be a mapping" in result.output


# ---------------------------------------------------------------------------
# evaluate
# ---------------------------------------------------------------------------


class TestEvaluate:
    def test_porcelain_is_default_off_tty(
        self, signup_file: Path, invalid_values_file: Path
    ) -> None:
        result = CliRunner().invoke(
            main, ["evaluate", str(signup_file), str(invalid_values_file)]
        )
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "issue:name:This field is required",
            "issue:email:Use your company address",
            "issue::Minors need guardian consent",
        ]

    def test_json(self, signup_file: Path, valid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main,
            ["evaluate", str(signup_file), str(valid_values_file), "--format", "json"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["result"] == {"valid": True, "errors": []}
        assert data["visibility"]["element_guardian_consent"] is False
        assert data["summary"]["conditions_evaluated"] == 2

    def test_rich(self, signup_file: Path, invalid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main,
            ["evaluate", str(signup_file), str(invalid_values_file), "--format", "rich"],
        )
        assert result.exit_code == 0, result.output
        assert "Validation issues" in result.output
        assert "✗ 3 issues" in result.output

    def test_strict_exit_code(self, signup_file: Path, invalid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main, ["evaluate", str(signup_file), str(invalid_values_file), "--strict"]
        )
        assert result.exit_code == 1

    def test_strict_valid(self, signup_file: Path, valid_values_file: Path) -> None:
        result = CliRunner().invoke(
            main, ["evaluate", str(signup_file), str(valid_values_file), "--strict"]
        )
        assert result.exit_code == 0
        assert result.output.strip() == "hidden:element_guardian_consent"

    def test_broken_condition_logged_not_fatal(self, tmp_path: Path) -> None:
        values = tmp_path / "values.yml"
        values.write_text("a: x\n")
        result = CliRunner().invoke(
            main, ["evaluate", str(_broken_form(tmp_path)), str(values), "--format", "json"]
        )
        assert result.exit_code == 0
        assert "Condition 'c1' evaluation failed" in result.output

    def test_strict_rejects_broken_condition(self, tmp_path: Path) -> None:
        values = tmp_path / "values.yml"
        values.write_text("a: x\n")
        result = CliRunner().invoke(
            main, ["evaluate", str(_broken_form(tmp_path)), str(values), "--strict"]
        )
        assert result.exit_code == 2
        assert "Condition 'c1' rule: unknown operator 'bogus'" in result.output
