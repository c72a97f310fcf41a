"""Formlogic CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from formlogic import __version__

if TYPE_CHECKING:
    from formlogic.config import EngineConfig
    from formlogic.structure.model import Form

_FORM_PATH = click.Path(exists=True, dir_okay=False, path_type=Path)


class _EchoHandler(logging.Handler):
    """Route log records through ``click.echo`` so they follow the active stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:  # noqa: BLE001
            self.handleError(record)


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR

    package_logger = logging.getLogger("formlogic")
    package_logger.setLevel(logging.DEBUG if verbose else logging.NOTSET)
    handler = next((h for h in package_logger.handlers if isinstance(h, _EchoHandler)), None)
    if handler is None:
        handler = _EchoHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)
    handler.setLevel(level)


@click.group()
@click.version_option(version=__version__, prog_name="formlogic")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Formlogic - conditional visibility and validation for dynamic forms."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


# ---------------------------------------------------------------------------
# Shared loading
# ---------------------------------------------------------------------------


def _load_inputs(
    form_path: Path, values_path: Path | None = None, *, strict: bool = False
) -> tuple[Form, dict[str, object]]:
    """Load the form (and values); exits 2 on any definition error.

    With *strict*, every expression and regex is compiled at load time.
    """
    import yaml

    from formlogic.structure.loader import load_form, load_values

    try:
        form = load_form(form_path, strict=strict)
        values = load_values(values_path) if values_path is not None else {}
    except (ValueError, yaml.YAMLError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    return form, values


def _load_config(config_path: Path | None) -> EngineConfig:
    from formlogic.config import load_engine_config

    return load_engine_config(config_path or Path.cwd() / ".formlogic" / "config.yml")


_CONFIG_OPTION = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Engine config file (default: .formlogic/config.yml).",
)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("form_path", type=_FORM_PATH)
def check(*, form_path: Path) -> None:
    """Run structural checks on a form definition.

    Exit codes: 0 = no errors, 2 = the definition cannot load or has errors.
    """
    from formlogic.structure.doctor import Severity, run_checks

    form, _ = _load_inputs(form_path)
    checks = run_checks(form)

    icons = {
        Severity.OK: "[ok]",
        Severity.INFO: "[info]",
        Severity.WARNING: "[warn]",
        Severity.ERROR: "[ERR]",
    }
    for c in checks:
        icon = icons.get(c.severity, "[?]")
        click.echo(f"  {icon} {c.description}")

    if any(c.severity == Severity.ERROR for c in checks):
        sys.exit(2)


@main.command()
@click.argument("form_path", type=_FORM_PATH)
@click.argument("values_path", type=_FORM_PATH)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def visibility(*, form_path: Path, values_path: Path, output_json: bool) -> None:
    """Show which groups, pages and elements are visible for VALUES."""
    from formlogic.evaluation.visibility import resolve_visibility
    from formlogic.structure.index import FormIndex

    form, values = _load_inputs(form_path, values_path)
    result = resolve_visibility(FormIndex.build(form), form.conditions, values)

    if output_json:
        click.echo(json.dumps(result, indent=2))
        return
    for key, visible in result.items():
        marker = "[shown]" if visible else "[hidden]"
        click.echo(f"  {marker} {key}")


@main.command()
@click.argument("form_path", type=_FORM_PATH)
@click.argument("values_path", type=_FORM_PATH)
@click.option("--element", "element_id", default=None, help="Validate one element only.")
@click.option("--page", "page_id", default=None, help="Validate one page only.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Reject malformed rules at load time; exit 1 if the submission is invalid.",
)
@_CONFIG_OPTION
def validate(
    *,
    form_path: Path,
    values_path: Path,
    element_id: str | None,
    page_id: str | None,
    output_json: bool,
    strict: bool,
    config_path: Path | None,
) -> None:
    """Validate submitted VALUES against a form, a page or a single element.

    Exit codes: 0 = valid or issues without --strict,
    1 = issues with --strict, 2 = definition or usage error
    (with --strict, a malformed expression or regex is a definition error).
    """
    from formlogic.evaluation.validation import validate_element, validate_form, validate_page
    from formlogic.structure.index import FormIndex

    if element_id is not None and page_id is not None:
        click.echo("Error: --element and --page are mutually exclusive.", err=True)
        sys.exit(2)

    form, values = _load_inputs(form_path, values_path, strict=strict)
    config = _load_config(config_path)
    index = FormIndex.build(form)

    if element_id is not None:
        element = index.get_element(element_id)
        if element is None:
            click.echo(f"Error: unknown element '{element_id}'.", err=True)
            sys.exit(2)
        result = validate_element(element, values.get(element_id), config=config)
    elif page_id is not None:
        page = index.get_page(page_id)
        if page is None:
            click.echo(f"Error: unknown page '{page_id}'.", err=True)
            sys.exit(2)
        result = validate_page(page, index, values, config=config)
    else:
        result = validate_form(form, values, config=config, index=index)

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    elif result.valid:
        click.echo("Valid.")
    else:
        for issue in result.errors:
            target = issue.element_id or ", ".join(issue.affected_elements) or "(form)"
            click.echo(f"  [ERR] {target}: {issue.message}")

    if strict and not result.valid:
        sys.exit(1)


@main.command()
@click.argument("form_path", type=_FORM_PATH)
@click.argument("values_path", type=_FORM_PATH)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich on a TTY, porcelain otherwise).",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Reject malformed rules at load time; exit 1 if the submission is invalid.",
)
@_CONFIG_OPTION
def evaluate(
    *,
    form_path: Path,
    values_path: Path,
    fmt: str | None,
    strict: bool,
    config_path: Path | None,
) -> None:
    """Resolve visibility and validate VALUES in one pass.

    Exit codes: 0 = valid or issues without --strict,
    1 = issues with --strict, 2 = definition error
    (with --strict, a malformed expression or regex is a definition error).
    """
    from formlogic.evaluation.engine import EvaluationError
    from formlogic.evaluation.engine import evaluate as run_evaluate
    from formlogic.evaluation.engine import format_json as _format_json
    from formlogic.evaluation.engine import format_porcelain as _format_porcelain
    from formlogic.evaluation.engine import format_rich as _format_rich

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    form, values = _load_inputs(form_path, values_path, strict=strict)
    try:
        result = run_evaluate(form, values, config=_load_config(config_path))
    except EvaluationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    formatters = {
        "rich": _format_rich,
        "json": _format_json,
        "porcelain": _format_porcelain,
    }
    output = formatters[fmt](result)
    if output:
        click.echo(output)

    if strict and not result.valid:
        sys.exit(1)
