"""Engine configuration: error messages and optional checks, loaded from ``config.yml``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Messages and switches used by the validators.

    Configurable via the ``engine`` section of ``config.yml``.
    """

    required_message: str = "This field is required"
    fallback_message: str = "Validation error"
    rule_error_message: str = "Validation error occurred"
    form_rule_error_message: str = "Form validation error occurred"
    # Built-in email / number checks for typed inputs.
    type_checks: bool = False


DEFAULT_CONFIG = EngineConfig()


def load_engine_config(config_path: Path) -> EngineConfig:
    """Load :class:`EngineConfig` from the ``engine`` section of *config_path*.

    Falls back to defaults for a missing file, an unreadable file, or a
    malformed section.  Unknown keys are ignored.
    """
    if not config_path.is_file():
        return DEFAULT_CONFIG

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default engine config", config_path)
        return DEFAULT_CONFIG

    if not isinstance(data, dict):
        return DEFAULT_CONFIG

    section = data.get("engine")
    if not isinstance(section, dict):
        return DEFAULT_CONFIG

    kwargs: dict[str, str | bool] = {}
    for f in fields(EngineConfig):
        if f.name not in section:
            continue
        raw = section[f.name]
        if f.name == "type_checks":
            if isinstance(raw, bool):
                kwargs[f.name] = raw
            else:
                logger.warning(
                    "Ignoring engine.type_checks=%r in %s: expected true or false",
                    raw,
                    config_path,
                )
        elif raw is not None:
            kwargs[f.name] = str(raw)

    unknown = sorted(set(section) - {f.name for f in fields(EngineConfig)})
    if unknown:
        logger.debug("Ignoring unknown engine config keys: %s", ", ".join(map(str, unknown)))

    return EngineConfig(**kwargs)  # type: ignore[arg-type]
