"""Locates ``.insight.yaml`` and turns it into a validated InsightConfig.

Environment placeholders are expanded once, while the file is read. The
engine only ever sees the finished config object.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from insight_qa.config.models import InsightConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".insight.yaml"

# ${NAME} or ${NAME:-fallback}
_PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}]+?)(?::-(?P<default>[^}]*))?\}")


class ConfigSyntaxError(ValueError):
    """The config file is not valid YAML or is not a mapping."""


def expand_env(text: str, environ: Mapping[str, str] | None = None) -> str:
    """Substitute ``${NAME}`` and ``${NAME:-fallback}`` placeholders in *text*.

    Values come from *environ*, or ``os.environ`` when omitted. A placeholder
    naming an unset variable with no fallback is left untouched.
    """
    env = os.environ if environ is None else environ

    def _lookup(match: re.Match[str]) -> str:
        name = match.group("name").strip()
        if name in env:
            return env[name]
        fallback = match.group("default")
        return match.group(0) if fallback is None else fallback

    return _PLACEHOLDER.sub(_lookup, text)


def expand_tree(node: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Apply :func:`expand_env` to every string inside parsed YAML."""
    if isinstance(node, str):
        return expand_env(node, environ)
    if isinstance(node, Mapping):
        return {key: expand_tree(value, environ) for key, value in node.items()}
    if isinstance(node, (list, tuple)):
        return [expand_tree(item, environ) for item in node]
    return node


def find_config_file(start: Path | None = None, filename: str = CONFIG_FILENAME) -> Path | None:
    """Nearest *filename* in *start* (default cwd) or one of its parents."""
    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / filename
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse *path* and expand placeholders. An empty file reads as ``{}``."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigSyntaxError(f"Could not parse {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigSyntaxError(f"{path} must hold a mapping, got {type(raw).__name__}")
    return expand_tree(raw)


def load_config(path: Path | None = None) -> InsightConfig:
    """Read and validate the config at *path*, or the nearest discovered one.

    Raises FileNotFoundError when there is no file, ConfigSyntaxError for
    unreadable YAML and ValueError when validation fails.
    """
    config_path = path or find_config_file()
    if config_path is None:
        raise FileNotFoundError(f"Could not find {CONFIG_FILENAME}. Create one or specify a path.")
    if not config_path.is_file():
        raise FileNotFoundError(f"Could not find config file {config_path}.")

    data = read_config_file(config_path)
    try:
        config = InsightConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration in {config_path}: {exc}") from exc
    logger.debug("Loaded configuration from %s", config_path)
    return config


def load_config_or_default(path: Path | None = None) -> InsightConfig:
    """Like :func:`load_config`, but built-in defaults when no file is discovered.

    An explicit *path* that does not exist is still an error.
    """
    if path is not None:
        return load_config(path)
    discovered = find_config_file()
    if discovered is None:
        logger.debug("No %s found; using defaults", CONFIG_FILENAME)
        return InsightConfig()
    return load_config(discovered)
