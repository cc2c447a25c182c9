"""
Hierarchical configuration loader for catalog_mirror.

Finds YAML config files by convention, interpolates environment
variables, and merges them with "project wins" semantics.

Usage:
    from catalog_mirror.config_loader import resolve_config

    config = resolve_config({"url": "https://catalog.example.com"})
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv

from .config import Config, load_config
from .config_schema import build_config, to_fallbacks

logger = logging.getLogger(__name__)

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` with environment values.

    An unset or empty VAR falls back to *default*, or to ``""`` when no
    default is given.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


def discover_config_files() -> list[Path]:
    """Return existing config file paths, highest precedence first.

    Search order:
        1. ``CATALOG_MIRROR_CONFIG`` env var (explicit single path)
        2. ``.catalog_mirror/config.yml`` in CWD (project-level)
        3. ``~/.config/catalog_mirror/config.yml`` (XDG global)
    """
    candidates: list[Path] = []

    env_path = os.environ.get("CATALOG_MIRROR_CONFIG")
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    candidates.append(Path.cwd() / ".catalog_mirror" / "config.yml")
    candidates.append(
        Path.home() / ".config" / "catalog_mirror" / "config.yml"
    )

    return [p for p in candidates if p.exists()]


def load_yaml_file(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest precedence to highest; top-level keys
    of a higher-precedence file replace (not deep-merge) earlier ones.
    Env var interpolation runs after the merge.

    Returns an empty dict when no config files exist.
    """
    paths = discover_config_files()

    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)


def resolve_config(overrides: dict[str, Any] | None = None) -> Config:
    """Build the runtime Config from every source.

    Loads ``.env`` first (so YAML ``${VAR}`` interpolation can use it),
    then YAML fallbacks, then applies CLI *overrides* (url, environment,
    insecure, debug, token_file) via ``load_config()``.

    Raises:
        ValueError: If a value is invalid.
    """
    load_dotenv(find_dotenv(usecwd=True))

    yaml_fallbacks: dict[str, Any] | None = None
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        yaml_fallbacks = to_fallbacks(unified)
        logger.info("Config file: %s", config_files[0])

    overrides = overrides or {}
    return load_config(
        url=overrides.get("url"),
        environment=overrides.get("environment"),
        insecure=overrides.get("insecure", False),
        debug=overrides.get("debug", False),
        token_file=overrides.get("token_file"),
        yaml_fallbacks=yaml_fallbacks,
    )
