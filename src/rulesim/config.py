"""Configuration loading and parsing for rulesim."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from rulesim.corpus import DEFAULT_MAX_FILE_SIZE
from rulesim.plugins import PLUGIN_MODULES

logger = logging.getLogger("rulesim")

CONFIG_FILENAMES = ["rulesim.yml", "rulesim.yaml", ".rulesim.yml"]

DEFAULT_EXCLUDE_PATTERNS = [".gitignore"]


@dataclass
class RuleSimConfig:
    """Parsed rulesim configuration."""
    source_set: str = "."
    plugins: list[str] = field(default_factory=lambda: list(PLUGIN_MODULES))
    custom_plugins_dir: str | None = None
    exclude_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    condition_timeout: float | None = None
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def resolve_source_set(self, project_dir: str) -> str:
        path = Path(self.source_set).expanduser()
        if not path.is_absolute():
            path = Path(project_dir) / path
        return str(path)


def _positive_number(raw: dict, key: str, default, kind=float):
    value = raw.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        logger.warning("Invalid %s '%s', falling back to %s", key, value, default)
        return default
    return kind(value)


def load_config(project_dir: str) -> RuleSimConfig:
    """Load config from rulesim.yml, or return defaults."""
    root = Path(project_dir)

    raw = {}
    for filename in CONFIG_FILENAMES:
        config_path = root / filename
        if config_path.exists():
            raw = yaml.safe_load(config_path.read_text()) or {}
            break

    if not isinstance(raw, dict):
        logger.warning("Config file is not a mapping; using defaults")
        raw = {}

    plugins = raw.get("plugins")
    if plugins is not None and not isinstance(plugins, list):
        logger.warning("Invalid plugins '%s', falling back to all built-in plugins", plugins)
        plugins = None
    if plugins:
        for p in plugins:
            if p not in PLUGIN_MODULES:
                logger.warning("Unknown plugin '%s' in config (not registered)", p)
    else:
        plugins = list(PLUGIN_MODULES)

    exclude = raw.get("exclude_patterns")
    if exclude is None:
        exclude = list(DEFAULT_EXCLUDE_PATTERNS)
    elif not isinstance(exclude, list):
        logger.warning("Invalid exclude_patterns '%s', falling back to defaults", exclude)
        exclude = list(DEFAULT_EXCLUDE_PATTERNS)

    return RuleSimConfig(
        source_set=str(raw.get("source_set", ".")),
        plugins=list(plugins),
        custom_plugins_dir=raw.get("custom_plugins_dir"),
        exclude_patterns=[str(p) for p in exclude],
        condition_timeout=_positive_number(raw, "condition_timeout", None),
        max_file_size=_positive_number(raw, "max_file_size", DEFAULT_MAX_FILE_SIZE, int),
    )
