"""Plugin loader."""
from __future__ import annotations

import importlib
import importlib.util
import logging
import sys
from pathlib import Path

from rulesim.registry import Plugin

logger = logging.getLogger("rulesim")

PLUGIN_MODULES = {
    "filesystem": "rulesim.plugins.filesystem",
    "patterns": "rulesim.plugins.patterns",
    "dependency": "rulesim.plugins.dependency",
    "ast": "rulesim.plugins.python_ast",
}


def load_plugins(active_plugins: list[str] | None = None) -> list[Plugin]:
    """Build fresh instances of the named built-in plugins (all when None)."""
    names = list(PLUGIN_MODULES) if active_plugins is None else active_plugins
    plugins: list[Plugin] = []
    for name in names:
        module_path = PLUGIN_MODULES.get(name)
        if module_path is None:
            logger.warning("Unknown plugin '%s' (not registered)", name)
            continue
        module = importlib.import_module(module_path)
        plugins.append(module.create_plugin())
    return plugins


def load_custom_plugins(custom_plugins_dir: str, project_dir: str) -> list[Plugin]:
    """Load Plugin instances (or create_plugin() factories) from .py files in a directory."""
    root = Path(project_dir) / custom_plugins_dir
    if not root.is_dir():
        return []

    plugins: list[Plugin] = []
    for py_file in sorted(root.glob("*.py")):
        if py_file.name.startswith("_"):
            continue
        try:
            mod_name = f"rulesim_custom.{py_file.stem}"
            spec = importlib.util.spec_from_file_location(mod_name, py_file)
            if spec is None or spec.loader is None:
                continue
            module = importlib.util.module_from_spec(spec)
            sys.modules[mod_name] = module
            spec.loader.exec_module(module)

            factory = getattr(module, "create_plugin", None)
            if callable(factory):
                plugins.append(factory())
                continue
            for attr_name in dir(module):
                attr = getattr(module, attr_name)
                if isinstance(attr, Plugin):
                    plugins.append(attr)
        except Exception:
            logger.exception("Failed to load custom plugin from %s", py_file)

    return plugins
