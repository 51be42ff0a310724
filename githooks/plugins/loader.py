# ==============================
# Plugin Loader
# ==============================
"""
Deterministic discovery + registration for policy plugins.

Responsibilities:
- Resolve githooks.plugin names, dropping those listed in githooks.disable or
  switched off by an environment variable named after the plugin ("" or "0")
- Locate each plugin: ./githooks, then each githooks.plugins directory, then the
  bundled githooks/plugins package; a dotted name is imported as a module
- Import the module and call its register(registry)

A plugin that cannot be found or does not define register() is a ConfigError.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import re
import sys
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Dict, List, Optional

from githooks.contracts.errors import ConfigError
from githooks.orchestrator.registry import HookRegistry

if TYPE_CHECKING:
    from githooks.orchestrator.context import InvocationContext

logger = logging.getLogger(__name__)

BUILTIN_DIR = Path(__file__).resolve().parent
BUILTIN_PACKAGE = "githooks.plugins"


def snake_case(name: str) -> str:
    """CheckAcls -> check_acls"""
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name).lower()


def basename(plugin: str) -> str:
    return plugin.rsplit(".", 1)[-1] if "." in plugin and not plugin.endswith(".py") else plugin


def enabled_plugins(ctx: "InvocationContext") -> List[str]:
    settings = ctx.settings
    disabled = set(settings.disabled)

    plugins: List[str] = []
    for plugin in settings.plugins:
        short = basename(plugin)
        if plugin in disabled or short in disabled:
            continue
        if short in ctx.env and ctx.env[short] in ("", "0"):
            logger.info("plugin %s disabled by environment", short)
            continue
        if plugin not in plugins:
            plugins.append(plugin)
    return plugins


def plugin_dirs(ctx: "InvocationContext") -> List[Path]:
    local = Path(ctx.repo.cwd or ".") / "githooks"
    dirs = [local, *(Path(d) for d in ctx.settings.plugin_dirs), BUILTIN_DIR]
    return [d for d in dirs if d.is_dir()]


def _candidates(name: str) -> List[str]:
    stem = name[:-3] if name.endswith(".py") else name
    names = [f"{stem}.py"]
    snake = snake_case(stem)
    if snake != stem:
        names.append(f"{snake}.py")
    return names


def locate_plugin(ctx: "InvocationContext", name: str) -> Optional[Path]:
    for directory in plugin_dirs(ctx):
        for candidate in _candidates(name):
            path = directory / candidate
            if path.is_file():
                return path
    return None


def _import_plugin_file(path: Path) -> ModuleType:
    if path.resolve().parent == BUILTIN_DIR:
        return importlib.import_module(f"{BUILTIN_PACKAGE}.{path.stem}")
    module_name = f"githooks_plugin_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot import plugin module {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


def import_plugin(ctx: "InvocationContext", name: str) -> ModuleType:
    if "." in name and not name.endswith(".py"):
        try:
            return importlib.import_module(name)
        except ImportError as exc:
            raise ConfigError(f"can't load plugin module {name}: {exc}") from exc

    path = locate_plugin(ctx, name)
    if path is None:
        raise ConfigError(f"can't find enabled plugin {name}")
    return _import_plugin_file(path)


def load_plugins(ctx: "InvocationContext", registry: HookRegistry) -> Dict[str, ModuleType]:
    loaded: Dict[str, ModuleType] = {}
    for name in enabled_plugins(ctx):
        module = import_plugin(ctx, name)
        register_fn = getattr(module, "register", None)
        if register_fn is None:
            raise ConfigError(f"plugin {name} must define register(registry)")
        register_fn(registry)
        loaded[name] = module
        logger.debug("loaded plugin %s", name, extra={"plugin": name})
    return loaded
