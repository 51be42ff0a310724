# ==============================
# Config Loader (only env reader)
# ==============================
"""
Config loader for githooks.

Rules:
- This is the ONLY place allowed to read os.environ.
- This is the ONLY place that lists the repository configuration.
- Everything else receives a GitConfig store and a validated Settings object.

Testability:
- All functions accept an injected env dict and repository facade.
"""

from __future__ import annotations

import os
from typing import Dict, List, Optional, Protocol

from pydantic import ValidationError

from githooks.config.gitconfig import GitConfig
from githooks.config.schema import Settings
from githooks.contracts.errors import ConfigError, EnvironmentFailure

_HOME_MISSING = """\
The HOME environment variable is undefined.

It is needed to read Git's global configuration from $HOME/.gitconfig.

If you really don't want to read the global configuration, define HOME as an
empty string in the environment of the hook before running it.

Git servers started by boot scripts (Gerrit, for instance) often run with HOME
undefined. In that case point HOME at the directory holding the .gitconfig file
the server should use.
"""


class ConfigSource(Protocol):
    def run(self, *args: str) -> str: ...


# ==============================
# Environment
# ==============================


def read_environment(env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Snapshot of the process environment (or a copy of the injected one)."""
    return dict(env) if env is not None else dict(os.environ)


# ==============================
# Git Config
# ==============================


def load_git_config(repo: ConfigSource, env: Dict[str, str]) -> GitConfig:
    """
    List every configuration option visible to the repository.

    Raises EnvironmentFailure when HOME is not defined (an empty value is fine).
    """
    if "HOME" not in env:
        raise EnvironmentFailure(_HOME_MISSING)
    raw = repo.run("config", "--null", "--list")
    return GitConfig.from_null_list(raw)


# ==============================
# Settings
# ==============================


def _words(values: List[str]) -> List[str]:
    out: List[str] = []
    for value in values:
        out.extend(value.split())
    return out


def _opt(config: GitConfig, section: str, key: str) -> Optional[str]:
    value = config.get(section, key)
    return value if value else None


def build_settings(config: GitConfig) -> Settings:
    """Typed view of the githooks options. Invalid booleans/integers raise ConfigError."""
    color_mode = (config.get("githooks", "color") or "auto").strip().lower()
    if color_mode in {"true", "yes", "on", "1"}:
        color_mode = "always"
    elif color_mode in {"false", "no", "off", "0"}:
        color_mode = "never"

    color: Dict[str, str] = {"mode": color_mode}
    for key in ("context", "message", "details"):
        if config.has("githooks.color", key):
            color[key] = config.get("githooks.color", key) or ""

    data = {
        "plugins": _words(config.get_all("githooks", "plugin")),
        "disabled": _words(config.get_all("githooks", "disable")),
        "plugin_dirs": config.get_all("githooks", "plugins"),
        "admin": _words(config.get_all("githooks", "admin")),
        "userenv": _opt(config, "githooks", "userenv"),
        "groups": config.get_all("githooks", "groups"),
        "abort_commit": config.get_bool("githooks", "abort-commit", True),
        "errors": {
            "header": _opt(config, "githooks", "error-header"),
            "footer": _opt(config, "githooks", "error-footer"),
            "prefix": _opt(config, "githooks", "error-prefix"),
            "length_limit": config.get_int("githooks", "error-length-limit"),
            "help_on_error": _opt(config, "githooks", "help-on-error"),
            "color": color,
        },
        "externals": {
            "enabled": config.get_bool("githooks", "externals", True),
            "dirs": config.get_all("githooks", "hooks"),
            "timeout_seconds": config.get_int("githooks", "timeout"),
        },
        "gerrit": {
            "enabled": config.get_bool("githooks.gerrit", "enabled", True),
            "url": _opt(config, "githooks.gerrit", "url"),
            "username": _opt(config, "githooks.gerrit", "username"),
            "password": _opt(config, "githooks.gerrit", "password"),
            "votes_to_approve": _opt(config, "githooks.gerrit", "votes-to-approve"),
            "votes_to_reject": _opt(config, "githooks.gerrit", "votes-to-reject"),
            "review_label": _opt(config, "githooks.gerrit", "review-label"),
            "vote_ok": _opt(config, "githooks.gerrit", "vote-ok"),
            "vote_nok": _opt(config, "githooks.gerrit", "vote-nok"),
            "comment_ok": _opt(config, "githooks.gerrit", "comment-ok"),
            "auto_submit": config.get_bool("githooks.gerrit", "auto-submit", False),
            "notify": _opt(config, "githooks.gerrit", "notify"),
        },
        "logging": {"level": config.get("githooks", "log-level") or "WARNING"},
    }

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
