# ==============================
# Git Config Store
# ==============================
"""
Two-level view of the repository configuration.

Layout:
    section -> key -> [values...]

The first level is the lower-cased option name up to its last dot, the second
level the lower-cased remainder. Values keep declaration order: the first one
comes from the outermost scope, the last one from the most specific scope, so
single-valued reads return the last value.

No subprocess calls here. loader.py fetches `git config --null --list` and
hands the raw text to GitConfig.from_null_list.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Tuple

from githooks.contracts.errors import ConfigError

DEFAULTS: Dict[str, Dict[str, List[str]]] = {
    "githooks": {"externals": ["1"], "abort-commit": ["1"]},
    "githooks.gerrit": {"enabled": ["1"]},
}

_TRUE = {"yes", "on", "true", "1"}
_FALSE = {"no", "off", "false", "0", ""}
_INT_RE = re.compile(r"^\s*([-+]?\d+)\s*([kmg]?)\s*$", re.IGNORECASE)
_SCALE = {"": 1, "k": 1024, "m": 1024**2, "g": 1024**3}


def parse_bool(value: Optional[str], *, option: str = "option") -> bool:
    """Git-style boolean. A valueless option (None) counts as true."""
    if value is None:
        return True
    norm = value.strip().lower()
    if norm in _TRUE:
        return True
    if norm in _FALSE:
        return False
    raise ConfigError(f"invalid boolean value for {option}: '{value}'")


def parse_int(value: str, *, option: str = "option") -> int:
    """Integer with optional k/m/g suffix scaled by powers of 1024."""
    match = _INT_RE.match(value or "")
    if match is None:
        raise ConfigError(f"invalid integer value for {option}: '{value}'")
    number, unit = match.groups()
    return int(number) * _SCALE[unit.lower()]


def split_option(option: str) -> Tuple[str, str]:
    if "." not in option:
        raise ConfigError(f"Cannot grok config variable name '{option}'")
    section, key = option.rsplit(".", 1)
    if not section or not key:
        raise ConfigError(f"Cannot grok config variable name '{option}'")
    return section.lower(), key.lower()


class GitConfig:
    def __init__(self, data: Optional[Dict[str, Dict[str, List[str]]]] = None) -> None:
        self._data: Dict[str, Dict[str, List[str]]] = {}
        for section, keys in (data or {}).items():
            for key, values in keys.items():
                for value in values:
                    self.add(section, key, value)

    # ------------------------------
    # Construction
    # ------------------------------

    @classmethod
    def from_null_list(cls, raw: str, *, with_defaults: bool = True) -> "GitConfig":
        """Parse `git config --null --list` output (records are `key\\nvalue\\0`)."""
        cfg = cls()
        for record in raw.split("\0"):
            if not record:
                continue
            if "\n" in record:
                option, value = record.split("\n", 1)
            else:
                option, value = record, "true"
            section, key = split_option(option)
            cfg.add(section, key, value)
        if with_defaults:
            cfg.apply_defaults()
        return cfg

    @classmethod
    def from_lines(cls, lines: Iterable[str], *, with_defaults: bool = True) -> "GitConfig":
        """Parse `section.key=value` lines; an option without `=value` is boolean-true."""
        cfg = cls()
        for line in lines:
            line = line.rstrip("\n")
            if not line.strip():
                continue
            if "=" in line:
                option, value = line.split("=", 1)
            else:
                option, value = line, "true"
            section, key = split_option(option.strip())
            cfg.add(section, key, value)
        if with_defaults:
            cfg.apply_defaults()
        return cfg

    def apply_defaults(self) -> None:
        for section, keys in DEFAULTS.items():
            for key, values in keys.items():
                bucket = self._data.setdefault(section, {})
                if key not in bucket:
                    bucket[key] = list(values)

    # ------------------------------
    # Access
    # ------------------------------

    def add(self, section: str, key: str, value: str) -> None:
        self._data.setdefault(section.lower(), {}).setdefault(key.lower(), []).append(value)

    def sections(self) -> List[str]:
        return list(self._data)

    def section(self, section: str) -> Dict[str, List[str]]:
        """Mutable second-level mapping; created empty when missing."""
        return self._data.setdefault(section.lower(), {})

    def has(self, section: str, key: str) -> bool:
        return key.lower() in self._data.get(section.lower(), {})

    def get_all(self, section: str, key: str) -> List[str]:
        return list(self._data.get(section.lower(), {}).get(key.lower(), []))

    def get(self, section: str, key: str, default: Optional[str] = None) -> Optional[str]:
        values = self._data.get(section.lower(), {}).get(key.lower())
        if not values:
            return default
        return values[-1]

    def get_bool(self, section: str, key: str, default: bool = False) -> bool:
        if not self.has(section, key):
            return default
        return parse_bool(self.get(section, key), option=f"{section}.{key}")

    def get_int(self, section: str, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self.get(section, key)
        if value is None:
            return default
        return parse_int(value, option=f"{section}.{key}")

    def as_dict(self) -> Dict[str, Dict[str, List[str]]]:
        return {s: {k: list(v) for k, v in keys.items()} for s, keys in self._data.items()}
