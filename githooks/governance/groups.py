# ==============================
# Group Definitions
# ==============================
"""
User groups referenced from ACLs and admin specs as "@name".

Sources (githooks.groups, multi-valued):
- inline text: one "name = member member @other" definition per line
- file:PATH          same syntax read from a text file
- file:PATH.yml|yaml a YAML mapping of name -> list of members (or a string)

Rules:
- "#" starts a comment; blank lines are ignored
- a member starting with "@" must name a group defined earlier
- redefining a group is an error
- the resolved graph must be acyclic

Groups are parsed once per run and cached on the invocation context.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set, Tuple

import yaml

from githooks.contracts.errors import ConfigError

if TYPE_CHECKING:
    from githooks.orchestrator.context import InvocationContext

Groups = Dict[str, List[str]]
# Groups layout:
#   {"@name": ["user", "@other", ...]}

_LINE = re.compile(r"^\s*([\w.-]+)\s*=\s*(.+?)\s*$")


# ==============================
# Parsing
# ==============================


def grok_groups_spec(lines: Iterable[str], source: str, groups: Optional[Groups] = None) -> Groups:
    groups = groups if groups is not None else {}
    for raw in lines:
        line = raw.split("#", 1)[0]
        if not line.strip():
            continue
        match = _LINE.match(line)
        if match is None:
            raise ConfigError(f"invalid line in '{source}': {raw.strip()}")
        name, members = match.groups()
        _define(groups, name, members.split(), source)
    return groups


def _define(groups: Groups, name: str, members: List[str], source: str) -> None:
    key = f"@{name}"
    if key in groups:
        raise ConfigError(f"redefinition of group ({name}) in '{source}'")
    for member in members:
        if member.startswith("@") and member not in groups:
            raise ConfigError(f"unknown group ({member}) cited in '{source}'")
    groups[key] = list(members)


def _load_yaml(path: Path, groups: Groups) -> Groups:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return groups
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    for name, members in data.items():
        if isinstance(members, str):
            members = members.split()
        elif not isinstance(members, list):
            raise ConfigError(f"members of group ({name}) must be a list in '{path}'")
        _define(groups, str(name).lstrip("@"), [str(m) for m in members], str(path))
    return groups


def load_groups(specs: Iterable[str]) -> Groups:
    groups: Groups = {}
    for spec in specs:
        if spec.startswith("file:"):
            path = Path(spec[len("file:"):])
            if not path.is_file():
                raise ConfigError(f"can't open groups file ({path})")
            if path.suffix.lower() in {".yml", ".yaml"}:
                _load_yaml(path, groups)
            else:
                grok_groups_spec(path.read_text(encoding="utf-8").splitlines(), str(path), groups)
        else:
            grok_groups_spec(spec.split("\n"), "githooks.groups", groups)
    check_acyclic(groups)
    return groups


# ==============================
# Resolution
# ==============================


def check_acyclic(groups: Groups) -> None:
    """Raise ConfigError when a group reaches itself through its members."""
    done: Set[str] = set()

    def visit(name: str, path: Tuple[str, ...]) -> None:
        if name in path:
            raise ConfigError(f"group cycle detected: {' -> '.join(path + (name,))}")
        if name in done:
            return
        for member in groups.get(name, []):
            if member.startswith("@"):
                visit(member, path + (name,))
        done.add(name)

    for name in groups:
        visit(name, ())


def flatten(groups: Groups, name: str) -> Set[str]:
    if name not in groups:
        raise ConfigError(f"group {name} is not defined")
    users: Set[str] = set()
    seen: Set[str] = set()
    pending = [name]
    while pending:
        current = pending.pop()
        if current in seen:
            continue
        seen.add(current)
        for member in groups[current]:
            if member.startswith("@"):
                pending.append(member)
            else:
                users.add(member)
    return users


def get_groups(ctx: "InvocationContext") -> Groups:
    cache = ctx.cache("githooks")
    if "groups" not in cache:
        specs = ctx.settings.groups
        if not specs:
            raise ConfigError("you have to define the githooks.groups option to use groups")
        cache["groups"] = load_groups(specs)
    return cache["groups"]


def is_member(ctx: "InvocationContext", user: str, group: str) -> bool:
    return user in flatten(get_groups(ctx), group)
