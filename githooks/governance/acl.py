# ==============================
# ACL Evaluator
# ==============================
"""
Access-control rules and user matching.

Rule syntax (multi-valued "acl" option of a plugin section):

    allow|deny ACTIONS SPEC [by [!]USERSPEC]

- ACTIONS is a string of single-letter action codes legal for the caller
- SPEC is a literal, a "^regex" (the caret is part of the pattern) or a
  "!regex" that matches when the regex does not; "{VAR}" is replaced by the
  environment value of VAR before compiling
- USERSPEC is a user name, a "^regex" or an "@group"; a leading "!" inverts it

Only rules whose user filter matches the authenticated user are eligible.
They are returned most-specific first (reverse declaration order) so the last
declared matching rule decides. When no rule matches, evaluate_acls allows.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Optional, Sequence

from githooks.contracts.errors import ConfigError
from githooks.contracts.git_schema import is_undefined
from githooks.governance.groups import is_member

if TYPE_CHECKING:
    from githooks.orchestrator.context import InvocationContext

_ACL = re.compile(r"^\s*(allow|deny)\s+([A-Za-z]+)\s+(\S+)(?:\s+by\s+(!?)(\S+))?\s*$")
_VAR = re.compile(r"\{(\w+)\}")


# ==============================
# Matchers
# ==============================


def interpolate(spec: str, env: Dict[str, str]) -> str:
    def _sub(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name not in env:
            raise ConfigError(f"undefined environment variable {{{name}}} in '{spec}'")
        return env[name]

    return _VAR.sub(_sub, spec)


@dataclass(frozen=True)
class Matcher:
    spec: str
    pattern: Optional["re.Pattern[str]"] = None
    negated: bool = False

    @classmethod
    def compile(cls, spec: str, env: Optional[Dict[str, str]] = None) -> "Matcher":
        expanded = interpolate(spec, env or {})
        try:
            if expanded.startswith("^"):
                return cls(spec=expanded, pattern=re.compile(expanded))
            if expanded.startswith("!"):
                return cls(spec=expanded, pattern=re.compile(expanded[1:]), negated=True)
        except re.error as exc:
            raise ConfigError(f"invalid regular expression '{expanded}': {exc}") from exc
        return cls(spec=expanded)

    def __call__(self, target: str) -> bool:
        if self.pattern is None:
            return target == self.spec
        found = self.pattern.search(target) is not None
        return not found if self.negated else found


# ==============================
# Rules
# ==============================


@dataclass(frozen=True)
class ACLRule:
    allow: bool
    actions: FrozenSet[str]
    matcher: Matcher
    source: str

    def matches(self, action: str, target: str) -> bool:
        return action in self.actions and self.matcher(target)


def parse_acl(ctx: "InvocationContext", acl: str, legal_actions: str) -> Optional[ACLRule]:
    """Parse one rule; None when its user filter excludes the current user."""
    match = _ACL.match(acl)
    if match is None:
        raise ConfigError(f"invalid acl syntax: '{acl}'")
    verb, actions, spec, negate, userspec = match.groups()

    illegal = set(actions) - set(legal_actions)
    if illegal:
        raise ConfigError(f"invalid acl action(s) '{''.join(sorted(illegal))}' in '{acl}' (legal: {legal_actions})")

    if userspec is not None:
        if match_user(ctx, userspec) == bool(negate):
            return None

    return ACLRule(
        allow=(verb == "allow"),
        actions=frozenset(actions),
        matcher=Matcher.compile(spec, ctx.env),
        source=acl,
    )


def grok_acls(ctx: "InvocationContext", section: str, legal_actions: str) -> List[ACLRule]:
    rules: List[ACLRule] = []
    for acl in ctx.get_config_list(section, "acl"):
        rule = parse_acl(ctx, acl, legal_actions)
        if rule is not None:
            rules.append(rule)
    rules.reverse()
    return rules


def evaluate_acls(rules: Sequence[ACLRule], action: str, target: str) -> bool:
    for rule in rules:
        if rule.matches(action, target):
            return rule.allow
    return True


# ==============================
# Users
# ==============================


def match_user(ctx: "InvocationContext", spec: str) -> bool:
    user = ctx.authenticated_user()
    if not user:
        return False
    if spec.startswith("^"):
        return re.search(spec, user) is not None
    if spec.startswith("@"):
        return is_member(ctx, user, spec)
    return user == spec


def im_admin(ctx: "InvocationContext") -> bool:
    return any(match_user(ctx, spec) for spec in ctx.settings.admin)


# ==============================
# Reference enablement
# ==============================


def is_ref_enabled(ref: Optional[str], specs: Sequence[str]) -> bool:
    if ref is None or not specs:
        return True
    for spec in specs:
        if spec.startswith("^"):
            if re.search(spec, ref):
                return True
        elif ref == spec:
            return True
    return False


def is_reference_enabled(ctx: "InvocationContext", section: str, ref: Optional[str]) -> bool:
    """
    Whether the plugin owning section should look at ref.

    section.ref lists the only refs to consider; section.noref lists refs to
    skip. A ref matched by both is considered.
    """
    if ref is None:
        return True
    enabled = ctx.get_config_list(section, "ref")
    if enabled and is_ref_enabled(ref, enabled):
        return True
    disabled = ctx.get_config_list(section, "noref")
    if disabled and is_ref_enabled(ref, disabled):
        return False
    return not enabled


# ==============================
# Reference actions
# ==============================

ACTION_NAMES = {
    "C": "create",
    "R": "rewind/rebase",
    "U": "update",
    "D": "delete",
}


def reference_action(ctx: "InvocationContext", ref: str) -> str:
    """
    Action letter for the move of an affected ref.

    C creates, D deletes, U fast-forwards a branch, R rewrites history (any
    non-branch move, or a branch move whose old tip is not an ancestor).
    """
    old_commit, new_commit = ctx.get_affected_ref_range(ref)
    if is_undefined(old_commit):
        return "C"
    if is_undefined(new_commit):
        return "D"
    if not ref.startswith("refs/heads/"):
        return "R"
    code, merge_base = ctx.repo.run_status("merge-base", old_commit, new_commit)
    if code != 0:
        return "R"
    return "U" if merge_base == old_commit else "R"
