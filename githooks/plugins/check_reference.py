# ==============================
# CheckReference Plugin
# ==============================
"""
Reference naming and permission rules.

    [githooks "checkreference"]
        deny  = ^refs/heads/
        allow = ^refs/heads/(?:feature|release|hotfix)/
        acl   = deny  CRUD ^refs/heads/release/
        acl   = allow U    ^refs/heads/release/ by @release-managers

- deny/allow: a newly created ref matching any deny regex is rejected unless it
  also matches an allow regex
- acl: "allow|deny ACTIONS SPEC [by USERSPEC]" rules over the CRUD actions; the
  last declared matching rule decides and a move no rule matches is allowed
"""

from __future__ import annotations

import re

from githooks.contracts.errors import ConfigError
from githooks.governance.acl import ACTION_NAMES, evaluate_acls, grok_acls, reference_action
from githooks.orchestrator.context import InvocationContext
from githooks.orchestrator.drivers import register_on_affected_refs
from githooks.orchestrator.registry import HookRegistry

PLUGIN_NAME = "CheckReference"
CFG = "githooks.checkreference"


def _matches_any(ref: str, patterns) -> bool:
    for pattern in patterns:
        try:
            if re.search(pattern, ref):
                return True
        except re.error as exc:
            raise ConfigError(f"invalid regular expression in {CFG}: '{pattern}': {exc}") from exc
    return False


def check_name(ctx: InvocationContext, ref: str) -> int:
    if not ctx.get_affected_ref(ref).is_created:
        return 0
    if _matches_any(ref, ctx.get_config_list(CFG, "deny")) and not _matches_any(
        ref, ctx.get_config_list(CFG, "allow")
    ):
        ctx.fault(
            f"The reference name '{ref}' is not allowed.\nPlease, check the {CFG}.deny options in your configuration.",
            ref=ref,
            option="deny",
        )
        return 1
    return 0


def check_acl(ctx: InvocationContext, ref: str) -> int:
    rules = grok_acls(ctx, CFG, "CRUD")
    if not rules:
        return 0
    action = reference_action(ctx, ref)
    if evaluate_acls(rules, action, ref):
        return 0
    user = ctx.authenticated_user()
    ctx.fault(f"you ({user}) cannot {ACTION_NAMES[action]} ref {ref}", ref=ref, option="acl")
    return 1


def check_ref(ctx: InvocationContext, ref: str) -> int:
    return check_name(ctx, ref) + check_acl(ctx, ref)


def register(registry: HookRegistry) -> None:
    register_on_affected_refs(registry, check_ref)
