# ==============================
# CheckAcls Plugin
# ==============================
"""
Branch and tag access control for pushes.

    [githooks "checkacls"]
        acl = admin CRUD ^refs/
        acl = @devs U   ^refs/heads/
        acl = {USER} CRUD ^refs/heads/user/{USER}/

Each rule is "WHO WHAT REFSPEC":
- WHO is a user spec (name, ^regex or @group)
- WHAT is a subset of CRUD (create, rewind/rebase, update, delete); "-" is a no-op
- REFSPEC is a literal, a ^regex or a !regex

A ref move is allowed only when some rule matching the user and the ref lists
its action letter. When no rule allows it the push is rejected.
"""

from __future__ import annotations

import re
from typing import List, Tuple

from githooks.governance.acl import ACTION_NAMES, Matcher, interpolate, match_user, reference_action
from githooks.orchestrator.context import InvocationContext
from githooks.orchestrator.drivers import register_on_affected_refs
from githooks.orchestrator.registry import HookRegistry

PLUGIN_NAME = "CheckAcls"
CFG = "githooks.checkacls"

_WHAT = re.compile(r"^[CRUD-]+$")


def grok_acls(ctx: InvocationContext) -> List[Tuple[str, str, str]]:
    acls: List[Tuple[str, str, str]] = []
    for acl in ctx.get_config_list(CFG, "acl"):
        parts = interpolate(acl, ctx.env).split(None, 2)
        if len(parts) != 3:
            ctx.fault(f"invalid acl: '{acl}'", option="acl")
            continue
        acls.append((parts[0], parts[1], parts[2].strip()))
    return acls


def check_ref(ctx: InvocationContext, ref: str) -> bool:
    """True when the authenticated user may move ref."""
    action = reference_action(ctx, ref)

    for who, what, refspec in grok_acls(ctx):
        if not match_user(ctx, who):
            continue
        if not Matcher.compile(refspec)(ref):
            continue
        if not _WHAT.match(what):
            ctx.fault(f"invalid acl 'what' component: '{what}'", option="acl")
            return False
        if action in what:
            return True

    user = ctx.authenticated_user()
    ctx.fault(f"you ({user}) cannot {ACTION_NAMES[action]} ref {ref}", ref=ref, option="acl")
    return False


def check_affected_ref(ctx: InvocationContext, ref: str) -> int:
    return 0 if check_ref(ctx, ref) else 1


def register(registry: HookRegistry) -> None:
    register_on_affected_refs(registry, check_affected_ref)
