# ==============================
# Hook Registry
# ==============================
"""
Hook registry.

Design:
- One HookRegistry per process, created by the engine and handed to every plugin's
  register(registry) function
- Registry stores hook point -> ordered list of HookEntry
- One registration method per hook point (pre_commit, update, patchset_created, ...)
- Registering the same callback twice for the same hook point is a no-op; distinct
  callbacks fan out and run in registration order
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

HookCallback = Callable[..., Any]
# HookCallback signature:
#   callback(ctx: InvocationContext, *args) -> CheckResult | bool | None

HOOK_POINTS = (
    "applypatch-msg",
    "pre-applypatch",
    "post-applypatch",
    "pre-commit",
    "prepare-commit-msg",
    "commit-msg",
    "post-commit",
    "pre-rebase",
    "post-checkout",
    "post-merge",
    "pre-push",
    "pre-receive",
    "update",
    "post-receive",
    "post-update",
    "pre-auto-gc",
    "post-rewrite",
    # Gerrit server hooks
    "ref-update",
    "patchset-created",
    "draft-published",
    "commit-received",
    "submit",
)


def plugin_identity(callback: HookCallback) -> str:
    """PLUGIN_NAME of the module defining callback, else the module name."""
    module_name = getattr(callback, "__module__", None) or "githooks"
    module = sys.modules.get(module_name)
    return str(getattr(module, "PLUGIN_NAME", None) or module_name)


@dataclass(frozen=True)
class HookEntry:
    owner: str
    callback: HookCallback


class HookRegistry:
    def __init__(self) -> None:
        self._hooks: Dict[str, List[HookEntry]] = {}

    def register(self, hook: str, callback: HookCallback, *, owner: Optional[str] = None) -> None:
        if hook not in HOOK_POINTS:
            raise KeyError(f"Unknown hook point: {hook}")
        entries = self._hooks.setdefault(hook, [])
        if any(e.callback is callback for e in entries):
            return
        entries.append(HookEntry(owner=owner or plugin_identity(callback), callback=callback))

    def entries(self, hook: str) -> List[HookEntry]:
        return list(self._hooks.get(hook, []))

    def has(self, hook: str) -> bool:
        return bool(self._hooks.get(hook))

    def list(self) -> Dict[str, List[str]]:
        return {hook: [e.owner for e in entries] for hook, entries in self._hooks.items()}

    # ------------------------------
    # Registration functions
    # ------------------------------

    def applypatch_msg(self, callback: HookCallback) -> None:
        self.register("applypatch-msg", callback)

    def pre_applypatch(self, callback: HookCallback) -> None:
        self.register("pre-applypatch", callback)

    def post_applypatch(self, callback: HookCallback) -> None:
        self.register("post-applypatch", callback)

    def pre_commit(self, callback: HookCallback) -> None:
        self.register("pre-commit", callback)

    def prepare_commit_msg(self, callback: HookCallback) -> None:
        self.register("prepare-commit-msg", callback)

    def commit_msg(self, callback: HookCallback) -> None:
        self.register("commit-msg", callback)

    def post_commit(self, callback: HookCallback) -> None:
        self.register("post-commit", callback)

    def pre_rebase(self, callback: HookCallback) -> None:
        self.register("pre-rebase", callback)

    def post_checkout(self, callback: HookCallback) -> None:
        self.register("post-checkout", callback)

    def post_merge(self, callback: HookCallback) -> None:
        self.register("post-merge", callback)

    def pre_push(self, callback: HookCallback) -> None:
        self.register("pre-push", callback)

    def pre_receive(self, callback: HookCallback) -> None:
        self.register("pre-receive", callback)

    def update(self, callback: HookCallback) -> None:
        self.register("update", callback)

    def post_receive(self, callback: HookCallback) -> None:
        self.register("post-receive", callback)

    def post_update(self, callback: HookCallback) -> None:
        self.register("post-update", callback)

    def pre_auto_gc(self, callback: HookCallback) -> None:
        self.register("pre-auto-gc", callback)

    def post_rewrite(self, callback: HookCallback) -> None:
        self.register("post-rewrite", callback)

    def ref_update(self, callback: HookCallback) -> None:
        self.register("ref-update", callback)

    def patchset_created(self, callback: HookCallback) -> None:
        self.register("patchset-created", callback)

    def draft_published(self, callback: HookCallback) -> None:
        self.register("draft-published", callback)

    def commit_received(self, callback: HookCallback) -> None:
        self.register("commit-received", callback)

    def submit(self, callback: HookCallback) -> None:
        self.register("submit", callback)
