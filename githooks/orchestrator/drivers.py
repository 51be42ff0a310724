# ==============================
# Hook Drivers
# ==============================
"""
Hook drivers: register one check across a family of related hook points.

Each driver wraps the check so that, on every invocation, the wrapper:
1. succeeds at once when the authenticated user is an administrator
2. runs options.config once
3. calls the check for each unit of work not disabled by the plugin's
   ref/noref options, summing the failures it reports
4. runs options.destroy once
5. succeeds iff no unit failed

A check reports "no failure" by returning None, False, 0 or CheckResult.success().
A positive int counts as that many failures; any other truthy value counts as one.

Families:
- register_on_affected_refs: commit-received, pre-receive, ref-update, submit, update
  check(ctx, ref)
- register_on_commit: pre-applypatch, pre-commit
  check(ctx, current_branch)
- register_on_patchset: draft-published, patchset-created
  check(ctx, gerrit_args)
- register_on_message_file: applypatch-msg, commit-msg
  check(ctx, message_file)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Sequence, Tuple

from githooks.contracts.fault_schema import CheckResult
from githooks.governance.acl import im_admin, is_reference_enabled
from githooks.orchestrator.registry import HookRegistry, plugin_identity

if TYPE_CHECKING:
    from githooks.orchestrator.context import InvocationContext

AFFECTED_REFS_HOOKS = ("commit-received", "pre-receive", "ref-update", "submit", "update")
COMMIT_HOOKS = ("pre-applypatch", "pre-commit")
PATCHSET_HOOKS = ("draft-published", "patchset-created")
MESSAGE_FILE_HOOKS = ("applypatch-msg", "commit-msg")


@dataclass(frozen=True)
class DriverOptions:
    """
    Optional hooks around a driver's units of work.

    - config: called once before the first unit (defaults to no-op)
    - destroy: called once after the last unit (defaults to no-op)
    - section: config section holding ref/noref (defaults to githooks.<plugin name>)
    """
    config: Optional[Callable[["InvocationContext"], None]] = None
    destroy: Optional[Callable[["InvocationContext"], None]] = None
    section: Optional[str] = None


def count_failures(value: Any) -> int:
    if isinstance(value, CheckResult):
        return 0 if value.ok else value.failures
    if not value:
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 1


def plugin_section(owner: str) -> str:
    return "githooks." + owner.rsplit(".", 1)[-1].lower()


def _register(
    registry: HookRegistry,
    hooks: Sequence[str],
    check: Callable[..., Any],
    options: Optional[DriverOptions],
    units: Callable[["InvocationContext", Tuple[Any, ...]], Iterable[Tuple[Optional[str], Tuple[Any, ...]]]],
) -> None:
    opts = options or DriverOptions()
    owner = plugin_identity(check)
    section = opts.section or plugin_section(owner)

    def driver(ctx: "InvocationContext", *args: Any) -> CheckResult:
        if im_admin(ctx):
            return CheckResult.success()

        if opts.config is not None:
            opts.config(ctx)

        failures = 0
        for ref, unit_args in units(ctx, args):
            if not is_reference_enabled(ctx, section, ref):
                continue
            failures += count_failures(check(ctx, *unit_args))

        if opts.destroy is not None:
            opts.destroy(ctx)

        if failures:
            return CheckResult.faulted(f"{failures} failure(s)", failures=failures)
        return CheckResult.success()

    driver.__name__ = getattr(check, "__name__", "driver")
    for hook in hooks:
        registry.register(hook, driver, owner=owner)


def _long_branch(name: str) -> str:
    return name if name.startswith("refs/") else f"refs/heads/{name}"


def register_on_affected_refs(
    registry: HookRegistry, check: Callable[..., Any], options: Optional[DriverOptions] = None
) -> None:
    def units(ctx: "InvocationContext", args: Tuple[Any, ...]):
        return [(ref, (ref,)) for ref in ctx.get_affected_refs()]

    _register(registry, AFFECTED_REFS_HOOKS, check, options, units)


def register_on_commit(
    registry: HookRegistry, check: Callable[..., Any], options: Optional[DriverOptions] = None
) -> None:
    def units(ctx: "InvocationContext", args: Tuple[Any, ...]):
        branch = ctx.resolver.get_current_branch()
        return [(branch, (branch,))]

    _register(registry, COMMIT_HOOKS, check, options, units)


def register_on_patchset(
    registry: HookRegistry, check: Callable[..., Any], options: Optional[DriverOptions] = None
) -> None:
    def units(ctx: "InvocationContext", args: Tuple[Any, ...]):
        gerrit_args = ctx.gerrit_args or {}
        branch = gerrit_args.get("--branch")
        return [(_long_branch(branch) if branch else None, (gerrit_args,))]

    _register(registry, PATCHSET_HOOKS, check, options, units)


def register_on_message_file(
    registry: HookRegistry, check: Callable[..., Any], options: Optional[DriverOptions] = None
) -> None:
    def units(ctx: "InvocationContext", args: Tuple[Any, ...]):
        return [(ctx.resolver.get_current_branch(), (args[0],))]

    _register(registry, MESSAGE_FILE_HOOKS, check, options, units)
