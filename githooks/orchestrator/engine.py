# ==============================
# Hook Engine
# ==============================
"""
run_hook: drive one VCS hook invocation end-to-end.

Steps:
1. hook point = basename of the invoked name
2. create the InvocationContext
3. prepare the hook arguments (affected refs, stdin records, Gerrit options)
4. resolve the authenticated user (after 3, which may expose the Gerrit user)
5. load the enabled plugins into the registry
6. run every entry registered for the hook point, each in its own failure boundary
7. run external hooks
8. run post hooks registered during the run
9. fail on faults (warn only for pre-commit/commit-msg when abort-commit is off)

Entry failures never stop the dispatch: a raised exception or a faulted result
is recorded as a fault and the next entry runs. Configuration, environment and
Gerrit errors are fatal and propagate to the caller.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Dict, List, Optional, Sequence, TextIO

from githooks.config.gitconfig import GitConfig
from githooks.config.loader import read_environment
from githooks.contracts.errors import ConfigError, EnvironmentFailure, GerritError, HookAbort, SkipHook
from githooks.contracts.fault_schema import CheckResult
from githooks.logging.logger import bootstrap_logger
from githooks.orchestrator.context import COMMIT_HOOKS, InvocationContext
from githooks.orchestrator.drivers import plugin_section
from githooks.orchestrator.externals import invoke_external_hooks
from githooks.orchestrator.preparers import prepare_hook
from githooks.orchestrator.registry import HookEntry, HookRegistry
from githooks.plugins.loader import load_plugins
from githooks.repository.facade import GitRepository

logger = logging.getLogger(__name__)

FATAL_ERRORS = (ConfigError, EnvironmentFailure, GerritError, HookAbort, SkipHook)


def run_entry(ctx: InvocationContext, entry: HookEntry, args: Sequence[Any]) -> CheckResult:
    before = len(ctx.faults)
    prefix = f"githooks({entry.owner})"
    help_text = ctx.get_config(plugin_section(entry.owner), "help-on-error")

    try:
        result = CheckResult.coerce(entry.callback(ctx, *args))
    except FATAL_ERRORS:
        raise
    except Exception as exc:
        logger.debug("entry %s raised", entry.owner, exc_info=True, extra={"hook": ctx.hook_name})
        message = str(exc).strip() or exc.__class__.__name__
        ctx.fault(message, prefix=prefix, details=help_text)
        return CheckResult.faulted(message)

    if not result.ok and len(ctx.faults) == before:
        ctx.fault(result.reason or "check failed", prefix=prefix, details=help_text)
    return result


def dispatch(ctx: InvocationContext, registry: HookRegistry, args: List[Any], stdin: Optional[TextIO]) -> None:
    args = prepare_hook(ctx, args, stdin)
    ctx.arguments = args

    ctx.authenticated_user()

    load_plugins(ctx, registry)

    for entry in registry.entries(ctx.hook_name):
        logger.debug("running %s", entry.owner, extra={"hook": ctx.hook_name, "plugin": entry.owner})
        run_entry(ctx, entry, args)

    invoke_external_hooks(ctx, args)

    for post_hook in ctx.post_hooks:
        logger.debug("running post hook %s", getattr(post_hook, "__name__", post_hook), extra={"hook": ctx.hook_name})
        post_hook(ctx.hook_name, ctx, args)

    warn_only = ctx.hook_name in COMMIT_HOOKS and not ctx.settings.abort_commit
    ctx.fail_on_faults(warn_only=warn_only)


def run_hook(
    hook_name: str,
    args: Sequence[Any],
    *,
    registry: Optional[HookRegistry] = None,
    repo: Optional[GitRepository] = None,
    stdin: Optional[TextIO] = None,
    env: Optional[Dict[str, str]] = None,
    stderr: Optional[TextIO] = None,
    config: Optional[GitConfig] = None,
) -> int:
    """
    Run hook_name with args. Returns 0 on success (or when the hook is skipped).

    Raises HookAbort with the fault report when the operation must be aborted.
    """
    hook = os.path.basename(hook_name)
    env = read_environment(env)
    repo = repo or GitRepository(env=env)
    registry = registry or HookRegistry()

    with InvocationContext(
        repo=repo,
        hook_name=hook,
        arguments=args,
        env=env,
        config=config,
        stderr=stderr,
    ) as ctx:
        bootstrap_logger(ctx.settings, stream=ctx.stderr)
        try:
            dispatch(ctx, registry, list(args), stdin if stdin is not None else sys.stdin)
        except SkipHook as skip:
            logger.info("hook skipped: %s", skip.reason, extra={"hook": hook})
    return 0
