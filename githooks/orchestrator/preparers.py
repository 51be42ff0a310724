# ==============================
# Hook Argument Preparers
# ==============================
"""
Normalize each hook point's raw invocation before any check runs.

- update: "ref old new" positional arguments
- pre-receive / post-receive: "old new ref" records on stdin
- pre-push / post-rewrite: stdin records kept only for replay to external hooks
- Gerrit hooks: "--option value" pairs collapsed into one dict argument
  - ref-update / commit-received: the pushed ref (--refname, --oldrev, --newrev)
  - submit: the target branch moving from its current tip to --commit
  - patchset-created / draft-published: vote on the patchset after dispatch,
    or skip the run for draft changes

A preparer returns the argument list the hook entries will receive.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, TextIO

from githooks.contracts.errors import ConfigError, SkipHook
from githooks.contracts.git_schema import Sentinel
from githooks.gerrit.client import GerritClient
from githooks.gerrit.voting import vote_on_patchset

if TYPE_CHECKING:
    from githooks.orchestrator.context import InvocationContext

logger = logging.getLogger(__name__)

Preparer = Callable[["InvocationContext", List[Any], Optional[TextIO]], List[Any]]

GERRIT_USER_OPTIONS = ("--uploader", "--author", "--submitter", "--abandoner", "--restorer", "--reviewer")
_GERRIT_USER = re.compile(r"([^(]+?)\s+\(([^)]+)\)")


# ==============================
# Standard input
# ==============================


def _read_input(ctx: "InvocationContext", stdin: Optional[TextIO]) -> None:
    if stdin is None:
        return
    for line in stdin.read().splitlines():
        if not line.strip():
            continue
        ctx.input_lines.append(line)
        ctx.input_records.append(line.split())


def prepare_input_data(ctx: "InvocationContext", args: List[Any], stdin: Optional[TextIO]) -> List[Any]:
    _read_input(ctx, stdin)
    return args


def prepare_receive(ctx: "InvocationContext", args: List[Any], stdin: Optional[TextIO]) -> List[Any]:
    _read_input(ctx, stdin)
    for record in ctx.input_records:
        if len(record) != 3:
            raise ValueError(f"unexpected receive input line: {' '.join(record)}")
        old_commit, new_commit, ref = record
        ctx.set_affected_ref(ref, old_commit, new_commit)
    return args


def prepare_update(ctx: "InvocationContext", args: List[Any], stdin: Optional[TextIO]) -> List[Any]:
    if len(args) != 3:
        raise ValueError(f"update hook expects 3 arguments, got {len(args)}")
    ref, old_commit, new_commit = args
    ctx.set_affected_ref(ref, old_commit, new_commit)
    return args


# ==============================
# Gerrit
# ==============================


def long_ref_name(name: str) -> str:
    return name if name.startswith("refs/") else f"refs/heads/{name}"


def parse_gerrit_args(args: List[Any]) -> Dict[str, str]:
    if len(args) % 2:
        raise ValueError(f"Gerrit hooks expect option/value pairs, got {len(args)} arguments")
    return {str(args[i]): str(args[i + 1]) for i in range(0, len(args), 2)}


def require_gerrit_options(opts: Dict[str, str], hook_name: str, *names: str) -> None:
    for name in names:
        if name not in opts:
            raise ConfigError(f"missing {name} argument to Gerrit's {hook_name} hook")


def prepare_gerrit_args(ctx: "InvocationContext", args: List[Any], stdin: Optional[TextIO]) -> List[Any]:
    opts = parse_gerrit_args(args)

    user = next((opts[o] for o in GERRIT_USER_OPTIONS if opts.get(o)), None)
    if user:
        match = _GERRIT_USER.search(user)
        if match:
            ctx.env["GERRIT_USER_NAME"] = match.group(1).strip()
            ctx.env["GERRIT_USER_EMAIL"] = match.group(2)

    cfg = ctx.settings.gerrit
    for option in ("url", "username", "password"):
        if not getattr(cfg, option):
            raise ConfigError(f"Missing githooks.gerrit.{option} configuration variable")

    ctx.gerrit_args = opts
    ctx.gerrit_client = GerritClient(cfg.url, cfg.username, cfg.password)
    return [opts]


def prepare_gerrit_ref_update(ctx: "InvocationContext", args: List[Any], stdin: Optional[TextIO]) -> List[Any]:
    args = prepare_gerrit_args(ctx, args, stdin)
    opts = args[0]
    require_gerrit_options(opts, ctx.hook_name, "--refname", "--oldrev", "--newrev")
    ctx.set_affected_ref(long_ref_name(opts["--refname"]), opts["--oldrev"], opts["--newrev"])
    return args


def prepare_gerrit_submit(ctx: "InvocationContext", args: List[Any], stdin: Optional[TextIO]) -> List[Any]:
    args = prepare_gerrit_args(ctx, args, stdin)
    opts = args[0]
    require_gerrit_options(opts, ctx.hook_name, "--branch", "--commit")
    branch = long_ref_name(opts["--branch"])
    code, tip = ctx.repo.run_status("rev-parse", "--verify", "--quiet", branch)
    old_commit = tip if code == 0 and tip else Sentinel.UNDEFINED.value
    ctx.set_affected_ref(branch, old_commit, opts["--commit"])
    return args


def prepare_gerrit_patchset(ctx: "InvocationContext", args: List[Any], stdin: Optional[TextIO]) -> List[Any]:
    args = prepare_gerrit_args(ctx, args, stdin)
    if args[0].get("--is-draft") == "true":
        # Draft changes are visible only to their owners and cannot be voted on.
        raise SkipHook("draft change")
    if ctx.settings.gerrit.enabled:
        ctx.post_hook(vote_on_patchset)
    return args


PREPARERS: Dict[str, Preparer] = {
    "update": prepare_update,
    "pre-push": prepare_input_data,
    "post-rewrite": prepare_input_data,
    "pre-receive": prepare_receive,
    "post-receive": prepare_receive,
    "ref-update": prepare_gerrit_ref_update,
    "commit-received": prepare_gerrit_ref_update,
    "submit": prepare_gerrit_submit,
    "patchset-created": prepare_gerrit_patchset,
    "draft-published": prepare_gerrit_patchset,
}


def prepare_hook(ctx: "InvocationContext", args: List[Any], stdin: Optional[TextIO] = None) -> List[Any]:
    preparer = PREPARERS.get(ctx.hook_name)
    if preparer is None:
        return list(args)
    logger.debug("preparing arguments", extra={"hook": ctx.hook_name})
    return preparer(ctx, list(args), stdin)
