# ==============================
# CLI Entrypoint
# ==============================
"""
CLI for githooks.

Supported commands:
  githooks run pre-receive < input
  githooks run update refs/heads/master OLD NEW
  githooks run patchset-created --change I0123 --project proj ...
  githooks install pre-commit commit-msg
  githooks install --all --force

When the program itself is invoked under a hook point name (a symlink named
"pre-receive" pointing at the githooks script, say), the hook runs directly
with the process arguments.

Exit status: 0 on success or skipped hook, 1 when the hook rejects the
operation or a fatal error occurs (message on stderr).
"""

from __future__ import annotations

import argparse
import os
import stat
import sys
from pathlib import Path
from typing import List, Optional

from githooks.contracts.errors import (
    ConfigError,
    EnvironmentFailure,
    GerritError,
    GitCommandError,
    HookAbort,
    SkipHook,
)
from githooks.orchestrator.engine import run_hook
from githooks.orchestrator.registry import HOOK_POINTS
from githooks.repository.facade import GitRepository

HOOK_SCRIPT = """#!/bin/sh
exec githooks run {hook} "$@"
"""


def cmd_run(hook: str, hook_args: List[str]) -> int:
    try:
        return run_hook(hook, hook_args)
    except HookAbort as abort:
        sys.stderr.write(abort.report)
        sys.stderr.flush()
        return 1
    except SkipHook:
        return 0
    except (ConfigError, EnvironmentFailure, GerritError, GitCommandError, ValueError) as exc:
        print(f"githooks: {exc}", file=sys.stderr)
        return 1


def cmd_install(hooks: List[str], *, all_hooks: bool, force: bool, git_dir: Optional[str]) -> int:
    selected = list(HOOK_POINTS) if all_hooks else hooks
    unknown = [h for h in selected if h not in HOOK_POINTS]
    if unknown:
        raise SystemExit(f"Unknown hook point(s): {', '.join(unknown)}")
    if not selected:
        raise SystemExit("Name at least one hook point or use --all.")

    try:
        root = Path(git_dir) if git_dir else Path(GitRepository().git_dir())
    except (EnvironmentFailure, GitCommandError) as exc:
        raise SystemExit(f"Not inside a git repository: {exc}") from exc

    hooks_dir = root / "hooks"
    hooks_dir.mkdir(parents=True, exist_ok=True)

    for hook in selected:
        path = hooks_dir / hook
        if path.exists() and not force:
            print(f"skipping {path} (exists; use --force to overwrite)", file=sys.stderr)
            continue
        path.write_text(HOOK_SCRIPT.format(hook=hook), encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        print(f"installed {path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv if argv is None else argv)

    program = os.path.basename(argv[0]) if argv else "githooks"
    if program in HOOK_POINTS:
        return cmd_run(argv[0], argv[1:])

    ap = argparse.ArgumentParser(prog="githooks")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_run = sub.add_parser("run", help="Run a hook point")
    ap_run.add_argument("hook", choices=HOOK_POINTS)
    ap_run.add_argument("hook_args", nargs=argparse.REMAINDER)

    ap_install = sub.add_parser("install", help="Write hook scripts into a repository")
    ap_install.add_argument("hooks", nargs="*")
    ap_install.add_argument("--all", action="store_true", dest="all_hooks", help="Install every hook point")
    ap_install.add_argument("--force", action="store_true", help="Overwrite existing hook files")
    ap_install.add_argument("--git-dir", default=None, help="Repository git directory (default: current)")

    args = ap.parse_args(argv[1:])

    if args.cmd == "run":
        return cmd_run(args.hook, args.hook_args)
    if args.cmd == "install":
        return cmd_install(args.hooks, all_hooks=args.all_hooks, force=args.force, git_dir=args.git_dir)

    ap.error(f"Unknown command {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
