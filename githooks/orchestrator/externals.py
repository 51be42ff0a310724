# ==============================
# External Hooks
# ==============================
"""
Run legacy hook programs after the in-process checks.

Discovery:
- <git-dir>/hooks.d/<hook> first, then <dir>/<hook> for each githooks.hooks dir
- every non-directory executable file, in name order
- skipped entirely on Windows or when githooks.externals is off

Invocation:
- the program runs with argv[0] set to the hook name and the original
  arguments after it; a dict argument (Gerrit hooks) is flattened to
  key/value pairs
- receive-style hooks get the captured stdin lines replayed verbatim
- stdout and stderr go to a temporary file, forwarded to stderr on success and
  attached to the fault otherwise

Every failing program records one fault and the remaining programs still run.
The githooks.timeout limit is checked before each program; once exceeded the
run fails immediately.
"""

from __future__ import annotations

import errno
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

if TYPE_CHECKING:
    from githooks.orchestrator.context import InvocationContext

logger = logging.getLogger(__name__)

REPLAY_HOOKS = ("pre-receive", "post-receive", "pre-push", "post-rewrite")
_EXEC_ERRNOS = (errno.ENOENT, errno.EACCES, errno.ENOEXEC, errno.EPERM)


def flatten_args(args: Sequence[Any]) -> List[str]:
    flat: List[str] = []
    for arg in args:
        if isinstance(arg, dict):
            for key, value in arg.items():
                flat.extend([str(key), str(value)])
        else:
            flat.append(str(arg))
    return flat


def hook_dirs(ctx: "InvocationContext") -> List[Path]:
    candidates = [Path(ctx.repo.git_dir()) / "hooks.d"]
    candidates.extend(Path(d) for d in ctx.settings.externals.dirs)
    return [base / ctx.hook_name for base in candidates if (base / ctx.hook_name).is_dir()]


def find_external_hooks(ctx: "InvocationContext") -> List[Path]:
    found: List[Path] = []
    for directory in hook_dirs(ctx):
        for path in sorted(directory.iterdir()):
            if not path.is_dir() and os.access(path, os.X_OK):
                found.append(path)
    return found


def run_external_hook(ctx: "InvocationContext", path: Path, args: Sequence[Any]) -> bool:
    hook = ctx.hook_name
    prefix = f"githooks({path.name})"
    replay = hook in REPLAY_HOOKS
    argv = [hook, *flatten_args(args)]

    with tempfile.TemporaryFile() as capture:
        try:
            proc = subprocess.Popen(
                argv,
                executable=str(path),
                stdin=subprocess.PIPE if replay else None,
                stdout=capture,
                stderr=subprocess.STDOUT,
                env=ctx.env,
            )
        except OSError as exc:
            if exc.errno in _EXEC_ERRNOS:
                ctx.fault(f"failed to execute external hook: {exc}", prefix=prefix)
            else:
                ctx.fault(f"can't fork: {exc}", prefix=prefix)
            return False

        if replay:
            data = "\n".join(ctx.input_lines) + "\n"
            try:
                proc.stdin.write(data.encode("utf-8"))
            except BrokenPipeError:
                pass
            finally:
                proc.stdin.close()

        # wait4 keeps the raw status so the core dump flag is visible.
        _, status, _ = os.wait4(proc.pid, 0)
        proc.returncode = os.waitstatus_to_exitcode(status)

        capture.seek(0)
        output = capture.read().decode("utf-8", "replace")

    if os.WIFSIGNALED(status):
        dump = "with" if os.WCOREDUMP(status) else "without"
        ctx.fault(
            f"'{path}' died with signal {os.WTERMSIG(status)}, {dump} coredump",
            prefix=prefix,
            details=output or None,
        )
        return False

    code = os.WEXITSTATUS(status)
    if code != 0:
        ctx.fault(f"'{path}' exited abnormally with value {code}", prefix=prefix, details=output or None)
        return False

    if output:
        ctx.stderr.write(output if output.endswith("\n") else output + "\n")
        ctx.stderr.flush()
    return True


def invoke_external_hooks(ctx: "InvocationContext", args: Sequence[Any], *, platform: Optional[str] = None) -> int:
    """Run every external hook for ctx.hook_name; returns how many failed."""
    if (platform or os.name) == "nt" or not ctx.settings.externals.enabled:
        return 0

    failures = 0
    for path in find_external_hooks(ctx):
        if ctx.timed_out():
            ctx.fault(
                f"timeout after {ctx.settings.externals.timeout_seconds}s before running external hook '{path}'",
                prefix="githooks",
            )
            ctx.fail_on_faults()
        logger.debug("running external hook %s", path, extra={"hook": ctx.hook_name})
        if not run_external_hook(ctx, path, args):
            failures += 1
    return failures
