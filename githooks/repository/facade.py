# ==============================
# Repository Command Facade
# ==============================
"""
Thin wrapper around the git command-line tool.

Rules:
- Every repository query goes through GitRepository.run/run_status.
- No caching here (the invocation context owns caches).
- Output is decoded as UTF-8; blob content stays bytes.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from githooks.contracts.errors import EnvironmentFailure, GitCommandError
from githooks.contracts.git_schema import Commit, Person

logger = logging.getLogger(__name__)

_FIELD = "\x1f"
_RECORD = "\x1e"
LOG_FORMAT = _FIELD.join(["%H", "%T", "%P", "%an", "%ae", "%aI", "%cn", "%ce", "%cI", "%B"]) + _RECORD


class GitRepository:
    def __init__(
        self,
        *,
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Dict[str, str]] = None,
        git: str = "git",
    ) -> None:
        self.cwd = str(cwd) if cwd is not None else None
        self.env = dict(env) if env is not None else None
        self.git = git
        self._git_dir: Optional[str] = None

    # ------------------------------
    # Raw commands
    # ------------------------------

    def _exec(self, args: Sequence[str]) -> subprocess.CompletedProcess:
        argv = [self.git, *args]
        logger.debug("git %s", " ".join(args))
        try:
            return subprocess.run(argv, cwd=self.cwd, env=self.env, capture_output=True, check=False)
        except OSError as exc:
            raise EnvironmentFailure(f"cannot execute {self.git}: {exc}") from exc

    def run(self, *args: str) -> str:
        """Run a git command and return its stdout without trailing newlines."""
        proc = self._exec(args)
        if proc.returncode != 0:
            raise GitCommandError([self.git, *args], proc.returncode, proc.stderr.decode("utf-8", "replace"))
        return proc.stdout.decode("utf-8", "replace").rstrip("\n")

    def run_status(self, *args: str) -> Tuple[int, str]:
        """Run a git command whose failure is an expected answer; returns (exit code, stdout)."""
        proc = self._exec(args)
        return proc.returncode, proc.stdout.decode("utf-8", "replace").rstrip("\n")

    def cat_file(self, spec: str) -> bytes:
        proc = self._exec(["cat-file", "blob", spec])
        if proc.returncode != 0:
            raise GitCommandError([self.git, "cat-file", "blob", spec], proc.returncode, proc.stderr.decode("utf-8", "replace"))
        return proc.stdout

    # ------------------------------
    # Queries
    # ------------------------------

    def git_dir(self) -> str:
        if self._git_dir is None:
            path = Path(self.run("rev-parse", "--git-dir"))
            if not path.is_absolute() and self.cwd:
                path = Path(self.cwd) / path
            self._git_dir = str(path.resolve())
        return self._git_dir

    def log(self, *args: str) -> List[Commit]:
        """`git log` parsed into Commit models, in git's output order."""
        output = self.run("log", f"--format={LOG_FORMAT}", *args)
        return parse_log(output)


def parse_log(output: str) -> List[Commit]:
    commits: List[Commit] = []
    for chunk in output.split(_RECORD):
        chunk = chunk.lstrip("\n")
        if not chunk:
            continue
        fields = chunk.split(_FIELD, 9)
        if len(fields) != 10:
            raise ValueError(f"unexpected git log record: {chunk[:80]!r}")
        cid, tree, parents, an, ae, ad, cn, ce, cd, body = fields
        commits.append(
            Commit(
                id=cid,
                tree=tree,
                parents=parents.split(),
                author=Person(name=an, email=ae, date=ad),
                committer=Person(name=cn, email=ce, date=cd),
                message=body,
            )
        )
    return commits
