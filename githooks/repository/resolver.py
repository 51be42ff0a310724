# ==============================
# Commit Range Resolver
# ==============================
"""
CommitResolver: repository queries that depend on the hook being run.

Responsibilities:
- Memoize Commit lookups by id for the lifetime of the invocation context
- Expand an (old, new) pair into the commits it introduces
- List files by status against the index, a commit range, or a single commit
- Materialize blobs into the run's temporary directory

All memoization lives in InvocationContext.cache() sections so that a context
can be inspected (and reset) as a whole in tests.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from githooks.contracts.errors import GitCommandError
from githooks.contracts.git_schema import Commit, Sentinel, is_undefined

if TYPE_CHECKING:
    from githooks.orchestrator.context import InvocationContext

logger = logging.getLogger(__name__)

# Hooks run after the references were updated: the new tip is already among "--all".
POST_ACCEPTANCE_HOOKS = ("post-receive", "post-update")

_OBJECT_ID = re.compile(r"^[0-9a-f]{40}$")


class CommitResolver:
    def __init__(self, ctx: "InvocationContext") -> None:
        self.ctx = ctx

    @property
    def repo(self):
        return self.ctx.repo

    # ------------------------------
    # Commits
    # ------------------------------

    def get_commit(self, rev: str) -> Commit:
        commits: Dict[str, Commit] = self.ctx.cache("commits")
        if rev not in commits:
            found = self.repo.log("-1", rev)
            if not found:
                raise GitCommandError(["git", "log", "-1", rev], 128, f"unknown revision {rev}")
            commits[rev] = found[0]
            commits.setdefault(found[0].id, found[0])
        return commits[rev]

    def get_commits(
        self,
        old_commit: str,
        new_commit: str,
        options: Optional[Sequence[str]] = None,
        paths: Optional[Sequence[str]] = None,
    ) -> List[Commit]:
        """
        Commits reachable from new_commit but not from old_commit nor from any
        other existing reference, oldest first.

        Returns [] when new_commit is undefined (the reference is being deleted).
        """
        options = list(options or [])
        paths = list(paths or [])

        if is_undefined(new_commit):
            return []

        ranges: Dict[str, List[Commit]] = self.ctx.cache("ranges")
        key = f"{old_commit}:{new_commit}:{' '.join(options)}:{' '.join(paths)}"
        if key in ranges:
            return ranges[key]

        excludes = [line for line in self.repo.run("rev-parse", "--not", "--all").splitlines() if line]

        if self.ctx.hook_name in POST_ACCEPTANCE_HOOKS:
            pointing = self.repo.run(
                "for-each-ref", "--format=%(refname)", "--count=2", f"--points-at={new_commit}"
            ).splitlines()
            if len(pointing) == 1:
                excludes = [e for e in excludes if e != f"^{new_commit}"]

        if not is_undefined(old_commit):
            excludes.append(f"^{old_commit}")

        args = [*options, "--reverse", new_commit, *excludes]
        if paths:
            args += ["--", *paths]
        commits = self.repo.log(*args)

        memo: Dict[str, Commit] = self.ctx.cache("commits")
        for commit in commits:
            memo.setdefault(commit.id, commit)

        logger.debug("range %s..%s has %d commit(s)", old_commit[:10], new_commit[:10], len(commits))
        ranges[key] = commits
        return commits

    def get_head_or_empty_tree(self) -> str:
        code, head = self.repo.run_status("rev-parse", "--verify", "--quiet", "HEAD")
        if code == 0 and head:
            return head
        return Sentinel.EMPTY_TREE.value

    def get_current_branch(self) -> Optional[str]:
        """Full name of the checked out branch, or None when HEAD is detached."""
        code, branch = self.repo.run_status("symbolic-ref", "--quiet", "HEAD")
        return branch if code == 0 and branch else None

    # ------------------------------
    # File filters
    # ------------------------------

    def filter_files_in_index(self, diff_filter: str) -> List[str]:
        """Staged files whose status is in diff_filter (e.g. "AM")."""
        output = self.repo.run(
            "diff-index",
            "--name-only",
            "--ignore-submodules",
            "--no-commit-id",
            "--cached",
            "-r",
            "-z",
            f"--diff-filter={diff_filter}",
            self.get_head_or_empty_tree(),
        )
        return _split_z(output)

    def filter_files_in_range(self, diff_filter: str, from_commit: str, to_commit: str) -> List[str]:
        if is_undefined(to_commit):
            return []

        if is_undefined(from_commit):
            commits = self.get_commits(from_commit, to_commit)
            if not commits or not commits[0].parents:
                return []
            from_commit = commits[0].parents[0]

        output = self.repo.run(
            "diff-tree",
            "--name-only",
            "--ignore-submodules",
            "--no-commit-id",
            "-r",
            "-z",
            f"--diff-filter={diff_filter}",
            from_commit,
            to_commit,
        )
        return _split_z(output)

    def filter_files_in_commit(self, diff_filter: str, commit: str) -> List[str]:
        """
        Files with status in diff_filter in commit.

        For merges a path is kept only when it differs from every parent; a path
        equal to one of the parents was already vetted on that line of history.
        """
        output = self.repo.run(
            "diff-tree",
            "--name-only",
            "--ignore-submodules",
            "-m",
            "-r",
            "-z",
            f"--diff-filter={diff_filter}",
            commit,
        )

        parents = 0
        counts: Dict[str, int] = {}
        for item in re.split(r"[\0\n]", output):
            if not item:
                continue
            if _OBJECT_ID.match(item):
                parents += 1
            else:
                counts[item] = counts.get(item, 0) + 1

        return [name for name, count in counts.items() if count == parents]

    # ------------------------------
    # Blobs
    # ------------------------------

    def blob(self, rev: str, path: str) -> Path:
        """Write the content of path at rev to a temporary file and return its path."""
        blobs: Dict[str, Path] = self.ctx.cache("blobs")
        key = f"{rev}:{path}"
        if key not in blobs:
            target = self.ctx.tmpdir() / rev.replace(":", "") / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(self.repo.cat_file(f"{rev}:{path}"))
            blobs[key] = target
        return blobs[key]

    def file_size(self, rev: str, path: str) -> int:
        return int(self.repo.run("cat-file", "-s", f"{rev}:{path}"))


def _split_z(output: str) -> List[str]:
    return [item for item in output.split("\0") if item]
