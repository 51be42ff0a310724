# ==============================
# Error Taxonomy
# ==============================
"""
Exceptions shared by every githooks module.

Taxonomy:
- ConfigError: malformed configuration (ACL syntax, groups, booleans, vote labels).
  Always fatal, never aggregated as a fault.
- EnvironmentFailure: the execution environment is broken (HOME missing, user unresolvable,
  temp file creation failed). Always fatal.
- GitCommandError: a git plumbing command failed where success was required.
- GerritError: transport or HTTP failure talking to the review server. Fatal.
- HookAbort: raised once at the end of dispatch with the formatted fault report.
- SkipHook: terminal early exit that is not an error (draft patchsets).

Policy violations are not exceptions: they are recorded as faults on the context.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class ConfigError(ValueError):
    """Invalid or inconsistent configuration."""


class EnvironmentFailure(RuntimeError):
    """The process environment cannot support a hook run."""


class GitCommandError(RuntimeError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv: List[str] = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"git command failed with exit code {returncode} ({' '.join(self.argv)}){detail}")


class GerritError(RuntimeError):
    """Failure casting a vote or submitting a change."""


class HookAbort(RuntimeError):
    """Raised with the aggregate fault report to abort the VCS operation."""

    def __init__(self, report: str) -> None:
        self.report = report
        super().__init__(report)


class SkipHook(Exception):
    """Stop the run immediately and report success."""

    def __init__(self, reason: Optional[str] = None) -> None:
        self.reason = reason or "skipped"
        super().__init__(self.reason)
