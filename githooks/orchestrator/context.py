# ==============================
# Invocation Context
# ==============================
"""
InvocationContext: the in-memory working set of one hook run.

Principles:
- One context per process run; discarded at exit, never persisted.
- State is populated lazily: configuration is listed once and memoized, the
  affected-ref table is set once by the hook-argument preparer, faults
  accumulate until the final report.
- Faults never abort on their own. fail_on_faults() is called once, at the very
  end of dispatch, to raise (or merely print) the aggregate report.

Intended usage:
- engine.run_hook constructs the context and drives the run
- plugins receive it as the first argument of every hook callback
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

import inspect
import logging
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TextIO, Union

from rich.color import ColorSystem
from rich.errors import StyleSyntaxError
from rich.style import Style

from githooks.config.gitconfig import GitConfig
from githooks.config.loader import build_settings, load_git_config, read_environment
from githooks.config.schema import ColorMode, Settings
from githooks.contracts.errors import ConfigError, EnvironmentFailure, HookAbort
from githooks.contracts.fault_schema import Colorizer, Fault
from githooks.contracts.git_schema import AffectedRef, Commit
from githooks.repository.facade import GitRepository
from githooks.repository.resolver import CommitResolver

logger = logging.getLogger(__name__)

PostHook = Callable[[str, "InvocationContext", List[Any]], None]
# PostHook signature:
#   post_hook(hook_name: str, ctx: InvocationContext, args: list) -> None

USER_ENV_FALLBACK = ("GERRIT_USER_EMAIL", "BB_USER_NAME", "GL_USERNAME", "GL_USER", "USER")
COMMIT_HOOKS = ("pre-commit", "commit-msg")

AMEND_ADVICE = """
ATTENTION: To fix the problems in this commit, please consider amending it:

        git commit --amend
"""


# ==============================
# Context
# ==============================
class InvocationContext:
    def __init__(
        self,
        *,
        repo: GitRepository,
        hook_name: str,
        arguments: Optional[Sequence[Any]] = None,
        env: Optional[Dict[str, str]] = None,
        config: Optional[GitConfig] = None,
        stderr: Optional[TextIO] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.repo = repo
        self.hook_name = hook_name
        self.arguments: List[Any] = list(arguments or [])
        self.env: Dict[str, str] = read_environment(env)
        self.stderr = stderr or sys.stderr

        self._config = config
        self._settings: Optional[Settings] = None
        self._caches: Dict[str, Dict[Any, Any]] = {}
        self._affected_refs: Optional[Dict[str, AffectedRef]] = None
        self._faults: List[Fault] = []
        self._post_hooks: List[PostHook] = []
        self._user: Optional[str] = None
        self._user_resolved = False
        self._repository_name: Optional[str] = None
        self._tmpdir: Optional[tempfile.TemporaryDirectory] = None
        self._colorizer: Optional[Colorizer] = None
        self._colorizer_ready = False

        self._clock = clock
        self.started_at = clock()

        # Raw stdin lines (replayed verbatim to external hooks) and their split fields.
        self.input_lines: List[str] = []
        self.input_records: List[List[str]] = []

        # Gerrit hooks: parsed --option/value pairs and the REST client.
        self.gerrit_args: Optional[Dict[str, str]] = None
        self.gerrit_client: Any = None

        self.resolver = CommitResolver(self)

    # ------------------------------
    # Configuration
    # ------------------------------

    @property
    def config(self) -> GitConfig:
        if self._config is None:
            self._config = load_git_config(self.repo, self.env)
        return self._config

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = build_settings(self.config)
        return self._settings

    def get_config(self, section: str, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.config.get(section, key, default)

    def get_config_list(self, section: str, key: str) -> List[str]:
        return self.config.get_all(section, key)

    def get_config_bool(self, section: str, key: str, default: bool = False) -> bool:
        return self.config.get_bool(section, key, default)

    def get_config_int(self, section: str, key: str, default: Optional[int] = None) -> Optional[int]:
        return self.config.get_int(section, key, default)

    def cache(self, section: str) -> Dict[Any, Any]:
        """Per-run key/value store. Plugins should use their own name as section."""
        return self._caches.setdefault(section, {})

    # ------------------------------
    # Affected references
    # ------------------------------

    def set_affected_ref(self, ref: str, old_commit: str, new_commit: str) -> None:
        if self._affected_refs is None:
            self._affected_refs = {}
        self._affected_refs[ref] = AffectedRef(name=ref, old_commit=old_commit, new_commit=new_commit)

    def _affected(self) -> Dict[str, AffectedRef]:
        if self._affected_refs is None:
            raise RuntimeError(f"no affected refs set for hook {self.hook_name}")
        return self._affected_refs

    def has_affected_refs(self) -> bool:
        return bool(self._affected_refs)

    def get_affected_refs(self) -> List[str]:
        return list(self._affected())

    def get_affected_ref(self, ref: str) -> AffectedRef:
        affected = self._affected()
        if ref not in affected:
            raise KeyError(f"no such affected ref: {ref}")
        return affected[ref]

    def get_affected_ref_range(self, ref: str) -> tuple:
        return self.get_affected_ref(ref).range()

    def get_affected_ref_commits(
        self,
        ref: str,
        options: Optional[Sequence[str]] = None,
        paths: Optional[Sequence[str]] = None,
    ) -> List[Commit]:
        old_commit, new_commit = self.get_affected_ref_range(ref)
        return self.resolver.get_commits(old_commit, new_commit, options, paths)

    # ------------------------------
    # Identity
    # ------------------------------

    def authenticated_user(self) -> Optional[str]:
        if not self._user_resolved:
            userenv = self.settings.userenv
            if userenv:
                if userenv.startswith("eval:"):
                    raise ConfigError(f"githooks.userenv: the eval: form is not supported ({userenv})")
                if userenv not in self.env:
                    raise EnvironmentFailure(f"option userenv environment variable ({userenv}) is not defined")
                self._user = self.env[userenv]
            else:
                self._user = next((self.env[v] for v in USER_ENV_FALLBACK if self.env.get(v)), None)
            self._user_resolved = True
        return self._user

    def repository_name(self) -> str:
        if self._repository_name is None:
            if self.gerrit_args and self.gerrit_args.get("--project"):
                self._repository_name = self.gerrit_args["--project"]
            elif "STASH_REPO_NAME" in self.env:
                self._repository_name = f"{self.env.get('STASH_PROJECT_KEY', '')}/{self.env['STASH_REPO_NAME']}"
            else:
                git_dir = Path(self.repo.git_dir())
                name = git_dir.name
                if name == ".git":
                    name = git_dir.parent.name
                self._repository_name = name
        return self._repository_name

    # ------------------------------
    # Faults
    # ------------------------------

    def fault(
        self,
        message: str,
        *,
        prefix: Optional[str] = None,
        commit: Union[Commit, str, None] = None,
        ref: Optional[str] = None,
        option: Optional[str] = None,
        details: Optional[str] = None,
    ) -> Fault:
        """
        Record a policy violation. Never raises.

        prefix defaults to the calling module's PLUGIN_NAME (or its module name).
        """
        if prefix is None:
            prefix = _caller_identity(inspect.currentframe())

        context: List[str] = []
        if commit is not None:
            cid = commit.id if isinstance(commit, Commit) else str(commit)
            context.append(f"commit {cid[:10]}")
        if ref:
            context.append(f"on ref {ref}")
        if option:
            section = "githooks." + prefix.rsplit(".", 1)[-1].lower()
            context.append(f"violates option '{section}.{option}'")

        fault = Fault(prefix=prefix, context=context, message=message, details=details)
        self._faults.append(fault)
        logger.debug("fault recorded by %s", prefix, extra={"hook": self.hook_name, "ref": ref})
        return fault

    @property
    def faults(self) -> tuple:
        return tuple(self._faults)

    def has_faults(self) -> bool:
        return bool(self._faults)

    def get_errors(self) -> str:
        """The aggregate fault report, or an empty string when no fault was recorded."""
        if not self._faults:
            return ""

        cfg = self.settings.errors
        colorize = self._get_colorizer()
        chunks: List[str] = []

        if cfg.header:
            chunks.append(self._shell_output(cfg.header) + "\n")

        chunks.append("\n".join(f.render(colorize) for f in self._faults))

        if self.hook_name in COMMIT_HOOKS and not self.settings.abort_commit:
            chunks.append(AMEND_ADVICE)

        if cfg.help_on_error:
            chunks.append("\n" + cfg.help_on_error.rstrip("\n") + "\n")

        if cfg.footer:
            chunks.append("\n" + self._shell_output(cfg.footer) + "\n")

        report = "".join(chunks)

        if cfg.prefix:
            report = "".join(cfg.prefix + line for line in report.splitlines(keepends=True))

        if cfg.length_limit is not None and len(report) > cfg.length_limit:
            report = report[: cfg.length_limit] + "\n...\n<truncated>\n"

        return report

    def fail_on_faults(self, *, warn_only: bool = False) -> None:
        if not self._faults:
            return
        report = self.get_errors()
        if warn_only:
            logger.warning("%d fault(s) reported as warning", len(self._faults), extra={"hook": self.hook_name})
            self.stderr.write(report)
            self.stderr.flush()
            return
        raise HookAbort(report)

    # ------------------------------
    # Post hooks
    # ------------------------------

    def post_hook(self, callback: PostHook) -> None:
        self._post_hooks.append(callback)

    @property
    def post_hooks(self) -> List[PostHook]:
        return list(self._post_hooks)

    # ------------------------------
    # Resources
    # ------------------------------

    def tmpdir(self) -> Path:
        """Run-scoped temporary directory, removed by close()."""
        if self._tmpdir is None:
            try:
                self._tmpdir = tempfile.TemporaryDirectory(prefix="githooks.")
            except OSError as exc:
                raise EnvironmentFailure(f"cannot create temporary directory: {exc}") from exc
        return Path(self._tmpdir.name)

    def close(self) -> None:
        if self._tmpdir is not None:
            self._tmpdir.cleanup()
            self._tmpdir = None

    def __enter__(self) -> "InvocationContext":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def timed_out(self) -> bool:
        limit = self.settings.externals.timeout_seconds
        return bool(limit) and self.elapsed() > limit

    # ------------------------------
    # Helpers
    # ------------------------------

    def _shell_output(self, command: str) -> str:
        try:
            proc = subprocess.run(command, shell=True, capture_output=True, text=True, env=self.env, check=False)
        except OSError as exc:
            raise EnvironmentFailure(f"cannot run report command '{command}': {exc}") from exc
        return proc.stdout.rstrip("\n")

    def _get_colorizer(self) -> Optional[Colorizer]:
        if not self._colorizer_ready:
            self._colorizer = self._build_colorizer()
            self._colorizer_ready = True
        return self._colorizer

    def _build_colorizer(self) -> Optional[Colorizer]:
        color = self.settings.errors.color
        if color.mode == ColorMode.NEVER:
            return None
        if color.mode == ColorMode.AUTO:
            isatty = getattr(self.stderr, "isatty", None)
            if isatty is None or not isatty():
                return None
        try:
            styles = {
                "context": Style.parse(color.context),
                "message": Style.parse(color.message),
                "details": Style.parse(color.details),
            }
        except StyleSyntaxError as exc:
            raise ConfigError(f"invalid githooks.color style: {exc}") from exc

        def colorize(kind: str, text: str) -> str:
            return styles[kind].render(text, color_system=ColorSystem.STANDARD)

        return colorize


def _caller_identity(frame: Any) -> str:
    caller = frame.f_back if frame is not None else None
    if caller is None:
        return "githooks"
    g = caller.f_globals
    return str(g.get("PLUGIN_NAME") or g.get("__name__") or "githooks")
