# ==============================
# Testing Fixtures
# ==============================
from __future__ import annotations

import io
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from githooks.config.gitconfig import GitConfig
from githooks.contracts.errors import GitCommandError
from githooks.contracts.git_schema import Commit, Person
from githooks.orchestrator.context import InvocationContext

Response = Union[str, Tuple[int, str]]


class FakeRepository:
    """Scripted stand-in for GitRepository that records every command."""

    def __init__(
        self,
        responses: Optional[Dict[Tuple[str, ...], Response]] = None,
        *,
        git_dir: Union[str, Path] = "/nonexistent/repo/.git",
        logs: Optional[Dict[Tuple[str, ...], List[Commit]]] = None,
        blobs: Optional[Dict[str, bytes]] = None,
    ) -> None:
        self.responses: Dict[Tuple[str, ...], Response] = dict(responses or {})
        self.logs: Dict[Tuple[str, ...], List[Commit]] = dict(logs or {})
        self.blobs: Dict[str, bytes] = dict(blobs or {})
        self.calls: List[Tuple[str, ...]] = []
        self.cwd: Optional[str] = None
        self._git_dir = str(git_dir)

    def run(self, *args: str) -> str:
        self.calls.append(args)
        value = self.responses.get(args)
        if value is None:
            raise GitCommandError(["git", *args], 128, "unscripted command")
        if isinstance(value, tuple):
            code, out = value
            if code != 0:
                raise GitCommandError(["git", *args], code, "")
            return out
        return value

    def run_status(self, *args: str) -> Tuple[int, str]:
        self.calls.append(args)
        value = self.responses.get(args)
        if value is None:
            return 1, ""
        if isinstance(value, tuple):
            return value
        return 0, value

    def log(self, *args: str) -> List[Commit]:
        self.calls.append(("log", *args))
        if args not in self.logs:
            raise GitCommandError(["git", "log", *args], 128, "unscripted log")
        return list(self.logs[args])

    def cat_file(self, spec: str) -> bytes:
        self.calls.append(("cat-file", "blob", spec))
        if spec not in self.blobs:
            raise GitCommandError(["git", "cat-file", "blob", spec], 128, "no such blob")
        return self.blobs[spec]

    def git_dir(self) -> str:
        return self._git_dir

    def count(self, *args: str) -> int:
        return sum(1 for c in self.calls if c == args)


def make_commit(cid: str, parents: Sequence[str] = (), message: str = "msg\n") -> Commit:
    person = Person(name="Alice", email="alice@example.com", date="2024-01-01T00:00:00+00:00")
    return Commit(
        id=cid,
        tree="t" * 40,
        parents=list(parents),
        author=person,
        committer=person,
        message=message,
    )


@pytest.fixture
def fake_repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def make_ctx() -> Callable[..., InvocationContext]:
    """Factory for contexts backed by an explicit config and a fake repository."""

    contexts: List[InvocationContext] = []

    def _make(
        hook: str = "pre-receive",
        config: Sequence[str] = (),
        *,
        repo: Any = None,
        env: Optional[Dict[str, str]] = None,
        arguments: Sequence[Any] = (),
        stderr: Any = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> InvocationContext:
        kwargs: Dict[str, Any] = {}
        if clock is not None:
            kwargs["clock"] = clock
        ctx = InvocationContext(
            repo=repo if repo is not None else FakeRepository(),
            hook_name=hook,
            arguments=arguments,
            env=env if env is not None else {"HOME": "/tmp", "USER": "alice"},
            config=GitConfig.from_lines(config),
            stderr=stderr if stderr is not None else io.StringIO(),
            **kwargs,
        )
        contexts.append(ctx)
        return ctx

    yield _make

    for ctx in contexts:
        ctx.close()


# ==============================
# Real git repositories
# ==============================

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(cwd: Path, *args: str, env: Optional[Dict[str, str]] = None) -> str:
    proc = subprocess.run(["git", *args], cwd=str(cwd), env=env, capture_output=True, text=True, check=True)
    return proc.stdout.strip()


@pytest.fixture
def git_env(tmp_path: Path) -> Dict[str, str]:
    home = tmp_path / "home"
    home.mkdir()
    return {
        "HOME": str(home),
        "PATH": os.environ.get("PATH", ""),
        "GIT_AUTHOR_NAME": "Alice",
        "GIT_AUTHOR_EMAIL": "alice@example.com",
        "GIT_COMMITTER_NAME": "Alice",
        "GIT_COMMITTER_EMAIL": "alice@example.com",
        "GIT_CONFIG_NOSYSTEM": "1",
    }


@pytest.fixture
def work_repo(tmp_path: Path, git_env: Dict[str, str]) -> Path:
    """A non-bare repository with one commit on master."""
    repo = tmp_path / "work"
    repo.mkdir()
    git(repo, "init", "-q", env=git_env)
    git(repo, "symbolic-ref", "HEAD", "refs/heads/master", env=git_env)
    (repo / "README").write_text("hello\n", encoding="utf-8")
    git(repo, "add", "README", env=git_env)
    git(repo, "commit", "-q", "-m", "initial", env=git_env)
    return repo
