from __future__ import annotations

import io
import stat

import pytest

from conftest import git, requires_git

from githooks.contracts.errors import HookAbort
from githooks.contracts.git_schema import Sentinel
from githooks.orchestrator.context import InvocationContext
from githooks.orchestrator.engine import run_hook
from githooks.repository.facade import GitRepository

pytestmark = requires_git

ZERO = Sentinel.UNDEFINED.value


def _commit(repo, env, name: str, content: str, message: str) -> str:
    (repo / name).write_text(content, encoding="utf-8")
    git(repo, "add", name, env=env)
    git(repo, "commit", "-q", "-m", message, env=env)
    return git(repo, "rev-parse", "HEAD", env=env)


def _run(repo, env, hook, args, stdin=""):
    return run_hook(
        hook,
        args,
        repo=GitRepository(cwd=repo, env=env),
        stdin=io.StringIO(stdin),
        env={**env, "USER": "alice"},
        stderr=io.StringIO(),
    )


def test_checkacls_allows_update_and_rejects_delete(work_repo, git_env) -> None:
    git(work_repo, "config", "githooks.plugin", "CheckAcls", env=git_env)
    git(work_repo, "config", "--add", "githooks.checkacls.acl", "alice CU ^refs/heads/", env=git_env)

    old = git(work_repo, "rev-parse", "HEAD", env=git_env)
    new = _commit(work_repo, git_env, "a.txt", "a\n", "add a")

    assert _run(work_repo, git_env, "update", ["refs/heads/master", old, new]) == 0

    with pytest.raises(HookAbort) as exc:
        _run(work_repo, git_env, "update", ["refs/heads/master", new, ZERO])
    assert "you (alice) cannot delete ref refs/heads/master" in exc.value.report


def test_reference_acl_scenario_for_admin(work_repo, git_env) -> None:
    env = {**git_env, "USER": "admin"}
    git(work_repo, "config", "githooks.plugin", "CheckAcls", env=git_env)
    git(work_repo, "config", "githooks.checkacls.acl", "admin U refs/heads/master", env=git_env)

    old = git(work_repo, "rev-parse", "HEAD", env=git_env)
    new = _commit(work_repo, git_env, "a.txt", "a\n", "add a")
    git(work_repo, "tag", "-a", "-m", "release", "v1.0", env=git_env)
    tag = git(work_repo, "rev-parse", "v1.0", env=git_env)

    def push(ref, old_commit, new_commit):
        return run_hook(
            "update",
            [ref, old_commit, new_commit],
            repo=GitRepository(cwd=work_repo, env=git_env),
            stdin=io.StringIO(""),
            env=env,
            stderr=io.StringIO(),
        )

    assert push("refs/heads/master", old, new) == 0
    with pytest.raises(HookAbort) as exc:
        push("refs/heads/branch", ZERO, new)
    assert "you (admin) cannot create ref refs/heads/branch" in exc.value.report
    with pytest.raises(HookAbort):
        push("refs/tags/v1.0", ZERO, tag)

    git(work_repo, "config", "githooks.checkacls.acl", "admin CRUD ^refs/tags/", env=git_env)
    assert push("refs/tags/v1.0", ZERO, tag) == 0


def test_checkacls_detects_rewind(work_repo, git_env) -> None:
    git(work_repo, "config", "githooks.plugin", "CheckAcls", env=git_env)
    git(work_repo, "config", "--add", "githooks.checkacls.acl", "alice CU ^refs/heads/", env=git_env)

    base = git(work_repo, "rev-parse", "HEAD", env=git_env)
    first = _commit(work_repo, git_env, "a.txt", "a\n", "first")
    git(work_repo, "reset", "-q", "--hard", base, env=git_env)
    rewritten = _commit(work_repo, git_env, "b.txt", "b\n", "rewritten")

    with pytest.raises(HookAbort) as exc:
        _run(work_repo, git_env, "pre-receive", [], stdin=f"{first} {rewritten} refs/heads/master\n")
    assert "cannot rewind/rebase ref refs/heads/master" in exc.value.report


def test_merge_commit_lists_only_files_new_against_every_parent(work_repo, git_env) -> None:
    git(work_repo, "checkout", "-q", "-b", "side", env=git_env)
    _commit(work_repo, git_env, "side.txt", "side\n", "side change")
    git(work_repo, "checkout", "-q", "master", env=git_env)
    _commit(work_repo, git_env, "main.txt", "main\n", "main change")
    git(work_repo, "merge", "-q", "--no-ff", "--no-commit", "side", env=git_env)
    (work_repo / "merge.txt").write_text("merge\n", encoding="utf-8")
    git(work_repo, "add", "merge.txt", env=git_env)
    git(work_repo, "commit", "-q", "-m", "merge side", env=git_env)
    merge = git(work_repo, "rev-parse", "HEAD", env=git_env)

    with InvocationContext(repo=GitRepository(cwd=work_repo, env=git_env), hook_name="post-commit", env=git_env) as ctx:
        assert ctx.resolver.filter_files_in_commit("AM", merge) == ["merge.txt"]


def test_new_branch_range_excludes_existing_history(work_repo, git_env) -> None:
    git(work_repo, "checkout", "-q", "-b", "topic", env=git_env)
    one = _commit(work_repo, git_env, "t1.txt", "1\n", "topic one")
    two = _commit(work_repo, git_env, "t2.txt", "2\n", "topic two")
    git(work_repo, "checkout", "-q", "master", env=git_env)
    git(work_repo, "branch", "-q", "-D", "topic", env=git_env)

    with InvocationContext(repo=GitRepository(cwd=work_repo, env=git_env), hook_name="pre-receive", env=git_env) as ctx:
        ctx.set_affected_ref("refs/heads/topic", ZERO, two)
        commits = ctx.get_affected_ref_commits("refs/heads/topic")
        files = ctx.resolver.filter_files_in_range("A", ZERO, two)

    assert [c.id for c in commits] == [one, two]
    assert commits[0].message.startswith("topic one")
    assert sorted(files) == ["t1.txt", "t2.txt"]


def test_external_hook_gets_receive_input_replayed(work_repo, git_env, tmp_path) -> None:
    capture = tmp_path / "captured.txt"
    hooks_d = work_repo / ".git" / "hooks.d" / "pre-receive"
    hooks_d.mkdir(parents=True)
    script = hooks_d / "record"
    script.write_text(f'#!/bin/sh\ncat > "{capture}"\n', encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)

    head = git(work_repo, "rev-parse", "HEAD", env=git_env)
    line = f"{ZERO} {head} refs/heads/feature"

    assert _run(work_repo, git_env, "pre-receive", [], stdin=line + "\n") == 0
    assert capture.read_text(encoding="utf-8") == line + "\n"


def test_every_external_hook_gets_all_receive_records(work_repo, git_env, tmp_path) -> None:
    hooks_d = work_repo / ".git" / "hooks.d" / "pre-receive"
    hooks_d.mkdir(parents=True)
    captures = []
    for name in ("10-first", "20-second"):
        capture = tmp_path / f"{name}.txt"
        script = hooks_d / name
        script.write_text(f'#!/bin/sh\ncat > "{capture}"\n', encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR)
        captures.append(capture)

    head = git(work_repo, "rev-parse", "HEAD", env=git_env)
    lines = [f"{ZERO} {head} refs/heads/feature", f"{ZERO} {head} refs/heads/hotfix"]
    stdin = "\n".join(lines) + "\n"

    assert _run(work_repo, git_env, "pre-receive", [], stdin=stdin) == 0
    for capture in captures:
        assert capture.read_bytes() == stdin.encode("utf-8")
