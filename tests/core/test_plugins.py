from __future__ import annotations

import pytest

from conftest import FakeRepository

from githooks.contracts.errors import ConfigError
from githooks.contracts.git_schema import Sentinel
from githooks.orchestrator.registry import HookRegistry
from githooks.plugins import check_acls, check_reference

OLD = "a" * 40
NEW = "b" * 40
ZERO = Sentinel.UNDEFINED.value


def _ff_repo() -> FakeRepository:
    return FakeRepository({("merge-base", OLD, NEW): OLD})


# ==============================
# CheckAcls
# ==============================


def test_checkacls_allows_listed_action(make_ctx) -> None:
    ctx = make_ctx("update", ["githooks.checkacls.acl=alice U ^refs/heads/"], repo=_ff_repo())
    ctx.set_affected_ref("refs/heads/master", OLD, NEW)

    assert check_acls.check_ref(ctx, "refs/heads/master") is True
    assert not ctx.has_faults()


def test_checkacls_denies_by_default(make_ctx) -> None:
    ctx = make_ctx("update", ["githooks.checkacls.acl=alice U ^refs/heads/"])
    ctx.set_affected_ref("refs/heads/master", OLD, ZERO)

    assert check_acls.check_affected_ref(ctx, "refs/heads/master") == 1
    (fault,) = ctx.faults
    assert fault.prefix == "CheckAcls"
    assert fault.message == "you (alice) cannot delete ref refs/heads/master"
    assert "violates option 'githooks.checkacls.acl'" in fault.header()


def test_checkacls_user_and_ref_interpolation(make_ctx) -> None:
    ctx = make_ctx("update", ["githooks.checkacls.acl=^ali C ^refs/heads/user/{USER}/"])
    ctx.set_affected_ref("refs/heads/user/alice/topic", ZERO, NEW)
    ctx.set_affected_ref("refs/heads/user/bob/topic", ZERO, NEW)

    assert check_acls.check_ref(ctx, "refs/heads/user/alice/topic") is True
    assert check_acls.check_ref(ctx, "refs/heads/user/bob/topic") is False


def test_checkacls_group_rules(make_ctx) -> None:
    ctx = make_ctx(
        "update",
        ["githooks.groups=devs = alice", "githooks.checkacls.acl=@devs CRUD refs/heads/dev"],
    )
    ctx.set_affected_ref("refs/heads/dev", ZERO, NEW)
    assert check_acls.check_ref(ctx, "refs/heads/dev") is True


def test_checkacls_malformed_rules_are_faults(make_ctx) -> None:
    ctx = make_ctx("update", ["githooks.checkacls.acl=alice U", "githooks.checkacls.acl=alice XYZ ^refs/"])
    ctx.set_affected_ref("refs/heads/master", OLD, NEW)

    assert check_acls.check_ref(ctx, "refs/heads/master") is False
    messages = [f.message for f in ctx.faults]
    assert "invalid acl: 'alice U'" in messages
    assert "invalid acl 'what' component: 'XYZ'" in messages


def test_checkacls_registers_for_every_ref_hook() -> None:
    registry = HookRegistry()
    check_acls.register(registry)
    assert set(registry.list()) == {"commit-received", "pre-receive", "ref-update", "submit", "update"}


# ==============================
# CheckReference
# ==============================

NAMING = [
    "githooks.checkreference.deny=^refs/heads/",
    "githooks.checkreference.allow=^refs/heads/(?:feature|hotfix)/",
]


def test_checkreference_names_only_apply_to_created_refs(make_ctx) -> None:
    ctx = make_ctx("update", NAMING, repo=_ff_repo())
    ctx.set_affected_ref("refs/heads/feature/x", ZERO, NEW)
    ctx.set_affected_ref("refs/heads/junk", ZERO, NEW)
    ctx.set_affected_ref("refs/heads/master", OLD, NEW)

    assert check_reference.check_ref(ctx, "refs/heads/feature/x") == 0
    assert check_reference.check_ref(ctx, "refs/heads/junk") == 1
    assert check_reference.check_ref(ctx, "refs/heads/master") == 0

    (fault,) = ctx.faults
    assert fault.prefix == "CheckReference"
    assert "'refs/heads/junk' is not allowed" in fault.message


def test_checkreference_invalid_regex(make_ctx) -> None:
    ctx = make_ctx("update", ["githooks.checkreference.deny=^refs/(("])
    ctx.set_affected_ref("refs/heads/x", ZERO, NEW)
    with pytest.raises(ConfigError):
        check_reference.check_name(ctx, "refs/heads/x")


def test_checkreference_acl_last_rule_wins_and_default_allows(make_ctx) -> None:
    config = [
        "githooks.checkreference.acl=deny CRUD ^refs/heads/release/",
        "githooks.checkreference.acl=allow U ^refs/heads/release/ by alice",
    ]
    ctx = make_ctx("update", config, repo=_ff_repo())
    ctx.set_affected_ref("refs/heads/release/1", OLD, NEW)
    ctx.set_affected_ref("refs/heads/release/2", OLD, ZERO)
    ctx.set_affected_ref("refs/heads/other", OLD, ZERO)

    assert check_reference.check_acl(ctx, "refs/heads/release/1") == 0
    assert check_reference.check_acl(ctx, "refs/heads/release/2") == 1
    assert check_reference.check_acl(ctx, "refs/heads/other") == 0
    assert ctx.faults[0].message == "you (alice) cannot delete ref refs/heads/release/2"


def test_checkreference_illegal_action_letter(make_ctx) -> None:
    ctx = make_ctx("update", ["githooks.checkreference.acl=allow X ^refs/"])
    ctx.set_affected_ref("refs/heads/x", OLD, ZERO)
    with pytest.raises(ConfigError):
        check_reference.check_acl(ctx, "refs/heads/x")
