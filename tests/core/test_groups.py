from __future__ import annotations

import pytest

from githooks.contracts.errors import ConfigError
from githooks.governance.groups import check_acyclic, flatten, get_groups, grok_groups_spec, is_member, load_groups


def test_inline_definitions_nest_earlier_groups() -> None:
    groups = grok_groups_spec(
        [
            "# team definitions",
            "devs = alice bob",
            "",
            "leads = carol   # team leads",
            "all = @devs @leads dave",
        ],
        "inline",
    )

    assert groups["@devs"] == ["alice", "bob"]
    assert groups["@leads"] == ["carol"]
    assert flatten(groups, "@all") == {"alice", "bob", "carol", "dave"}


def test_forward_reference_is_rejected() -> None:
    with pytest.raises(ConfigError, match="unknown group"):
        grok_groups_spec(["all = @devs", "devs = alice"], "inline")


def test_redefinition_is_rejected() -> None:
    with pytest.raises(ConfigError, match="redefinition"):
        grok_groups_spec(["devs = alice", "devs = bob"], "inline")


def test_malformed_line_is_rejected() -> None:
    with pytest.raises(ConfigError):
        grok_groups_spec(["just some words"], "inline")


def test_cycles_are_detected() -> None:
    with pytest.raises(ConfigError, match="cycle"):
        check_acyclic({"@a": ["@b"], "@b": ["@a"]})


def test_flatten_undefined_group() -> None:
    with pytest.raises(ConfigError):
        flatten({}, "@ghosts")


def test_load_groups_from_text_and_yaml_files(tmp_path) -> None:
    text = tmp_path / "groups.txt"
    text.write_text("devs = alice bob\n", encoding="utf-8")
    data = tmp_path / "groups.yml"
    data.write_text("ops:\n  - erin\n  - '@devs'\nqa: frank grace\n", encoding="utf-8")

    groups = load_groups([f"file:{text}", f"file:{data}", "admins = root @ops"])

    assert flatten(groups, "@ops") == {"erin", "alice", "bob"}
    assert groups["@qa"] == ["frank", "grace"]
    assert flatten(groups, "@admins") == {"root", "erin", "alice", "bob"}


def test_load_groups_missing_file(tmp_path) -> None:
    with pytest.raises(ConfigError, match="can't open"):
        load_groups([f"file:{tmp_path / 'nope.txt'}"])


def test_yaml_root_must_be_mapping(tmp_path) -> None:
    data = tmp_path / "groups.yaml"
    data.write_text("- alice\n- bob\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_groups([f"file:{data}"])


def test_membership_uses_context_config_and_caches(make_ctx) -> None:
    ctx = make_ctx(config=["githooks.groups=devs = alice bob", "githooks.groups=leads = @devs carol"])

    assert is_member(ctx, "alice", "@leads") is True
    assert is_member(ctx, "mallory", "@leads") is False
    assert get_groups(ctx) is get_groups(ctx)


def test_groups_option_is_required(make_ctx) -> None:
    ctx = make_ctx()
    with pytest.raises(ConfigError, match="githooks.groups"):
        get_groups(ctx)
