# ==============================
# Gerrit Patchset Voting
# ==============================
"""
Post hook for the asynchronous Gerrit hooks (patchset-created, draft-published).

These hooks cannot stop a push, so the outcome of the run is signalled by a
review: a rejection carrying the fault report when any fault was recorded, an
approval (optionally followed by a submit) otherwise.

Vote labels come from githooks.gerrit.votes-to-approve / votes-to-reject
("Label+1,Other+2"). The legacy review-label + vote-ok / vote-nok options are
upgraded to the same form; mixing both forms is a configuration error.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Dict, List, Tuple
from urllib.parse import quote

from githooks.config.schema import GerritConfig
from githooks.contracts.errors import ConfigError, GerritError

if TYPE_CHECKING:
    from githooks.orchestrator.context import InvocationContext

logger = logging.getLogger(__name__)

DEFAULT_APPROVE = "Code-Review+1"
DEFAULT_REJECT = "Code-Review-1"
MESSAGE_LIMIT = 65000
REQUIRED_ARGS = ("--project", "--branch", "--change", "--patchset")

_LABEL = re.compile(r"^([-\w]+)([-+]\d+)$")


def change_id(args: Dict[str, str]) -> str:
    """
    Unambiguous change id.

    Newer servers pass the complete "project~branch~Change-Id" in --change; older
    ones pass only the Change-Id, so the triplet is built and url-escaped.
    """
    change = args["--change"]
    if "~" in change:
        return change
    return quote("~".join([args["--project"], args["--branch"], change]), safe="")


def vote_labels(cfg: GerritConfig) -> Tuple[str, str]:
    legacy = any(v is not None for v in (cfg.review_label, cfg.vote_ok, cfg.vote_nok))
    modern = any(v is not None for v in (cfg.votes_to_approve, cfg.votes_to_reject))

    if legacy and modern:
        raise ConfigError(
            "githooks.gerrit: review-label/vote-ok/vote-nok are deprecated and cannot be "
            "mixed with votes-to-approve/votes-to-reject"
        )

    if legacy:
        label = cfg.review_label or "Code-Review"
        return f"{label}{cfg.vote_ok or '+1'}", f"{label}{cfg.vote_nok or '-1'}"

    return cfg.votes_to_approve or DEFAULT_APPROVE, cfg.votes_to_reject or DEFAULT_REJECT


def parse_labels(spec: str) -> Dict[str, str]:
    """'LabelA-1,LabelB+2' -> {'LabelA': '-1', 'LabelB': '+2'}"""
    labels: Dict[str, str] = {}
    for item in spec.split(","):
        item = item.strip()
        if not item:
            continue
        match = _LABEL.match(item)
        if match is None:
            raise ConfigError(f"invalid vote specification in githooks.gerrit: '{item}'")
        labels[match.group(1)] = match.group(2)
    return labels


def build_review(ctx: "InvocationContext") -> Tuple[Dict[str, Any], bool]:
    cfg = ctx.settings.gerrit
    approve, reject = vote_labels(cfg)

    review: Dict[str, Any] = {}
    auto_submit = False

    errors = ctx.get_errors()
    if errors:
        if len(errors) > MESSAGE_LIMIT:
            errors = errors[:MESSAGE_LIMIT] + "...\n<truncated>\n"
        review["labels"] = parse_labels(reject)
        review["message"] = errors
    else:
        review["labels"] = parse_labels(approve)
        if cfg.comment_ok:
            review["message"] = f"[githooks] {cfg.comment_ok}"
        auto_submit = cfg.auto_submit

    if cfg.notify:
        review["notify"] = cfg.notify

    return review, auto_submit


def vote_on_patchset(hook_name: str, ctx: "InvocationContext", args: List[Any]) -> None:
    gerrit_args = args[0] if args and isinstance(args[0], dict) else (ctx.gerrit_args or {})

    for arg in REQUIRED_ARGS:
        if arg not in gerrit_args:
            raise ConfigError(f"missing {arg} argument to Gerrit's {hook_name} hook")

    client = ctx.gerrit_client
    if client is None:
        raise GerritError("no Gerrit client configured for voting")

    cid = change_id(gerrit_args)
    patchset = gerrit_args["--patchset"]
    review, auto_submit = build_review(ctx)

    logger.info("voting %s on change %s patchset %s", review["labels"], cid, patchset, extra={"hook": hook_name})
    client.post(f"/changes/{cid}/revisions/{patchset}/review", review)

    if auto_submit:
        try:
            client.post(f"/changes/{cid}/submit", {"wait_for_merge": "true"})
        except GerritError as exc:
            raise GerritError(
                "I couldn't submit the change. Perhaps you have to rebase it manually to resolve "
                f"a conflict. Please go to its web page to check it out. The error message follows: {exc}"
            ) from exc
