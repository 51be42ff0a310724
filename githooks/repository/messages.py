# ==============================
# Commit Message Files
# ==============================
"""
Read and write the message file handed to applypatch-msg / commit-msg.

The text is cleaned the way `git commit` cleans it before recording the
commit: comment lines blanked, trailing blanks stripped, runs of blank lines
collapsed, and anything after a verbose-mode diff cut off.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Union

from githooks.contracts.errors import EnvironmentFailure

if TYPE_CHECKING:
    from githooks.orchestrator.context import InvocationContext

_DIFF_MARKER = "\ndiff --git "
_BLANK_RUNS = re.compile(r"\n{3,}")


def stripspace(text: str) -> str:
    lines = ["" if line.startswith("#") else line.rstrip() for line in text.split("\n")]
    cleaned = _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip("\n")
    if not cleaned.strip():
        return ""
    return cleaned + "\n"


def _encoding(ctx: "InvocationContext") -> str:
    return ctx.get_config("i18n", "commitencoding") or "utf-8"


def read_commit_msg_file(ctx: "InvocationContext", path: Union[str, Path]) -> str:
    try:
        raw = Path(path).read_text(encoding=_encoding(ctx))
    except OSError as exc:
        raise EnvironmentFailure(f"cannot open file '{path}' for reading: {exc}") from exc

    cut = raw.find(_DIFF_MARKER)
    if cut >= 0:
        raw = raw[: cut + 1]

    return stripspace(raw)


def write_commit_msg_file(ctx: "InvocationContext", path: Union[str, Path], message: str) -> None:
    try:
        Path(path).write_text(message, encoding=_encoding(ctx))
    except OSError as exc:
        raise EnvironmentFailure(f"cannot open file '{path}' for writing: {exc}") from exc
