# ==============================
# Git Contracts
# ==============================
"""
Read-only projections of repository state used by the hook engine.

Intended usage:
- repository.facade parses `git log` output into Commit
- orchestrator.context stores one AffectedRef per reference touched by the hook
- Sentinel values are compared symbolically (Sentinel.UNDEFINED == "000...0")
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ==============================
# Sentinels
# ==============================
class Sentinel(str, Enum):
    """Reserved object ids with special meaning in hook arguments."""
    UNDEFINED = "0" * 40
    EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


def is_undefined(commit: Optional[str]) -> bool:
    return commit is None or commit == Sentinel.UNDEFINED.value


# ==============================
# Models
# ==============================
class Person(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(default="")
    email: str = Field(default="")
    date: str = Field(default="", description="Strict ISO 8601 date as printed by git.")


class Commit(BaseModel):
    """Commit metadata as reported by `git log`."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(..., description="Full commit id.")
    tree: str = Field(..., description="Tree id.")
    parents: List[str] = Field(default_factory=list)
    author: Person = Field(default_factory=Person)
    committer: Person = Field(default_factory=Person)
    message: str = Field(default="")

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def short_id(self) -> str:
        return self.id[:10]


class AffectedRef(BaseModel):
    """A reference moved by the hooked operation."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Full reference name (refs/heads/...).")
    old_commit: str = Field(..., description="Previous tip or Sentinel.UNDEFINED when created.")
    new_commit: str = Field(..., description="New tip or Sentinel.UNDEFINED when deleted.")

    @property
    def is_created(self) -> bool:
        return is_undefined(self.old_commit)

    @property
    def is_deleted(self) -> bool:
        return is_undefined(self.new_commit)

    def range(self) -> Tuple[str, str]:
        return self.old_commit, self.new_commit
