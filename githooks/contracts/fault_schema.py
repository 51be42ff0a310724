# ==============================
# Fault Contracts
# ==============================
"""
Faults and check results.

A Fault is a policy violation recorded during a run. Faults are append-only and
rendered deterministically so the same list always yields the same report.

CheckResult is the explicit outcome of a hook entry: ok, or faulted with a reason.
Checks may still return plain bools, None or failure counts; the engine coerces them.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

Colorizer = Callable[[str, str], str]
# Colorizer signature:
#   colorize(kind: "context" | "message" | "details", text: str) -> str


def _plain(kind: str, text: str) -> str:
    return text


class Fault(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    prefix: str = Field(..., description="Identity of the recording module or plugin.")
    context: List[str] = Field(default_factory=list, description="Commit/ref/option hints.")
    message: str = Field(..., description="One or more lines describing the violation.")
    details: Optional[str] = Field(default=None, description="Optional verbatim details.")

    def header(self) -> str:
        if self.context:
            return f"[{self.prefix}: {' '.join(self.context)}]"
        return f"[{self.prefix}]"

    def render(self, colorize: Optional[Colorizer] = None) -> str:
        paint = colorize or _plain
        parts = [paint("context", self.header()), "", paint("message", self.message.rstrip("\n"))]
        if self.details is not None and self.details.strip("\n"):
            indented = "\n".join(
                f"  {line}" if line else line for line in self.details.rstrip("\n").split("\n")
            )
            parts.extend(["", paint("details", indented)])
        return "\n".join(parts) + "\n"


class CheckResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    ok: bool = Field(..., description="True when the check found no violation.")
    reason: Optional[str] = Field(default=None, description="Why the check failed.")
    failures: int = Field(default=0, ge=0, description="Number of failed units.")

    @classmethod
    def success(cls) -> "CheckResult":
        return cls(ok=True)

    @classmethod
    def faulted(cls, reason: str, *, failures: int = 1) -> "CheckResult":
        return cls(ok=False, reason=reason, failures=max(failures, 1))

    @classmethod
    def coerce(cls, value: Any) -> "CheckResult":
        """
        Normalize a hook entry's return value.

        - CheckResult: returned as is
        - None / True: success
        - False: faulted
        - int: a failure count, 0 meaning success
        """
        if isinstance(value, CheckResult):
            return value
        if value is None or value is True:
            return cls.success()
        if value is False:
            return cls.faulted("check reported failure")
        if isinstance(value, int) and not isinstance(value, bool):
            if value < 0:
                raise ValueError(f"failure count must not be negative, got {value}")
            return cls.success() if value == 0 else cls.faulted(f"{value} check(s) failed", failures=value)
        raise TypeError(f"hook entries must return CheckResult, bool or int, got {type(value).__name__}")
