# ==============================
# Config Schemas (Pydantic)
# ==============================
"""
Pydantic settings models for the framework's own options.

Notes:
- Keep these schemas stable: context, engine, externals and voting depend on them.
- No env reads here. No subprocess calls here. Pure types + defaults.
- loader.py builds a single Settings object from the parsed GitConfig.

Plugin-specific options are not modelled here; plugins read them straight from
the GitConfig store through the invocation context.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ==============================
# Error Report Settings
# ==============================


class ColorMode(str, Enum):
    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


class ColorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: ColorMode = Field(default=ColorMode.AUTO, description="githooks.color")
    context: str = Field(default="bold red", description="Style for the [prefix: context] line.")
    message: str = Field(default="", description="Style for the fault message.")
    details: str = Field(default="yellow", description="Style for the indented details.")


class ErrorReportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    header: Optional[str] = Field(default=None, description="Shell command whose output heads the report.")
    footer: Optional[str] = Field(default=None, description="Shell command whose output ends the report.")
    prefix: Optional[str] = Field(default=None, description="String prepended to every report line.")
    length_limit: Optional[int] = Field(default=None, ge=0, description="Truncate the report to this many chars.")
    help_on_error: Optional[str] = Field(default=None, description="Text appended to every failing report.")
    color: ColorConfig = Field(default_factory=ColorConfig)


# ==============================
# Externals Settings
# ==============================


class ExternalsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="githooks.externals")
    dirs: List[str] = Field(default_factory=list, description="githooks.hooks extra directories.")
    timeout_seconds: Optional[int] = Field(default=None, ge=0, description="githooks.timeout (soft, cooperative).")


# ==============================
# Gerrit Settings
# ==============================


class GerritConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True)
    url: Optional[str] = Field(default=None)
    username: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)
    votes_to_approve: Optional[str] = Field(default=None, description="e.g. 'Code-Review+1,Verified+1'")
    votes_to_reject: Optional[str] = Field(default=None, description="e.g. 'Code-Review-1'")
    review_label: Optional[str] = Field(default=None, description="Legacy label name.")
    vote_ok: Optional[str] = Field(default=None, description="Legacy approve vote.")
    vote_nok: Optional[str] = Field(default=None, description="Legacy reject vote.")
    comment_ok: Optional[str] = Field(default=None)
    auto_submit: bool = Field(default=False)
    notify: Optional[str] = Field(default=None)


# ==============================
# Logging Settings
# ==============================


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="WARNING")


# ==============================
# Top-Level Settings
# ==============================


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    plugins: List[str] = Field(default_factory=list, description="githooks.plugin (enabled checks).")
    disabled: List[str] = Field(default_factory=list, description="githooks.disable")
    plugin_dirs: List[str] = Field(default_factory=list, description="githooks.plugins")
    admin: List[str] = Field(default_factory=list, description="githooks.admin user specs.")
    userenv: Optional[str] = Field(default=None)
    groups: List[str] = Field(default_factory=list, description="Inline specs or file:PATH.")
    abort_commit: bool = Field(default=True)

    errors: ErrorReportConfig = Field(default_factory=ErrorReportConfig)
    externals: ExternalsConfig = Field(default_factory=ExternalsConfig)
    gerrit: GerritConfig = Field(default_factory=GerritConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
