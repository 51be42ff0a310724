# ==============================
# Logging Bootstrap
# ==============================
"""
Logging bootstrap.

Goals:
- Centralize logger configuration using Settings.logging.
- Provide structured context fields (hook, ref, plugin).
- Keep it simple: stdlib logging + JSON-line formatter on stderr.

Hook stdout may be consumed by git clients, so nothing is logged to stdout.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from githooks.config.schema import Settings

ROOT_LOGGER = "githooks"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in ("hook", "ref", "plugin"):
            value = getattr(record, k, None)
            if value is not None:
                payload[k] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def bootstrap_logger(settings: Settings, *, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure the "githooks" logger based on settings.
    Returns the configured logger.
    """
    level = getattr(logging, settings.logging.level.upper(), logging.WARNING)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.propagate = False

    # clear existing handlers to avoid duplicates when run_hook is called repeatedly
    logger.handlers = []

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JsonLineFormatter())
    logger.addHandler(handler)

    return logger

