"""Logging setup for hookwarden.

Modules log through ``logging.getLogger(__name__)``; the logger name is the
component, so ``hookwarden.runtime.bridge`` renders as ``[hookwarden:bridge:INFO]``.
All output goes to stderr to keep stdout clean for JSON results.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT_LOGGER = "hookwarden"

_LEVEL_ENV_VAR = "HOOKWARDEN_LOG_LEVEL"
_JSON_ENV_VAR = "HOOKWARDEN_LOG_JSON"
_HANDLER_NAME = "hookwarden-stderr"


def _component(record: logging.LogRecord) -> str:
    parts = record.name.split(".")
    if parts[0] == ROOT_LOGGER and len(parts) > 1:
        return f"{ROOT_LOGGER}:{parts[-1]}"
    return record.name


class PrefixFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        line = f"[{_component(record)}:{record.levelname}] {message}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(
    level: str | int | None = None,
    *,
    json_output: bool | None = None,
    silent: bool = False,
) -> logging.Logger:
    """Install (or replace) the stderr handler on the ``hookwarden`` logger."""
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    if level is None:
        level = os.getenv(_LEVEL_ENV_VAR, "INFO").upper()
    if json_output is None:
        json_output = os.getenv(_JSON_ENV_VAR, "").lower() in {"1", "true", "yes"}

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JsonFormatter() if json_output else PrefixFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.CRITICAL + 1 if silent else level)
    logger.propagate = False
    return logger


def sanitize_path(file_path: str | Path | None) -> str:
    """Path suitable for log lines: home collapsed to ``~``, otherwise the basename."""
    if not file_path:
        return "<unknown>"
    text = str(file_path)
    home = os.getenv("HOME", "")
    if home and text.startswith(home):
        return "~" + text[len(home):]
    return Path(text).name
