"""Operation context assembly.

Merges up to three sources into one :class:`OperationContext`, by priority
stdin > environment > CLI arguments. A lower-priority source only fills fields
a higher one left unset. Normalisation (trimming, path resolution, tool-name
aliasing) always runs last.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from collections.abc import Mapping
from typing import Any, TextIO

from hookwarden.config.models import ContextSource, OperationContext

logger = logging.getLogger(__name__)

ENV_PREFIX = "HOOKWARDEN_"
CONTEXT_ENV_VAR = f"{ENV_PREFIX}CONTEXT"
STDIN_TIMEOUT_ENV_VAR = f"{ENV_PREFIX}STDIN_TIMEOUT"
DEFAULT_STDIN_TIMEOUT_MS = 5000

_ENV_FIELDS = {
    "TOOL": "tool",
    "COMMAND": "command",
    "PATH": "path",
    "CONTENT": "content",
    "EXIT_CODE": "exit_code",
    "SUCCESS": "success",
    "SESSION_ID": "session_id",
}

_EXPORT_FIELDS = {
    **{field: key for key, field in _ENV_FIELDS.items()},
    "timestamp": "TIMESTAMP",
    "source": "SOURCE",
    "cwd": "CWD",
    "params": "PARAMS",
}

_TOOL_ALIASES = {
    "Bash": "Bash",
    "Shell": "Bash",
    "Write": "Write",
    "Edit": "Edit",
    "Read": "Read",
    "Multiedit": "MultiEdit",
    "Webfetch": "WebFetch",
}

# wire name (camelCase) -> attribute name
_FIELD_BY_ALIAS = {
    (info.alias or name): name for name, info in OperationContext.model_fields.items()
}


def _default_stdin_timeout() -> int:
    try:
        return int(os.getenv(STDIN_TIMEOUT_ENV_VAR, "")) or DEFAULT_STDIN_TIMEOUT_MS
    except ValueError:
        return DEFAULT_STDIN_TIMEOUT_MS


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_bool(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _coerce(field: str, value: Any) -> Any:
    if value is None:
        return None
    if field == "exit_code":
        return _to_int(value)
    if field == "success":
        return _to_bool(value)
    if field in {"tool", "command", "path", "content", "session_id", "cwd"}:
        return value if isinstance(value, str) else str(value)
    if field == "params" and not isinstance(value, dict):
        return {"raw": value}
    return value


def _from_host_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Map the host's native hook payload (``tool_name``/``tool_input``) onto context fields."""
    fields: dict[str, Any] = {}
    tool_input = payload.get("tool_input")
    if payload.get("tool_name"):
        fields["tool"] = payload["tool_name"]
    if isinstance(tool_input, Mapping):
        if "command" in tool_input:
            fields["command"] = tool_input["command"]
        path = tool_input.get("file_path") or tool_input.get("path") or tool_input.get("notebook_path")
        if path:
            fields["path"] = path
        content = tool_input.get("content", tool_input.get("new_string"))
        if content is not None:
            fields["content"] = content
        fields["params"] = dict(tool_input)
    if payload.get("session_id"):
        fields["session_id"] = payload["session_id"]
    tool_response = payload.get("tool_response")
    if isinstance(tool_response, Mapping):
        if "exit_code" in tool_response:
            fields["exit_code"] = tool_response["exit_code"]
        if "success" in tool_response:
            fields["success"] = tool_response["success"]
    return fields


def _fields_from_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for key, value in payload.items():
        field = _FIELD_BY_ALIAS.get(key, key)
        fields[field] = value
    for field, value in _from_host_payload(payload).items():
        if fields.get(field) is None:
            fields[field] = value
    fields.pop("source", None)
    fields.pop("timestamp", None)
    return {field: _coerce(field, value) for field, value in fields.items()}


def read_stdin_context(
    stream: TextIO | None = None,
    *,
    timeout_ms: int | None = None,
) -> dict[str, Any] | None:
    """Read one JSON object from stdin; ``None`` for a TTY, timeout or bad JSON."""
    stream = stream if stream is not None else sys.stdin
    if stream is None:
        return None
    try:
        if stream.isatty():
            return None
    except (AttributeError, ValueError):
        return None

    timeout_s = (timeout_ms or _default_stdin_timeout()) / 1000
    chunks: list[str] = []

    def _read() -> None:
        try:
            chunks.append(stream.read())
        except (OSError, ValueError) as exc:
            logger.debug("Failed to read stdin: %s", exc)

    # Daemon thread: a host that never closes stdin must not keep us alive.
    reader = threading.Thread(target=_read, name="hookwarden-stdin", daemon=True)
    reader.start()
    reader.join(timeout_s)
    if reader.is_alive() or not chunks:
        logger.debug("No context received on stdin within %.1fs", timeout_s)
        return None

    data = chunks[0].strip()
    if not data:
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Ignoring non-JSON stdin payload")
        return None
    if not isinstance(payload, dict):
        return None
    return _fields_from_payload(payload)


def read_env_context(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    environ = os.environ if environ is None else environ
    fields: dict[str, Any] = {}
    for key, field in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + key)
        if value is None:
            continue
        coerced = _coerce(field, value)
        if coerced is not None:
            fields[field] = coerced
    return fields


def parse_args_context(args: list[str]) -> dict[str, Any]:
    """Parse ``[TOOL] --key value ...`` into context fields.

    The first argument, when it is not an option, is the tool name. Options
    without a value are ignored.
    """
    fields: dict[str, Any] = {}
    idx = 0
    while idx < len(args):
        arg = args[idx]
        if arg.startswith("--"):
            key = arg[2:].replace("-", "_")
            value = args[idx + 1] if idx + 1 < len(args) else None
            if value is not None and not value.startswith("--"):
                if key == "params":
                    try:
                        fields["params"] = json.loads(value)
                    except json.JSONDecodeError:
                        fields["params"] = {"raw": value}
                else:
                    fields[_FIELD_BY_ALIAS.get(key, key)] = value
                idx += 1
        elif idx == 0 and not arg.startswith("-"):
            fields["tool"] = arg
        idx += 1
    return {field: _coerce(field, value) for field, value in fields.items()}


def _normalize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    for key in ("tool", "command", "path"):
        if isinstance(fields.get(key), str):
            fields[key] = fields[key].strip()

    path = fields.get("path")
    if path and not os.path.isabs(path):
        cwd = fields.get("cwd") or os.getcwd()
        fields["path"] = os.path.abspath(os.path.join(cwd, path))

    tool = fields.get("tool")
    if tool:
        tool = tool[:1].upper() + tool[1:].lower()
        fields["tool"] = _TOOL_ALIASES.get(tool, tool)
    return fields


def normalize_context(context: OperationContext) -> OperationContext:
    fields = _normalize_fields(context.model_dump())
    return OperationContext.model_validate(fields)


def build_context(
    *,
    stdin: bool = True,
    args: list[str] | None = None,
    timeout: int | None = None,
    stdin_stream: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
    cwd: str | None = None,
) -> OperationContext:
    merged: dict[str, Any] = {}
    source: ContextSource | None = None

    def _fill(fields: dict[str, Any], origin: ContextSource) -> None:
        nonlocal source
        for field, value in fields.items():
            if merged.get(field) is None and value is not None:
                merged[field] = value
        if source is None:
            source = origin

    if stdin:
        stdin_fields = read_stdin_context(stdin_stream, timeout_ms=timeout)
        if stdin_fields:
            _fill(stdin_fields, ContextSource.STDIN)

    env_fields = read_env_context(environ)
    if env_fields.get("tool"):
        _fill(env_fields, ContextSource.ENV)

    if args:
        _fill(parse_args_context(args), ContextSource.ARGS)

    if cwd is not None:
        merged["cwd"] = cwd
    merged["source"] = source
    return OperationContext.model_validate(_normalize_fields(merged))


def create_test_context(**overrides: Any) -> OperationContext:
    fields: dict[str, Any] = {
        "source": ContextSource.TEST,
        "tool": "Bash",
        "command": 'echo "test"',
        "path": None,
        "content": None,
        "exit_code": 0,
        "success": True,
    }
    fields.update(overrides)
    return OperationContext.model_validate(fields)


def serialize_context(context: OperationContext) -> str:
    return json.dumps(context.to_match_dict(), indent=2)


def context_to_env(context: OperationContext) -> dict[str, str]:
    """``HOOKWARDEN_*`` variables for a handler process, plus the JSON blob."""
    env: dict[str, str] = {}
    wire = context.to_match_dict()
    for field, key in _EXPORT_FIELDS.items():
        value = getattr(context, field)
        if value is None:
            continue
        if isinstance(value, bool):
            text = "true" if value else "false"
        elif isinstance(value, dict):
            text = json.dumps(value)
        else:
            text = str(wire[OperationContext.model_fields[field].alias or field])
        env[ENV_PREFIX + key] = text
    env[CONTEXT_ENV_VAR] = json.dumps(wire)
    return env


def context_from_host_payload(
    payload: Mapping[str, Any],
    *,
    source: ContextSource = ContextSource.STDIN,
) -> OperationContext:
    """Build a normalized context straight from a hook payload already in hand."""
    fields = _fields_from_payload(payload)
    fields["source"] = source
    return OperationContext.model_validate(_normalize_fields(fields))
