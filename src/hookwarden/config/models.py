"""Pydantic models for hookwarden contracts.

These models type the structured artifacts exchanged with the host:
- Hooks configuration (`hooks.json`): settings plus per-event hook lists
- Operation context (stdin JSON / `HOOKWARDEN_*` env / CLI args)
- Per-hook results and the aggregated execution result
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_TIMEOUT_MS = 30000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HookAction(str, Enum):
    """Disposition a hook (and the aggregate result) can carry."""

    ALLOW = "allow"
    BLOCK = "block"
    CONFIRM = "confirm"
    WARN = "warn"


class HookEvent(str, Enum):
    """Well-known lifecycle events. Hosts may fire other names as plain strings."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"
    PRE_COMPACT = "PreCompact"
    STOP = "Stop"


class ContextSource(str, Enum):
    """Where an operation context came from."""

    STDIN = "stdin"
    ENV = "env"
    ARGS = "args"
    TEST = "test"


class OperationContext(BaseModel):
    """Normalized record of the operation under evaluation.

    Attribute names are snake_case; the serialized form (and therefore the
    names matcher expressions see) is camelCase: ``exitCode``, ``sessionId``.
    Unknown keys supplied by the host are kept as extras so matchers can
    address them too.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    timestamp: datetime = Field(default_factory=_utcnow)
    source: ContextSource | None = None
    tool: str | None = None
    command: str | None = None
    path: str | None = None
    content: str | None = None
    exit_code: int | None = None
    success: bool | None = None
    cwd: str = Field(default_factory=os.getcwd)
    session_id: str | None = None
    params: dict[str, Any] | None = None

    def to_match_dict(self) -> dict[str, Any]:
        """Wire representation used for matcher lookups and handler export."""
        return self.model_dump(mode="json", by_alias=True)


class _HookBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    matcher: str | None = None
    condition: str | None = None
    message: str | None = None


class ActionHook(_HookBase):
    """Hook whose action is declared verbatim in the configuration."""

    kind: Literal["action"] = "action"
    action: HookAction


class HandlerHook(_HookBase):
    """Hook that spawns an external handler program to decide."""

    kind: Literal["handler"] = "handler"
    handler: str


class CommandHook(_HookBase):
    """Hook that runs a templated shell command; success means allow."""

    kind: Literal["command"] = "command"
    command: str
    on_failure: HookAction = HookAction.WARN
    silent: bool = False


_HOOK_KINDS = ("action", "handler", "command")


def _hook_kind(value: Any) -> str | None:
    """Infer the hook kind from whichever dispatch field is present."""
    if isinstance(value, _HookBase):
        return value.kind  # type: ignore[attr-defined]
    if not isinstance(value, dict):
        return None
    if value.get("kind") in _HOOK_KINDS:
        return value["kind"]
    present = [kind for kind in _HOOK_KINDS if value.get(kind)]
    if len(present) != 1:
        return None
    return present[0]


HookDefinition = Annotated[
    Union[
        Annotated[ActionHook, Tag("action")],
        Annotated[HandlerHook, Tag("handler")],
        Annotated[CommandHook, Tag("command")],
    ],
    Discriminator(
        _hook_kind,
        custom_error_type="hook_kind",
        custom_error_message="Hook must define exactly one of 'action', 'handler' or 'command'",
    ),
]


class HooksSettings(BaseModel):
    """Process-wide scheduler settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    parallel_hooks: bool = False
    fail_on_error: bool = False

    @field_validator("timeout_ms", mode="before")
    @classmethod
    def _default_timeout(cls, value: Any) -> Any:
        # A zero or null timeout means "use the default".
        return value or DEFAULT_TIMEOUT_MS


class HooksConfig(BaseModel):
    """Configuration document schema (`hooks.json`)."""

    model_config = ConfigDict(frozen=True)

    settings: HooksSettings = Field(default_factory=HooksSettings)
    hooks: dict[str, list[HookDefinition]] = Field(default_factory=dict)

    @field_validator("settings", "hooks", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @classmethod
    def disabled(cls) -> "HooksConfig":
        return cls(settings=HooksSettings(enabled=False))

    def hooks_for(self, event: str | HookEvent) -> list[ActionHook | HandlerHook | CommandHook]:
        key = event.value if isinstance(event, HookEvent) else event
        return list(self.hooks.get(key, []))

    def iter_hooks(self):
        """Yield ``(event, hook)`` pairs in configuration order."""
        for event, hooks in self.hooks.items():
            for hook in hooks:
                yield event, hook


class HookResult(BaseModel):
    """Outcome of one evaluated hook, produced even when it did not match."""

    id: str
    matched: bool = False
    executed: bool = False
    action: HookAction = HookAction.ALLOW
    message: str | None = None
    error: str | None = None
    output: Any = None


class ResultMessage(BaseModel):
    """One entry in the aggregate `messages` or `warnings` list."""

    type: str
    id: str | None = None
    message: str | None = None


class ExecutionResult(BaseModel):
    """Aggregated result reported to the host for one event firing."""

    event: str
    timestamp: datetime = Field(default_factory=_utcnow)
    blocked: bool = False
    confirm: bool = False
    warnings: list[ResultMessage] = Field(default_factory=list)
    messages: list[ResultMessage] = Field(default_factory=list)
    executed: list[HookResult] = Field(default_factory=list)
