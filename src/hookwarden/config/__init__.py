"""Configuration and result models for hookwarden."""

from hookwarden.config.loader import (
    CONFIG_ENV_VAR,
    DEFAULT_PATHS,
    load_hooks_config,
    resolve_config_path,
)
from hookwarden.config.models import (
    DEFAULT_TIMEOUT_MS,
    ActionHook,
    CommandHook,
    ContextSource,
    ExecutionResult,
    HandlerHook,
    HookAction,
    HookDefinition,
    HookEvent,
    HookResult,
    HooksConfig,
    HooksSettings,
    OperationContext,
    ResultMessage,
)

__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "HookAction",
    "HookEvent",
    "ContextSource",
    "OperationContext",
    "ActionHook",
    "HandlerHook",
    "CommandHook",
    "HookDefinition",
    "HooksSettings",
    "HooksConfig",
    "HookResult",
    "ResultMessage",
    "ExecutionResult",
    "CONFIG_ENV_VAR",
    "DEFAULT_PATHS",
    "load_hooks_config",
    "resolve_config_path",
]
