from hookwarden.config import ExecutionResult, HookAction, HookEvent, HooksConfig, OperationContext
from hookwarden.runtime import HooksBridge, build_context, execute_event, match, validate
from hookwarden.claude_client import HookwardenClaudeClient, build_sdk_hooks

__version__ = "0.1.0"

__all__ = [
    "HooksBridge",
    "execute_event",
    "build_context",
    "match",
    "validate",
    "HookAction",
    "HookEvent",
    "HooksConfig",
    "OperationContext",
    "ExecutionResult",
    "HookwardenClaudeClient",
    "build_sdk_hooks",
]
