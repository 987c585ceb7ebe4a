"""Hook runtime: matcher, context builder, process runner and bridge."""

from hookwarden.runtime.bridge import HooksBridge, execute_event, interpret_handler_output
from hookwarden.runtime.conditions import (
    CONDITION_REGISTRY,
    evaluate_condition,
    get_condition,
    list_conditions,
    parse_condition,
)
from hookwarden.runtime.context import (
    build_context,
    context_to_env,
    context_from_host_payload,
    create_test_context,
    normalize_context,
    parse_args_context,
    read_env_context,
    read_stdin_context,
    serialize_context,
)
from hookwarden.runtime.matcher import MatcherValidation, compile_expression, match, validate
from hookwarden.runtime.process import ProcessOutcome, run_command, run_handler

__all__ = [
    "HooksBridge",
    "execute_event",
    "interpret_handler_output",
    "CONDITION_REGISTRY",
    "evaluate_condition",
    "get_condition",
    "list_conditions",
    "parse_condition",
    "build_context",
    "context_to_env",
    "context_from_host_payload",
    "create_test_context",
    "normalize_context",
    "parse_args_context",
    "read_env_context",
    "read_stdin_context",
    "serialize_context",
    "MatcherValidation",
    "compile_expression",
    "match",
    "validate",
    "ProcessOutcome",
    "run_command",
    "run_handler",
]
