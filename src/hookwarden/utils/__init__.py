"""Shell-safety and logging helpers for hookwarden."""

from hookwarden.utils.log import configure_logging, sanitize_path
from hookwarden.utils.shell import (
    SHELL_METACHARACTERS,
    CommandSafety,
    SubstitutionResult,
    TemplateValidation,
    check_command_safety,
    escape_shell_arg,
    escape_shell_args,
    safe_substitute,
    validate_command_template,
)

__all__ = [
    "SHELL_METACHARACTERS",
    "TemplateValidation",
    "SubstitutionResult",
    "CommandSafety",
    "escape_shell_arg",
    "escape_shell_args",
    "validate_command_template",
    "safe_substitute",
    "check_command_safety",
    "configure_logging",
    "sanitize_path",
]
