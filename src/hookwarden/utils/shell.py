from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

SHELL_METACHARACTERS = re.compile(r"""[|&;<>()$`\\"' \t\n*?\[\]#~=%!{}]""")

_PLACEHOLDER_RE = re.compile(r"\{\{[^}]+\}\}")

_DANGEROUS_TEMPLATE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\$\("), "Command substitution $() is not allowed"),
    (re.compile(r"`"), "Backtick command substitution is not allowed"),
    (re.compile(r"\|.*\{\{"), "Pipe before placeholder is dangerous"),
    (re.compile(r"\{\{.*\}\}.*\|"), "Pipe after placeholder is dangerous"),
    (re.compile(r";\s*\{\{"), "Semicolon before placeholder is dangerous"),
    (re.compile(r"\{\{.*\}\}.*;\s*\w"), "Semicolon after placeholder with command is dangerous"),
    (re.compile(r">\s*\{\{"), "Redirect to placeholder is dangerous"),
    (re.compile(r"\{\{.*\}\}.*>"), "Redirect after placeholder is dangerous"),
)

_DANGEROUS_COMMANDS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"rm\s+-rf\s+[/~]"), "Removing root or home directory"),
    (re.compile(r"rm\s+-rf\s+\*"), "Removing with wildcard"),
    (re.compile(r">\s*/dev/sd"), "Writing to block device"),
    (re.compile(r"mkfs\."), "Formatting filesystem"),
    (re.compile(r"dd\s+.*of=/dev"), "DD to device"),
    (re.compile(r"chmod\s+777"), "Setting world-writable permissions"),
    (re.compile(r"curl.*\|\s*(ba)?sh"), "Piping curl to shell"),
    (re.compile(r"wget.*\|\s*(ba)?sh"), "Piping wget to shell"),
    (re.compile(r"eval\s"), "Using eval"),
    (re.compile(r"\$\([^)]*\)"), "Command substitution detected"),
)


@dataclass(frozen=True)
class TemplateValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SubstitutionResult:
    command: str | None
    safe: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CommandSafety:
    safe: bool
    warnings: list[str] = field(default_factory=list)


def escape_shell_arg(value: Any) -> str:
    """Quote ``value`` so a POSIX shell reads it back as exactly one word."""
    if value is None:
        return ""
    text = str(value)
    if text == "":
        return "''"
    if not SHELL_METACHARACTERS.search(text):
        return text
    return "'" + text.replace("'", "'\\''") + "'"


def escape_shell_args(*args: Any) -> str:
    return " ".join(escape_shell_arg(arg) for arg in args)


def validate_command_template(template: str) -> TemplateValidation:
    errors = [message for pattern, message in _DANGEROUS_TEMPLATE_PATTERNS if pattern.search(template)]
    return TemplateValidation(valid=not errors, errors=errors)


def safe_substitute(
    template: str,
    values: Mapping[str, Any],
    *,
    validate_template: bool = True,
) -> SubstitutionResult:
    """Replace ``{{key}}`` placeholders with shell-escaped values.

    The template is validated first; a failing template is never substituted.
    Placeholders left over after substitution are reported as an error so a
    command with a missing variable is never run.
    """
    if validate_template:
        validation = validate_command_template(template)
        if not validation.valid:
            return SubstitutionResult(command=None, safe=False, errors=validation.errors)

    def _replace(found: re.Match[str]) -> str:
        key = found.group()[2:-2]
        if key not in values:
            return found.group()
        return escape_shell_arg(values[key])

    # Single pass over the template: substituted values are never rescanned.
    command = _PLACEHOLDER_RE.sub(_replace, template)
    remaining = [found for found in _PLACEHOLDER_RE.findall(template) if found[2:-2] not in values]

    errors: list[str] = []
    if remaining:
        errors.append(f"Unsubstituted placeholders: {', '.join(remaining)}")

    return SubstitutionResult(command=command, safe=not errors, errors=errors)


def check_command_safety(command: str) -> CommandSafety:
    warnings = [warning for pattern, warning in _DANGEROUS_COMMANDS if pattern.search(command)]
    return CommandSafety(safe=not warnings, warnings=warnings)
