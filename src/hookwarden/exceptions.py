"""Exception hierarchy for hookwarden.

Every error raised inside the runtime derives from :class:`HookwardenError`.
The bridge contains all of them per hook, so none of these ever escapes
``HooksBridge.execute_hooks``.
"""

from __future__ import annotations


class HookwardenError(Exception):
    """Base class for all hookwarden errors."""


class ConfigurationError(HookwardenError):
    """The hooks configuration could not be read or validated."""


class MatchExpressionError(HookwardenError, ValueError):
    """Malformed matcher expression."""

    def __init__(self, message: str, *, expected: str | None = None, actual: str | None = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ConditionError(HookwardenError, ValueError):
    """Malformed condition expression.

    Only the strict parser used for linting raises this; evaluation degrades
    to vacuous truth instead.
    """


class HandlerSpawnError(HookwardenError):
    """A handler program could not be started."""


class HandlerTimeoutError(HookwardenError, TimeoutError):
    """A handler or command outlived its timeout and was terminated."""

    def __init__(self, message: str, *, timeout_ms: int, output: str = "") -> None:
        super().__init__(message)
        self.timeout_ms = timeout_ms
        self.output = output


class UnsafeCommandTemplateError(HookwardenError, ValueError):
    """A command template failed safety validation and was not executed."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"Unsafe command template: {', '.join(errors)}")
        self.errors = list(errors)


class HookExecutionError(HookwardenError):
    """Unexpected failure while dispatching a hook."""

    def __init__(self, hook_id: str, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.hook_id = hook_id
        self.cause = cause
