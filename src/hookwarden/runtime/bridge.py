from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from hookwarden.config import (
    ActionHook,
    CommandHook,
    ExecutionResult,
    HandlerHook,
    HookAction,
    HookEvent,
    HookResult,
    HooksConfig,
    OperationContext,
    ResultMessage,
    load_hooks_config,
    resolve_config_path,
)
from hookwarden.exceptions import (
    ConfigurationError,
    HandlerSpawnError,
    HandlerTimeoutError,
    HookExecutionError,
    UnsafeCommandTemplateError,
)
from hookwarden.runtime.conditions import evaluate_condition
from hookwarden.runtime.context import build_context, context_to_env
from hookwarden.runtime.matcher import match
from hookwarden.runtime.process import ProcessOutcome, run_command, run_handler
from hookwarden.utils.log import sanitize_path
from hookwarden.utils.shell import check_command_safety, safe_substitute

logger = logging.getLogger(__name__)

Hook = ActionHook | HandlerHook | CommandHook


def _handler_messages(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    result = payload.get("result")
    if isinstance(result, dict):
        messages = result.get("messages")
        if isinstance(messages, list) and messages and isinstance(messages[0], dict):
            first = messages[0].get("message")
            if first:
                return str(first)
    message = payload.get("message")
    return str(message) if message else None


def interpret_handler_output(outcome: ProcessOutcome) -> tuple[HookAction, str | None, Any]:
    """Map a finished handler process onto ``(action, message, output)``.

    Only a clean exit can carry the handler's declared action; any non-zero
    exit is a warning whatever the handler printed.
    """
    try:
        payload = json.loads(outcome.stdout)
    except json.JSONDecodeError:
        action = HookAction.ALLOW if outcome.ok else HookAction.WARN
        return action, (outcome.stderr.strip() or outcome.stdout.strip() or None), outcome.stdout

    message = _handler_messages(payload)
    if not outcome.ok:
        return HookAction.WARN, message, payload

    declared = None
    if isinstance(payload, dict) and isinstance(payload.get("result"), dict):
        declared = payload["result"].get("action")
    if not declared:
        return HookAction.ALLOW, message, payload
    try:
        return HookAction(declared), message, payload
    except ValueError:
        logger.warning("Handler declared unknown action %r, treating as warn", declared)
        return HookAction.WARN, message, payload


class HooksBridge:
    """Loads the hooks configuration and dispatches hooks for lifecycle events."""

    def __init__(
        self,
        *,
        config_path: str | Path | None = None,
        handlers_path: str | Path | None = None,
        silent: bool = False,
        config: HooksConfig | None = None,
    ) -> None:
        self.config_path = resolve_config_path(config_path)
        self.handlers_path = Path(handlers_path) if handlers_path else self.config_path.parent
        self.silent = silent
        self.handlers: dict[str, Path] = {}

        if config is not None:
            self.config = config
        else:
            self.config = self._load_config()
        if not self.config.settings.enabled:
            self._log(logging.INFO, "Hooks are disabled in configuration")
        self._load_handlers()

    def _log(self, level: int, message: str, *args: Any) -> None:
        if self.silent and level < logging.ERROR:
            return
        logger.log(level, message, *args)

    def _load_config(self) -> HooksConfig:
        try:
            return load_hooks_config(self.config_path)
        except FileNotFoundError:
            self._log(logging.WARNING, "Config not found: %s", sanitize_path(self.config_path))
        except ConfigurationError as exc:
            self._log(logging.ERROR, "Failed to load config, hooks disabled: %s", exc)
        return HooksConfig.disabled()

    def _load_handlers(self) -> None:
        for _event, hook in self.config.iter_hooks():
            if not isinstance(hook, HandlerHook):
                continue
            handler_path = (self.handlers_path / hook.handler).resolve()
            if handler_path.exists():
                self.handlers[hook.id] = handler_path
            else:
                self._log(logging.WARNING, "Handler not found: %s", sanitize_path(handler_path))
        if self.handlers:
            self._log(logging.INFO, "Loaded %d handlers", len(self.handlers))

    @property
    def enabled(self) -> bool:
        return self.config.settings.enabled

    async def execute_hooks(
        self,
        event: str | HookEvent,
        context: OperationContext | Mapping[str, Any],
    ) -> ExecutionResult:
        event_name = event.value if isinstance(event, HookEvent) else event
        if not isinstance(context, OperationContext):
            context = OperationContext.model_validate(dict(context))
        result = ExecutionResult(event=event_name)

        if not self.config.settings.enabled:
            result.messages.append(ResultMessage(type="info", message="Hooks disabled"))
            return result

        hooks = self.config.hooks_for(event_name)
        if not hooks:
            return result

        timeout_ms = self.config.settings.timeout_ms
        if self.config.settings.parallel_hooks:
            await self._execute_parallel(hooks, context, result, timeout_ms)
        else:
            await self._execute_sequential(hooks, context, result, timeout_ms)

        self._log(
            logging.DEBUG,
            "%s: %d hooks evaluated, blocked=%s confirm=%s",
            event_name,
            len(result.executed),
            result.blocked,
            result.confirm,
        )
        return result

    def run(
        self,
        event: str | HookEvent,
        context: OperationContext | Mapping[str, Any],
    ) -> ExecutionResult:
        return asyncio.run(self.execute_hooks(event, context))

    async def _execute_sequential(
        self,
        hooks: list[Hook],
        context: OperationContext,
        result: ExecutionResult,
        timeout_ms: int,
    ) -> None:
        for hook in hooks:
            if result.blocked:
                break
            hook_result = await self._execute_hook(hook, context, timeout_ms)
            result.executed.append(hook_result)
            self._process_hook_result(hook, hook_result, result)

    async def _execute_parallel(
        self,
        hooks: list[Hook],
        context: OperationContext,
        result: ExecutionResult,
        timeout_ms: int,
    ) -> None:
        # No short-circuit here: every hook runs to completion even when a
        # sibling blocks.
        hook_results = await asyncio.gather(
            *(self._execute_hook(hook, context, timeout_ms) for hook in hooks)
        )
        for hook, hook_result in zip(hooks, hook_results):
            result.executed.append(hook_result)
            self._process_hook_result(hook, hook_result, result)

    async def _execute_hook(self, hook: Hook, context: OperationContext, timeout_ms: int) -> HookResult:
        hook_result = HookResult(id=hook.id)
        try:
            if hook.matcher and not match(hook.matcher, context.to_match_dict()):
                return hook_result
            if hook.condition and not evaluate_condition(hook.condition, cwd=context.cwd):
                return hook_result
            hook_result.matched = True

            if isinstance(hook, HandlerHook):
                action, message, output = await self._execute_handler(hook, context, timeout_ms)
            elif isinstance(hook, CommandHook):
                action, message, output = await self._execute_command(hook, context, timeout_ms)
            else:
                action, message, output = hook.action, hook.message, None
            hook_result.executed = True
            hook_result.action = action
            hook_result.message = message
            hook_result.output = output
        except UnsafeCommandTemplateError as exc:
            self._log(logging.WARNING, "Refusing to run hook %s: %s", hook.id, exc)
            hook_result.action = hook.on_failure if isinstance(hook, CommandHook) else HookAction.WARN
            hook_result.message = str(exc)
            hook_result.error = str(exc)
        except Exception as exc:  # noqa: BLE001
            failure = HookExecutionError(hook.id, exc)
            self._log(logging.ERROR, "Hook %s failed: %r", failure.hook_id, failure.cause)
            hook_result.matched = True
            hook_result.error = str(failure)
            hook_result.action = HookAction.BLOCK if self.config.settings.fail_on_error else HookAction.WARN
            hook_result.message = f"Hook error: {failure}"
        return hook_result

    async def _execute_handler(
        self,
        hook: HandlerHook,
        context: OperationContext,
        timeout_ms: int,
    ) -> tuple[HookAction, str | None, Any]:
        handler_path = self.handlers.get(hook.id)
        if handler_path is None:
            return HookAction.WARN, f"Handler not found: {hook.id}", None
        try:
            outcome = await run_handler(handler_path, env=context_to_env(context), timeout_ms=timeout_ms)
        except HandlerTimeoutError as exc:
            return HookAction.WARN, str(exc), exc.output or None
        except HandlerSpawnError as exc:
            return HookAction.WARN, f"Handler error: {exc}", None
        return interpret_handler_output(outcome)

    async def _execute_command(
        self,
        hook: CommandHook,
        context: OperationContext,
        timeout_ms: int,
    ) -> tuple[HookAction, str | None, Any]:
        values = {
            "path": context.path or "",
            "tool": context.tool or "",
            "command": context.command or "",
        }
        substitution = safe_substitute(hook.command, values)
        if not substitution.safe or substitution.errors or substitution.command is None:
            raise UnsafeCommandTemplateError(substitution.errors)

        safety = check_command_safety(substitution.command)
        for warning in safety.warnings:
            self._log(logging.WARNING, "Hook %s: %s", hook.id, warning)

        try:
            outcome = await run_command(substitution.command, timeout_ms=timeout_ms)
        except (HandlerTimeoutError, HandlerSpawnError) as exc:
            return hook.on_failure, str(exc), None

        if outcome.ok:
            message = None if hook.silent else f"Executed: {hook.id}"
            return HookAction.ALLOW, message, outcome.stdout.strip()
        message = outcome.stderr.strip() or f"Command exited with status {outcome.returncode}"
        return hook.on_failure, message, (outcome.stdout or outcome.stderr or None)

    def _process_hook_result(self, hook: Hook, hook_result: HookResult, result: ExecutionResult) -> None:
        if not hook_result.matched:
            return
        message = hook_result.message or hook.message
        if hook_result.action == HookAction.BLOCK:
            result.blocked = True
            result.messages.append(ResultMessage(type="block", id=hook.id, message=message))
        elif hook_result.action == HookAction.CONFIRM:
            result.confirm = True
            result.messages.append(ResultMessage(type="confirm", id=hook.id, message=message))
        elif hook_result.action == HookAction.WARN:
            result.warnings.append(ResultMessage(type="warn", id=hook.id, message=message))


async def execute_event(
    event: str | HookEvent,
    context: OperationContext | Mapping[str, Any] | None = None,
    *,
    args: list[str] | None = None,
    stdin: bool = False,
    config_path: str | Path | None = None,
) -> ExecutionResult:
    """One-shot helper: silent bridge, context built on demand."""
    bridge = HooksBridge(config_path=config_path, silent=True)
    if context is None:
        context = await asyncio.to_thread(build_context, stdin=stdin, args=args)
    return await bridge.execute_hooks(event, context)

