from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from hookwarden.config import (
    CommandHook,
    ExecutionResult,
    HandlerHook,
    load_hooks_config,
    resolve_config_path,
)
from hookwarden.exceptions import ConditionError, ConfigurationError
from hookwarden.runtime.bridge import HooksBridge
from hookwarden.runtime.conditions import get_condition, parse_condition
from hookwarden.runtime.context import build_context
from hookwarden.runtime.matcher import validate
from hookwarden.utils.log import configure_logging
from hookwarden.utils.shell import validate_command_template

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_BLOCKED = 2

_CONTEXT_OPTIONS = ("command", "path", "content", "session_id", "exit_code", "success", "params")


def _context_args(args: argparse.Namespace) -> list[str]:
    tokens: list[str] = [args.tool] if args.tool else []
    for name in _CONTEXT_OPTIONS:
        value = getattr(args, name)
        if value is not None:
            tokens.extend([f"--{name.replace('_', '-')}", value])
    return tokens


def _report(result: ExecutionResult) -> None:
    for entry in result.messages:
        if entry.type == "block":
            print(f"BLOCKED [{entry.id}]: {entry.message or ''}", file=sys.stderr)
        elif entry.type == "confirm":
            print(f"CONFIRM [{entry.id}]: {entry.message or ''}", file=sys.stderr)
    for entry in result.warnings:
        print(f"WARNING [{entry.id}]: {entry.message or ''}", file=sys.stderr)


async def _run(args: argparse.Namespace) -> ExecutionResult:
    bridge = HooksBridge(config_path=args.config, silent=not args.verbose)
    context = await asyncio.to_thread(
        build_context,
        stdin=not args.no_stdin,
        args=_context_args(args),
        timeout=args.stdin_timeout,
    )
    return await bridge.execute_hooks(args.event, context)


def _cmd_run(args: argparse.Namespace) -> int:
    result = asyncio.run(_run(args))
    if args.json:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
    else:
        _report(result)
    return EXIT_BLOCKED if result.blocked else EXIT_OK


def lint_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Strictly load a hooks config and collect every problem found in it."""
    path = resolve_config_path(config_path)
    report: dict[str, Any] = {"config": str(path), "hooks": 0, "problems": []}
    problems: list[str] = report["problems"]
    try:
        config = load_hooks_config(path)
    except (FileNotFoundError, ConfigurationError) as exc:
        problems.append(str(exc))
        return report

    for event, hook in config.iter_hooks():
        report["hooks"] += 1
        where = f"{event}/{hook.id}"
        if hook.matcher:
            validation = validate(hook.matcher)
            if not validation.valid:
                problems.append(f"{where}: invalid matcher: {validation.error}")
        if hook.condition:
            try:
                for name, _arg in parse_condition(hook.condition):
                    get_condition(name)
            except (ConditionError, KeyError) as exc:
                problems.append(f"{where}: invalid condition: {exc.args[0]}")
        if isinstance(hook, HandlerHook) and not (path.parent / hook.handler).exists():
            problems.append(f"{where}: handler not found: {hook.handler}")
        if isinstance(hook, CommandHook):
            template = validate_command_template(hook.command)
            if not template.valid:
                problems.append(f"{where}: unsafe command template: {', '.join(template.errors)}")
    return report


def _cmd_validate(args: argparse.Namespace) -> int:
    report = lint_config(args.config)
    print(json.dumps(report, indent=2))
    return EXIT_INVALID if report["problems"] else EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hookwarden", description="Policy hooks for agent tool calls.")
    parser.add_argument("--verbose", action="store_true", help="Log bridge activity to stderr.")
    parser.add_argument("--log-json", action="store_true", default=None, help="Emit log records as JSON lines.")
    subparsers = parser.add_subparsers(dest="command_name", required=True)

    run_parser = subparsers.add_parser("run", help="Evaluate the hooks configured for an event.")
    run_parser.add_argument("event", help="Lifecycle event, e.g. PreToolUse.")
    run_parser.add_argument("tool", nargs="?", help="Tool name when not supplied on stdin.")
    run_parser.add_argument("--command", default=None, help="Command line of the operation.")
    run_parser.add_argument("--path", default=None, help="File path of the operation.")
    run_parser.add_argument("--content", default=None, help="Content written by the operation.")
    run_parser.add_argument("--session-id", default=None, help="Host session identifier.")
    run_parser.add_argument("--exit-code", default=None, help="Exit code of a finished operation.")
    run_parser.add_argument("--success", default=None, help="'true' when the operation succeeded.")
    run_parser.add_argument("--params", default=None, help="Extra parameters as JSON.")
    run_parser.add_argument("--config", default=None, help="Hooks config path.")
    run_parser.add_argument("--no-stdin", action="store_true", help="Do not read context from stdin.")
    run_parser.add_argument("--stdin-timeout", type=int, default=None, help="Stdin read timeout in ms.")
    run_parser.add_argument("--json", action="store_true", help="Print the full result as JSON.")
    run_parser.set_defaults(handler=_cmd_run)

    validate_parser = subparsers.add_parser("validate", help="Lint a hooks config.")
    validate_parser.add_argument("--config", default=None, help="Hooks config path.")
    validate_parser.set_defaults(handler=_cmd_validate)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None, json_output=args.log_json)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
