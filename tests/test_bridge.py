"""Tests for the hooks bridge scheduler."""

import asyncio
import json
import logging
import os
import textwrap
from pathlib import Path

import pytest

from hookwarden.config import HookAction, HooksConfig
from hookwarden.runtime.bridge import HooksBridge, execute_event, interpret_handler_output
from hookwarden.runtime.context import create_test_context
from hookwarden.runtime.process import ProcessOutcome

SCENARIO_HOOKS = [
    {"id": "no-rm", "matcher": "command matches 'rm -rf'", "action": "block", "message": "Destructive command"},
    {"id": "push", "matcher": "command contains 'git push'", "action": "warn", "message": "Pushing to remote"},
    {"id": "audit", "action": "allow"},
]


def _write_config(tmp_path: Path, hooks: list[dict], **settings) -> Path:
    payload = {"settings": {"enabled": True, **settings}, "hooks": {"PreToolUse": hooks}}
    path = tmp_path / "hooks.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _write_handler(tmp_path: Path, name: str, body: str) -> str:
    (tmp_path / name).write_text(textwrap.dedent(body), encoding="utf-8")
    return name


def _run(bridge: HooksBridge, **context):
    return asyncio.run(bridge.execute_hooks("PreToolUse", create_test_context(**context)))


def test_sequential_block_short_circuits(tmp_path: Path) -> None:
    bridge = HooksBridge(config_path=_write_config(tmp_path, SCENARIO_HOOKS), silent=True)
    result = _run(bridge, command="rm -rf /")

    assert result.blocked
    assert len(result.executed) == 1
    assert result.messages[0].type == "block"
    assert result.messages[0].id == "no-rm"
    assert result.messages[0].message == "Destructive command"


def test_sequential_warning_runs_every_hook(tmp_path: Path) -> None:
    bridge = HooksBridge(config_path=_write_config(tmp_path, SCENARIO_HOOKS), silent=True)
    result = _run(bridge, command="git push origin main")

    assert not result.blocked
    assert [entry.id for entry in result.warnings] == ["push"]
    assert result.warnings[0].message == "Pushing to remote"
    assert [entry.id for entry in result.executed] == ["no-rm", "push", "audit"]
    assert not result.executed[0].matched
    assert result.executed[2].matched
    assert result.executed[2].action == HookAction.ALLOW


def test_parallel_mode_runs_siblings_of_a_block(tmp_path: Path) -> None:
    marker = tmp_path / "marker"
    hooks = [
        {"id": "deny-all", "action": "block"},
        {"id": "touch", "command": "touch {{path}}", "silent": True},
    ]
    sequential = HooksBridge(config_path=_write_config(tmp_path, hooks), silent=True)
    result = _run(sequential, path=str(marker))
    assert result.blocked
    assert not marker.exists()

    parallel = HooksBridge(config_path=_write_config(tmp_path, hooks, parallel_hooks=True), silent=True)
    result = _run(parallel, path=str(marker))
    assert result.blocked
    assert marker.exists()
    assert [entry.id for entry in result.executed] == ["deny-all", "touch"]


def test_parallel_results_fold_in_config_order(tmp_path: Path) -> None:
    hooks = [
        {"id": "slow", "command": "sleep 0.3 && exit 4"},
        {"id": "fast", "action": "warn", "message": "Fast warning"},
    ]
    bridge = HooksBridge(config_path=_write_config(tmp_path, hooks, parallel_hooks=True), silent=True)
    result = _run(bridge)

    assert [entry.id for entry in result.executed] == ["slow", "fast"]
    assert [entry.id for entry in result.warnings] == ["slow", "fast"]
    assert [entry.message for entry in result.warnings] == ["Command exited with status 4", "Fast warning"]


def test_disabled_and_missing_configs(tmp_path: Path) -> None:
    path = tmp_path / "hooks.json"
    path.write_text(json.dumps({"settings": {"enabled": False}, "hooks": {"PreToolUse": SCENARIO_HOOKS}}))
    result = _run(HooksBridge(config_path=path, silent=True), command="rm -rf /")
    assert not result.blocked
    assert result.executed == []
    assert [(m.type, m.message) for m in result.messages] == [("info", "Hooks disabled")]

    missing = HooksBridge(config_path=tmp_path / "nope.json", silent=True)
    assert not missing.enabled
    assert _run(missing).messages[0].message == "Hooks disabled"


def test_invalid_configs_degrade_to_disabled(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert not HooksBridge(config_path=broken, silent=True).enabled

    ambiguous = _write_config(tmp_path, [{"id": "x", "action": "block", "command": "ls"}])
    assert not HooksBridge(config_path=ambiguous, silent=True).enabled


def test_invalid_config_error_names_the_hook_even_when_silent(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    config_path = _write_config(tmp_path, [SCENARIO_HOOKS[0], {"id": "typo", "hanlder": "audit.py"}])
    package_logger = logging.getLogger("hookwarden")
    package_logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.ERROR, logger="hookwarden"):
            bridge = HooksBridge(config_path=config_path, silent=True)
    finally:
        package_logger.removeHandler(caplog.handler)
    assert not bridge.enabled
    assert "hooks disabled" in caplog.text
    assert "failing hooks: PreToolUse/typo" in caplog.text


def test_explicit_config_and_unknown_event(tmp_path: Path) -> None:
    config = HooksConfig.model_validate({"settings": {"enabled": True}, "hooks": {"Stop": [{"id": "s", "action": "warn"}]}})
    bridge = HooksBridge(config=config, handlers_path=tmp_path, silent=True)

    empty = _run(bridge)
    assert empty.executed == []
    assert empty.messages == []

    stopped = asyncio.run(bridge.execute_hooks("Stop", {"tool": "Bash"}))
    assert [entry.id for entry in stopped.warnings] == ["s"]


def test_confirm_and_message_fallback(tmp_path: Path) -> None:
    handler = _write_handler(
        tmp_path,
        "quiet.py",
        """
        import json
        print(json.dumps({"result": {"action": "warn"}}))
        """,
    )
    hooks = [
        {"id": "ask", "matcher": "tool == 'Bash'", "action": "confirm", "message": "Really?"},
        {"id": "quiet", "handler": handler, "message": "fallback text"},
    ]
    result = _run(HooksBridge(config_path=_write_config(tmp_path, hooks), silent=True))
    assert result.confirm
    assert result.messages[0].type == "confirm"
    assert result.messages[0].message == "Really?"
    assert result.warnings[0].message == "fallback text"


def test_condition_false_means_not_matched(tmp_path: Path) -> None:
    hooks = [{"id": "needs-file", "condition": "file_exists('absent.txt')", "action": "block"}]
    result = _run(HooksBridge(config_path=_write_config(tmp_path, hooks), silent=True), cwd=str(tmp_path))
    assert not result.blocked
    assert not result.executed[0].matched
    assert not result.executed[0].executed


def test_handler_declared_action_and_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HOOKWARDEN_TOOL", raising=False)
    handler = _write_handler(
        tmp_path,
        "env_check.py",
        """
        import json
        import os

        context = json.loads(os.environ["HOOKWARDEN_CONTEXT"])
        message = os.environ["HOOKWARDEN_TOOL"] + ":" + context["command"]
        print(json.dumps({"result": {"action": "block", "messages": [{"message": message}]}}))
        """,
    )
    bridge = HooksBridge(config_path=_write_config(tmp_path, [{"id": "env", "handler": handler}]), silent=True)
    result = _run(bridge, command="echo hi")

    assert result.blocked
    assert result.messages[0].message == "Bash:echo hi"
    assert result.executed[0].output["result"]["action"] == "block"
    assert "HOOKWARDEN_TOOL" not in os.environ


def test_handler_non_zero_exit_is_a_warning(tmp_path: Path) -> None:
    handler = _write_handler(
        tmp_path,
        "fails.py",
        """
        import json
        import sys

        print(json.dumps({"result": {"action": "block", "messages": [{"message": "nope"}]}}))
        sys.exit(3)
        """,
    )
    bridge = HooksBridge(config_path=_write_config(tmp_path, [{"id": "fails", "handler": handler}]), silent=True)
    result = _run(bridge)
    assert not result.blocked
    assert result.executed[0].action == HookAction.WARN
    assert result.warnings[0].message == "nope"


def test_handler_timeout_kills_the_process(tmp_path: Path) -> None:
    handler = _write_handler(
        tmp_path,
        "slow.py",
        """
        import os
        import sys
        import time
        from pathlib import Path

        Path(sys.argv[0]).with_suffix(".pid").write_text(str(os.getpid()))
        time.sleep(30)
        """,
    )
    config_path = _write_config(tmp_path, [{"id": "slow", "handler": handler}], timeout_ms=1500)
    result = _run(HooksBridge(config_path=config_path, silent=True))

    assert result.executed[0].action == HookAction.WARN
    assert "timed out" in result.warnings[0].message
    assert result.warnings[0].message == "Handler timed out after 1500 ms"

    pid = int((tmp_path / "slow.pid").read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


def test_missing_and_unstartable_handlers(tmp_path: Path) -> None:
    not_executable = _write_handler(tmp_path, "tool.bin", "not a program\n")
    hooks = [
        {"id": "gone", "handler": "missing.py"},
        {"id": "broken", "handler": not_executable},
    ]
    result = _run(HooksBridge(config_path=_write_config(tmp_path, hooks), silent=True))
    messages = {entry.id: entry.message for entry in result.warnings}
    assert messages["gone"] == "Handler not found: gone"
    assert messages["broken"].startswith("Handler error:")


def test_interpret_handler_output() -> None:
    allow, message, _ = interpret_handler_output(ProcessOutcome(0, "plain text\n", ""))
    assert allow == HookAction.ALLOW
    assert message == "plain text"

    unknown, _, _ = interpret_handler_output(ProcessOutcome(0, '{"result": {"action": "explode"}}', ""))
    assert unknown == HookAction.WARN

    default, top_level, _ = interpret_handler_output(ProcessOutcome(0, '{"message": "hi"}', ""))
    assert default == HookAction.ALLOW
    assert top_level == "hi"

    crashed, stderr, _ = interpret_handler_output(ProcessOutcome(1, "", "Traceback ...\n"))
    assert crashed == HookAction.WARN
    assert stderr == "Traceback ..."


def test_command_hooks(tmp_path: Path) -> None:
    hooks = [
        {"id": "echo", "command": "printf %s {{command}}"},
        {"id": "quiet", "command": "true", "silent": True},
        {"id": "fails", "command": "exit 3"},
    ]
    result = _run(HooksBridge(config_path=_write_config(tmp_path, hooks), silent=True), command="a; rm -rf x")
    echo, quiet, fails = result.executed

    assert echo.action == HookAction.ALLOW
    assert echo.message == "Executed: echo"
    assert echo.output == "a; rm -rf x"
    assert quiet.action == HookAction.ALLOW
    assert quiet.message is None
    assert fails.action == HookAction.WARN
    assert fails.executed
    assert result.warnings[0].message == "Command exited with status 3"


def test_command_failure_action_and_timeout(tmp_path: Path) -> None:
    hooks = [
        {"id": "slow", "command": "sleep 5"},
        {"id": "gate", "command": "false", "on_failure": "block", "message": "Lint failed"},
    ]
    config_path = _write_config(tmp_path, hooks, timeout_ms=300)
    result = _run(HooksBridge(config_path=config_path, silent=True))

    assert result.warnings[0].message == "Command timed out after 300 ms"
    assert result.blocked
    assert result.messages[0].id == "gate"


def test_unsafe_command_template_never_runs(tmp_path: Path) -> None:
    marker = tmp_path / "ran"
    hooks = [{"id": "pipe", "command": "cat {{path}} | touch " + str(marker)}]
    result = _run(HooksBridge(config_path=_write_config(tmp_path, hooks), silent=True), path="/etc/hosts")

    hook_result = result.executed[0]
    assert hook_result.matched
    assert not hook_result.executed
    assert hook_result.action == HookAction.WARN
    assert hook_result.message.startswith("Unsafe command template:")
    assert not marker.exists()


def test_command_values_are_substituted_once(tmp_path: Path) -> None:
    marker = tmp_path / "owned"
    hooks = [{"id": "list", "command": "printf %s {{path}}"}]
    bridge = HooksBridge(config_path=_write_config(tmp_path, hooks), silent=True)
    result = _run(bridge, path="/tmp/x{{command}}", command=f"; touch {marker} ;")

    assert result.executed[0].action == HookAction.ALLOW
    assert result.executed[0].output == "/tmp/x{{command}}"
    assert not marker.exists()


def test_hook_errors_follow_fail_on_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(condition: str, *, cwd=None) -> bool:
        raise RuntimeError("boom")

    monkeypatch.setattr("hookwarden.runtime.bridge.evaluate_condition", _boom)
    hooks = [{"id": "c", "condition": "file_exists('x')", "action": "allow"}]

    lenient = _run(HooksBridge(config_path=_write_config(tmp_path, hooks), silent=True))
    assert not lenient.blocked
    assert lenient.warnings[0].message == "Hook error: boom"
    assert lenient.executed[0].error == "boom"

    strict = _run(HooksBridge(config_path=_write_config(tmp_path, hooks, fail_on_error=True), silent=True))
    assert strict.blocked
    assert strict.messages[0].message == "Hook error: boom"


def test_run_wrapper_and_execute_event(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HOOKWARDEN_TOOL", raising=False)
    config_path = _write_config(tmp_path, SCENARIO_HOOKS)

    bridge = HooksBridge(config_path=config_path, silent=True)
    assert bridge.run("PreToolUse", {"tool": "Bash", "command": "rm -rf /"}).blocked

    result = asyncio.run(
        execute_event("PreToolUse", args=["Bash", "--command", "git push"], config_path=config_path)
    )
    assert not result.blocked
    assert [entry.id for entry in result.warnings] == ["push"]
