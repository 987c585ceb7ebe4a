"""Tests for the hookwarden command line."""

import json
from pathlib import Path

import pytest

from hookwarden.cli import EXIT_BLOCKED, EXIT_INVALID, EXIT_OK, lint_config, main


def _write_config(tmp_path: Path, hooks: list[dict]) -> Path:
    path = tmp_path / "hooks.json"
    path.write_text(json.dumps({"settings": {"enabled": True}, "hooks": {"PreToolUse": hooks}}), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("HOOKWARDEN_TOOL", "HOOKWARDEN_COMMAND", "HOOKWARDEN_HOOKS_CONFIG"):
        monkeypatch.delenv(name, raising=False)


def test_run_blocked_exits_2(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = _write_config(tmp_path, [{"id": "no-rm", "matcher": "command matches 'rm -rf'", "action": "block", "message": "No"}])
    code = main(["run", "PreToolUse", "Bash", "--command", "rm -rf /", "--config", str(config), "--no-stdin"])
    assert code == EXIT_BLOCKED
    assert "BLOCKED [no-rm]: No" in capsys.readouterr().err


def test_run_json_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = _write_config(tmp_path, [{"id": "push", "matcher": "command contains 'git push'", "action": "warn"}])
    code = main(
        ["run", "PreToolUse", "Bash", "--command", "git push", "--config", str(config), "--no-stdin", "--json"]
    )
    assert code == EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload["event"] == "PreToolUse"
    assert payload["blocked"] is False
    assert payload["warnings"][0]["id"] == "push"


def test_validate_reports_problems(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = _write_config(
        tmp_path,
        [
            {"id": "bad-matcher", "matcher": "tool ==", "action": "block"},
            {"id": "bad-condition", "condition": "is_friday('x')", "action": "warn"},
            {"id": "no-handler", "handler": "missing.py"},
            {"id": "unsafe", "command": "echo $(id)"},
            {"id": "fine", "matcher": "tool == 'Bash'", "action": "allow"},
        ],
    )
    assert main(["validate", "--config", str(config)]) == EXIT_INVALID
    report = json.loads(capsys.readouterr().out)
    assert report["hooks"] == 5
    problems = "\n".join(report["problems"])
    assert "PreToolUse/bad-matcher: invalid matcher" in problems
    assert "PreToolUse/bad-condition: invalid condition: Unknown condition function: is_friday" in problems
    assert "PreToolUse/no-handler: handler not found" in problems
    assert "PreToolUse/unsafe: unsafe command template" in problems
    assert "PreToolUse/fine" not in problems


def test_validate_clean_and_missing_configs(tmp_path: Path) -> None:
    config = _write_config(tmp_path, [{"id": "ok", "matcher": "tool == 'Bash'", "action": "allow"}])
    assert main(["validate", "--config", str(config)]) == EXIT_OK

    report = lint_config(tmp_path / "nope.json")
    assert report["hooks"] == 0
    assert report["problems"][0].startswith("Hooks config not found")
