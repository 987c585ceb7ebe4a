"""Subprocess execution for handler and command hooks.

Every child runs in its own session so a timeout can take down the whole
process group (a shell plus whatever it spawned), and is reaped before the
runner returns.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from hookwarden.exceptions import HandlerSpawnError, HandlerTimeoutError

logger = logging.getLogger(__name__)

_TERMINATE_GRACE_S = 2.0

_INTERPRETERS: dict[str, tuple[str, ...]] = {
    ".py": (sys.executable,),
    ".js": ("node",),
    ".mjs": ("node",),
    ".cjs": ("node",),
    ".sh": ("bash",),
}


@dataclass(frozen=True)
class ProcessOutcome:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def handler_argv(handler_path: str | Path) -> list[str]:
    """Command line for a handler, picking an interpreter from its suffix."""
    path = Path(handler_path)
    interpreter = _INTERPRETERS.get(path.suffix.lower())
    if interpreter is None:
        return [str(path)]
    return [*interpreter, str(path)]


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, sig)
        else:
            proc.send_signal(sig)
    except ProcessLookupError:
        pass


async def terminate_process(proc: asyncio.subprocess.Process) -> None:
    """SIGTERM, short grace period, then SIGKILL. Always reaps the child."""
    if proc.returncode is None:
        _signal_group(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), _TERMINATE_GRACE_S)
            return
        except asyncio.TimeoutError:
            _signal_group(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
    await proc.wait()


async def _collect(proc: asyncio.subprocess.Process, timeout_ms: int, label: str) -> ProcessOutcome:
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout_ms / 1000)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %d ms, terminating pid %d", label, timeout_ms, proc.pid)
        await terminate_process(proc)
        raise HandlerTimeoutError(f"{label} timed out after {timeout_ms} ms", timeout_ms=timeout_ms) from None
    except asyncio.CancelledError:
        await terminate_process(proc)
        raise
    return ProcessOutcome(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def run_handler(
    handler_path: str | Path,
    *,
    env: Mapping[str, str],
    timeout_ms: int,
) -> ProcessOutcome:
    """Run a handler program with ``env`` layered over the current environment."""
    argv = handler_argv(handler_path)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **env},
            start_new_session=True,
        )
    except OSError as exc:
        raise HandlerSpawnError(f"Failed to start {argv[0]}: {exc}") from exc
    return await _collect(proc, timeout_ms, "Handler")


async def run_command(command: str, *, timeout_ms: int) -> ProcessOutcome:
    """Run an already-escaped command line through ``/bin/sh``."""
    try:
        proc = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as exc:
        raise HandlerSpawnError(f"Failed to start command: {exc}") from exc
    return await _collect(proc, timeout_ms, "Command")
