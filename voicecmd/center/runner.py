"""Run confirmed commands through the configured shell."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import subprocess  # nosec B404
from asyncio.subprocess import Process
from typing import Any

from .config import ExecutionOptions, ShellVariant
from .errors import ExecutionError, ExecutionTimeout, ValidationError
from .models import UNSAFE_SENTINEL

LOGGER = logging.getLogger(__name__)

SUCCESS_SILENT_MESSAGE = "Command executed successfully"
SUCCESS_WINDOW_MESSAGE = "Command opened in window"

IS_WINDOWS = os.name == "nt"

_POLICY_ARGS = {
    "bypass": "Bypass",
    "unrestricted": "Unrestricted",
    "remote_signed": "RemoteSigned",
}


def validate_command_text(command_text: str | None) -> str:
    text = (command_text or "").strip()
    if not text:
        raise ValidationError("Command is empty")
    if text == UNSAFE_SENTINEL:
        raise ValidationError("Refusing to run an unsafe request")
    return text


def build_shell_argv(command_text: str, options: ExecutionOptions) -> list[str]:
    """Return the argv that runs ``command_text`` under ``options.shell_variant``.

    Windowed PowerShell gets ``-NoExit`` so the console stays open after the
    command finishes.
    """
    if options.shell_variant is ShellVariant.POSIX:
        return ["bash", "-lc" if options.load_profile else "-c", command_text]

    argv = [options.shell_variant.value]
    if not options.load_profile:
        argv.append("-NoProfile")
    if options.silent:
        argv.append("-NonInteractive")
    policy = _POLICY_ARGS.get(options.execution_policy or "")
    if policy:
        argv.extend(["-ExecutionPolicy", policy])
    if not options.silent:
        argv.append("-NoExit")
    argv.extend(["-Command", command_text])
    return argv


def _spawn_kwargs(options: ExecutionOptions) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    cwd = (options.working_directory or "").strip()
    if cwd:
        kwargs["cwd"] = cwd
    if options.silent:
        kwargs["stdin"] = asyncio.subprocess.DEVNULL
        kwargs["stdout"] = asyncio.subprocess.PIPE
        kwargs["stderr"] = asyncio.subprocess.PIPE
    if IS_WINDOWS:
        flag_name = "CREATE_NO_WINDOW" if options.silent else "CREATE_NEW_CONSOLE"
        kwargs["creationflags"] = getattr(subprocess, flag_name, 0)
    elif options.silent:
        # Own process group so a timeout can take the whole tree down.
        kwargs["start_new_session"] = True
    return kwargs


async def _kill_tree(pid: int) -> None:
    """Kill ``pid`` and its descendants; ``proc.kill()`` alone only reaches the shell."""
    if not IS_WINDOWS:
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(pid, signal.SIGKILL)
        return
    try:
        killer = await asyncio.create_subprocess_exec(
            "taskkill",
            "/T",
            "/F",
            "/PID",
            str(pid),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        LOGGER.warning("[runner] taskkill unavailable for pid %s: %s", pid, exc)
        return
    with contextlib.suppress(asyncio.TimeoutError):
        await asyncio.wait_for(killer.wait(), timeout=5)


class ExecutionRunner:
    """Spawn a shell for a command and report its outcome.

    Silent runs are captured and bounded by ``timeout_seconds``. Windowed runs
    open a console and return as soon as it is spawned.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER
        self._windowed: set[asyncio.Task] = set()

    async def run(self, command_text: str, options: ExecutionOptions) -> str:
        text = validate_command_text(command_text)
        argv = build_shell_argv(text, options)
        self._logger.info(
            "[runner] Executing via %s (silent=%s, profile=%s, policy=%s): %s",
            options.shell_variant.value,
            options.silent,
            options.load_profile,
            options.execution_policy,
            text,
        )
        try:
            proc = await asyncio.create_subprocess_exec(*argv, **_spawn_kwargs(options))
        except OSError as exc:
            raise ExecutionError(f"Failed to start {argv[0]}: {exc}") from exc

        if not options.silent:
            self._reap_later(proc)
            return SUCCESS_WINDOW_MESSAGE
        return await self._collect(proc, options.timeout_seconds)

    async def _collect(self, proc: Process, timeout_seconds: int) -> str:
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_seconds)
        except TimeoutError as exc:
            await self._kill(proc)
            self._logger.warning("[runner] Command timed out after %s seconds", timeout_seconds)
            raise ExecutionTimeout(f"Command timed out after {timeout_seconds} seconds") from exc

        out_text = (stdout or b"").decode("utf-8", errors="replace").strip()
        err_text = (stderr or b"").decode("utf-8", errors="replace").strip()
        if proc.returncode:
            self._logger.warning("[runner] Command exited with status %s", proc.returncode)
            raise ExecutionError(err_text or out_text or f"Command exited with status {proc.returncode}")
        return out_text or SUCCESS_SILENT_MESSAGE

    async def _kill(self, proc: Process) -> None:
        if proc.returncode is not None:
            return
        await _kill_tree(proc.pid)
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(proc.wait(), timeout=2)

    def _reap_later(self, proc: Process) -> None:
        task = asyncio.create_task(proc.wait())
        self._windowed.add(task)
        task.add_done_callback(self._windowed.discard)
