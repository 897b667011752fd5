from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(frozen=True)
class CommandResult:
    exit_success: bool
    stdout: bytes = b""
    stderr: bytes = b""
    return_code: int = 0

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class CommandExecutor(Protocol):
    """Runs a named external command; raises OSError when it cannot be started."""

    async def run(self, command: str, args: Sequence[str]) -> CommandResult: ...


class SubprocessExecutor:
    """CommandExecutor backed by asyncio subprocesses."""

    def __init__(self, *, timeout_seconds: float | None = None) -> None:
        self._timeout_seconds = timeout_seconds

    async def run(self, command: str, args: Sequence[str]) -> CommandResult:
        env = os.environ.copy()
        env.setdefault("GIT_TERMINAL_PROMPT", "0")
        env.setdefault("GH_PROMPT_DISABLED", "1")
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return CommandResult(
                exit_success=False,
                stderr=f"{command} timed out after {self._timeout_seconds}s".encode(),
                return_code=-1,
            )
        return_code = proc.returncode if proc.returncode is not None else -1
        return CommandResult(
            exit_success=return_code == 0,
            stdout=stdout,
            stderr=stderr,
            return_code=return_code,
        )


def render_command(command: str, args: Sequence[str]) -> str:
    return " ".join([command, *args])
