"""Subprocess execution of approved commands."""

from __future__ import annotations

import subprocess
import threading
from dataclasses import dataclass
from typing import IO, List, Optional

from rich.console import Console


class ExecutionError(RuntimeError):
    """Raised when a command cannot be started at all."""


@dataclass(frozen=True)
class ExecutionOutcome:
    success: bool
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    error: Optional[str] = None
    exit_code: Optional[int] = None


def stream_process_output(process: subprocess.Popen, console: Console) -> tuple[List[str], List[str], int]:
    """Stream stdout/stderr to console while buffering them for later use."""

    stdout_buffer: List[str] = []
    stderr_buffer: List[str] = []

    def reader(stream: IO[str], buffer: List[str], style: str) -> None:
        for line in iter(stream.readline, ""):
            buffer.append(line)
            console.print(line.rstrip("\n"), style=style, markup=False, highlight=False)
        stream.close()

    threads = [
        threading.Thread(target=reader, args=(process.stdout, stdout_buffer, "green"), daemon=True),
        threading.Thread(target=reader, args=(process.stderr, stderr_buffer, "red"), daemon=True),
    ]

    for thread in threads:
        thread.start()

    process.wait()

    for thread in threads:
        thread.join()

    return stdout_buffer, stderr_buffer, process.returncode


class CommandExecutor:
    """Runs a single-line shell command and reports its outcome.

    Non-zero exit statuses are reported through :class:`ExecutionOutcome`;
    only a failure to spawn the shell raises.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def run(self, command: str) -> ExecutionOutcome:
        try:
            process = subprocess.Popen(
                command,
                shell=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise ExecutionError(f"Unable to start command: {exc}") from exc

        stdout_lines, stderr_lines, returncode = stream_process_output(process, self.console)
        stdout = "".join(stdout_lines) or None
        stderr = "".join(stderr_lines) or None

        if returncode == 0:
            return ExecutionOutcome(success=True, stdout=stdout, stderr=stderr, exit_code=0)

        error = None if stderr else f"Command exited with status {returncode}"
        return ExecutionOutcome(
            success=False,
            stdout=stdout,
            stderr=stderr,
            error=error,
            exit_code=returncode,
        )
