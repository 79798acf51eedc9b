"""Host environment facts fed into prompt composition."""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional


class EnvironmentDetectionError(RuntimeError):
    """Raised when the host environment cannot be probed."""


@dataclass(frozen=True)
class EnvironmentContext:
    platform: str
    release: str
    arch: str
    shell: str
    cwd: str
    is_root: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "platform": self.platform,
            "release": self.release,
            "arch": self.arch,
            "shell": self.shell,
            "cwd": self.cwd,
            "is_root": self.is_root,
        }


def detect_shell(system: Optional[str] = None) -> str:
    shell_path = os.getenv("SHELL")
    if shell_path:
        return Path(shell_path).name

    system = (system or platform.system()).lower()
    if system == "windows":
        return "powershell"
    if system == "darwin":
        return "zsh"
    return "bash"


def running_as_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    if not callable(geteuid):
        return False
    try:
        return geteuid() == 0
    except OSError:
        return False


def detect_environment() -> EnvironmentContext:
    try:
        system = platform.system().lower()
        return EnvironmentContext(
            platform=system,
            release=platform.release(),
            arch=platform.machine(),
            shell=detect_shell(system),
            cwd=os.getcwd(),
            is_root=running_as_root(),
        )
    except OSError as exc:
        raise EnvironmentDetectionError(f"Failed to detect environment: {exc}") from exc
