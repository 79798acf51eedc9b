"""Best-effort notice when a newer release is published on PyPI."""

from __future__ import annotations

import re
import threading
from typing import List, Optional

import httpx
from rich.console import Console

PYPI_URL = "https://pypi.org/pypi/{name}/json"


def _version_parts(version: str) -> List[int]:
    parts: List[int] = []
    for piece in version.strip().lstrip("v").split("."):
        match = re.match(r"\d+", piece)
        parts.append(int(match.group(0)) if match else 0)
    return parts


def is_newer_version(local: str, remote: str) -> bool:
    local_parts = _version_parts(local)
    remote_parts = _version_parts(remote)
    width = max(len(local_parts), len(remote_parts))
    local_parts += [0] * (width - len(local_parts))
    remote_parts += [0] * (width - len(remote_parts))
    return remote_parts > local_parts


def fetch_latest_version(name: str, timeout: float = 3.0) -> Optional[str]:
    response = httpx.get(PYPI_URL.format(name=name), timeout=timeout)
    if response.status_code != 200:
        return None
    version = response.json().get("info", {}).get("version")
    return version if isinstance(version, str) else None


def check_for_updates(name: str, current_version: str, console: Console) -> None:
    try:
        latest = fetch_latest_version(name)
        if latest and is_newer_version(current_version, latest):
            console.print()
            console.print(
                f"[yellow]Update available:[/yellow] {current_version} -> {latest}  "
                f"(pip install --upgrade {name})"
            )
    except Exception:
        # Never interrupt the user's workflow.
        return


def start_update_check(name: str, current_version: str, console: Optional[Console] = None) -> threading.Thread:
    """Run the check on a daemon thread with its own stderr console."""

    console = console or Console(stderr=True)
    thread = threading.Thread(
        target=check_for_updates,
        args=(name, current_version, console),
        name="shellmate-update-check",
        daemon=True,
    )
    thread.start()
    return thread
