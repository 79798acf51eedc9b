"""Interactive approval before a proposed command runs."""

from __future__ import annotations

from typing import Optional

from prompt_toolkit import PromptSession
from rich.console import Console

APPROVALS = {"y", "yes"}


class ConfirmationGate:
    """Asks the user to approve a displayed command; anything but yes declines."""

    def __init__(self, session: Optional[PromptSession] = None, console: Optional[Console] = None) -> None:
        self._session = session
        self.console = console or Console()

    @property
    def session(self) -> PromptSession:
        if self._session is None:
            self._session = PromptSession()
        return self._session

    def confirm(self) -> bool:
        try:
            response = self.session.prompt("Run this? [y/N] ")
        except (KeyboardInterrupt, EOFError):
            self.console.print()
            return False
        return response.strip().lower() in APPROVALS
