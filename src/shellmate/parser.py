"""Turn raw model replies into command proposals."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

_OPENING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```$")
_ECHO = re.compile(r"echo\s+(.+)", re.IGNORECASE)


@dataclass(frozen=True)
class CommandProposal:
    command: str
    executable: bool
    explanation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"command": self.command, "executable": self.executable}
        if self.explanation:
            payload["explanation"] = self.explanation
        return payload

    def to_message(self) -> str:
        return json.dumps(self.to_dict())


def strip_code_fences(text: str) -> str:
    stripped = text.strip()
    stripped = _OPENING_FENCE.sub("", stripped, count=1)
    stripped = _CLOSING_FENCE.sub("", stripped, count=1)
    return stripped.strip()


def _parse_structured(text: str, explain: bool) -> CommandProposal:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Reply is not a JSON object")

    command = data.get("command")
    executable = data.get("executable")
    if not isinstance(command, str) or not isinstance(executable, bool):
        raise ValueError("Reply is missing 'command' or 'executable'")

    explanation = data.get("explanation")
    if not explain or not isinstance(explanation, str) or not explanation.strip():
        explanation = None
    else:
        explanation = explanation.strip()
    return CommandProposal(command=command.strip(), executable=executable, explanation=explanation)


def sanitize_echo(proposal: CommandProposal) -> CommandProposal:
    """Unwrap ``echo`` commands that narrate instead of act.

    An echo piped into another command is left alone when it is executable;
    every other echo becomes a non-executable message.
    """

    command = proposal.command.strip()
    match = _ECHO.fullmatch(command)
    if not match:
        return proposal
    if proposal.executable and "|" in command:
        return proposal

    content = match.group(1)
    if content[:1] in {'"', "'"} and content.endswith(content[0]):
        content = content[1:-1]
    return replace(proposal, command=content or "", executable=False)


def parse_response(
    raw: str,
    explain: bool = False,
    logger: Optional[logging.Logger] = None,
) -> CommandProposal:
    """Parse a model reply; never raises for malformed input."""

    text = strip_code_fences(raw)
    try:
        proposal = _parse_structured(text, explain)
    except (ValueError, RecursionError) as exc:
        (logger or logging.getLogger("shellmate")).debug(
            "Failed to parse structured reply, treating it as a plain command: %s", exc
        )
        proposal = CommandProposal(command=text, executable=True)
    return sanitize_echo(proposal)
