"""Command generation session: prompt, propose, confirm, execute, retry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from shellmate.confirm import ConfirmationGate
from shellmate.environment import EnvironmentContext
from shellmate.executor import CommandExecutor, ExecutionOutcome
from shellmate.history import FailureHistoryStore
from shellmate.model import Message, ModelClient
from shellmate.parser import CommandProposal, parse_response
from shellmate.prompt import PromptBuilder
from shellmate.telemetry import TelemetryEmitter

RULE = "=" * 52


class SessionError(RuntimeError):
    """Raised when a session aborts for reasons other than a failed command."""


class SessionOutcome(str, Enum):
    NON_EXECUTABLE = "non_executable"
    CANCELLED = "cancelled"
    SUCCEEDED = "succeeded"


@dataclass
class SessionContext:
    """Collaborators shared by a session, built once by the caller."""

    environment: EnvironmentContext
    history: FailureHistoryStore
    logger: logging.Logger
    console: Console = field(default_factory=Console)
    telemetry: TelemetryEmitter = field(default_factory=TelemetryEmitter.disabled)


def describe_failure(outcome: ExecutionOutcome) -> str:
    if outcome.error:
        return outcome.error
    if outcome.stderr and outcome.stderr.strip():
        return outcome.stderr.strip()
    return "Unknown error"


def build_failure_message(outcome: ExecutionOutcome) -> str:
    message = "The previous command failed. "
    if outcome.error:
        message += f"Error: {outcome.error}"
    if outcome.stderr:
        message += f"\nstderr: {outcome.stderr}"
    if outcome.stdout:
        message += f"\nstdout: {outcome.stdout}"
    message += "\n\nPlease generate a corrected command that addresses the issue."
    return message


class CommandSession:
    """Drives one natural-language request to a terminal outcome.

    Each round sends the whole conversation to the model, parses the reply,
    and either prints it (non-executable), asks for confirmation and runs it,
    or records the failure and asks the model again. There is no retry cap:
    the loop ends only on success, cancellation, or an error.
    """

    def __init__(
        self,
        context: SessionContext,
        client: ModelClient,
        executor: Optional[CommandExecutor] = None,
        gate: Optional[ConfirmationGate] = None,
        force: bool = False,
        explain: bool = False,
    ) -> None:
        self.context = context
        self.client = client
        self.executor = executor or CommandExecutor(context.console)
        self.gate = gate
        self.force = force
        self.explain = explain
        self.conversation: List[Message] = []

    @property
    def logger(self) -> logging.Logger:
        return self.context.logger

    @property
    def console(self) -> Console:
        return self.context.console

    def run(self, intent: str) -> SessionOutcome:
        self.logger.debug("Starting command session intent=%r", intent)
        try:
            outcome = self._run(intent)
        except Exception as exc:
            self.logger.exception("Error in command session")
            self.context.telemetry.emit("session_error", intent=intent, error=str(exc))
            raise SessionError(f"Session error: {exc}") from exc
        self.context.telemetry.emit("session_finished", intent=intent, outcome=outcome.value)
        return outcome

    def _run(self, intent: str) -> SessionOutcome:
        builder = PromptBuilder(self.context.environment, self.context.history)
        self.conversation = [
            {"role": "system", "content": builder.build(self.explain)},
            {"role": "user", "content": intent},
        ]
        self.context.telemetry.emit(
            "session_started",
            intent=intent,
            explain=self.explain,
            force=self.force,
            environment=self.context.environment.to_dict(),
            known_failures=len(builder.failures),
        )

        round_number = 0
        while True:
            round_number += 1
            self.logger.debug(
                "Requesting proposal round=%s history_length=%s", round_number, len(self.conversation)
            )
            raw = self.client.complete(self.conversation, include_explanation=self.explain)
            proposal = parse_response(raw, self.explain, self.logger)
            self.conversation.append({"role": "assistant", "content": proposal.to_message()})
            self.logger.info("Proposal round=%s executable=%s: %s", round_number, proposal.executable, proposal.command)
            self.context.telemetry.emit(
                "proposal",
                intent=intent,
                round=round_number,
                command=proposal.command,
                executable=proposal.executable,
            )

            if not proposal.executable:
                self._show_answer(proposal)
                return SessionOutcome.NON_EXECUTABLE

            self._show_proposal(proposal)
            if not self._approved():
                self.console.print("[red]Aborted.[/red]")
                self.logger.info("Execution cancelled by user")
                return SessionOutcome.CANCELLED

            result = self.executor.run(proposal.command)
            self.context.telemetry.emit(
                "execution",
                intent=intent,
                round=round_number,
                command=proposal.command,
                success=result.success,
                exit_code=result.exit_code,
            )
            if result.success:
                self.logger.info("Command succeeded: %s", proposal.command)
                return SessionOutcome.SUCCEEDED

            self._handle_failure(intent, proposal, result)

    def _approved(self) -> bool:
        if self.force:
            return True
        if self.gate is None:
            self.gate = ConfirmationGate(console=self.console)
        return self.gate.confirm()

    def _handle_failure(self, intent: str, proposal: CommandProposal, result: ExecutionOutcome) -> None:
        error = describe_failure(result)
        self.console.print(f"[red]Command failed:[/red] {escape(error)}")
        self.logger.warning("Command failed exit=%s: %s (%s)", result.exit_code, proposal.command, error)

        self.context.history.record(intent, proposal.command, error)
        self.context.telemetry.emit("failure_recorded", intent=intent, command=proposal.command, error=error)

        self.conversation.append({"role": "user", "content": build_failure_message(result)})
        self.console.print("[yellow]Asking for a corrected command...[/yellow]")

    def _show_answer(self, proposal: CommandProposal) -> None:
        self.console.print(escape(proposal.command))
        if self.explain and proposal.explanation:
            self.console.print(escape(proposal.explanation), style="dim")

    def _show_proposal(self, proposal: CommandProposal) -> None:
        self.console.print(RULE)
        self.console.print(f"[bold cyan]Command:[/bold cyan]   {escape(proposal.command)}")
        self.console.print(RULE)
        if self.explain and proposal.explanation:
            self.console.print("[cyan]Explanation:[/cyan]")
            self.console.print(escape(proposal.explanation))
