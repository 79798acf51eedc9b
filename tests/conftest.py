from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pytest
from rich.console import Console

from shellmate.environment import EnvironmentContext
from shellmate.executor import ExecutionOutcome
from shellmate.history import FailureHistoryStore
from shellmate.model import Message, ModelClient
from shellmate.session import SessionContext


class ScriptedClient(ModelClient):
    """Returns canned replies in order and records every conversation it saw."""

    def __init__(self, replies: Sequence[str]) -> None:
        self.replies = list(replies)
        self.calls: List[List[Message]] = []

    def complete(self, messages, include_explanation=False):  # type: ignore[override]
        self.calls.append([dict(message) for message in messages])
        if not self.replies:
            raise AssertionError("model called more often than scripted")
        return self.replies.pop(0)


class FakeExecutor:
    def __init__(self, outcomes: Sequence[ExecutionOutcome]) -> None:
        self.outcomes = list(outcomes)
        self.commands: List[str] = []

    def run(self, command: str) -> ExecutionOutcome:
        self.commands.append(command)
        return self.outcomes.pop(0)


class FakeGate:
    def __init__(self, answers: Sequence[bool]) -> None:
        self.answers = list(answers)
        self.calls = 0

    def confirm(self) -> bool:
        self.calls += 1
        return self.answers.pop(0)


@pytest.fixture
def environment() -> EnvironmentContext:
    return EnvironmentContext(
        platform="linux",
        release="6.1.0",
        arch="x86_64",
        shell="bash",
        cwd="/home/user/project",
        is_root=False,
    )


@pytest.fixture
def logger() -> logging.Logger:
    log = logging.getLogger("tests.shellmate")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None)


@pytest.fixture
def history_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "failure-history.json"


@pytest.fixture
def store(history_path: Path, logger: logging.Logger) -> FailureHistoryStore:
    return FailureHistoryStore(history_path, logger=logger)


@pytest.fixture
def context(environment, store, logger, console) -> SessionContext:
    return SessionContext(environment=environment, history=store, logger=logger, console=console)


def output_of(console: Console) -> str:
    file: Optional[io.StringIO] = console.file  # type: ignore[assignment]
    return file.getvalue() if file is not None else ""
