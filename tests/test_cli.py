from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from shellmate import __version__, cli
from shellmate.config import AppConfig
from shellmate.history import FailureHistoryStore
from shellmate.parser import parse_response


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in ("SHELLMATE_API_KEY", "OPENAI_API_KEY", "SHELLMATE_BACKEND", "SHELLMATE_TELEMETRY_FILE"):
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    monkeypatch.setenv("SHELLMATE_HOME", str(home))
    return home


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_missing_intent_is_a_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2


def test_mock_backend_runs_to_completion(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--backend", "mock", "--no-update-check", "say", "hello"]) == 0
    assert "Mock backend received: say hello" in capsys.readouterr().out


def test_missing_api_key_exits_non_zero(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--no-update-check", "list files"]) == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().out


def test_session_error_exits_non_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    class Broken:
        model = "broken"

        def complete(self, messages, include_explanation=False):
            raise RuntimeError("backend exploded")

    monkeypatch.setattr(cli, "create_client", lambda name, **kwargs: Broken())
    assert cli.main(["--no-update-check", "list files"]) == 1


def test_config_set_and_show(isolated_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["config", "set", "api_key", "sk-secret"]) == 0
    assert cli.main(["config", "set", "file_logging", "yes"]) == 0
    saved = json.loads((isolated_home / "config.json").read_text(encoding="utf-8"))
    assert saved["model"]["api_key"] == "sk-secret"
    assert saved["file_logging"] is True

    capsys.readouterr()
    assert cli.main(["config", "show"]) == 0
    out = capsys.readouterr().out
    assert "sk-secret" not in out
    assert "********" in out


def test_config_set_rejects_bad_values(isolated_home: Path) -> None:
    assert cli.main(["config", "set", "log_level", "loud"]) == 2
    assert not (isolated_home / "config.json").exists()


def test_config_set_does_not_persist_environment_key(
    isolated_home: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    assert cli.main(["config", "set", "model", "gpt-4o-mini"]) == 0
    saved = json.loads((isolated_home / "config.json").read_text(encoding="utf-8"))
    assert saved["model"]["api_key"] is None
    assert saved["model"]["model"] == "gpt-4o-mini"


def test_history_show_and_clear(isolated_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = FailureHistoryStore(isolated_home / "failure-history.json")
    store.record("show directory tree", "tree", "command not found: tree")

    assert cli.main(["history", "show"]) == 0
    out = capsys.readouterr().out
    assert "show directory tree" in out
    assert "command not found: tree" in out

    assert cli.main(["history", "clear"]) == 0
    assert store.load() == []
    assert cli.main(["history", "show"]) == 0
    assert "No failure history recorded." in capsys.readouterr().out


def test_plain_text_reply_is_not_reported_on_stderr(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("SHELLMATE_LOG_LEVEL", raising=False)
    shared = logging.getLogger("shellmate")
    monkeypatch.setattr(shared, "handlers", [])
    monkeypatch.setattr(shared, "level", shared.level)
    monkeypatch.setattr(shared, "propagate", shared.propagate)

    logger = cli.setup_logging(AppConfig.load())
    proposal = parse_response("ls -la", False, logger)

    assert proposal.command == "ls -la"
    assert capsys.readouterr().err == ""


def test_update_check_uses_its_own_console(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr(cli, "start_update_check", lambda *args, **kwargs: calls.append((args, kwargs)))
    assert cli.main(["--backend", "mock", "say", "hello"]) == 0
    assert calls == [(("shellmate", __version__), {})]
