from __future__ import annotations

import json

import pytest

from shellmate.parser import CommandProposal, parse_response, sanitize_echo, strip_code_fences


def test_structured_reply_is_parsed_and_trimmed() -> None:
    proposal = parse_response('{"command": "  ls -la  ", "executable": true}')
    assert proposal == CommandProposal(command="ls -la", executable=True)


@pytest.mark.parametrize(
    "raw",
    [
        '```json\n{"command": "df -h", "executable": true}\n```',
        '```\n{"command": "df -h", "executable": true}\n```',
        '  ```JSON\n{"command": "df -h", "executable": true}```  ',
    ],
)
def test_code_fences_are_removed(raw: str) -> None:
    assert parse_response(raw) == CommandProposal(command="df -h", executable=True)


def test_strip_code_fences_handles_language_tags() -> None:
    assert strip_code_fences("```bash\nls -la\n```") == "ls -la"
    assert strip_code_fences("ls -la") == "ls -la"


def test_plain_text_falls_back_to_executable_command() -> None:
    proposal = parse_response("ls -la")
    assert proposal == CommandProposal(command="ls -la", executable=True, explanation=None)


def test_fenced_plain_text_falls_back() -> None:
    assert parse_response("```sh\ndu -sh *\n```").command == "du -sh *"


@pytest.mark.parametrize(
    "raw",
    [
        '{"command": 42, "executable": true}',
        '{"command": "ls", "executable": "yes"}',
        '{"command": "ls"}',
        '["ls", true]',
        '{"command": "ls", "executable": true',
    ],
)
def test_wrong_shapes_fall_back_without_raising(raw: str) -> None:
    proposal = parse_response(raw)
    assert proposal.executable is True
    assert proposal.command == raw
    assert proposal.explanation is None


def test_explanation_only_kept_in_explain_mode() -> None:
    raw = json.dumps({"command": "ls -l", "executable": True, "explanation": " Lists files.\nLong format. "})
    assert parse_response(raw, explain=False).explanation is None
    assert parse_response(raw, explain=True).explanation == "Lists files.\nLong format."


def test_non_string_explanation_is_ignored() -> None:
    raw = json.dumps({"command": "ls", "executable": True, "explanation": ["x"]})
    assert parse_response(raw, explain=True).explanation is None


def test_echo_narration_is_unwrapped_and_not_executable() -> None:
    proposal = sanitize_echo(CommandProposal(command='echo "do the thing"', executable=False))
    assert proposal == CommandProposal(command="do the thing", executable=False)


def test_executable_echo_is_forced_non_executable() -> None:
    raw = json.dumps({"command": "ECHO 'Hello! How can I assist you today?'", "executable": True})
    proposal = parse_response(raw)
    assert proposal.command == "Hello! How can I assist you today?"
    assert proposal.executable is False


def test_piped_executable_echo_is_left_untouched() -> None:
    original = CommandProposal(command="echo hi | tee log", executable=True)
    assert sanitize_echo(original) is original


def test_piped_non_executable_echo_is_still_sanitized() -> None:
    proposal = sanitize_echo(CommandProposal(command="echo hi | tee log", executable=False))
    assert proposal == CommandProposal(command="hi | tee log", executable=False)


def test_mismatched_quotes_are_kept() -> None:
    proposal = sanitize_echo(CommandProposal(command="echo \"it's", executable=True))
    assert proposal.command == "\"it's"
    assert proposal.executable is False


def test_plain_fallback_echo_is_sanitized() -> None:
    proposal = parse_response("echo 'run ls to list files'")
    assert proposal == CommandProposal(command="run ls to list files", executable=False)


def test_non_echo_commands_pass_through() -> None:
    original = CommandProposal(command="echoes --help", executable=True)
    assert sanitize_echo(original) is original


def test_to_message_includes_explanation_only_when_present() -> None:
    assert json.loads(CommandProposal("ls", True).to_message()) == {"command": "ls", "executable": True}
    assert json.loads(CommandProposal("ls", True, "Lists.").to_message()) == {
        "command": "ls",
        "executable": True,
        "explanation": "Lists.",
    }
