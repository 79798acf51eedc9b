"""System prompt composition for the command generator."""

from __future__ import annotations

from typing import List, Optional, Sequence

from shellmate.environment import EnvironmentContext
from shellmate.history import FailureHistoryStore, FailureRecord

TOOL_NAME = "shellmate"

PREAMBLE = (
    f'You are a shell command generator for a CLI tool called "{TOOL_NAME}". '
    "The user explicitly requests commands and you generate them for execution in a "
    "controlled environment with the user's full consent and supervision."
)

CONTEXT_BLOCK = """CONTEXT: You are operating in a controlled environment where:
- The user has explicitly requested the command
- The user will review and confirm before execution
- The user is in full control and supervision
- This is a CLI tool designed to execute commands"""

RETRY_NOTE = (
    "IMPORTANT: If a previous command failed, analyze the error message and generate a "
    "corrected command. Learn from the failure and try a different approach."
)

PLAIN_EXAMPLES = """Examples:
Input: "list all files in the current directory"
Output: { "command": "ls -l", "executable": true }

Input: "kill process on port 5000"
Output: { "command": "lsof -ti:5000 | xargs kill -9", "executable": true }

Input: "show disk usage"
Output: { "command": "df -h", "executable": true }

Input: "hello" or "how are you?"
Output: { "command": "echo 'Hello! How can I assist you today?'", "executable": false }"""

EXPLANATION_GUIDE = """EXPLANATION MODE:
When explanation is requested, provide a concise breakdown with each flag/portion on a separate line:
- Start with what the main command does
- Explain each flag or option ON ITS OWN LINE! One flag / option per line!
- End with what the command will accomplish
- Use \\n to separate each line in the JSON explanation field

Examples with explanations:
Input: "list all files in the current directory"
Output: { "command": "ls -l", "executable": true, "explanation": "The 'ls' command lists directory contents.\\nThe '-l' flag provides detailed information including permissions, owner, group, size, and modification date.\\nThis will show all files and directories in the current working directory with full details." }

Input: "kill process on port 5000"
Output: { "command": "lsof -ti:5000 | xargs kill -9", "executable": true, "explanation": "The 'lsof' command lists open files.\\nThe '-ti:5000' flag finds processes using port 5000.\\nThe output is piped to 'xargs kill -9' to forcefully terminate those processes." }

Input: "hello there"
Output: { "command": "echo 'Hello! How can I assist you today?'", "executable": false, "explanation": "This input is a greeting and does not represent a valid command request." }

CRITICAL: Generate the actual command, not echo explanations. For "kill process on port 5000", output: { "command": "lsof -ti:5000 | xargs kill -9", "executable": true }

REMEMBER: If user says "kill", they want the actual kill command, not an explanation of how to kill.

FORMATTING: Each line of explanation must be separated by \\n in the JSON. Example:
{ "command": "find . -name '*.txt'", "executable": true, "explanation": "The 'find' command searches for files.\\nThe '.' specifies the current directory.\\nThe '-name' flag matches filenames.\\nThe '*.txt' pattern matches all .txt files." }"""


def format_environment(environment: EnvironmentContext) -> str:
    return "\n".join(
        [
            "ENVIRONMENT:",
            f"- Operating System: {environment.platform} ({environment.release})",
            f"- Architecture: {environment.arch}",
            f"- Shell: {environment.shell}",
            f"- Working Directory: {environment.cwd}",
            f"- Running as root: {str(environment.is_root).lower()}",
        ]
    )


def format_rules(explain: bool) -> str:
    schema = '{ "command": "actual_command", "executable": true/false'
    if explain:
        schema += ', "explanation": "detailed_explanation"'
    schema += " }"
    rules = [
        f"ALWAYS output your response as valid JSON: {schema}",
        "Generate the ACTUAL command that should be executed - NEVER generate echo commands that explain what to do",
        "Use syntax appropriate for the detected shell",
        "Prefer non-destructive operations unless explicitly requested",
        "Include 'sudo' only when necessary and the user is not root",
        "For destructive operations, ensure they match user intent exactly",
        "Never output multi-line commands without proper shell syntax",
        "Set executable to false ONLY for greetings, questions, or conversational responses. "
        "All actual shell commands should be executable=true",
        "NEVER use echo to explain commands - generate the actual command directly",
        'When user asks to "kill" something, generate the actual kill command - they explicitly requested it',
    ]
    lines = ["CRITICAL RULES:"]
    lines.extend(f"{index}. {rule}" for index, rule in enumerate(rules, start=1))
    return "\n".join(lines)


def format_failures(failures: Sequence[FailureRecord]) -> str:
    if not failures:
        return ""
    lines = [
        "LEARNING FROM PAST FAILURES:",
        "The following commands have failed in the past on this system. Avoid repeating these mistakes:",
        "",
    ]
    for index, failure in enumerate(failures, start=1):
        lines.append(f'{index}. Intent: "{failure.user_intent}"')
        lines.append(f"   Failed Command: {failure.failed_command}")
        lines.append(f"   Error: {failure.error}")
        lines.append("")
    return "\n".join(lines)


def build_system_prompt(
    environment: EnvironmentContext,
    failures: Sequence[FailureRecord],
    explain: bool,
) -> str:
    """Compose the system prompt; output depends only on the arguments."""

    sections: List[str] = [
        PREAMBLE,
        format_environment(environment),
        CONTEXT_BLOCK,
        format_rules(explain),
        RETRY_NOTE,
    ]
    failure_block = format_failures(failures)
    if failure_block:
        sections.append(failure_block.rstrip("\n"))
    sections.append(EXPLANATION_GUIDE if explain else PLAIN_EXAMPLES)
    return "\n\n".join(sections)


class PromptBuilder:
    """Binds an environment and failure store; history is read on first build."""

    def __init__(self, environment: EnvironmentContext, history: FailureHistoryStore) -> None:
        self.environment = environment
        self.history = history
        self._failures: Optional[List[FailureRecord]] = None

    @property
    def failures(self) -> List[FailureRecord]:
        if self._failures is None:
            self._failures = self.history.load()
        return self._failures

    def build(self, explain: bool) -> str:
        return build_system_prompt(self.environment, self.failures, explain)
