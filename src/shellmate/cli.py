"""Command-line entry point for shellmate."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from shellmate import __version__
from shellmate.config import LOG_LEVELS, AppConfig
from shellmate.environment import EnvironmentDetectionError, detect_environment
from shellmate.history import FailureHistoryStore
from shellmate.model import ModelError, available_backends, create_client
from shellmate.session import CommandSession, SessionContext, SessionError
from shellmate.telemetry import TelemetryEmitter
from shellmate.update_check import start_update_check

EXAMPLES = """examples:
  shellmate list all files
  shellmate --force "show disk usage"
  shellmate --explain "kill process on port 5000"
  shellmate config set log_level debug
  shellmate history show
"""

BOOLEAN_KEYS = {"file_logging", "check_updates"}
SETTABLE_KEYS = (
    "backend",
    "model",
    "base_url",
    "api_key",
    "timeout",
    "log_level",
    "file_logging",
    "history_path",
    "telemetry_file",
    "check_updates",
)


def setup_logging(config: AppConfig, log_path: Optional[str] = None) -> logging.Logger:
    """Configure the shellmate logger once per process."""

    logger = logging.getLogger("shellmate")
    if logger.handlers:
        return logger

    level = getattr(logging, config.log_level.upper(), logging.WARNING)
    logger.setLevel(level)

    if log_path or config.file_logging:
        target_path = Path(log_path).expanduser() if log_path else config.log_path
        if not target_path.is_absolute():
            target_path = Path.cwd() / target_path
        target_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(str(target_path), encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellmate",
        description="Turn a natural-language request into a confirmed, executed shell command.",
        epilog=EXAMPLES + "\nsubcommands:\n  config {show,set,path}   inspect or change settings\n"
        "  history {show,clear}     inspect or reset the failure history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("intent", nargs="*", help="What you want to do, in plain language")
    parser.add_argument("--version", action="version", version=f"shellmate {__version__}")
    parser.add_argument("-f", "--force", action="store_true", help="Run proposals without asking for confirmation")
    parser.add_argument(
        "-e",
        "--explain",
        action="store_true",
        help="Ask for and display a line-by-line explanation of the command",
    )
    parser.add_argument("--backend", choices=available_backends(), help="Model backend to use")
    parser.add_argument("--model", dest="model_name", help="Override the model identifier")
    parser.add_argument("--config", dest="config_path", help="Path to JSON configuration file")
    parser.add_argument("--log-file", dest="log_file", help="Write runtime logs to the given file")
    parser.add_argument(
        "--telemetry-file",
        dest="telemetry_file",
        help="Write structured telemetry events to the given file",
    )
    parser.add_argument("--no-update-check", action="store_true", help="Skip the background update check")
    return parser


def _parse_value(key: str, raw: str) -> Any:
    if key in BOOLEAN_KEYS:
        lowered = raw.strip().lower()
        if lowered in {"1", "true", "yes", "on", "enabled"}:
            return True
        if lowered in {"0", "false", "no", "off", "disabled"}:
            return False
        raise ValueError(f"{key} expects a boolean (true/false), got {raw!r}")
    if key == "timeout":
        return float(raw)
    if key == "log_level":
        lowered = raw.strip().lower()
        if lowered not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {', '.join(LOG_LEVELS)}")
        return lowered
    if key == "backend" and raw not in available_backends():
        raise ValueError(f"backend must be one of: {', '.join(available_backends())}")
    return raw or None


def config_command(argv: List[str], console: Console) -> int:
    parser = argparse.ArgumentParser(prog="shellmate config", description="Inspect or change settings.")
    parser.add_argument("--config", dest="config_path", help="Path to JSON configuration file")
    sub = parser.add_subparsers(dest="action", required=True)
    sub.add_parser("show", help="Print the stored configuration")
    sub.add_parser("path", help="Print the configuration file location")
    set_parser = sub.add_parser("set", help="Change one setting")
    set_parser.add_argument("key", choices=SETTABLE_KEYS)
    set_parser.add_argument("value")
    args = parser.parse_args(argv)

    config = AppConfig.load(args.config_path, apply_env=False)
    target = Path(args.config_path).expanduser() if args.config_path else config.config_path

    if args.action == "path":
        console.print(str(target))
        return 0

    if args.action == "show":
        data = config.to_dict()
        if data["model"].get("api_key"):
            data["model"]["api_key"] = "********"
        console.print_json(json.dumps(data))
        return 0

    try:
        value = _parse_value(args.key, args.value)
    except ValueError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 2
    updated = config.update(**{args.key: value})
    saved = updated.save(str(target))
    shown = "********" if args.key == "api_key" else value
    console.print(f"[green]Updated {args.key}[/green] = {escape(str(shown))} ({saved})")
    return 0


def history_command(argv: List[str], console: Console) -> int:
    parser = argparse.ArgumentParser(prog="shellmate history", description="Inspect or reset the failure history.")
    parser.add_argument("--config", dest="config_path", help="Path to JSON configuration file")
    sub = parser.add_subparsers(dest="action", required=True)
    sub.add_parser("show", help="List recorded command failures")
    sub.add_parser("clear", help="Delete all recorded command failures")
    args = parser.parse_args(argv)

    config = AppConfig.load(args.config_path)
    store = FailureHistoryStore(config.resolved_history_path, logger=setup_logging(config))

    if args.action == "clear":
        if store.clear():
            console.print("[green]Failure history cleared.[/green]")
        else:
            console.print("No failure history recorded.")
        return 0

    records = store.load()
    if not records:
        console.print("No failure history recorded.")
        return 0
    for idx, record in enumerate(records, start=1):
        console.print(f"[cyan]{idx}.[/cyan] Intent: {escape(record.user_intent)}")
        console.print(f"   Failed Command: {escape(record.failed_command)}")
        console.print(f"   Error: {escape(record.error)}")
    return 0


def run_session(args: argparse.Namespace, intent: str, console: Console) -> int:
    config = AppConfig.load(args.config_path)
    logger = setup_logging(config, args.log_file or os.getenv("SHELLMATE_LOG_FILE"))
    telemetry = TelemetryEmitter.initialize(
        args.telemetry_file or config.telemetry_file or os.getenv("SHELLMATE_TELEMETRY_FILE")
    )

    if config.check_updates and not args.no_update_check:
        start_update_check("shellmate", __version__)

    try:
        environment = detect_environment()
    except EnvironmentDetectionError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        logger.error("Environment detection failed: %s", exc)
        return 1

    backend = args.backend or config.model.backend
    client_kwargs = config.model.to_kwargs()
    if args.model_name:
        client_kwargs["model"] = args.model_name

    try:
        client = create_client(backend, **client_kwargs)
    except ModelError as exc:
        console.print(f"[red]Failed to initialize model backend:[/red] {escape(str(exc))}")
        if backend == "openai" and not client_kwargs.get("api_key"):
            console.print("Set OPENAI_API_KEY or run: shellmate config set api_key <key>")
        logger.error("Model backend initialization failed: %s", exc)
        return 1

    logger.info("Model ready backend=%s model=%s", backend, getattr(client, "model", None))
    context = SessionContext(
        environment=environment,
        history=FailureHistoryStore(config.resolved_history_path, logger=logger),
        logger=logger,
        console=console,
        telemetry=telemetry,
    )
    session = CommandSession(context, client, force=args.force, explain=args.explain)
    try:
        session.run(intent)
    except SessionError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    console = Console()

    try:
        if argv and argv[0] == "config":
            return config_command(argv[1:], console)
        if argv and argv[0] == "history":
            return history_command(argv[1:], console)

        parser = build_parser()
        args = parser.parse_args(argv)
        intent = " ".join(args.intent).strip()
        if not intent:
            parser.error("describe what you want to do, e.g. shellmate list all files")
        return run_session(args, intent, console)
    except KeyboardInterrupt:
        console.print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
