"""Configuration helpers for shellmate."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

LOG_LEVELS = ("debug", "info", "warning", "error")


def default_home() -> Path:
    return Path(os.getenv("SHELLMATE_HOME", "~/.shellmate")).expanduser()


@dataclass
class ModelConfig:
    backend: str = "openai"
    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: Optional[float] = None

    def to_kwargs(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.model:
            payload["model"] = self.model
        if self.base_url:
            payload["base_url"] = self.base_url
        if self.api_key:
            payload["api_key"] = self.api_key
        if self.timeout is not None:
            payload["timeout"] = self.timeout
        return payload


@dataclass
class AppConfig:
    model: ModelConfig = field(default_factory=ModelConfig)
    log_level: str = "warning"
    file_logging: bool = False
    history_path: Optional[str] = None
    telemetry_file: Optional[str] = None
    check_updates: bool = True
    home: Path = field(default_factory=default_home)

    @property
    def config_path(self) -> Path:
        return self.home / "config.json"

    @property
    def resolved_history_path(self) -> Path:
        if self.history_path:
            return Path(self.history_path).expanduser()
        return self.home / "failure-history.json"

    @property
    def log_path(self) -> Path:
        return self.home / "shellmate.log"

    @classmethod
    def load(cls, path: Optional[str] = None, apply_env: bool = True) -> "AppConfig":
        home = default_home()
        candidate = Path(path).expanduser() if path else home / "config.json"
        data: Dict[str, Any] = {}
        if candidate.exists():
            try:
                loaded = json.loads(candidate.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                loaded = {}
            if isinstance(loaded, dict):
                data = loaded

        model_data = data.get("model", {})
        if not isinstance(model_data, dict):
            model_data = {}
        model = ModelConfig(
            backend=model_data.get("backend", "openai"),
            model=model_data.get("model"),
            base_url=model_data.get("base_url"),
            api_key=model_data.get("api_key"),
            timeout=model_data.get("timeout"),
        )

        config = cls(
            model=model,
            log_level=str(data.get("log_level", "warning")).lower(),
            file_logging=bool(data.get("file_logging", False)),
            history_path=data.get("history_path"),
            telemetry_file=data.get("telemetry_file"),
            check_updates=bool(data.get("check_updates", True)),
            home=home,
        )
        if apply_env:
            config._apply_environment()
        return config

    @classmethod
    def default(cls) -> "AppConfig":
        return cls()

    def _apply_environment(self) -> None:
        api_key = os.getenv("SHELLMATE_API_KEY") or os.getenv("OPENAI_API_KEY")
        if api_key:
            self.model.api_key = api_key
        if os.getenv("SHELLMATE_BACKEND"):
            self.model.backend = os.environ["SHELLMATE_BACKEND"]
        if os.getenv("SHELLMATE_MODEL"):
            self.model.model = os.environ["SHELLMATE_MODEL"]
        if os.getenv("SHELLMATE_BASE_URL"):
            self.model.base_url = os.environ["SHELLMATE_BASE_URL"]
        level = os.getenv("SHELLMATE_LOG_LEVEL")
        if level and level.lower() in LOG_LEVELS:
            self.log_level = level.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": asdict(self.model),
            "log_level": self.log_level,
            "file_logging": self.file_logging,
            "history_path": self.history_path,
            "telemetry_file": self.telemetry_file,
            "check_updates": self.check_updates,
        }

    def update(self, **changes: Any) -> "AppConfig":
        """Return a copy with top-level or ``model``-level fields replaced."""

        model_fields = {"backend", "model", "base_url", "api_key", "timeout"}
        model_changes = {k: v for k, v in changes.items() if k in model_fields}
        top_changes = {k: v for k, v in changes.items() if k not in model_fields}
        unknown = set(top_changes) - {
            "log_level",
            "file_logging",
            "history_path",
            "telemetry_file",
            "check_updates",
        }
        if unknown:
            raise KeyError(f"Unknown configuration key: {sorted(unknown)[0]}")
        return replace(self, model=replace(self.model, **model_changes), **top_changes)

    def save(self, path: Optional[str] = None) -> Path:
        target = Path(path).expanduser() if path else self.config_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8")
        try:
            os.chmod(target, 0o600)
        except OSError:
            pass
        return target
