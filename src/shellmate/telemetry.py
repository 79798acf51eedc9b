"""Structured telemetry utilities for command sessions."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class TelemetryEmitter:
    """Writes structured telemetry events as line-delimited JSON."""

    path: Path
    enabled: bool

    @classmethod
    def initialize(cls, file_path: Optional[str]) -> "TelemetryEmitter":
        if not file_path:
            return cls.disabled()

        path = Path(file_path).expanduser()
        if not path.is_absolute():
            path = Path.cwd() / path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            return cls.disabled()
        return cls(path=path, enabled=True)

    @classmethod
    def disabled(cls) -> "TelemetryEmitter":
        return cls(path=Path("."), enabled=False)

    def emit(self, event: str, **fields: Any) -> None:
        if not self.enabled:
            return
        record: Dict[str, Any] = {"event": event, **fields}
        record.setdefault(
            "timestamp",
            datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        )
        try:
            with self.path.open("a", encoding="utf-8") as handle:
                json.dump(record, handle, ensure_ascii=True, default=str)
                handle.write("\n")
        except OSError:
            # Telemetry is best-effort.
            return
