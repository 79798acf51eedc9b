"""Persistent log of failed commands used to steer future prompts."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

MAX_HISTORY_SIZE = 200


@dataclass(frozen=True)
class FailureRecord:
    user_intent: str
    failed_command: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "userIntent": self.user_intent,
            "failedCommand": self.failed_command,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FailureRecord":
        values = (data.get("userIntent"), data.get("failedCommand"), data.get("error"))
        if not all(isinstance(value, str) for value in values):
            raise ValueError(f"Malformed failure record: {data!r}")
        return cls(user_intent=values[0], failed_command=values[1], error=values[2])


class FailureHistoryStore:
    """Bounded, append-only failure history backed by a JSON file.

    The file is read-modify-written on every :meth:`record` call without
    locking, so concurrent processes may lose updates.
    """

    def __init__(
        self,
        path: Path,
        capacity: int = MAX_HISTORY_SIZE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.path = Path(path)
        self.capacity = capacity
        self.logger = logger or logging.getLogger("shellmate")

    def load(self) -> List[FailureRecord]:
        if not self.path.exists():
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            self.logger.error("Error loading command history from %s: %s", self.path, exc)
            return []

        entries = data.get("failures") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            self.logger.error("Command history at %s has unexpected shape; ignoring it", self.path)
            return []

        records: List[FailureRecord] = []
        for entry in entries:
            try:
                records.append(FailureRecord.from_dict(entry))
            except (AttributeError, ValueError):
                self.logger.warning("Skipping malformed history entry: %r", entry)
        return records

    def record(self, user_intent: str, failed_command: str, error: str) -> FailureRecord:
        failure = FailureRecord(user_intent=user_intent, failed_command=failed_command, error=error)
        records = self.load()
        records.append(failure)
        self._save(records[-self.capacity:])
        self.logger.debug("Recorded failure for %r (%s total)", failed_command, min(len(records), self.capacity))
        return failure

    def clear(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True

    def _save(self, records: List[FailureRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"failures": [record.to_dict() for record in records]}
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
