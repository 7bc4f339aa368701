"""Structured build event records."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO, "warning": logging.WARNING}


@dataclass(slots=True)
class StructuredLogger:
    """Collects build events and mirrors them to the ``runtimekit`` logger."""

    records: list[dict[str, Any]] = field(default_factory=list)
    name: str = "runtimekit.build"

    def log(
        self,
        *,
        operation: str,
        stage: str | None,
        message: str,
        platform: str | None = None,
        profile: str | None = None,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "stage": stage,
            "platform": platform,
            "profile": profile,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)
        logging.getLogger(self.name).log(_LEVELS.get(level, logging.INFO), message)

    def records_for_stage(self, stage: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("stage") == stage]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path
