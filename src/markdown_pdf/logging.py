from __future__ import annotations

import csv
import json
import time
from dataclasses import asdict, dataclass, field
from io import StringIO
from pathlib import Path
from typing import Any

from .utils import atomic_write


@dataclass(slots=True)
class StageTimings:
    render_ms: float = 0.0
    compose_ms: float = 0.0
    assets_ms: float = 0.0
    pdf_ms: float = 0.0


@dataclass(slots=True)
class RunLogEntry:
    run_id: str
    title: str
    status: str
    warnings: list[str]
    error_code: str | None
    timings: StageTimings
    html_bytes: int = 0
    pdf_bytes: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file

    def append(self, entry: RunLogEntry) -> None:
        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._log_file.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


class NullRunLogger:
    def append(self, entry: RunLogEntry) -> None:
        return None


@dataclass(slots=True)
class BatchSummary:
    timestamp: float = field(default_factory=time.time)
    total: int = 0
    successes: int = 0
    failures: int = 0
    warnings: dict[str, int] = field(default_factory=dict)

    def record_warnings(self, warnings: list[str]) -> None:
        for warning in warnings:
            code = warning.split(":", 1)[0]
            self.warnings[code] = self.warnings.get(code, 0) + 1

    def as_row(self, batch_id: str) -> list[str]:
        warning_json = json.dumps(self.warnings, sort_keys=True)
        return [
            batch_id,
            time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.timestamp)),
            str(self.total),
            str(self.successes),
            str(self.failures),
            warning_json,
        ]


SUMMARY_HEADER = ["batch_id", "timestamp", "total", "successes", "failures", "warnings"]


def append_summary_csv(path: Path, summary: BatchSummary, batch_id: str) -> None:
    rows: list[list[str]] = []
    header = SUMMARY_HEADER
    if path.exists():
        with path.open("r", encoding="utf-8", newline="") as handle:
            existing = list(csv.reader(handle))
        if existing:
            header = existing[0]
            rows = existing[1:]
    rows.append(summary.as_row(batch_id))
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    atomic_write(path, buffer.getvalue())
