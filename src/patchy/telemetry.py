"""JSONL telemetry for patchy runs.

Event schema:
  {"timestamp": <float>, "run_id": <str>, "type": <str>, "data": <object>}
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import TelemetryConfig

_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"), "gh_REDACTED"),
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"), "github_pat_REDACTED"),
    # Credentials embedded in remote URLs.
    (re.compile(r"(https?://)[^/@\s]+@"), r"\1REDACTED@"),
]


def redact_text(s: str, *, max_len: int = 400) -> str:
    """Redact token shapes and URL credentials, then truncate."""
    if not s:
        return ""
    out = s
    for pat, repl in _PATTERNS:
        out = pat.sub(repl, out)
    out = out.strip()
    if len(out) > max_len:
        out = out[:max_len] + "...(truncated)"
    return out


# Every event a run can emit, in the order they normally appear.
EVENT_TYPES = (
    "run_started",
    "staged",
    "contribution_merged",
    "contribution_failed",
    "patch_applied",
    "patch_failed",
    "run_completed",
)


@dataclass(frozen=True)
class TelemetrySink:
    """Run event log for one repository.

    String values in event data pass through `redact_text`, so error
    messages quoting remote URLs never leak credentials to disk.
    """

    enabled: bool
    path: Path

    @classmethod
    def for_repo(cls, repo_path: Path, config: TelemetryConfig) -> TelemetrySink:
        """Resolve the configured log path against the repository root."""
        return cls(enabled=config.enabled, path=Path(repo_path) / config.log_path)

    def log(self, run_id: str, event_type: str, data: dict[str, Any]) -> None:
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown telemetry event: {event_type}")
        if not self.enabled:
            return

        event = {
            "timestamp": time.time(),
            "run_id": run_id,
            "type": event_type,
            "data": {k: redact_text(v) if isinstance(v, str) else v for k, v in data.items()},
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as log_file:
            log_file.write(json.dumps(event, ensure_ascii=False) + "\n")
