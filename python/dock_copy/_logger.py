# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Fire-and-forget transfer history on disk.

Writes are plain synchronous appends.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import datetime

    from dock_copy._config import DockCopyConfig
    from dock_copy.types import TransferOutcome, TransferRequest


class TransferLogger:
    """Appends one JSON line per transfer to ``<log_dir>/history.jsonl``."""

    def __init__(self, log_dir: Path | None, *, enabled: bool = True) -> None:
        self._log_dir = log_dir
        self._enabled = enabled and log_dir is not None

    @classmethod
    def from_config(cls, config: DockCopyConfig) -> TransferLogger:
        """Build a logger from ``auto_log`` and ``log_dir``."""
        log_dir = Path(config.log_dir).expanduser() if config.log_dir else None
        return cls(log_dir, enabled=config.auto_log)

    @property
    def enabled(self) -> bool:
        """Whether logging is active."""
        return self._enabled

    @property
    def history_path(self) -> Path | None:
        if self._log_dir is None:
            return None
        return self._log_dir / "history.jsonl"

    def log_success(self, outcome: TransferOutcome, started_at: datetime.datetime) -> None:
        """Record a completed transfer."""
        self.append_history(
            {
                "type": "copy",
                "status": "ok",
                "container_id": outcome.container_id,
                "dest_path": outcome.dest_path,
                "source": outcome.source,
                "bytes_sent": outcome.bytes_sent,
                "duration_ms": round(outcome.duration_ms, 1),
                "archive_mode": outcome.archive_mode,
                "timestamp": started_at.isoformat(),
            }
        )

    def log_failure(
        self,
        request: TransferRequest,
        error: BaseException,
        started_at: datetime.datetime,
    ) -> None:
        """Record a transfer that raised."""
        self.append_history(
            {
                "type": "copy",
                "status": "error",
                "container_id": request.container_id,
                "dest_path": request.dest_path,
                "source": request.source.describe(),
                "error": type(error).__name__,
                "detail": str(error),
                "timestamp": started_at.isoformat(),
            }
        )

    def append_history(self, entry: dict[str, object]) -> None:
        """Append one JSONL line to ``history.jsonl``."""
        if not self._enabled or self._log_dir is None:
            return
        self._log_dir.mkdir(parents=True, exist_ok=True)
        with (self._log_dir / "history.jsonl").open("a") as f:
            f.write(json.dumps(entry, default=str) + "\n")
