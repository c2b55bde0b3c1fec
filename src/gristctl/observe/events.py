"""Command timing and NDJSON lifecycle events on stderr."""

from __future__ import annotations

import json
import os
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, TextIO


class Timer:
    """Simple context-manager timer for measuring duration_ms."""

    def __init__(self) -> None:
        self.start: float = 0
        self.elapsed_ms: int = 0

    def __enter__(self) -> "Timer":
        self.start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed_ms = int((time.perf_counter() - self.start) * 1000)


class EventEmitter:
    """Emits NDJSON lifecycle events to stderr.

    Events are written from the fan-out worker threads too, so each line is
    written under a lock.
    """

    def __init__(self, enabled: bool = False, stream: TextIO | None = None) -> None:
        self.enabled = enabled
        self._stream = stream
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls, flag: bool = False) -> "EventEmitter":
        """Enabled by ``--events`` or ``GRIST_EVENTS=true``."""
        return cls(enabled=flag or os.environ.get("GRIST_EVENTS", "").lower() == "true")

    def emit(self, event: str, data: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        payload = {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data or {},
        }
        stream = self._stream or sys.stderr
        with self._lock:
            stream.write(json.dumps(payload, default=str) + "\n")
            stream.flush()
