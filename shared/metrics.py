"""Operational counters and gauges, persisted as a JSON snapshot."""

import json
import os
import tempfile
import threading
import time
from datetime import datetime, timezone


class Metrics:
    def __init__(self, path: str | None = None):
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}
        self._path = path
        self._start_time = time.time()
        self._lock = threading.Lock()

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def get_all(self) -> dict:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "uptime_seconds": round(time.time() - self._start_time, 1),
                "last_updated": datetime.now(timezone.utc).isoformat(),
            }

    def save(self) -> None:
        """Write the snapshot atomically (tmp file + os.replace)."""
        if not self._path:
            return
        directory = os.path.dirname(self._path) or "."
        os.makedirs(directory, exist_ok=True)
        data = self.get_all()
        fd, tmp = tempfile.mkstemp(dir=directory)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self._path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


def load_snapshot(path: str) -> dict | None:
    """Read a snapshot written by ``Metrics.save``; None if absent or unreadable."""
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError):
        return None
