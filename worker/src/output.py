"""Append-only writer for processed records."""

import os
import threading


class ProcessedLogWriter:
    """Appends one line per record and makes it durable before returning.

    Never truncates or rewrites; duplicate records simply become duplicate lines.
    """

    def __init__(self, path: str):
        self._path = path
        self._lock = threading.Lock()
        self._file = None
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._file = open(path, "a", encoding="utf-8")

    @property
    def path(self) -> str:
        return self._path

    def append(self, line: str) -> None:
        if not line.endswith("\n"):
            line += "\n"
        with self._lock:
            if self._file is None:
                raise ValueError(f"writer for {self._path} is closed")
            self._file.write(line)
            self._file.flush()
            os.fsync(self._file.fileno())

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None
