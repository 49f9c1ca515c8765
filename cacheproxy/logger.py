"""Levelled, thread-safe logging to the console and an optional file."""

from __future__ import annotations

import sys
import threading
import time
from enum import IntEnum
from typing import TextIO

MAX_LOG_MESSAGE = 2048
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogLevel(IntEnum):
    """Severity of a log message; higher values are more verbose."""

    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3


def parse_log_level(name: str) -> LogLevel:
    """Return the level called ``name``, compared without regard to case."""
    try:
        return LogLevel[name.upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {name}") from None


def _level_name(level: int) -> str:
    try:
        return LogLevel(level).name
    except ValueError:
        return "UNKNOWN"


class ProxyLogger:
    """Write timestamped messages to a stream and, if it opens, a log file."""

    def __init__(
        self,
        path: str | None = None,
        level: int = LogLevel.INFO,
        stream: TextIO | None = None,
    ) -> None:
        self.level = LogLevel(level)
        self._stream = stream
        self._lock = threading.Lock()
        self._file: TextIO | None = None
        if path is not None:
            try:
                self._file = open(path, "a", encoding="utf-8")
            except OSError as exc:
                print(f"Error opening log file: {path}", file=sys.stderr)
                print(f"fopen: {exc.strerror or exc}", file=sys.stderr)
        self.log(LogLevel.INFO, "Proxy server logging initialized")

    def log(self, level: int, message: str) -> None:
        """Write ``message`` when ``level`` is within the configured level."""
        if int(level) > self.level:
            return
        with self._lock:
            timestamp = time.strftime(TIMESTAMP_FORMAT, time.localtime())
            text = message[: MAX_LOG_MESSAGE - 1]
            line = f"[{timestamp}] [{_level_name(level)}] {text}\n"
            stream = self._stream if self._stream is not None else sys.stdout
            stream.write(line)
            stream.flush()
            if self._file is not None:
                self._file.write(line)
                self._file.flush()

    def close(self) -> None:
        """Close the log file, if one is open."""
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    def __enter__(self) -> ProxyLogger:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()