"""An in-memory response cache with least-recently-used eviction."""

from __future__ import annotations

import string
import threading
import time
from dataclasses import dataclass
from typing import Callable

from .logger import LogLevel, ProxyLogger

MAX_SIZE = 200 * (1 << 20)
MAX_ELEMENT_SIZE = 10 * (1 << 20)
MAX_URL_LENGTH = 2048
ELEMENT_OVERHEAD = 40
_SEPARATOR = "=" * 45
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def normalize_url(url: str) -> str:
    """Lower-case ASCII letters and drop one trailing slash, keeping "/" itself."""
    url = url.translate(_ASCII_LOWER)
    if len(url) > 1 and url.endswith("/"):
        url = url[:-1]
    return url


def create_cache_key(request) -> str:
    """Build the normalised cache key host+path for a parsed request."""
    host = getattr(request, "host", None)
    path = getattr(request, "path", None)
    if not host or not path:
        raise ValueError("Invalid request for cache key creation")
    return normalize_url((host + path)[: MAX_URL_LENGTH - 1])


def format_age(seconds: int) -> str:
    """Describe an age in whole seconds, minutes or hours."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds} seconds"
    if seconds < 3600:
        return f"{seconds // 60} minutes"
    return f"{seconds // 3600} hours"


@dataclass(eq=False)
class CacheEntry:
    """A cached response and the key it is stored under."""

    url: str
    data: bytes
    lru_time: float

    @property
    def size(self) -> int:
        """Bytes this entry counts against the cache's capacity."""
        return len(self.data) + 1 + len(self.url) + ELEMENT_OVERHEAD


class ResponseCache:
    """Thread-safe store of responses keyed by normalised URL."""

    def __init__(
        self,
        max_size: int = MAX_SIZE,
        max_element_size: int = MAX_ELEMENT_SIZE,
        logger: ProxyLogger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_size = max_size
        self.max_element_size = max_element_size
        self._logger = logger
        self._clock = clock
        self._entries: list[CacheEntry] = []
        self._size = 0
        self._lock = threading.RLock()

    def _log(self, level: LogLevel, message: str) -> None:
        if self._logger is not None:
            self._logger.log(level, message)

    @property
    def size(self) -> int:
        """Bytes currently counted against the capacity."""
        return self._size

    def __len__(self) -> int:
        return len(self._entries)

    def find(self, key: str) -> CacheEntry | None:
        """Return the entry stored under ``key`` and mark it as used, or None."""
        with self._lock:
            for entry in self._entries:
                if entry.url == key:
                    self._log(LogLevel.DEBUG, f"Cache hit - URL found in cache: {key}")
                    entry.lru_time = self._clock()
                    return entry
            self._log(LogLevel.DEBUG, f"Cache miss - URL not found in cache: {key}")
            return None

    def add(self, data: bytes, key: str) -> bool:
        """Store ``data`` under ``key``; return False when it is too large."""
        data = bytes(data)
        element_size = len(data) + 1 + len(key) + ELEMENT_OVERHEAD
        with self._lock:
            if element_size > self.max_element_size:
                self._log(
                    LogLevel.WARN,
                    f"Element too large for cache: {element_size} bytes "
                    f"(max: {self.max_element_size})",
                )
                return False
            while self._size + element_size > self.max_size and self._entries:
                self._log(
                    LogLevel.INFO,
                    f"Cache full, removing LRU element. Current size: {self._size}, "
                    f"Max: {self.max_size}",
                )
                self.evict_lru()
            self._entries.insert(0, CacheEntry(url=key, data=data, lru_time=self._clock()))
            self._size += element_size
            self._log(
                LogLevel.INFO,
                f"Added element to cache, size: {element_size} bytes, URL: {key}, "
                f"new total: {self._size} bytes",
            )
            return True

    def evict_lru(self) -> CacheEntry | None:
        """Remove and return the least recently used entry, or None if empty."""
        with self._lock:
            if not self._entries:
                return None
            position, victim = min(
                enumerate(self._entries), key=lambda item: item[1].lru_time
            )
            del self._entries[position]
            self._size -= victim.size
            self._log(
                LogLevel.INFO,
                f"Removed element from cache, size: {victim.size} bytes, URL: {victim.url}",
            )
            return victim

    def entries(self) -> list[CacheEntry]:
        """Return the entries, most recently added first."""
        with self._lock:
            return list(self._entries)

    def describe(self) -> list[str]:
        """Return lines listing every entry, followed by the cache totals."""
        with self._lock:
            if not self._entries:
                return ["Cache is empty"]
            now = int(self._clock())
            lines = ["Current cache contents:", _SEPARATOR]
            for count, entry in enumerate(self._entries, start=1):
                age = format_age(now - int(entry.lru_time))
                lines.append(
                    f"[{count}] URL: {entry.url} "
                    f"(Size: {len(entry.data)} bytes, Age: {age})"
                )
            lines.append(_SEPARATOR)
            percent = self._size * 100.0 / self.max_size
            lines.append(
                f"Total cache elements: {len(self._entries)}, "
                f"Total size: {self._size}/{self.max_size} bytes ({percent:.2f}%)"
            )
            return lines