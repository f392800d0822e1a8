"""In-memory TTL cache for parse results.

Expired entries are dropped lazily on `get` and eagerly by `sweep`, which
an optional daemon thread runs on a fixed interval. Values are deep-copied
on the way in and out, so callers can mutate what they get back without
touching the cached entry.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from calendar_assistant.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class ParseCache:
    def __init__(
        self,
        default_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float | None = None,
    ) -> None:
        self.default_ttl = default_ttl if default_ttl is not None else settings.cache_ttl_seconds
        self.sweep_interval = (
            sweep_interval if sweep_interval is not None else settings.cache_sweep_interval_seconds
        )
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    def get(self, key: str) -> Any | None:
        """Return a copy of the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                return None
            return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(
                value=copy.deepcopy(value),
                expires_at=self._clock() + ttl,
            )
        logger.debug("Cached %s for %.0fs", key, ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        """Number of stored entries, expired ones included until swept."""
        with self._lock:
            return len(self._entries)

    def sweep(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def start_sweeper(self) -> None:
        """Run `sweep` every `sweep_interval` seconds on a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="parse-cache-sweeper", daemon=True
        )
        self._sweeper.start()

    def stop_sweeper(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            self.sweep()
