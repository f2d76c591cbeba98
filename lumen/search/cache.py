from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from .models import SearchResponse

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Entry:
    response: SearchResponse
    expires_at: float


class ResponseCache:
    """TTL cache of complete search responses.

    A lock guards the entry map so the cache can be shared by concurrent
    requests. Expired entries are dropped lazily when read.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> SearchResponse | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry.response

    def set(self, key: str, response: SearchResponse, ttl: float) -> None:
        with self._lock:
            self._entries[key] = _Entry(response=response, expires_at=self._clock() + ttl)

    def clear(self) -> None:
        with self._lock:
            n = len(self._entries)
            self._entries.clear()
        log.info("cache_cleared", extra={"hits": n})

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.expires_at <= now]
            for k in stale:
                del self._entries[k]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
