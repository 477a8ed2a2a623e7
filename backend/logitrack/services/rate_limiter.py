"""In-memory sliding-window rate limiting for the auth endpoints."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Deque, Dict, Optional


class InMemoryRateLimiter:
    """Per-key sliding window; state is local to one process."""

    def __init__(self, sweep_interval: int = 60) -> None:
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque[float]] = {}
        self._windows: Dict[str, int] = {}
        self._sweep_interval = sweep_interval
        self._last_sweep = 0.0

    def _prune(self, key: str, window_seconds: int, now: float) -> Deque[float]:
        hits = self._hits.get(key, deque())
        cutoff = now - window_seconds
        while hits and hits[0] < cutoff:
            hits.popleft()
        if not hits:
            self._forget(key)
        return hits

    def _forget(self, key: str) -> None:
        self._hits.pop(key, None)
        self._windows.pop(key, None)

    def _sweep(self, now: float) -> None:
        """Drop keys whose whole window has passed since their last hit"""
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        stale = [
            key for key, hits in self._hits.items()
            if not hits or hits[-1] < now - self._windows.get(key, 0)
        ]
        for key in stale:
            self._forget(key)

    def allow(self, key: str, limit: int, window_seconds: int, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        with self._lock:
            self._sweep(now)
            hits = self._prune(key, window_seconds, now)
            if len(hits) >= limit:
                return False
            hits.append(now)
            self._hits[key] = hits
            self._windows[key] = window_seconds
            return True

    def reset(self, key_prefix: str = "") -> None:
        """Forget hits for keys starting with ``key_prefix`` (all keys by default)"""
        with self._lock:
            for key in [k for k in self._hits if k.startswith(key_prefix)]:
                self._forget(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)


rate_limiter = InMemoryRateLimiter()
