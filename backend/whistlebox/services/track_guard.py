"""
Failed-PIN monitor for the tracking path.

Sliding window of failed attempts per complaint id. Once an id collects
`max_failures` misses inside the window it is locked: tracking is refused
even with the right PIN until old misses age out. Keys are complaint ids,
not client addresses, so guessing from many clients still trips it.

State is per process and lost on restart.
"""

from collections import defaultdict, deque
from typing import Deque, Dict
import threading
import time

import structlog

logger = structlog.get_logger()


class TrackAttemptGuard:
    # Prune expired keys once this many ids are being tracked
    MAX_KEYS = 10_000

    def __init__(self, max_failures: int = 5, window_seconds: float = 900.0):
        if max_failures < 1:
            raise ValueError("max_failures must be >= 1")
        self.max_failures = max_failures
        self.window_seconds = window_seconds
        self._failures: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.RLock()

    def _prune(self, key: str, now: float) -> Deque[float]:
        hits = self._failures[key]
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def is_locked(self, complaint_id: str) -> bool:
        now = time.monotonic()
        with self._lock:
            if complaint_id not in self._failures:
                return False
            hits = self._prune(complaint_id, now)
            if not hits:
                del self._failures[complaint_id]
                return False
            return len(hits) >= self.max_failures

    def record_failure(self, complaint_id: str) -> int:
        """
        Count one miss and return the number of misses now in the window.
        """
        now = time.monotonic()
        with self._lock:
            hits = self._prune(complaint_id, now)
            hits.append(now)
            count = len(hits)
            if len(self._failures) > self.MAX_KEYS:
                self.cleanup_expired()

        if count >= self.max_failures:
            logger.warning(
                "track_guessing_suspected",
                complaint_id=complaint_id,
                failures=count,
                window_seconds=self.window_seconds,
            )
        return count

    def reset(self, complaint_id: str) -> None:
        with self._lock:
            self._failures.pop(complaint_id, None)

    def failures(self, complaint_id: str) -> int:
        now = time.monotonic()
        with self._lock:
            if complaint_id not in self._failures:
                return 0
            return len(self._prune(complaint_id, now))

    def cleanup_expired(self) -> int:
        """Drop ids whose misses have all aged out. Returns how many were dropped."""
        now = time.monotonic()
        removed = 0
        with self._lock:
            for key in list(self._failures):
                if not self._prune(key, now):
                    del self._failures[key]
                    removed += 1
        return removed
