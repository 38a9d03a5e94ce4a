"""
Duplicate-suppression window for outgoing invitation emails.

Best effort only: entries live in process memory, are lost on restart and are
not shared between worker processes.
"""

import threading
import time
from typing import Callable, Dict, Optional


class DuplicateSuppressionCache:
    """Remembers when each ``visitorEmail_id`` key was last sent."""

    def __init__(self, ttl_seconds: float = 60, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._sent: Dict[str, float] = {}
        self._lock = threading.Lock()

    def last_sent(self, key: str) -> Optional[float]:
        with self._lock:
            return self._sent.get(key)

    def seconds_since(self, key: str) -> Optional[float]:
        sent_at = self.last_sent(key)
        if sent_at is None:
            return None
        return self.clock() - sent_at

    def is_recent(self, key: str) -> bool:
        elapsed = self.seconds_since(key)
        return elapsed is not None and elapsed < self.ttl_seconds

    def mark(self, key: str) -> None:
        with self._lock:
            self._sent[key] = self.clock()

    def clear(self) -> None:
        with self._lock:
            self._sent.clear()

    def __len__(self) -> int:
        return len(self._sent)
