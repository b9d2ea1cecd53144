# medisync/sequence.py
import threading
from typing import Dict


class IdentitySequence:
    """Hands out integer ids per entity kind.

    Ids are strictly increasing per kind and are never handed out twice, even
    after the record that held one is deleted. ``reserve`` moves a counter
    past ids that were assigned outside the sequence (seed data).
    """

    def __init__(self, start: int = 1):
        self._start = start
        self._counters: Dict[str, int] = {}
        self._lock = threading.Lock()

    def next(self, kind: str) -> int:
        with self._lock:
            issued = self._counters.get(kind, self._start)
            self._counters[kind] = issued + 1
            return issued

    def reserve(self, kind: str, issued_id: int) -> None:
        with self._lock:
            if issued_id >= self._counters.get(kind, self._start):
                self._counters[kind] = issued_id + 1

    def peek(self, kind: str) -> int:
        """The id the next call to ``next(kind)`` will return."""
        with self._lock:
            return self._counters.get(kind, self._start)
