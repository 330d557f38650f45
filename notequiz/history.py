from threading import Lock
from typing import Iterable


class HistoryStore:
    """Process-local, append-only log of previously generated question texts."""

    def __init__(self):
        self._texts: list[str] = []
        self._lock = Lock()

    def append(self, texts: Iterable[str]) -> None:
        with self._lock:
            self._texts.extend(texts)

    def reset(self) -> None:
        with self._lock:
            self._texts.clear()

    def snapshot(self) -> list[str]:
        with self._lock:
            return list(self._texts)

    def __len__(self) -> int:
        with self._lock:
            return len(self._texts)
