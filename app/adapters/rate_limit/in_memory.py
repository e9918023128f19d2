"""In-memory window store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit,
  and all accounting is lost on restart.
- Thread-safe: a single re-entrant lock guards the whole map.
"""

from __future__ import annotations

import threading

from app.adapters.rate_limit.base import AbstractWindowStore, WindowEntry


class InMemoryWindowStore(AbstractWindowStore):
    """Dict-backed window store.

    Expired entries are not removed on read: the limiter treats an entry whose
    window has lapsed as absent and overwrites it. ``sweep`` only reclaims
    memory for identifiers that never come back.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._entries: dict[str, WindowEntry] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryWindowStore(entries={len(self)})"

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def __contains__(self, identifier: object) -> bool:
        with self.lock:
            return identifier in self._entries

    def get(self, identifier: str) -> WindowEntry | None:
        with self.lock:
            return self._entries.get(identifier)

    def set(self, identifier: str, entry: WindowEntry) -> None:
        with self.lock:
            self._entries[identifier] = entry

    def delete(self, identifier: str) -> None:
        with self.lock:
            self._entries.pop(identifier, None)

    def sweep(self, now: int) -> int:
        with self.lock:
            expired = [key for key, entry in self._entries.items() if entry.reset_at < now]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        with self.lock:
            self._entries.clear()
