from __future__ import annotations

import threading


class LabelMemory:
    """Backup statuses observed since process start.

    Only ever grows, so every status once seen keeps being exported (at zero
    when absent) and dashboards do not show gaps for rare statuses.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    def observe(self, status: str) -> None:
        with self._lock:
            self._seen.add(status)

    def known_statuses(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._seen)

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
