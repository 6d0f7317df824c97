from __future__ import annotations

import threading
from typing import Dict

from thread_sync.persistence.base import KeyValueStorage


class InMemoryStorage(KeyValueStorage):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)
