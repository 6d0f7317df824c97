from __future__ import annotations

import os
import re
import threading
from pathlib import Path

from thread_sync.persistence.base import KeyValueStorage


_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileStorage(KeyValueStorage):
    """One file per key under `directory`.

    Writes go to a temporary sibling first and are moved into place, so a
    reader sees either the old blob or the new one.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self._directory / f"{_UNSAFE.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        with self._lock:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)

    def delete(self, key: str) -> None:
        with self._lock:
            self._path(key).unlink(missing_ok=True)
