from __future__ import annotations

from typing import Protocol


class KeyValueStorage(Protocol):
    """Opaque string blobs by key, like a browser's local storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...
