"""
In-memory preference store. Nothing survives the process; selected with
`storage.backend = "memory"` and used throughout the tests.
"""

from __future__ import annotations

from typing import Mapping

from notification_master.store.base import StorageProvider


class InMemoryStorage(StorageProvider):
    def __init__(self) -> None:
        self._prefs: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self._prefs.get(key)

    async def put_many(self, values: Mapping[str, bytes]) -> None:
        self._prefs.update(values)

    async def delete(self, key: str) -> bool:
        return self._prefs.pop(key, None) is not None

    async def snapshot(self) -> dict[str, bytes]:
        return dict(sorted(self._prefs.items()))

    async def close(self) -> None:
        self._prefs.clear()
