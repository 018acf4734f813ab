"""
Preference store interface.

The durable home of the handful of settings that must survive a restart
(which service is active, the feed url, the interval). Values are opaque
bytes; notification_master.store.settings owns the encoding.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping


class StorageProvider(ABC):
    """
    Abstract preference store.

    Implementations:
        SQLiteStorage — file-backed, the default
        InMemoryStorage — tests and throwaway sessions
    """

    async def initialize(self) -> None:
        """Open the backend. Safe to call more than once."""
        return None

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        ...

    @abstractmethod
    async def put_many(self, values: Mapping[str, bytes]) -> None:
        """Write every value or none of them."""
        ...

    async def set(self, key: str, value: bytes) -> None:
        await self.put_many({key: value})

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove key. Returns whether it was present."""
        ...

    @abstractmethod
    async def snapshot(self) -> dict[str, bytes]:
        """Every stored preference, keyed by name."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...
