"""
Settings — typed view over a StorageProvider with the persisted key layout.

Keys:
    polling_enabled              bool
    polling_url                  str
    polling_interval_minutes     int
    active_notification_service  int (0..3); string labels are accepted on read

Values are stored as JSON so an external tool inspecting the database sees
plain values.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from notification_master.core.types import (
    DEFAULT_INTERVAL_MINUTES,
    ActiveService,
    PollingConfiguration,
)
from notification_master.store.base import StorageProvider

logger = logging.getLogger(__name__)

PREF_POLLING_ENABLED = "polling_enabled"
PREF_POLLING_URL = "polling_url"
PREF_POLLING_INTERVAL_MINUTES = "polling_interval_minutes"
PREF_ACTIVE_NOTIFICATION_SERVICE = "active_notification_service"


def _encode(value: Any) -> bytes:
    return json.dumps(value).encode("utf-8")


class Settings:
    """
    Usage:
        settings = Settings(InMemoryStorage())
        await settings.save_polling(PollingConfiguration("https://x/feed", 15))
        config = await settings.polling_configuration()
    """

    def __init__(self, storage: StorageProvider) -> None:
        self._storage = storage

    @property
    def storage(self) -> StorageProvider:
        return self._storage

    # ── Raw typed accessors ──────────────────────────────────────────────────

    async def get(self, key: str, default: Any = None) -> Any:
        raw = await self._storage.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning(f"Discarding undecodable setting {key!r}")
            return default

    async def set(self, key: str, value: Any) -> None:
        await self._storage.set(key, _encode(value))

    async def as_dict(self) -> dict[str, Any]:
        """Every stored preference, decoded. Undecodable values come back as None."""
        decoded: dict[str, Any] = {}
        for key, raw in (await self._storage.snapshot()).items():
            try:
                decoded[key] = json.loads(raw.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                decoded[key] = None
        return decoded

    async def remove(self, key: str) -> bool:
        return await self._storage.delete(key)

    async def get_bool(self, key: str, default: bool = False) -> bool:
        value = await self.get(key, default)
        return value if isinstance(value, bool) else default

    async def get_int(self, key: str, default: int = 0) -> int:
        value = await self.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        return int(value)

    async def get_str(self, key: str, default: str | None = None) -> str | None:
        value = await self.get(key, default)
        return value if isinstance(value, str) else default

    # ── Polling configuration ────────────────────────────────────────────────

    async def polling_enabled(self) -> bool:
        return await self.get_bool(PREF_POLLING_ENABLED, False)

    async def set_polling_enabled(self, enabled: bool) -> None:
        await self.set(PREF_POLLING_ENABLED, enabled)

    async def save_polling(
        self, config: PollingConfiguration, enabled: bool = True
    ) -> None:
        await self._storage.put_many(
            {
                PREF_POLLING_ENABLED: _encode(enabled),
                PREF_POLLING_URL: _encode(config.feed_url),
                PREF_POLLING_INTERVAL_MINUTES: _encode(config.interval_minutes),
            }
        )

    async def polling_configuration(
        self, default_interval: int = DEFAULT_INTERVAL_MINUTES
    ) -> PollingConfiguration | None:
        """The last persisted configuration, or None if no url was ever saved."""
        url = await self.get_str(PREF_POLLING_URL)
        if not url:
            return None
        interval = await self.get_int(PREF_POLLING_INTERVAL_MINUTES, default_interval)
        if interval < 1:
            interval = default_interval
        return PollingConfiguration(feed_url=url, interval_minutes=interval)

    # ── Active service ───────────────────────────────────────────────────────

    async def active_service(self) -> ActiveService:
        return ActiveService.parse(await self.get(PREF_ACTIVE_NOTIFICATION_SERVICE))

    async def set_active_service(self, service: ActiveService) -> None:
        await self.set(PREF_ACTIVE_NOTIFICATION_SERVICE, int(service))
