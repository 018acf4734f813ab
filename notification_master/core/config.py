"""
Notification Master configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code)
2. Environment variables (NM_*)
3. Project config (./notification_master.toml)
4. User config (~/.notification_master/config.toml)
5. Defaults (hardcoded)

Environment variables are NM_<SECTION>_<FIELD>, e.g. NM_HTTP_READ_TIMEOUT or
NM_STORAGE_PATH. NM_POLLING_INTERVAL is accepted as a short form of
NM_POLLING_DEFAULT_INTERVAL_MINUTES. Values stay strings and pydantic coerces
them to the field type. String values may reference ${OTHER_VAR}.
"""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from notification_master.core.errors import ConfigError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class PollingConfig(BaseModel):
    """Polling defaults applied when a caller omits them."""

    default_interval_minutes: int = Field(default=15, ge=1)


class HttpConfig(BaseModel):
    """Feed and image HTTP client configuration."""

    connect_timeout: float = 30.0
    read_timeout: float = 30.0
    user_agent: str = "notification-master/0.1"
    follow_redirects: bool = True


class SchedulerConfig(BaseModel):
    """Host scheduler configuration."""

    initial_backoff_seconds: float = 30.0
    max_backoff_seconds: float = 5 * 60 * 60
    run_timeout_seconds: float = 600.0
    network_check_url: str = ""  # empty = assume the network is up


class DeliveryConfig(BaseModel):
    """Delivery and feed-decoding policy."""

    parse_failure_policy: Literal["diagnostic", "strict"] = "diagnostic"
    diagnostic_body_limit: int = 200
    default_channel_id: str = "notification_master_default_channel"


class StorageConfig(BaseModel):
    """Persisted settings storage."""

    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = "~/.notification_master/settings.db"


class LoggingConfig(BaseModel):
    """Log file locations and verbosity."""

    dir: str = "~/.notification_master/logs"
    console_level: str = "WARNING"
    log_events: bool = True
    notifications_log: str = "~/.notification_master/notifications.log"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class NotificationMasterConfig(BaseModel):
    """Root configuration for Notification Master."""

    polling: PollingConfig = Field(default_factory=PollingConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> NotificationMasterConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml > defaults
        """
        layers: list[dict[str, Any]] = []
        for path in (
            user_path or get_home() / "config.toml",
            project_path or Path.cwd() / "notification_master.toml",
        ):
            if path.is_file():
                layers.append(_load_toml(path))
        layers.append(_from_environment())
        layers.append(overrides or {})

        merged: dict[str, Any] = {}
        for layer in layers:
            merged = _merged(merged, layer)
        merged = _expand_env_refs(merged)

        try:
            return NotificationMasterConfig(**merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def get_storage_path(self) -> Path:
        return Path(self.storage.path).expanduser()

    def get_log_dir(self) -> Path:
        return Path(self.logging.dir).expanduser()


def get_home() -> Path:
    """Get the Notification Master home directory (~/.notification_master)."""
    return Path.home() / ".notification_master"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Internal Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}", {"path": str(path)}) from e


_ENV_PREFIX = "NM_"
_ENV_ALIASES = {"NM_POLLING_INTERVAL": ("polling", "default_interval_minutes")}
_ENV_REF = re.compile(r"\$\{([^}]+)\}")


def _env_names() -> dict[str, tuple[str, str]]:
    names = dict(_ENV_ALIASES)
    for section, info in NotificationMasterConfig.model_fields.items():
        for key in info.annotation.model_fields:
            names[f"{_ENV_PREFIX}{section}_{key}".upper()] = (section, key)
    return names


def _from_environment() -> dict[str, Any]:
    found: dict[str, dict[str, str]] = {}
    for name, (section, key) in _env_names().items():
        if name in os.environ:
            found.setdefault(section, {})[key] = os.environ[name]
    return found


def _merged(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """A new dict with override laid over base, tables merged key by key."""
    out = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merged(out[key], value)
        else:
            out[key] = value
    return out


def _expand_env_refs(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _expand_env_refs(v) for k, v in value.items()}
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
    return value
