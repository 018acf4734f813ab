"""
Logging for the CLI process.

Two dated files per day live in the log directory:
    notification_master_YYYYMMDD.log   stdlib logging, everything at DEBUG
    events_YYYYMMDD.jsonl              one JSON object per bus event
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path

from notification_master.core.bus import MiddlewareNext
from notification_master.core.events import Event

ROOT_LOGGER = "notification_master"
DEFAULT_LOG_DIR = Path.home() / ".notification_master" / "logs"

_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_CONSOLE_FORMAT = "[%(levelname)s] %(message)s"


def log_file_for(log_dir: Path, day: date | None = None) -> Path:
    return log_dir / f"notification_master_{(day or date.today()):%Y%m%d}.log"


def events_file_for(log_dir: Path, day: date | None = None) -> Path:
    return log_dir / f"events_{(day or date.today()):%Y%m%d}.jsonl"


def setup_logging(
    log_dir: Path | None = None,
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
) -> logging.Logger:
    """
    Point the package logger at stderr and today's log file.

    Replaces any handlers from an earlier call, so the CLI can call this once
    per command.
    """
    log_dir = (log_dir or DEFAULT_LOG_DIR).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_file_for(log_dir)

    stream = logging.StreamHandler()
    stream.setLevel(console_level)
    stream.setFormatter(logging.Formatter(_CONSOLE_FORMAT))

    to_file = logging.FileHandler(log_file, encoding="utf-8")
    to_file.setLevel(file_level)
    to_file.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers = [stream, to_file]
    logger.setLevel(logging.DEBUG)

    logger.info(f"Logging initialized. File: {log_file}")
    return logger


class EventLogger:
    """
    Bus middleware that appends each event to today's JSON-lines file.

    Usage:
        bus.use(EventLogger(log_dir=config.get_log_dir()).middleware)

    Values that JSON cannot encode are written as their str(). A failed write
    is logged and the event still reaches subscribers.
    """

    def __init__(self, log_dir: Path | None = None, log_events: bool = True) -> None:
        self._log_dir = (log_dir or DEFAULT_LOG_DIR).expanduser()
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._log_events = log_events
        self._events_file = events_file_for(self._log_dir)
        self._logger = logging.getLogger(f"{ROOT_LOGGER}.events")

    @property
    def events_file(self) -> Path:
        return self._events_file

    async def middleware(self, event: Event, next_handler: MiddlewareNext) -> Event:
        self._logger.debug(f"{event.type} from {event.source or '?'} {sorted(event.data)}")
        if self._log_events:
            self._append(event)
        return await next_handler(event)

    def _append(self, event: Event) -> None:
        line = json.dumps(
            {
                "timestamp": datetime.fromtimestamp(event.timestamp).isoformat(),
                "id": event.id,
                "type": event.type,
                "source": event.source,
                "parent_id": event.parent_id,
                "data": event.data,
            },
            default=str,
        )
        try:
            with self._events_file.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            self._logger.warning(f"Could not append to {self._events_file}: {e}")
