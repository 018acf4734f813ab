"""
ScheduledJob — bookkeeping for one named recurring job in the host scheduler.

The job function itself is not stored here; this is the observable state
(what the CLI `status` command and the tests look at).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

from notification_master.core.types import CycleOutcome


class ExistingJobPolicy(str, Enum):
    """What to do when a job with the same name is already registered."""

    UPDATE = "update"  # replace it; never run two
    KEEP = "keep"      # leave the live one alone


class JobState(str, Enum):
    SCHEDULED = "scheduled"
    RUNNING = "running"
    WAITING_FOR_NETWORK = "waiting_for_network"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ScheduledJob:
    """A registered recurring job."""

    name: str
    interval_seconds: float
    require_network: bool = True
    run_timeout: float | None = None

    state: JobState = JobState.SCHEDULED
    run_count: int = 0
    retry_attempt: int = 0      # consecutive RETRY outcomes
    last_outcome: CycleOutcome | None = None
    last_run: float = 0.0       # unix timestamp, 0 if never run
    next_run: float = 0.0       # unix timestamp, 0 means fire now
    created_at: float = field(default_factory=time.time)

    @property
    def live(self) -> bool:
        return self.state not in (JobState.FAILED, JobState.CANCELLED)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "require_network": self.require_network,
            "state": self.state.value,
            "run_count": self.run_count,
            "retry_attempt": self.retry_attempt,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
            "last_run": self.last_run,
            "next_run": self.next_run,
        }
