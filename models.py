# ======================================================================
#  File......: models.py
#  Purpose...: Dataclasses / enums for job descriptors, views and log history.
#  Version...: 0.2.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, List


class Outcome(Enum):
    SUCCESS = "Success"
    FAILURE = "Failed"

    @property
    def is_success(self) -> bool:
        return self is Outcome.SUCCESS


class Severity(Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class TriggerState(Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    STARTING = "starting"
    AWAITING_SETTLE = "awaiting_settle"
    REFRESHING = "refreshing"
    FAILED = "failed"


@dataclass(frozen=True)
class JobDescriptor:
    """What the scheduler reports about a job. Read-only."""
    job_id: str
    name: str
    is_enabled: bool = True
    is_running: bool = False
    last_execution: Optional[datetime] = None
    next_execution: Optional[datetime] = None
    type_name: str = ""


@dataclass
class JobView:
    job_id: str
    name: str
    is_enabled: bool
    is_running: bool
    last_execution: Optional[datetime] = None
    next_execution: Optional[datetime] = None

    last_run_failed: bool = False
    last_duration: Optional[timedelta] = None

    descriptor: Optional[JobDescriptor] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class LogEntry:
    job_id: str
    completed_utc: datetime
    message: Optional[str] = ""

    # Only set by backends that record them.
    started_utc: Optional[datetime] = None
    succeeded: Optional[bool] = None


@dataclass
class HistoryPage:
    entries: List[LogEntry]
    total_count: int = 0
    page: int = 1
    page_size: int = 0


@dataclass(frozen=True)
class StatusMessage:
    text: str = ""
    severity: Severity = Severity.SUCCESS

    def __bool__(self) -> bool:
        return bool(self.text)
