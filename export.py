# ======================================================================
#  File......: export.py
#  Purpose...: Flat delimited text report of a (filtered) job log history.
#  Version...: 0.1.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from catalog import classify
from models import LogEntry

# Very unlikely to appear in log messages.
EXPORT_DELIMITER = "⚡⚡⚡"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _as_utc(ts: datetime) -> datetime:
    # naive timestamps are already UTC
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc)


def export_history(entries: Iterable[LogEntry], delimiter: str = EXPORT_DELIMITER) -> str:
    lines = [f"ExecutedUtc{delimiter}Status{delimiter}Message"]

    for entry in entries:
        executed_utc = _as_utc(entry.completed_utc).strftime(TIMESTAMP_FORMAT)
        status = classify(entry).value
        message = (entry.message or "").replace(delimiter, " ")
        lines.append(f"{executed_utc}{delimiter}{status}{delimiter}{message}")

    return "\n".join(lines) + "\n"


def export_file_name(job_name: Optional[str], now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"ScheduledJobLog_{job_name or ''}_{now:%Y%m%d_%H%M%S}.txt"
