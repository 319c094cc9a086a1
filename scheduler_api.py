# ======================================================================
#  File......: scheduler_api.py
#  Purpose...: Scheduler collaborator contracts (registry, executor, log
#              store, file sink) + local file-backed implementations.
#  Version...: 0.3.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Protocol, Sequence, runtime_checkable

import pandas as pd

from models import HistoryPage, JobDescriptor, LogEntry
from snapshot_io import from_iso, read_json_strict, to_iso, update_json, utc_now


# ---------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------

@runtime_checkable
class JobRegistry(Protocol):
    async def list(self) -> Sequence[JobDescriptor]: ...


@runtime_checkable
class Executor(Protocol):
    async def start(self, job_id: str) -> None:
        """Returns once the start is accepted, not when the run completes."""
        ...


@runtime_checkable
class LogStore(Protocol):
    async def get(self, job_id: str, page: int, page_size: int) -> HistoryPage: ...


@runtime_checkable
class FileSink(Protocol):
    async def save(self, file_name: str, content: str) -> str:
        """Deliver the report; returns where it went."""
        ...


# ---------------------------------------------------------------------
# Excel catalog + JSON state
# ---------------------------------------------------------------------

CATALOG_SHEET = "jobs"
TRUTHY = ["Y", "YES", "TRUE", "1"]


def load_job_catalog(path: Path) -> pd.DataFrame:
    """Load the Excel catalog. This is the long-lived 'what jobs exist' list."""
    df = pd.read_excel(path, sheet_name=CATALOG_SHEET)
    df.columns = [str(c).strip().lower() for c in df.columns]

    for col in ["job_id", "name", "type_name", "command"]:
        if col not in df.columns:
            df[col] = ""
    if "enabled" not in df.columns:
        df["enabled"] = "Y"

    df["name"] = df["name"].fillna("").astype(str).str.strip()
    df["job_id"] = df["job_id"].fillna("").astype(str).str.strip()
    df["type_name"] = df["type_name"].fillna("").astype(str).str.strip()
    df["command"] = df["command"].fillna("").astype(str).str.strip()
    df["enabled"] = df["enabled"].fillna("Y").astype(str).str.upper().isin(TRUTHY)

    # job_id defaults to the name
    df.loc[df["job_id"].str.len() == 0, "job_id"] = df["name"]

    # drop blank name rows
    df = df[df["name"].str.len() > 0].copy()
    return df


def load_job_state(path: Path) -> Dict[str, Dict[str, Any]]:
    """Runtime state written by the agent: {job_id: {is_running, last_execution, next_execution}}."""
    return read_json_strict(path, default={})


class ExcelJobRegistry:
    def __init__(self, catalog_path: Path, state_path: Path):
        self.catalog_path = Path(catalog_path)
        self.state_path = Path(state_path)

    def list_sync(self) -> List[JobDescriptor]:
        df = load_job_catalog(self.catalog_path)
        state = load_job_state(self.state_path)

        out: List[JobDescriptor] = []
        for _, r in df.iterrows():
            job_id = r["job_id"]
            s = state.get(job_id, {})
            out.append(JobDescriptor(
                job_id=job_id,
                name=r["name"],
                is_enabled=bool(r["enabled"]),
                is_running=bool(s.get("is_running", False)),
                last_execution=from_iso(s.get("last_execution")),
                next_execution=from_iso(s.get("next_execution")),
                type_name=r["type_name"],
            ))
        return out

    async def list(self) -> List[JobDescriptor]:
        return await asyncio.to_thread(self.list_sync)


# ---------------------------------------------------------------------
# JSON log store
# ---------------------------------------------------------------------

def entry_from_record(job_id: str, rec: Dict[str, Any]) -> LogEntry:
    succeeded = rec.get("succeeded")
    return LogEntry(
        job_id=job_id,
        completed_utc=from_iso(rec.get("completed_utc")),
        message=rec.get("message") or "",
        started_utc=from_iso(rec.get("started_utc")),
        succeeded=None if succeeded is None else bool(succeeded),
    )


def entry_to_record(entry: LogEntry) -> Dict[str, Any]:
    return {
        "started_utc": to_iso(entry.started_utc),
        "completed_utc": to_iso(entry.completed_utc),
        "message": entry.message or "",
        "succeeded": entry.succeeded,
    }


class JsonLogStore:
    """job_log.json: {job_id: [record, ...]} in any order; served most-recent-first."""

    def __init__(self, log_path: Path):
        self.log_path = Path(log_path)

    def get_sync(self, job_id: str, page: int, page_size: int) -> HistoryPage:
        if page < 1 or page_size < 1:
            raise ValueError(f"page and page_size must be >= 1 (got {page}, {page_size})")

        data = read_json_strict(self.log_path, default={})
        records = data.get(job_id, []) or []
        entries = [entry_from_record(job_id, r) for r in records if r.get("completed_utc")]
        entries.sort(key=lambda e: e.completed_utc, reverse=True)

        start = (page - 1) * page_size
        return HistoryPage(
            entries=entries[start:start + page_size],
            total_count=len(entries),
            page=page,
            page_size=page_size,
        )

    async def get(self, job_id: str, page: int, page_size: int) -> HistoryPage:
        return await asyncio.to_thread(self.get_sync, job_id, page, page_size)

    def append(self, entry: LogEntry) -> None:
        def _add(data):
            data.setdefault(entry.job_id, []).append(entry_to_record(entry))
            return data

        update_json(self.log_path, {}, _add)


# ---------------------------------------------------------------------
# Run requests (picked up by agent.py)
# ---------------------------------------------------------------------

class RunRequestExecutor:
    def __init__(self, requests_path: Path):
        self.requests_path = Path(requests_path)

    def start_sync(self, job_id: str) -> None:
        if not job_id or not str(job_id).strip():
            raise ValueError("Job id cannot be empty.")

        def _add(requests: List[Dict[str, Any]]):
            if any(r.get("job_id") == job_id for r in requests):
                raise RuntimeError(f"Job '{job_id}' is already queued to run.")
            requests.append({"job_id": job_id, "requested_at": to_iso(utc_now())})
            return requests

        update_json(self.requests_path, [], _add)

    async def start(self, job_id: str) -> None:
        await asyncio.to_thread(self.start_sync, job_id)


def pop_run_requests(requests_path: Path) -> List[Dict[str, Any]]:
    """Take every pending request, leaving the file empty."""
    taken: List[Dict[str, Any]] = []

    def _drain(requests: List[Dict[str, Any]]):
        taken.extend(requests)
        return []

    update_json(Path(requests_path), [], _drain)
    return taken


# ---------------------------------------------------------------------
# Export sink
# ---------------------------------------------------------------------

class DirectoryFileSink:
    def __init__(self, export_dir: Path):
        self.export_dir = Path(export_dir)

    def save_sync(self, file_name: str, content: str) -> str:
        # keep it inside export_dir
        safe_name = Path(file_name).name
        self.export_dir.mkdir(parents=True, exist_ok=True)
        target = self.export_dir / safe_name
        target.write_text(content, encoding="utf-8")
        return str(target)

    async def save(self, file_name: str, content: str) -> str:
        return await asyncio.to_thread(self.save_sync, file_name, content)


def local_backend(settings):
    """(registry, executor, log_store, file_sink) over settings.data_dir."""
    return (
        ExcelJobRegistry(settings.catalog_path, settings.state_path),
        RunRequestExecutor(settings.requests_path),
        JsonLogStore(settings.log_path),
        DirectoryFileSink(settings.export_dir),
    )
