# ======================================================================
#  File......: agent.py
#  Purpose...: Local scheduler agent (run-request queue + job_state writer
#              + job_log appender). Executes on demand only, no schedules.
#  Version...: 0.2.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import shlex
import subprocess
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from models import LogEntry
from scheduler_api import JsonLogStore, load_job_catalog, pop_run_requests
from settings import MonitorSettings
from snapshot_io import to_iso, update_json, utc_now

MAX_OUTPUT_CHARS = 4000


def load_commands(catalog_path: Path) -> Dict[str, Tuple[str, str]]:
    """{job_id: (name, command)} from the Excel catalog."""
    df = load_job_catalog(catalog_path)
    return {r["job_id"]: (r["name"], r["command"]) for _, r in df.iterrows()}


def set_job_state(state_path: Path, job_id: str, **fields) -> None:
    def _set(state):
        state.setdefault(job_id, {}).update(fields)
        return state

    update_json(state_path, {}, _set)


def run_command(cmd: str, timeout: int) -> Tuple[int, str]:
    """Run `cmd` without a shell. Returns (exit code, combined output)."""
    args = shlex.split(cmd)
    result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    output = "\n".join(x.strip() for x in (result.stdout, result.stderr) if x and x.strip())
    return result.returncode, output[-MAX_OUTPUT_CHARS:]


def run_job(job_id: str, command: str, timeout: int) -> LogEntry:
    """Execute one job command and describe the outcome as a log entry."""
    started = utc_now()
    succeeded = False

    if not command:
        message = "Error: no command configured for this job."
    else:
        try:
            rc, output = run_command(command, timeout)
            if rc == 0:
                succeeded = True
                message = "Job completed successfully."
            else:
                message = f"Job failed with exit code {rc}."
            if output:
                message = f"{message}\n{output}"
        except subprocess.TimeoutExpired:
            message = f"Error: command timed out after {timeout}s: {command}"
        except FileNotFoundError:
            message = f"Error: command not found: {command}"
        except (OSError, ValueError) as e:
            message = f"Exception while running command '{command}': {e}"

    return LogEntry(
        job_id=job_id,
        completed_utc=utc_now(),
        message=message,
        started_utc=started,
        succeeded=succeeded,
    )


def _run_request(
    settings: MonitorSettings,
    log_store: JsonLogStore,
    commands: Dict[str, Tuple[str, str]],
    job_id: str,
) -> LogEntry:
    if job_id not in commands:
        entry = LogEntry(
            job_id=job_id,
            completed_utc=utc_now(),
            message=f"Error: job '{job_id}' is not in the catalog.",
            succeeded=False,
        )
        log_store.append(entry)
        return entry

    name, command = commands[job_id]
    print(f"[agent] Executing job: {name} ({job_id})")
    set_job_state(settings.state_path, job_id, is_running=True)
    try:
        entry = run_job(job_id, command, settings.command_timeout_sec)
        log_store.append(entry)
    finally:
        try:
            set_job_state(
                settings.state_path, job_id,
                is_running=False,
                last_execution=to_iso(utc_now()),
            )
        except (OSError, ValueError) as e:
            print(f"[agent] ⚠️ Could not update state of {job_id}: {e}")
    print(f"[agent] Job {name} finished ({'ok' if entry.succeeded else 'failed'}).")
    return entry


def process_pending_requests(
    settings: MonitorSettings,
    commands: Dict[str, Tuple[str, str]],
) -> List[LogEntry]:
    """
    Drain run_requests.json and run each job in turn. A request that cannot
    be carried out still gets a failed log entry; the rest of the batch runs.
    """
    log_store = JsonLogStore(settings.log_path)
    done: List[LogEntry] = []

    for req in pop_run_requests(settings.requests_path):
        job_id = req.get("job_id", "")
        try:
            entry = _run_request(settings, log_store, commands, job_id)
        except (OSError, ValueError) as e:
            print(f"[agent] ⚠️ Request for {job_id} failed: {e}")
            entry = LogEntry(
                job_id=job_id,
                completed_utc=utc_now(),
                message=f"Error: could not run job '{job_id}': {e}",
                succeeded=False,
            )
            try:
                log_store.append(entry)
            except (OSError, ValueError) as log_error:
                print(f"[agent] ⚠️ Could not record failure of {job_id}: {log_error}")
        done.append(entry)

    return done


class AgentController:
    """Controller used by tray app to start/pause/stop the polling thread."""

    def __init__(self, settings: MonitorSettings):
        self.settings = settings
        self.stop_flag = threading.Event()
        self.pause_flag = threading.Event()
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start (or resume) the agent."""
        if self.thread and self.thread.is_alive():
            self.pause_flag.clear()
            return

        self.stop_flag.clear()
        self.pause_flag.clear()
        self.thread = threading.Thread(target=self._run_loop, daemon=True)
        self.thread.start()

    def pause(self) -> None:
        self.pause_flag.set()

    def resume(self) -> None:
        self.pause_flag.clear()

    def stop(self) -> None:
        self.stop_flag.set()
        self.pause_flag.clear()

    @property
    def is_running(self) -> bool:
        return bool(self.thread and self.thread.is_alive())

    def _run_loop(self) -> None:
        self.settings.data_dir.mkdir(parents=True, exist_ok=True)

        last_catalog_load = 0.0
        commands: Optional[Dict[str, Tuple[str, str]]] = None

        while not self.stop_flag.is_set():
            if self.pause_flag.is_set():
                time.sleep(0.25)
                continue

            try:
                # reload catalog every 60s (Excel edits get picked up without restart)
                if (time.time() - last_catalog_load) > 60 or commands is None:
                    commands = load_commands(self.settings.catalog_path)
                    last_catalog_load = time.time()

                process_pending_requests(self.settings, commands)
            except Exception as e:
                print(f"[agent] ⚠️ Cycle failed: {e}")

            self.stop_flag.wait(self.settings.poll_interval_sec)

        print("[agent] Stopped.")
