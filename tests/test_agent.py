"""
Local agent tests — run requests become log entries and state updates.
"""

import asyncio
import json
import shlex
import sys

import pytest

from agent import AgentController, process_pending_requests, run_job
from catalog import classify
from models import Outcome
from scheduler_api import JsonLogStore, RunRequestExecutor
from settings import MonitorSettings


def _py(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


@pytest.fixture
def settings(tmp_path):
    return MonitorSettings(data_dir=tmp_path, export_dir=tmp_path / "exports", command_timeout_sec=30)


class TestRunJob:

    def test_success(self):
        entry = run_job("J", _py("print('hello')"), timeout=30)
        assert entry.succeeded is True
        assert entry.message == "Job completed successfully.\nhello"
        assert entry.started_utc <= entry.completed_utc

    def test_non_zero_exit(self):
        entry = run_job("J", _py("import sys; sys.exit(3)"), timeout=30)
        assert entry.succeeded is False
        assert entry.message.startswith("Job failed with exit code 3.")
        assert classify(entry) is Outcome.FAILURE

    def test_missing_command(self):
        entry = run_job("J", "", timeout=30)
        assert entry.succeeded is False
        assert entry.message.startswith("Error:")

    def test_unknown_executable(self):
        entry = run_job("J", "definitely-not-a-real-binary-xyz", timeout=30)
        assert entry.succeeded is False
        assert "command not found" in entry.message


class TestProcessPendingRequests:

    def test_runs_requested_jobs(self, settings):
        asyncio.run(RunRequestExecutor(settings.requests_path).start("sync"))
        commands = {"sync": ("Sync Orders", _py("print('synced')"))}

        done = process_pending_requests(settings, commands)

        assert [e.job_id for e in done] == ["sync"]
        page = asyncio.run(JsonLogStore(settings.log_path).get("sync", 1, 10))
        assert page.entries[0].message == "Job completed successfully.\nsynced"

        state = json.loads(settings.state_path.read_text(encoding="utf-8"))
        assert state["sync"]["is_running"] is False
        assert state["sync"]["last_execution"].endswith("Z")

    def test_unknown_job_logs_error(self, settings):
        asyncio.run(RunRequestExecutor(settings.requests_path).start("ghost"))

        done = process_pending_requests(settings, {})

        assert done[0].succeeded is False
        assert "not in the catalog" in done[0].message
        assert not settings.state_path.exists()

    def test_nothing_pending(self, settings):
        assert process_pending_requests(settings, {}) == []

    def test_failing_request_does_not_drop_the_batch(self, settings):
        executor = RunRequestExecutor(settings.requests_path)
        asyncio.run(executor.start("a"))
        asyncio.run(executor.start("b"))
        settings.state_path.write_text("{broken", encoding="utf-8")
        commands = {
            "a": ("Job A", _py("print('a')")),
            "b": ("Job B", _py("print('b')")),
        }

        done = process_pending_requests(settings, commands)

        assert [e.job_id for e in done] == ["a", "b"]
        assert all(e.succeeded is False for e in done)
        assert all(e.message.startswith("Error: could not run job") for e in done)

        store = JsonLogStore(settings.log_path)
        for job_id in ("a", "b"):
            page = asyncio.run(store.get(job_id, 1, 10))
            assert page.total_count == 1
            assert classify(page.entries[0]) is Outcome.FAILURE

    def test_later_requests_still_run_after_a_failure(self, settings):
        executor = RunRequestExecutor(settings.requests_path)
        asyncio.run(executor.start("ghost"))
        asyncio.run(executor.start("sync"))
        commands = {"sync": ("Sync Orders", _py("print('synced')"))}

        done = process_pending_requests(settings, commands)

        assert [e.succeeded for e in done] == [False, True]


class TestAgentController:

    def test_is_running_follows_thread(self, settings):
        agent = AgentController(settings)
        assert not agent.is_running

        agent.start()
        assert agent.is_running

        agent.stop()
        agent.thread.join(timeout=5)
        assert not agent.is_running
