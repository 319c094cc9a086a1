"""
Local backend tests — Excel registry, JSON log store, run requests, file sink.
"""

import asyncio
import json

import pandas as pd
import pytest

from models import LogEntry
from scheduler_api import (
    DirectoryFileSink, ExcelJobRegistry, Executor, FileSink, JobRegistry, JsonLogStore, LogStore,
    RunRequestExecutor, load_job_catalog, local_backend, pop_run_requests,
)
from settings import MonitorSettings
from tests.fakes import FakeExecutor, FakeLogStore, FakeRegistry, FakeSink, utc


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "jobs.xlsx"
    df = pd.DataFrame([
        {"Job_ID": "sync", "Name": " Sync Orders ", "Type_Name": "Acme.Jobs.Sync", "Enabled": "y", "Command": "echo hi"},
        {"Job_ID": "", "Name": "Clear Cache", "Type_Name": "EPiServer.ClearCache", "Enabled": "no", "Command": ""},
        {"Job_ID": "blank", "Name": "", "Type_Name": "", "Enabled": "Y", "Command": ""},
    ])
    df.to_excel(path, sheet_name="jobs", index=False)
    return path


class TestExcelJobRegistry:

    def test_catalog_normalization(self, catalog_path):
        df = load_job_catalog(catalog_path)
        assert list(df["name"]) == ["Sync Orders", "Clear Cache"]
        assert list(df["job_id"]) == ["sync", "Clear Cache"]
        assert list(df["enabled"]) == [True, False]

    def test_list_merges_runtime_state(self, catalog_path, tmp_path):
        state_path = tmp_path / "job_state.json"
        state_path.write_text(json.dumps({
            "sync": {"is_running": True, "last_execution": "2024-01-01T10:00:00Z"},
        }), encoding="utf-8")

        jobs = asyncio.run(ExcelJobRegistry(catalog_path, state_path).list())

        by_id = {j.job_id: j for j in jobs}
        assert by_id["sync"].is_running is True
        assert by_id["sync"].last_execution == utc(2024, 1, 1, 10, 0, 0)
        assert by_id["sync"].type_name == "Acme.Jobs.Sync"
        assert by_id["Clear Cache"].is_running is False
        assert by_id["Clear Cache"].is_enabled is False

    def test_missing_catalog_raises(self, tmp_path):
        registry = ExcelJobRegistry(tmp_path / "nope.xlsx", tmp_path / "state.json")
        with pytest.raises(FileNotFoundError):
            asyncio.run(registry.list())


class TestJsonLogStore:

    def test_most_recent_first_and_paged(self, tmp_path):
        store = JsonLogStore(tmp_path / "job_log.json")
        for day in (1, 3, 2):
            store.append(LogEntry("J", utc(2024, 1, day), f"day {day}"))

        page = asyncio.run(store.get("J", 1, 2))
        assert [e.message for e in page.entries] == ["day 3", "day 2"]
        assert page.total_count == 3

        page2 = asyncio.run(store.get("J", 2, 2))
        assert [e.message for e in page2.entries] == ["day 1"]

    def test_unknown_job_is_empty(self, tmp_path):
        page = asyncio.run(JsonLogStore(tmp_path / "job_log.json").get("J", 1, 1))
        assert page.entries == []
        assert page.total_count == 0

    def test_round_trips_structured_fields(self, tmp_path):
        store = JsonLogStore(tmp_path / "job_log.json")
        store.append(LogEntry("J", utc(2024, 1, 1, 0, 5), "done",
                              started_utc=utc(2024, 1, 1), succeeded=False))
        entry = asyncio.run(store.get("J", 1, 1)).entries[0]
        assert entry.started_utc == utc(2024, 1, 1)
        assert entry.succeeded is False

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "job_log.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            asyncio.run(JsonLogStore(path).get("J", 1, 1))

    def test_bad_page_raises(self, tmp_path):
        with pytest.raises(ValueError):
            asyncio.run(JsonLogStore(tmp_path / "job_log.json").get("J", 0, 10))


class TestRunRequestExecutor:

    def test_queues_and_drains(self, tmp_path):
        path = tmp_path / "run_requests.json"
        executor = RunRequestExecutor(path)
        asyncio.run(executor.start("a"))
        asyncio.run(executor.start("b"))

        taken = pop_run_requests(path)

        assert [r["job_id"] for r in taken] == ["a", "b"]
        assert all(r["requested_at"].endswith("Z") for r in taken)
        assert pop_run_requests(path) == []

    def test_refuses_job_already_queued(self, tmp_path):
        executor = RunRequestExecutor(tmp_path / "run_requests.json")
        asyncio.run(executor.start("a"))
        with pytest.raises(RuntimeError, match="already queued"):
            asyncio.run(executor.start("a"))

    def test_empty_job_id(self, tmp_path):
        with pytest.raises(ValueError):
            asyncio.run(RunRequestExecutor(tmp_path / "r.json").start(" "))


class TestDirectoryFileSink:

    def test_writes_inside_export_dir(self, tmp_path):
        sink = DirectoryFileSink(tmp_path / "exports")
        location = asyncio.run(sink.save("../escape.txt", "ExecutedUtc⚡⚡⚡Status⚡⚡⚡Message\n"))

        written = tmp_path / "exports" / "escape.txt"
        assert location == str(written)
        assert written.read_text(encoding="utf-8") == "ExecutedUtc⚡⚡⚡Status⚡⚡⚡Message\n"


class TestContracts:

    def test_local_backend_implements_contracts(self, tmp_path):
        settings = MonitorSettings(data_dir=tmp_path, export_dir=tmp_path / "exports")
        registry, executor, log_store, sink = local_backend(settings)

        assert isinstance(registry, JobRegistry)
        assert isinstance(executor, Executor)
        assert isinstance(log_store, LogStore)
        assert isinstance(sink, FileSink)

    def test_fakes_implement_contracts(self):
        assert isinstance(FakeRegistry(), JobRegistry)
        assert isinstance(FakeExecutor(), Executor)
        assert isinstance(FakeLogStore(), LogStore)
        assert isinstance(FakeSink(), FileSink)
        assert not isinstance(FakeSink(), LogStore)
