"""
Root conftest.py — sys.path and shared fixtures.

The project modules live at the repository root, so the root goes on
sys.path before anything is imported.
"""

import os
import sys

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from models import JobDescriptor, LogEntry  # noqa: E402
from tests.fakes import FakeExecutor, FakeLogStore, FakeRegistry, FakeSink, utc  # noqa: E402


@pytest.fixture
def descriptors():
    return [
        JobDescriptor(job_id="j-sync", name="Sync Orders", type_name="Acme.Jobs.SyncOrders"),
        JobDescriptor(job_id="j-clean", name="Clear Cache", type_name="EPiServer.Cms.ClearCacheJob"),
        JobDescriptor(job_id="j-report", name="Nightly Report", type_name="Acme.Jobs.Report"),
        JobDescriptor(job_id="j-index", name="Content Index", type_name="optimizely.Search.IndexJob"),
    ]


@pytest.fixture
def registry(descriptors):
    return FakeRegistry(descriptors)


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def log_store():
    return FakeLogStore({
        "j-sync": [
            LogEntry("j-sync", utc(2024, 1, 2, 8, 0, 0), "Unhandled Exception in step 2"),
            LogEntry("j-sync", utc(2024, 1, 1, 8, 0, 0), "Synced 12 orders"),
        ],
        "j-report": [LogEntry("j-report", utc(2024, 1, 1, 3, 0, 0), "Report sent")],
    })


@pytest.fixture
def sink():
    return FakeSink()
