# ======================================================================
#  File......: catalog.py
#  Purpose...: Job catalog (view models + custom/built-in split), log entry
#              classification and opt-in last-status enrichment.
#  Version...: 0.1.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

from errors import CatalogLoadError, EnrichmentError
from models import JobDescriptor, JobView, LogEntry, Outcome
from scheduler_api import JobRegistry, LogStore

logger = logging.getLogger(__name__)

DEFAULT_BUILTIN_PREFIXES: Tuple[str, ...] = ("EPiServer.", "Optimizely.")

FAILURE_MARKERS: Tuple[str, ...] = ("exception", "error:", "failed")


# ---------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------

def classify(entry: LogEntry) -> Outcome:
    """
    Best-effort success/failure of a log entry.

    Uses the structured `succeeded` flag when the backend recorded one.
    Otherwise falls back to the message text: no message means success,
    any of FAILURE_MARKERS (case-insensitive, substring) means failure.
    """
    if entry.succeeded is not None:
        return Outcome.SUCCESS if entry.succeeded else Outcome.FAILURE

    if not entry.message:
        return Outcome.SUCCESS

    message = entry.message.lower()
    if any(marker in message for marker in FAILURE_MARKERS):
        return Outcome.FAILURE
    return Outcome.SUCCESS


def is_log_entry_successful(entry: LogEntry) -> bool:
    return classify(entry).is_success


# ---------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------

@dataclass
class JobCatalog:
    jobs: List[JobView] = field(default_factory=list)
    custom: List[JobView] = field(default_factory=list)
    built_in: List[JobView] = field(default_factory=list)


def is_built_in(descriptor: JobDescriptor, prefixes: Sequence[str] = DEFAULT_BUILTIN_PREFIXES) -> bool:
    type_name = descriptor.type_name
    if not type_name:
        return False
    lowered = type_name.lower()
    return any(lowered.startswith(p.lower()) for p in prefixes if p)


def to_job_view(descriptor: JobDescriptor) -> JobView:
    return JobView(
        job_id=descriptor.job_id,
        name=descriptor.name,
        is_enabled=descriptor.is_enabled,
        is_running=descriptor.is_running,
        last_execution=descriptor.last_execution,
        next_execution=descriptor.next_execution,
        last_run_failed=False,
        last_duration=None,
        descriptor=descriptor,
    )


def build_job_views(descriptors: Iterable[JobDescriptor]) -> List[JobView]:
    """Fresh views sorted by name (ordinal, case-sensitive)."""
    views = [to_job_view(d) for d in descriptors]
    views.sort(key=lambda v: v.name or "")
    return views


def partition_jobs(
    views: Sequence[JobView],
    prefixes: Sequence[str] = DEFAULT_BUILTIN_PREFIXES,
) -> Tuple[List[JobView], List[JobView]]:
    """Split into (custom, built_in), keeping the incoming order in each."""
    custom: List[JobView] = []
    built_in: List[JobView] = []
    for v in views:
        if v.descriptor is not None and is_built_in(v.descriptor, prefixes):
            built_in.append(v)
        else:
            custom.append(v)
    return custom, built_in


def build_catalog(
    descriptors: Iterable[JobDescriptor],
    prefixes: Sequence[str] = DEFAULT_BUILTIN_PREFIXES,
) -> JobCatalog:
    jobs = build_job_views(descriptors)
    custom, built_in = partition_jobs(jobs, prefixes)
    return JobCatalog(jobs=jobs, custom=custom, built_in=built_in)


async def load_catalog(registry: JobRegistry, prefixes: Sequence[str] = DEFAULT_BUILTIN_PREFIXES) -> JobCatalog:
    """Read the registry and build the catalog. Any registry failure -> CatalogLoadError."""
    try:
        descriptors = await registry.list()
    except Exception as e:
        raise CatalogLoadError(f"Error loading jobs: {e}", cause=e) from e

    catalog = build_catalog(descriptors, prefixes)
    logger.debug(
        "Catalog built: %d jobs (%d custom, %d built-in)",
        len(catalog.jobs), len(catalog.custom), len(catalog.built_in),
    )
    return catalog


def filter_jobs(jobs: List[JobView], text: str) -> List[JobView]:
    """Case-insensitive name filter. Blank text returns `jobs` itself."""
    if not text or not text.strip():
        return jobs
    needle = text.lower()
    return [j for j in jobs if needle in (j.name or "").lower()]


# ---------------------------------------------------------------------
# Last-status enrichment (opt-in: one log-store call per job)
# ---------------------------------------------------------------------

async def enrich_last_status(jobs: Sequence[JobView], log_store: LogStore) -> Sequence[JobView]:
    """
    Set `last_run_failed` (and `last_duration` when the entry carries a start
    time) from each job's most recent log entry. Updates in place, keeps order.

    A failing lookup leaves that job as "not failed"; the batch continues.
    """
    for job in jobs:
        try:
            result = await log_store.get(job.job_id, 1, 1)
        except Exception as e:
            err = EnrichmentError(job.job_id, f"Could not read last status of '{job.name}'", cause=e)
            logger.warning("%s: %s", err, err.detail)
            job.last_run_failed = False
            continue

        entries = result.entries if result is not None else []
        if not entries:
            # never run is not a failure
            job.last_run_failed = False
            continue

        last = entries[0]
        job.last_run_failed = not classify(last).is_success
        if last.started_utc is not None and last.completed_utc is not None:
            job.last_duration = last.completed_utc - last.started_utc

    return jobs
