# ======================================================================
#  File......: monitor.py
#  Purpose...: Viewer session: catalog refresh, selection + history loading,
#              execute-and-observe workflow, detail/highlight, export.
#  Version...: 0.1.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Set

from catalog import DEFAULT_BUILTIN_PREFIXES, enrich_last_status, filter_jobs, load_catalog
from errors import CatalogLoadError, ExecutionStartError, ExportError, HistoryLoadError
from export import export_file_name, export_history
from history import (
    MAX_MESSAGES_TO_RETRIEVE, filter_entries, highlight, latest_log_entry, load_history,
)
from models import JobView, LogEntry, Severity, StatusMessage, TriggerState
from scheduler_api import Executor, FileSink, JobRegistry, LogStore

logger = logging.getLogger(__name__)

SETTLE_DELAY_SEC = 1.0

SCHEDULER_DISABLED_MESSAGE = (
    "Scheduler is currently disabled. Jobs can still be executed manually, "
    "but automatic scheduling is inactive."
)

Listener = Callable[["MonitorState"], None]


@dataclass
class MonitorState:
    jobs: List[JobView] = field(default_factory=list)
    custom_jobs: List[JobView] = field(default_factory=list)
    built_in_jobs: List[JobView] = field(default_factory=list)

    selected_job: Optional[JobView] = None
    messages: List[LogEntry] = field(default_factory=list)
    selected_message: Optional[LogEntry] = None
    message_detail_open: bool = False

    is_loading: bool = False
    is_loading_history: bool = False
    is_executing: bool = False
    executing_job_ids: Set[str] = field(default_factory=set)
    trigger_states: Dict[str, TriggerState] = field(default_factory=dict)

    check_last_status: bool = False
    status: StatusMessage = field(default_factory=StatusMessage)

    filter_text: str = ""
    message_filter_text: str = ""
    message_highlight_text: str = ""


class JobsMonitor:
    """
    One viewer session over the scheduler collaborators.

    All state lives in `self.state`; listeners registered with `subscribe`
    are called after every change so the rendering layer can redraw.
    """

    def __init__(
        self,
        registry: JobRegistry,
        executor: Executor,
        log_store: LogStore,
        file_sink: Optional[FileSink] = None,
        *,
        builtin_prefixes: Sequence[str] = DEFAULT_BUILTIN_PREFIXES,
        settle_delay_sec: float = SETTLE_DELAY_SEC,
        max_messages: int = MAX_MESSAGES_TO_RETRIEVE,
        scheduler_enabled: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.registry = registry
        self.executor = executor
        self.log_store = log_store
        self.file_sink = file_sink
        self.builtin_prefixes = tuple(builtin_prefixes)
        self.settle_delay_sec = settle_delay_sec
        self.max_messages = max_messages
        self.scheduler_enabled = scheduler_enabled
        self._sleep = sleep
        self._clock = clock

        self.state = MonitorState()
        self._listeners: List[Listener] = []
        self._history_request_job_id: Optional[str] = None
        self._refresh_generation = 0

    @classmethod
    def from_settings(cls, settings, registry, executor, log_store, file_sink=None, **kwargs) -> "JobsMonitor":
        return cls(
            registry, executor, log_store, file_sink,
            builtin_prefixes=settings.builtin_prefixes,
            settle_delay_sec=settings.settle_delay_sec,
            max_messages=settings.max_messages,
            scheduler_enabled=settings.scheduler_enabled,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception:
                logger.exception("State listener failed")

    def _set_status(self, text: str, severity: Severity) -> None:
        self.state.status = StatusMessage(text, severity)

    def clear_status_message(self) -> None:
        self.state.status = StatusMessage()
        self._notify()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        if not self.scheduler_enabled:
            self._set_status(SCHEDULER_DISABLED_MESSAGE, Severity.WARNING)
        await self.refresh_jobs()

    async def refresh_jobs(self, keep_status: bool = False) -> bool:
        """
        Rebuild the catalog. On failure the previous catalog stays in place
        and an error status is shown. Returns True on success.

        Only the most recent refresh applies its result; one overtaken by a
        newer refresh is dropped (errors included) and reports True.
        """
        st = self.state
        self._refresh_generation += 1
        generation = self._refresh_generation
        st.is_loading = True
        if not keep_status and st.status.text != SCHEDULER_DISABLED_MESSAGE:
            st.status = StatusMessage()
        self._notify()

        try:
            catalog = await load_catalog(self.registry, self.builtin_prefixes)
            if st.check_last_status:
                await enrich_last_status(catalog.jobs, self.log_store)
        except CatalogLoadError as e:
            if generation != self._refresh_generation:
                return True
            logger.error("Catalog refresh failed: %s", e.detail)
            self._set_status(f"Error loading jobs: {e.detail}", Severity.ERROR)
            st.is_loading = False
            self._notify()
            return False

        if generation != self._refresh_generation:
            logger.debug("Discarding stale catalog refresh")
            return True

        st.jobs = catalog.jobs
        st.custom_jobs = catalog.custom
        st.built_in_jobs = catalog.built_in

        if st.selected_job is not None:
            fresh = next((j for j in st.jobs if j.job_id == st.selected_job.job_id), None)
            if fresh is not None:
                st.selected_job = fresh

        st.is_loading = False
        self._notify()
        return True

    async def set_check_last_status(self, enabled: bool) -> None:
        if self.state.check_last_status == enabled:
            return
        self.state.check_last_status = enabled
        await self.refresh_jobs()

    def set_filter_text(self, text: str) -> None:
        self.state.filter_text = text or ""
        self._notify()

    def filtered_custom_jobs(self) -> List[JobView]:
        return filter_jobs(self.state.custom_jobs, self.state.filter_text)

    def filtered_built_in_jobs(self) -> List[JobView]:
        return filter_jobs(self.state.built_in_jobs, self.state.filter_text)

    # ------------------------------------------------------------------
    # Selection + history
    # ------------------------------------------------------------------

    async def select_job(self, job: Optional[JobView]) -> None:
        self.state.selected_job = job
        if job is None:
            self._history_request_job_id = None
            self.state.messages = []
            self._notify()
            return
        await self.load_history(job)

    async def load_history(self, job: JobView) -> bool:
        """
        Load the job's history into `state.messages`. The list is cleared
        first and stays empty on failure. A result for a job that is no
        longer the latest request is dropped.
        """
        st = self.state
        self._history_request_job_id = job.job_id
        st.is_loading_history = True
        st.messages = []
        self._notify()

        try:
            page = await load_history(self.log_store, job.job_id, 1, self.max_messages)
        except HistoryLoadError as e:
            if self._history_request_job_id != job.job_id:
                return False
            logger.error("History load failed for %s: %s", job.job_id, e.detail)
            self._set_status(f"Error loading execution history: {e.detail}", Severity.ERROR)
            st.is_loading_history = False
            self._notify()
            return False

        if self._history_request_job_id != job.job_id:
            logger.debug("Discarding stale history for %s", job.job_id)
            return False

        st.messages = list(page.entries)
        st.is_loading_history = False
        self._notify()
        return True

    def set_message_filter_text(self, text: str) -> None:
        self.state.message_filter_text = text or ""
        self._notify()

    def filtered_messages(self) -> List[LogEntry]:
        return filter_entries(self.state.messages, self.state.message_filter_text)

    def latest_log_entry(self) -> Optional[LogEntry]:
        return latest_log_entry(self.state.messages)

    # ------------------------------------------------------------------
    # Message detail
    # ------------------------------------------------------------------

    def open_message_detail(self, entry: LogEntry) -> None:
        st = self.state
        st.selected_message = entry
        st.message_detail_open = True
        st.message_highlight_text = ""
        self._notify()

    def close_message_detail(self) -> None:
        st = self.state
        st.message_detail_open = False
        st.selected_message = None
        st.message_highlight_text = ""
        self._notify()

    def set_message_highlight_text(self, text: str) -> None:
        self.state.message_highlight_text = text or ""
        self._notify()

    def highlighted_detail(self, escape: Optional[Callable[[str], str]] = None) -> str:
        """Open message with highlight markers; `escape` (e.g. html.escape) is applied to the text around them."""
        entry = self.state.selected_message
        if entry is None or not entry.message:
            return ""
        return highlight(entry.message, self.state.message_highlight_text, escape=escape)

    # ------------------------------------------------------------------
    # Execute and observe
    # ------------------------------------------------------------------

    def _transition(self, job_id: str, new_state: TriggerState) -> None:
        self.state.trigger_states[job_id] = new_state
        logger.debug("Job %s -> %s", job_id, new_state.value)
        self._notify()

    def trigger_state(self, job_id: str) -> TriggerState:
        return self.state.trigger_states.get(job_id, TriggerState.IDLE)

    def can_execute(self, job: Optional[JobView]) -> bool:
        return job is not None and job.job_id not in self.state.executing_job_ids

    async def execute_job(self, job: JobView) -> TriggerState:
        st = self.state
        if job.job_id in st.executing_job_ids:
            self._set_status(f"Job '{job.name}' is already executing.", Severity.WARNING)
            self._notify()
            return self.trigger_state(job.job_id)

        st.executing_job_ids.add(job.job_id)
        try:
            self._transition(job.job_id, TriggerState.SELECTING)
            st.selected_job = job
            await self.load_history(job)

            st.is_executing = True
            self._set_status(f"Executing job '{job.name}'...", Severity.INFO)
            self._transition(job.job_id, TriggerState.STARTING)

            try:
                await self._start(job)
            except ExecutionStartError as e:
                logger.error("Start failed for %s: %s", job.job_id, e.detail)
                self._set_status(f"Error executing job '{job.name}': {e.detail}", Severity.ERROR)
                self._transition(job.job_id, TriggerState.FAILED)
                return TriggerState.FAILED

            self._set_status(f"Job '{job.name}' started successfully.", Severity.SUCCESS)
            self._transition(job.job_id, TriggerState.AWAITING_SETTLE)
            await self._sleep(self.settle_delay_sec)

            self._transition(job.job_id, TriggerState.REFRESHING)
            if not await self.refresh_jobs(keep_status=True):
                self._transition(job.job_id, TriggerState.FAILED)
                return TriggerState.FAILED

            if st.selected_job is not None and st.selected_job.job_id == job.job_id:
                await self.load_history(st.selected_job)

            self._transition(job.job_id, TriggerState.IDLE)
            return TriggerState.IDLE
        finally:
            st.executing_job_ids.discard(job.job_id)
            st.is_executing = bool(st.executing_job_ids)
            self._notify()

    async def _start(self, job: JobView) -> None:
        try:
            await self.executor.start(job.job_id)
        except Exception as e:
            raise ExecutionStartError(job.job_id, f"Could not start '{job.name}'", cause=e) from e

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export_messages(self) -> Optional[str]:
        """Export the filtered history to the file sink. Returns the sink location or None."""
        if self.file_sink is None:
            self._set_status("Error exporting messages: no export target configured", Severity.ERROR)
            self._notify()
            return None

        job_name = self.state.selected_job.name if self.state.selected_job else None
        entries = self.filtered_messages()
        content = export_history(entries)
        file_name = export_file_name(job_name, self._clock())

        try:
            location = await self.file_sink.save(file_name, content)
        except Exception as cause:
            e = ExportError(f"Could not write {file_name}", cause=cause)
            logger.error("%s: %s", e, e.detail)
            self._set_status(f"Error exporting messages: {e.detail}", Severity.ERROR)
            self._notify()
            return None

        self._set_status(f"Exported {len(entries)} messages to {location}", Severity.INFO)
        self._notify()
        return location
