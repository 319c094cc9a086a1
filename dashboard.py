# ======================================================================
#  File......: dashboard.py
#  Purpose...: Bokeh server dashboard (custom/built-in job tables, execute,
#              execution history with filter, highlight and export).
#  Version...: 0.2.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import html
from typing import Any, Dict, List, Optional

from bokeh.document import without_document_lock
from bokeh.io import curdoc
from bokeh.layouts import column, row
from bokeh.models import (
    Button, ColumnDataSource, DataTable, Div, HTMLTemplateFormatter, TabPanel,
    TableColumn, Tabs, TextInput, Toggle,
)

from catalog import is_log_entry_successful
from history import message_snippet
from models import JobView, LogEntry, Severity
from monitor import JobsMonitor, MonitorState
from scheduler_api import local_backend
from settings import load_settings

SEVERITY_COLORS = {
    Severity.SUCCESS: "#2e7d32",
    Severity.INFO: "#1565c0",
    Severity.WARNING: "#ef6c00",
    Severity.ERROR: "#c62828",
}


def _fmt(ts) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else ""


def jobs_to_columns(jobs: List[JobView], check_last_status: bool) -> Dict[str, list]:
    cols: Dict[str, list] = {
        "job_id": [],
        "name": [],
        "enabled": [],
        "running": [],
        "last_execution": [],
        "next_execution": [],
        "last_status": [],
        "last_duration": [],
    }

    for j in jobs:
        cols["job_id"].append(j.job_id)
        cols["name"].append(j.name)
        cols["enabled"].append("Yes" if j.is_enabled else "No")
        cols["running"].append("Running" if j.is_running else "")
        cols["last_execution"].append(_fmt(j.last_execution))
        cols["next_execution"].append(_fmt(j.next_execution))
        if check_last_status:
            cols["last_status"].append("Failed" if j.last_run_failed else "OK")
        else:
            cols["last_status"].append("")
        cols["last_duration"].append(str(j.last_duration).split(".")[0] if j.last_duration else "")

    return cols


def history_to_columns(entries: List[LogEntry]) -> Dict[str, list]:
    return {
        "executed_utc": [_fmt(e.completed_utc) for e in entries],
        "status": ["Success" if is_log_entry_successful(e) else "Failed" for e in entries],
        "snippet": [message_snippet(e.message) for e in entries],
    }


# --- Session
settings = load_settings()
registry, executor, log_store, file_sink = local_backend(settings)
monitor = JobsMonitor.from_settings(settings, registry, executor, log_store, file_sink)
doc = curdoc()


def run_async(fn, *args):
    """
    Schedule a monitor coroutine on the document loop. It runs without the
    document lock so intermediate renders reach the browser mid-run.
    """
    @without_document_lock
    async def _task():
        await fn(*args)

    doc.add_next_tick_callback(_task)


# --- UI widgets
title = Div(text="<h2>Scheduled Jobs Monitor</h2>")
status_div = Div(text="", width=1100)
clear_status_btn = Button(label="Dismiss", button_type="light", width=80)

search = TextInput(title="Filter jobs", placeholder="job name...")
check_status_toggle = Toggle(label="Check last status", button_type="default", active=False)
refresh_btn = Button(label="Refresh", button_type="default")
execute_btn = Button(label="Execute selected", button_type="primary", disabled=True)

job_columns = [
    TableColumn(field="name", title="Job", width=260),
    TableColumn(field="enabled", title="Enabled", width=70),
    TableColumn(field="running", title="State", width=80),
    TableColumn(field="last_execution", title="Last Execution", width=150),
    TableColumn(field="next_execution", title="Next Execution", width=150),
    TableColumn(
        field="last_status", title="Last Status", width=90,
        formatter=HTMLTemplateFormatter(
            template='<span style="color: <%= value == "Failed" ? "#c62828" : "inherit" %>"><%= value %></span>'
        ),
    ),
    TableColumn(field="last_duration", title="Duration", width=90),
]

custom_source = ColumnDataSource(jobs_to_columns([], False))
built_in_source = ColumnDataSource(jobs_to_columns([], False))
custom_table = DataTable(source=custom_source, columns=job_columns, index_position=None,
                         width=900, height=320, autosize_mode="fit_columns")
built_in_table = DataTable(source=built_in_source, columns=job_columns, index_position=None,
                           width=900, height=320, autosize_mode="fit_columns")
job_tabs = Tabs(tabs=[
    TabPanel(child=custom_table, title="Custom jobs"),
    TabPanel(child=built_in_table, title="Built-in jobs"),
])

history_title = Div(text="<b>Execution history</b><br>Select a job to see its history.")
message_filter = TextInput(title="Filter messages", placeholder="text...")
export_btn = Button(label="Export", button_type="default", disabled=True)
history_source = ColumnDataSource(history_to_columns([]))
history_table = DataTable(
    source=history_source,
    columns=[
        TableColumn(field="executed_utc", title="Executed (UTC)", width=150),
        TableColumn(field="status", title="Status", width=80),
        TableColumn(field="snippet", title="Message", width=600),
    ],
    index_position=None, width=900, height=300, autosize_mode="fit_columns",
)

highlight_input = TextInput(title="Highlight", placeholder="keywords...")
close_detail_btn = Button(label="Close", button_type="light", width=80)
detail_div = Div(text="", width=480, styles={"white-space": "pre-wrap"})
detail_panel = column(highlight_input, detail_div, close_detail_btn, visible=False)

_rendering = {"active": False}
_visible_messages: List[LogEntry] = []


def _selected_row_job(source: ColumnDataSource, jobs: List[JobView]) -> Optional[JobView]:
    idx = source.selected.indices
    if not idx or idx[0] >= len(jobs):
        return None
    return jobs[idx[0]]


def _select_row(source: ColumnDataSource, jobs: List[JobView], job_id: Optional[str]) -> None:
    ids = [j.job_id for j in jobs]
    wanted = [ids.index(job_id)] if job_id in ids else []
    if source.selected.indices != wanted:
        source.selected.indices = wanted


def render(state: MonitorState) -> None:
    _rendering["active"] = True
    try:
        if state.status:
            color = SEVERITY_COLORS.get(state.status.severity, "inherit")
            status_div.text = f'<span style="color: {color}">{html.escape(state.status.text)}</span>'
        else:
            status_div.text = ""
        clear_status_btn.visible = bool(state.status)

        loading = " (loading...)" if state.is_loading else ""
        title.text = f"<h2>Scheduled Jobs Monitor{loading}</h2>"

        custom_jobs = monitor.filtered_custom_jobs()
        built_in_jobs = monitor.filtered_built_in_jobs()
        custom_source.data = jobs_to_columns(custom_jobs, state.check_last_status)
        built_in_source.data = jobs_to_columns(built_in_jobs, state.check_last_status)

        selected_id = state.selected_job.job_id if state.selected_job else None
        _select_row(custom_source, custom_jobs, selected_id)
        _select_row(built_in_source, built_in_jobs, selected_id)

        execute_btn.disabled = not monitor.can_execute(state.selected_job)
        refresh_btn.disabled = state.is_loading

        if state.selected_job is None:
            history_title.text = "<b>Execution history</b><br>Select a job to see its history."
        elif state.is_loading_history:
            history_title.text = f"<b>Execution history: {html.escape(state.selected_job.name)}</b> (loading...)"
        else:
            latest = monitor.latest_log_entry()
            last = f" | last run {_fmt(latest.completed_utc)} UTC" if latest else " | never run"
            history_title.text = f"<b>Execution history: {html.escape(state.selected_job.name)}</b>{last}"

        _visible_messages[:] = monitor.filtered_messages()
        history_source.data = history_to_columns(_visible_messages)
        export_btn.disabled = state.selected_job is None or not state.messages

        detail_panel.visible = state.message_detail_open
        if state.message_detail_open and state.selected_message is not None:
            entry = state.selected_message
            status = "Success" if is_log_entry_successful(entry) else "Failed"
            detail_div.text = (
                f"<b>{_fmt(entry.completed_utc)} UTC</b> ({status})<br><br>"
                f"{monitor.highlighted_detail(escape=html.escape)}"
            )
        else:
            history_source.selected.indices = []
    finally:
        _rendering["active"] = False


_render_pending = {"queued": False}


def _render_latest() -> None:
    _render_pending["queued"] = False
    render(monitor.state)


def schedule_render(state: MonitorState) -> None:
    """Widget changes go through a locked next-tick callback; bursts coalesce."""
    if _render_pending["queued"]:
        return
    _render_pending["queued"] = True
    doc.add_next_tick_callback(_render_latest)


monitor.subscribe(schedule_render)


# --- Callbacks
def on_job_selection(source: ColumnDataSource, jobs_fn):
    def _handler(attr, old, new):
        if _rendering["active"] or not new:
            return
        job = _selected_row_job(source, jobs_fn())
        if job is not None and (monitor.state.selected_job is None
                                or monitor.state.selected_job.job_id != job.job_id):
            run_async(monitor.select_job, job)
    return _handler


custom_source.selected.on_change("indices", on_job_selection(custom_source, monitor.filtered_custom_jobs))
built_in_source.selected.on_change("indices", on_job_selection(built_in_source, monitor.filtered_built_in_jobs))


def on_history_selection(attr, old, new):
    if _rendering["active"] or not new or new[0] >= len(_visible_messages):
        return
    highlight_input.value = ""
    monitor.open_message_detail(_visible_messages[new[0]])


history_source.selected.on_change("indices", on_history_selection)

search.on_change("value_input", lambda attr, old, new: monitor.set_filter_text(new))
message_filter.on_change("value_input", lambda attr, old, new: monitor.set_message_filter_text(new))
highlight_input.on_change("value_input", lambda attr, old, new: monitor.set_message_highlight_text(new))
check_status_toggle.on_change("active", lambda attr, old, new: run_async(monitor.set_check_last_status, new))

refresh_btn.on_click(lambda: run_async(monitor.refresh_jobs))
export_btn.on_click(lambda: run_async(monitor.export_messages))
clear_status_btn.on_click(monitor.clear_status_message)


def on_close_detail():
    highlight_input.value = ""
    monitor.close_message_detail()


close_detail_btn.on_click(on_close_detail)


def on_execute():
    job: Any = monitor.state.selected_job
    if monitor.can_execute(job):
        execute_btn.disabled = True
        run_async(monitor.execute_job, job)


execute_btn.on_click(on_execute)

controls = row(search, check_status_toggle, refresh_btn, execute_btn)
history_controls = row(message_filter, export_btn)
layout = column(
    title,
    row(status_div, clear_status_btn),
    controls,
    job_tabs,
    history_title,
    history_controls,
    row(history_table, detail_panel),
)

doc.add_root(layout)
doc.title = "Scheduled Jobs Monitor"
run_async(monitor.initialize)
