# ======================================================================
#  File......: errors.py
#  Purpose...: Exception taxonomy for catalog, history, execution and export.
#  Version...: 0.1.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

from typing import Optional


class MonitorError(Exception):
    """Base class. Every subclass is recoverable: it becomes a status message."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    @property
    def detail(self) -> str:
        """Message of the underlying cause, or our own if there is none."""
        if self.cause is not None:
            return str(self.cause) or type(self.cause).__name__
        return str(self)


class CatalogLoadError(MonitorError):
    pass


class HistoryLoadError(MonitorError):
    def __init__(self, job_id: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.job_id = job_id


class ExecutionStartError(MonitorError):
    def __init__(self, job_id: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.job_id = job_id


class EnrichmentError(MonitorError):
    """Per-job; logged and swallowed by the enricher."""

    def __init__(self, job_id: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.job_id = job_id


class ExportError(MonitorError):
    pass
