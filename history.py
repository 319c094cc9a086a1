# ======================================================================
#  File......: history.py
#  Purpose...: Execution history loading, message filtering and highlighting.
#  Version...: 0.1.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Sequence

from errors import HistoryLoadError
from models import HistoryPage, LogEntry
from scheduler_api import LogStore

logger = logging.getLogger(__name__)

# Upper bound per fetch; this is not a pagination UI.
MAX_MESSAGES_TO_RETRIEVE = 1000

MARK_OPEN = "<mark>"
MARK_CLOSE = "</mark>"


async def load_history(
    log_store: LogStore,
    job_id: str,
    page: int = 1,
    page_size: int = MAX_MESSAGES_TO_RETRIEVE,
) -> HistoryPage:
    try:
        result = await log_store.get(job_id, page, page_size)
    except Exception as e:
        raise HistoryLoadError(job_id, f"Error loading execution history: {e}", cause=e) from e

    if result is None:
        return HistoryPage(entries=[], total_count=0, page=page, page_size=page_size)

    logger.debug("Loaded %d/%d log entries for job %s", len(result.entries), result.total_count, job_id)
    return result


def filter_entries(entries: List[LogEntry], text: str) -> List[LogEntry]:
    """Case-insensitive substring filter on message. Blank text returns `entries` itself."""
    if not text or not text.strip():
        return entries
    needle = text.lower()
    return [e for e in entries if needle in (e.message or "").lower()]


# Placeholders for markers while the raw text is still unescaped.
_OPEN_SENTINEL = "\x02"
_CLOSE_SENTINEL = "\x03"


def highlight(
    message: str,
    query: str,
    mark_open: str = MARK_OPEN,
    mark_close: str = MARK_CLOSE,
    escape: Optional[Callable[[str], str]] = None,
) -> str:
    """
    Wrap each case-insensitive occurrence of every whitespace-separated keyword
    in `query`. Keywords are applied one after another, in query order, as
    literal text; a later keyword may match inside an earlier marker.

    With `escape` (e.g. html.escape) keywords are matched against the raw
    message, the text is escaped afterwards and the markers are left as is.
    Keywords then never match inside escape sequences or the marker text.
    """
    if not message:
        return message
    if not query or not query.strip():
        return escape(message) if escape is not None else message

    open_, close_ = (mark_open, mark_close) if escape is None else (_OPEN_SENTINEL, _CLOSE_SENTINEL)
    result = message
    for keyword in query.split():
        pattern = re.compile(re.escape(keyword), re.IGNORECASE)
        result = pattern.sub(lambda m: f"{open_}{m.group(0)}{close_}", result)

    if escape is None:
        return result
    return escape(result).replace(_OPEN_SENTINEL, mark_open).replace(_CLOSE_SENTINEL, mark_close)


def message_snippet(message: Optional[str], max_length: int = 100) -> str:
    if not message:
        return ""
    if len(message) <= max_length:
        return message
    return message[:max_length] + "..."


def latest_log_entry(entries: Sequence[LogEntry]) -> Optional[LogEntry]:
    return entries[0] if entries else None
