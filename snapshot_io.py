# ======================================================================
#  File......: snapshot_io.py
#  Purpose...: JSON read/write helpers (atomic writes, locked updates,
#              ISO timestamp conversion) for the local scheduler files.
#  Version...: 0.2.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

# Dashboard callbacks and the agent thread share the same files.
_update_lock = threading.RLock()


def atomic_write_json(path: Path, payload: Any) -> None:
    """Write JSON atomically to avoid partial reads by the dashboard."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    tmp.replace(path)


def read_json_strict(path: Path, default: Any) -> Any:
    """Missing file gives `default`; a corrupt file raises instead of looking empty."""
    if not path.exists():
        return default
    return json.loads(path.read_text(encoding="utf-8"))


def update_json(path: Path, default: Any, fn: Callable[[Any], Any]) -> Any:
    """Locked read-modify-write. `fn` gets the current payload and returns the new one."""
    with _update_lock:
        current = read_json_strict(path, default)
        updated = fn(current)
        atomic_write_json(path, updated)
        return updated


def to_iso(ts: Optional[datetime]) -> Optional[str]:
    if ts is None:
        return None
    return ts.isoformat().replace("+00:00", "Z")


def from_iso(raw: Optional[str]) -> Optional[datetime]:
    """Parse ISO text; a trailing Z or a missing offset both mean UTC."""
    if not raw:
        return None
    raw = str(raw).strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    ts = datetime.fromisoformat(raw)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
