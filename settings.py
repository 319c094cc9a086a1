# ======================================================================
#  File......: settings.py
#  Purpose...: jobs_monitor.ini handling (data paths, settle delay, prefixes).
#  Version...: 0.1.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple


HERE = Path(__file__).resolve().parent
CONFIG_PATH = HERE / "jobs_monitor.ini"
SECTION = "monitor"

DEFAULTS = {
    "data_dir": "data",
    "export_dir": "data/exports",
    "settle_delay_sec": "1.0",
    "max_messages": "1000",
    "builtin_prefixes": "EPiServer.,Optimizely.",
    "scheduler_enabled": "true",
    "poll_interval_sec": "2",
    "command_timeout_sec": "300",
    "dashboard_port": "5006",
}


@dataclass(frozen=True)
class MonitorSettings:
    data_dir: Path = Path("data")
    export_dir: Path = Path("data/exports")
    settle_delay_sec: float = 1.0
    max_messages: int = 1000
    builtin_prefixes: Tuple[str, ...] = ("EPiServer.", "Optimizely.")
    scheduler_enabled: bool = True
    poll_interval_sec: float = 2.0
    command_timeout_sec: int = 300
    dashboard_port: int = 5006

    @property
    def catalog_path(self) -> Path:
        return self.data_dir / "jobs.xlsx"

    @property
    def state_path(self) -> Path:
        return self.data_dir / "job_state.json"

    @property
    def log_path(self) -> Path:
        return self.data_dir / "job_log.json"

    @property
    def requests_path(self) -> Path:
        return self.data_dir / "run_requests.json"


def config_path() -> Path:
    """JOBS_MONITOR_CONFIG wins over the ini next to this file."""
    override = os.environ.get("JOBS_MONITOR_CONFIG", "").strip()
    return Path(override) if override else CONFIG_PATH


def ensure_config(path: Optional[Path] = None) -> Path:
    """
    Make sure the ini exists and has every known key.
    Missing keys get their default; existing values are left alone.
    """
    path = Path(path) if path is not None else config_path()
    cfg = configparser.ConfigParser()
    if path.exists():
        cfg.read(path, encoding="utf-8")

    if SECTION not in cfg:
        cfg[SECTION] = {}

    changed = False
    for key, value in DEFAULTS.items():
        if key not in cfg[SECTION]:
            cfg[SECTION][key] = value
            changed = True

    if changed:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            cfg.write(f)
        print(f"✅ Wrote default monitor settings to {path}")

    return path


def _split_prefixes(raw: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def load_settings(path: Optional[Path] = None) -> MonitorSettings:
    """Read the ini (missing file or keys fall back to DEFAULTS). Bad values raise ValueError."""
    path = Path(path) if path is not None else config_path()
    cfg = configparser.ConfigParser()
    cfg.read_dict({SECTION: DEFAULTS})
    if path.exists():
        cfg.read(path, encoding="utf-8")
    s = cfg[SECTION]

    try:
        settle_delay = s.getfloat("settle_delay_sec")
        max_messages = s.getint("max_messages")
        scheduler_enabled = s.getboolean("scheduler_enabled")
        poll_interval = s.getfloat("poll_interval_sec")
        command_timeout = s.getint("command_timeout_sec")
        port = s.getint("dashboard_port")
    except ValueError as e:
        raise ValueError(f"Invalid value in {path}: {e}") from e

    if settle_delay < 0:
        raise ValueError("settle_delay_sec must be >= 0")
    if max_messages <= 0:
        raise ValueError("max_messages must be > 0")
    if poll_interval <= 0:
        raise ValueError("poll_interval_sec must be > 0")

    return MonitorSettings(
        data_dir=Path(s.get("data_dir")),
        export_dir=Path(s.get("export_dir")),
        settle_delay_sec=settle_delay,
        max_messages=max_messages,
        builtin_prefixes=_split_prefixes(s.get("builtin_prefixes")),
        scheduler_enabled=scheduler_enabled,
        poll_interval_sec=poll_interval,
        command_timeout_sec=command_timeout,
        dashboard_port=port,
    )
