# ======================================================================
#  File......: main.py
#  Purpose...: Single entrypoint to run Bokeh server + agent + tray together
#  Version...: 0.4.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import logging
import threading
from pathlib import Path

from bokeh.application import Application
from bokeh.application.handlers.script import ScriptHandler
from bokeh.server.server import Server

import app_tray
from agent import AgentController
from settings import ensure_config, load_settings

APP_DIR = Path(__file__).resolve().parent
DASHBOARD_SCRIPT = str(APP_DIR / "dashboard.py")


def _start_bokeh_server(port: int) -> Server:
    handler = ScriptHandler(filename=DASHBOARD_SCRIPT)
    app = Application(handler)

    server = Server(
        {"/dashboard": app},
        port=port,
        allow_websocket_origin=[f"localhost:{port}"],
    )

    server.start()
    threading.Thread(target=server.io_loop.start, daemon=True).start()
    return server


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    ensure_config()
    settings = load_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    agent = AgentController(settings)
    agent.start()

    server = _start_bokeh_server(settings.dashboard_port)
    url = f"http://localhost:{settings.dashboard_port}/dashboard"
    print(f"Dashboard running at {url}")

    app_tray.run_tray(agent, url, on_exit=lambda: server.io_loop.stop())


if __name__ == "__main__":
    main()
