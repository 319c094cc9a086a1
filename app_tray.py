# ======================================================================
#  File......: app_tray.py
#  Purpose...: Tray launcher (Start/Pause/Resume agent, Open Dashboard, Exit).
#  Version...: 0.2.0
#  Date......: 2026-10-19
#  Author....: Edwin Rodriguez (Arthrex IT SAP COE)
# ======================================================================

from __future__ import annotations

import webbrowser
from typing import Callable, Optional

import pystray
from PIL import Image, ImageDraw

from agent import AgentController


def _make_icon() -> Image.Image:
    """Simple generated tray icon."""
    img = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
    d = ImageDraw.Draw(img)
    d.rounded_rectangle((6, 6, 58, 58), radius=12, outline=(255, 255, 255, 255), width=3)
    d.text((20, 22), "SJ", fill=(255, 255, 255, 255))
    return img


def build_menu(
    agent: AgentController,
    dashboard_url: str,
    on_exit: Optional[Callable[[], None]] = None,
) -> pystray.Menu:
    def on_start(icon, item):
        agent.start()

    def on_pause(icon, item):
        agent.pause()

    def on_resume(icon, item):
        agent.resume()

    def on_open(icon, item):
        webbrowser.open(dashboard_url)

    def on_quit(icon, item):
        agent.stop()
        if on_exit is not None:
            on_exit()
        icon.stop()

    return pystray.Menu(
        pystray.MenuItem("Start agent", on_start, enabled=lambda item: not agent.is_running),
        pystray.MenuItem("Pause agent", on_pause, enabled=lambda item: agent.is_running),
        pystray.MenuItem("Resume agent", on_resume, enabled=lambda item: agent.is_running),
        pystray.MenuItem("Open Dashboard", on_open, default=True),
        pystray.MenuItem("Exit", on_quit),
    )


def run_tray(agent: AgentController, dashboard_url: str, on_exit: Optional[Callable[[], None]] = None) -> None:
    """Blocks until Exit is chosen."""
    icon = pystray.Icon(
        "Scheduled Jobs Monitor",
        _make_icon(),
        "Scheduled Jobs Monitor",
        menu=build_menu(agent, dashboard_url, on_exit),
    )
    icon.run()
