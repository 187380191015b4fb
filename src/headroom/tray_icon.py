"""System tray icon: two usage bars, tooltip, blink on imminent limit."""

from __future__ import annotations

import logging
import threading
import webbrowser

from PIL import Image, ImageDraw

from .config import (
    APP_NAME,
    BLINK_PERIOD_SECONDS,
    COLOR_GRAY,
    COLOR_GREEN,
    COLOR_RED,
    COLOR_TRACK,
    COLOR_YELLOW,
    ICON_SIZE,
    USAGE_PAGE_URL,
)
from .projection import worst_color
from .shared_state import StateStore, UsageState
from .utils import pct_str
from .windows import AlertColor, UsageWindow

log = logging.getLogger(__name__)

# Bar geometry for the square tray icon
BAR_X = 2
BAR_WIDTH = ICON_SIZE - 2 * BAR_X
BAR_HEIGHT = 10
BAR_RADIUS = 4
BAR_TOP = 4
BAR_GAP = 4

# Windows tray tooltips hold 127 characters plus the terminator
TITLE_MAX_CHARS = 127

COLOR_RGB = {
    AlertColor.GRAY: COLOR_GRAY,
    AlertColor.GREEN: COLOR_GREEN,
    AlertColor.YELLOW: COLOR_YELLOW,
    AlertColor.RED: COLOR_RED,
    AlertColor.RED_BLINK: COLOR_RED,
}


def _draw_bar(draw: ImageDraw.ImageDraw, top: int, window: UsageWindow | None) -> None:
    box = [BAR_X, top, BAR_X + BAR_WIDTH - 1, top + BAR_HEIGHT - 1]
    draw.rounded_rectangle(box, radius=BAR_RADIUS, fill=COLOR_TRACK)
    if window is None:
        return
    fill_w = int(BAR_WIDTH * window.display_utilization / 100.0)
    if fill_w <= 0:
        return
    radius = min(BAR_RADIUS, fill_w // 2)
    draw.rounded_rectangle(
        [BAR_X, top, BAR_X + fill_w - 1, top + BAR_HEIGHT - 1],
        radius=radius, fill=COLOR_RGB[window.color],
    )


def render_icon(state: UsageState | None, blank: bool = False) -> Image.Image:
    """Draw the tray icon: session bar on top, weekly bar below.

    ``blank`` draws empty tracks only; alternating with the full icon
    gives the blink.
    """
    img = Image.new("RGBA", (ICON_SIZE, ICON_SIZE), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    session = weekly = None
    if state is not None and not blank:
        session, weekly = state.session, state.weekly
    _draw_bar(draw, BAR_TOP, session)
    _draw_bar(draw, BAR_TOP + BAR_HEIGHT + BAR_GAP, weekly)
    return img


def compact_title(state: UsageState) -> str:
    """'S:40 W:12', '--' for missing windows."""
    s = f"S:{state.session.utilization:.0f}" if state.session else "S:--"
    w = f"W:{state.weekly.utilization:.0f}" if state.weekly else "W:--"
    return f"{s} {w}"


def tooltip(state: UsageState) -> str:
    """Multi-line hover text, at most TITLE_MAX_CHARS long.

    Window detail lines are dropped from the bottom up until the header
    and the error fit; anything still too long is cut.
    """
    if state.has_data:
        header = f"{APP_NAME}  {compact_title(state)}"
    else:
        header = f"{APP_NAME}: no data yet"
    details = []
    for window in state.windows:
        if window is None:
            continue
        line = f"{window.label}: {pct_str(window.utilization)} → {pct_str(window.projected)}, {window.reset_display}"
        if window.lockout_display:
            line += f" ({window.lockout_display})"
        details.append(line)
    footer = [f"Error: {state.error}"] if state.error else []

    text = "\n".join([header, *details, *footer])
    while details and len(text) > TITLE_MAX_CHARS:
        details.pop()
        text = "\n".join([header, *details, *footer])
    return text[:TITLE_MAX_CHARS]


class TrayIcon:
    """System tray icon powered by pystray."""

    def __init__(self, store: StateStore, on_refresh=None, on_exit=None) -> None:
        self._store = store
        self._on_refresh = on_refresh
        self._on_exit = on_exit
        self._icon = None
        self._stop_event = threading.Event()
        self._blink_thread: threading.Thread | None = None
        self._blink_on = True

    def run(self) -> None:
        """Run the tray icon on the calling thread until stop() is called."""
        # Imported here: pystray selects a platform backend at import time
        import pystray

        menu = pystray.Menu(
            pystray.MenuItem("Refresh Now", self._handle_refresh, default=True),
            pystray.MenuItem("Open Usage Page", self._handle_open_usage),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem(f"Quit {APP_NAME}", self._handle_exit),
        )
        state = self._store.current()
        self._icon = pystray.Icon(
            name=APP_NAME.lower(),
            icon=render_icon(state),
            title=f"{APP_NAME}: Loading...",
            menu=menu,
        )
        self._store.on_change(self._on_data_change)
        self._blink_thread = threading.Thread(target=self._blink_loop, daemon=True, name="TrayBlink")
        self._blink_thread.start()
        log.info("Tray icon started")
        self._icon.run()

    def stop(self) -> None:
        """Stop the tray icon."""
        self._stop_event.set()
        if self._icon:
            self._icon.stop()
        if self._blink_thread:
            self._blink_thread.join(timeout=BLINK_PERIOD_SECONDS * 2)
        log.info("Tray icon stopped")

    def _on_data_change(self, state: UsageState) -> None:
        """Update icon and tooltip when the state changes."""
        if not self._icon:
            return
        self._blink_on = True
        self._icon.icon = render_icon(state)
        self._icon.title = tooltip(state)

    def _blink_loop(self) -> None:
        while not self._stop_event.wait(BLINK_PERIOD_SECONDS):
            state = self._store.current()
            if not worst_color(state.windows).blinks:
                if not self._blink_on:
                    self._blink_on = True
                    self._icon.icon = render_icon(state)
                continue
            self._blink_on = not self._blink_on
            self._icon.icon = render_icon(state, blank=not self._blink_on)

    def _handle_refresh(self, icon=None, item=None) -> None:
        if self._on_refresh:
            self._on_refresh()

    def _handle_open_usage(self, icon=None, item=None) -> None:
        webbrowser.open(USAGE_PAGE_URL)

    def _handle_exit(self, icon=None, item=None) -> None:
        if self._on_exit:
            self._on_exit()
