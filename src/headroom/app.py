"""Main application coordinator — wires all components together."""

import logging

from .auth import CredentialStore
from .shared_state import StateStore
from .tray_icon import TrayIcon
from .usage_monitor import UsageMonitor
from . import settings

log = logging.getLogger(__name__)

# Never hammer the API, whatever the settings file says
MIN_POLL_INTERVAL = 10


class App:
    """Top-level coordinator for Headroom."""

    def __init__(self) -> None:
        self._store = StateStore()
        self._credentials = CredentialStore()
        self._tray: TrayIcon | None = None
        self._monitor: UsageMonitor | None = None

    @property
    def store(self) -> StateStore:
        return self._store

    def run(self) -> None:
        """Start all components and block in the tray loop."""
        log.info("Starting Headroom")
        s = settings.load()

        self._monitor = UsageMonitor(
            self._store,
            self._credentials,
            interval=max(s["poll_interval"], MIN_POLL_INTERVAL),
            policy=settings.policy_from(s),
        )
        self._tray = TrayIcon(
            self._store,
            on_refresh=self._monitor.request_refresh,
            on_exit=self._shutdown,
        )

        self._credentials.start_watching()
        self._monitor.start()

        log.info("All components started, entering tray loop")
        try:
            self._tray.run()
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        """Clean shutdown of all components. Safe to call twice."""
        log.info("Shutting down...")
        if self._monitor:
            self._monitor.stop()
            self._monitor = None
        self._credentials.stop_watching()
        if self._tray:
            tray, self._tray = self._tray, None
            tray.stop()
        self._store.close()
        log.info("Shutdown complete")
