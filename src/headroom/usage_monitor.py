"""Background thread that polls the usage API and keeps the StateStore fresh.

SECURITY MODEL:
- Reads the OAuth token fresh from the credential store on each poll (never cached).
- Only calls the read-only, non-billable usage endpoint.
- No credentials are held longer than a single poll cycle.

STATE MACHINE:
    IDLE -> FETCHING -> (APPLYING | RETRYING) -> IDLE
- At most one fetch is in flight. A tick or manual refresh that arrives
  while FETCHING is dropped, never queued.

RECOVERY LOGIC:
- On 401/403, re-reads the credential; if it rotated, retries once
  immediately, otherwise reports "credentials invalid" and backs off.
- Network and credential failures double the wait up to a cap; the first
  success resets it to the base interval.
- Malformed responses are retried on the next tick without extra backoff.
- Last known windows are kept on every failure.
"""

from __future__ import annotations

import enum
import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from .auth import CredentialStore
from .config import MAX_BACKOFF_SECONDS, POLL_INTERVAL_SECONDS, STOP_TIMEOUT_SECONDS
from .errors import (
    ConfigurationError,
    CredentialInvalid,
    CredentialMissing,
    HeadroomError,
    MalformedResponse,
    Unauthorized,
)
from .projection import DEFAULT_POLICY, ProjectionPolicy, project
from .shared_state import StateStore, UsageState
from .usage_api import UsageClient, UsageSnapshot

log = logging.getLogger(__name__)


class PollerState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    APPLYING = "applying"
    RETRYING = "retrying"


class UsageMonitor:
    """Background daemon thread that polls the usage API."""

    def __init__(
        self,
        store: StateStore,
        credentials: CredentialStore,
        client: UsageClient | None = None,
        interval: float | None = None,
        max_interval: float = MAX_BACKOFF_SECONDS,
        policy: ProjectionPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._credentials = credentials
        self._client = client or UsageClient()
        self._interval = interval or POLL_INTERVAL_SECONDS
        self._max_interval = max(max_interval, self._interval)
        self._current_interval = self._interval
        self._policy = policy
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._fetch_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None
        self._phase = PollerState.IDLE
        self._consecutive_errors = 0
        self._credential_failed = False

        credentials.on_credential_changed(self._on_credential_changed)

    @property
    def phase(self) -> PollerState:
        return self._phase

    @property
    def current_interval(self) -> float:
        """Seconds until the next scheduled tick, including backoff."""
        return self._current_interval

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    def start(self) -> None:
        """Start the background polling thread."""
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="UsageMonitor")
        self._thread.start()
        log.info("Usage monitor started (poll every %ss)", self._interval)

    def stop(self) -> None:
        """Signal the monitor to stop and wait a bounded time for it."""
        self._stop_event.set()
        self._wake.set()  # Unblock any wait
        if self._thread:
            self._thread.join(timeout=STOP_TIMEOUT_SECONDS)
            if self._thread.is_alive():
                log.warning("Usage monitor still finishing a fetch at shutdown")
            self._thread = None
        log.info("Usage monitor stopped")

    def request_refresh(self) -> bool:
        """Skip the idle wait and poll now (popup opened, Refresh clicked).

        Returns False when the request is dropped because a fetch is
        already in flight.
        """
        if not self._fetch_lock.acquire(blocking=False):
            log.debug("Refresh requested while fetching, dropped")
            return False
        try:
            log.info("Manual refresh requested")
            self._wake.set()
        finally:
            self._fetch_lock.release()
        return True

    def _on_credential_changed(self) -> None:
        if self._credential_failed:
            log.info("Credential rotated after an auth failure, refreshing")
            self.request_refresh()

    def poll_once(self) -> UsageState | None:
        """Do a single poll. Returns the applied state, or None if dropped."""
        if not self._fetch_lock.acquire(blocking=False):
            log.debug("Fetch already in flight, poll dropped")
            return None
        try:
            # Any refresh requested before this fetch started is served by it
            self._wake.clear()
            return self._poll()
        finally:
            self._phase = PollerState.IDLE
            self._fetch_lock.release()

    def _poll(self) -> UsageState:
        self._phase = PollerState.FETCHING
        try:
            snapshot = self._fetch()
            self._phase = PollerState.APPLYING
            now = self._clock()
            session = project(snapshot.session, now, self._policy) if snapshot.session else None
            weekly = project(snapshot.weekly, now, self._policy) if snapshot.weekly else None
        except (MalformedResponse, ConfigurationError) as exc:
            return self._fail(exc.message, backoff=False)
        except HeadroomError as exc:
            self._credential_failed = isinstance(exc, (CredentialInvalid, CredentialMissing))
            return self._fail(exc.message, backoff=True)
        except Exception:
            log.exception("Unexpected error while polling")
            return self._fail("Unexpected error, retrying", backoff=True)

        if self._consecutive_errors > 0:
            log.info("Poll recovered after %d errors", self._consecutive_errors)
        self._consecutive_errors = 0
        self._credential_failed = False
        self._current_interval = self._interval
        return self._store.apply(session, weekly)

    def _fetch(self) -> UsageSnapshot:
        """Fetch with one immediate retry if the credential rotated under us."""
        # Check token health before polling
        status, health_msg = self._credentials.health()
        if status == "expired":
            # Still try, Claude Code may refresh the file at any moment
            log.warning("Token expired: %s", health_msg)
        elif status == "expiring":
            log.info("Token expiring soon: %s", health_msg)

        token = self._credentials.get_credential()
        if not token:
            raise CredentialMissing()
        try:
            return self._client.fetch(token)
        except Unauthorized:
            log.info("Got 401, re-reading credentials")

        # Re-read credentials (Claude Code may have refreshed the token)
        fresh = self._credentials.get_credential()
        if not fresh or fresh == token:
            raise CredentialInvalid()
        log.info("Credential rotated, retrying once")
        try:
            return self._client.fetch(fresh)
        except Unauthorized:
            raise CredentialInvalid() from None

    def _fail(self, message: str, backoff: bool) -> UsageState:
        self._phase = PollerState.RETRYING
        self._consecutive_errors += 1
        if backoff:
            self._current_interval = min(self._current_interval * 2, self._max_interval)
        log.warning("Poll error (%d consecutive): %s (next poll in %ss)",
                    self._consecutive_errors, message, self._current_interval)
        return self._store.report_error(message)

    def _run(self) -> None:
        """Main loop: poll, update state, sleep."""
        while not self._stop_event.is_set():
            self.poll_once()
            if self._stop_event.is_set():
                break
            # Wait, but break early if a refresh or stop is signaled
            self._wake.wait(self._current_interval)
