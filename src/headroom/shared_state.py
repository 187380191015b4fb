"""Single owner of the current UsageState, with multicast subscriptions.

SECURITY MODEL:
- Contains only usage metric data (percentages, timestamps).
- No credentials, tokens, or authentication data flows through this module.

Writers replace a frozen snapshot under a lock; readers just take the
reference, so a reader never sees one window updated and the other not.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Iterator

from .windows import UsageWindow

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageState:
    """Complete usage snapshot: both windows plus the last error."""
    session: UsageWindow | None = None
    weekly: UsageWindow | None = None
    error: str | None = None
    last_updated: datetime | None = None

    @property
    def windows(self) -> tuple[UsageWindow | None, UsageWindow | None]:
        return self.session, self.weekly

    @property
    def has_data(self) -> bool:
        return self.session is not None or self.weekly is not None


class Subscription:
    """Latest-value mailbox for one subscriber.

    Publishing never blocks: a newer state overwrites one the subscriber
    has not picked up yet.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self._cond = threading.Condition()
        self._pending: UsageState | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _publish(self, state: UsageState) -> None:
        with self._cond:
            self._pending = state
            self._cond.notify_all()

    def get(self, timeout: float | None = None) -> UsageState | None:
        """Return the newest unseen state, waiting up to ``timeout`` seconds.

        Returns None on timeout or once the subscription is closed.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._pending is not None or self._closed, timeout)
            state, self._pending = self._pending, None
            return state

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._store._unsubscribe(self)

    def __iter__(self) -> Iterator[UsageState]:
        while not self._closed:
            state = self.get()
            if state is not None:
                yield state


class StateStore:
    """Sole writer of the process-wide UsageState."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = UsageState()
        self._subscribers: list[Subscription] = []
        self._dispatchers: list[threading.Thread] = []

    def current(self) -> UsageState:
        """Return the current immutable snapshot."""
        return self._state

    def apply(self, session: UsageWindow | None, weekly: UsageWindow | None,
              error: str | None = None) -> UsageState:
        """Atomically replace the whole state and notify subscribers."""
        state = UsageState(
            session=session,
            weekly=weekly,
            error=error,
            last_updated=datetime.now(timezone.utc),
        )
        with self._lock:
            self._state = state
            self._publish(state)
        return state

    def report_error(self, error: str) -> UsageState:
        """Set ``error`` while keeping the last known windows."""
        with self._lock:
            state = replace(self._state, error=error, last_updated=datetime.now(timezone.utc))
            self._state = state
            self._publish(state)
        return state

    def _publish(self, state: UsageState) -> None:
        # Called with self._lock held so subscribers see states in apply order
        for sub in list(self._subscribers):
            sub._publish(state)

    def subscribe(self) -> Subscription:
        """Open a new subscription receiving every state applied from now on."""
        sub = Subscription(self)
        with self._lock:
            self._subscribers.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)

    def on_change(self, callback: Callable[[UsageState], None]) -> Subscription:
        """Invoke ``callback`` on a dedicated thread for every new state.

        The callback never runs on the writer's thread, so a slow callback
        only delays itself.
        """
        sub = self.subscribe()
        name = getattr(callback, "__name__", "callback")

        def _dispatch() -> None:
            for state in sub:
                try:
                    callback(state)
                except Exception:
                    log.warning("Callback error in %s", name, exc_info=True)

        thread = threading.Thread(target=_dispatch, daemon=True, name=f"StateStore-{name}")
        thread.start()
        self._dispatchers.append(thread)
        return sub

    def close(self, timeout: float = 1.0) -> None:
        """Close every subscription and let dispatcher threads finish."""
        with self._lock:
            subs = list(self._subscribers)
        for sub in subs:
            sub.close()
        for thread in self._dispatchers:
            thread.join(timeout=timeout)
        self._dispatchers.clear()
