"""Shared fixtures: fixed clock, observation factory, fake collaborators."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from headroom.errors import NetworkError, Unauthorized
from headroom.shared_state import StateStore
from headroom.usage_api import UsageSnapshot
from headroom.windows import WindowKind, WindowObservation

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def observation(used: float, limit: float = 100.0, elapsed: timedelta = timedelta(hours=2),
                kind: WindowKind = WindowKind.SESSION, now: datetime = NOW) -> WindowObservation:
    """Observation whose window started ``elapsed`` before ``now``."""
    start = now - elapsed
    return WindowObservation(kind=kind, raw_used=used, raw_limit=limit,
                             window_start=start, reset_at=start + kind.duration)


class FakeCredentialStore:
    """Secret store double: returns queued credentials, repeats the last one."""

    def __init__(self, *tokens: str | None) -> None:
        self._tokens = list(tokens) or [None]
        self.calls = 0
        self.listeners = []
        self.status = ("ok", "Token present (no expiry info)")

    def health(self) -> tuple[str, str]:
        return self.status

    def get_credential(self) -> str | None:
        self.calls += 1
        if len(self._tokens) > 1:
            return self._tokens.pop(0)
        return self._tokens[0]

    def on_credential_changed(self, callback) -> None:
        self.listeners.append(callback)

    def fire_changed(self) -> None:
        for cb in self.listeners:
            cb()


class FakeClient:
    """UsageClient double: plays back queued results (snapshots or exceptions)."""

    def __init__(self, *results) -> None:
        self._results = list(results)
        self.tokens: list[str] = []
        self.release = threading.Event()
        self.release.set()
        self.entered = threading.Event()

    def fetch(self, credential: str) -> UsageSnapshot:
        self.tokens.append(credential)
        self.entered.set()
        self.release.wait(5)
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    s = StateStore()
    yield s
    s.close()


@pytest.fixture
def snapshot():
    return UsageSnapshot(
        session=observation(40),
        weekly=observation(20, kind=WindowKind.WEEKLY, elapsed=timedelta(days=3)),
    )


@pytest.fixture
def unauthorized():
    return Unauthorized("HTTP 401")


@pytest.fixture
def network_error():
    return NetworkError()
