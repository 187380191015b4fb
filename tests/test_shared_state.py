"""Tests for the StateStore and its subscriptions."""

from __future__ import annotations

import dataclasses
import threading
import time
from datetime import timedelta

import pytest

from headroom.projection import project
from headroom.shared_state import StateStore, UsageState
from headroom.windows import WindowKind

from conftest import NOW, observation


@pytest.fixture
def session():
    return project(observation(40), NOW)


@pytest.fixture
def weekly():
    return project(observation(20, kind=WindowKind.WEEKLY, elapsed=timedelta(days=2)), NOW)


class TestUsageState:
    def test_starts_empty(self, store):
        state = store.current()
        assert state.session is None
        assert state.weekly is None
        assert state.error is None
        assert not state.has_data

    def test_is_immutable(self, store):
        with pytest.raises(dataclasses.FrozenInstanceError):
            store.current().error = "boom"


class TestApply:
    def test_replaces_whole_state(self, store, session, weekly):
        store.apply(session, weekly)
        state = store.current()
        assert state.session is session
        assert state.weekly is weekly
        assert state.error is None
        assert state.last_updated is not None

    def test_success_clears_error(self, store, session, weekly):
        store.report_error("Connection failed")
        store.apply(session, weekly)
        assert store.current().error is None

    def test_report_error_keeps_windows(self, store, session, weekly):
        store.apply(session, weekly)
        before = store.current()
        store.report_error("Connection failed")
        after = store.current()
        assert after.error == "Connection failed"
        assert after.session is before.session
        assert after.weekly is before.weekly

    def test_snapshot_unaffected_by_later_apply(self, store, session, weekly):
        store.apply(session, None)
        snapshot = store.current()
        store.apply(None, weekly)
        assert snapshot.session is session
        assert snapshot.weekly is None

    def test_readers_never_see_torn_state(self, store, session, weekly):
        pairs = [(session, weekly), (None, None)]
        stop = threading.Event()
        torn = []

        def writer():
            i = 0
            while not stop.is_set():
                store.apply(*pairs[i % 2])
                i += 1

        thread = threading.Thread(target=writer)
        thread.start()
        for _ in range(5000):
            state = store.current()
            if (state.session is None) != (state.weekly is None):
                torn.append(state)
        stop.set()
        thread.join()
        assert torn == []


class TestSubscription:
    def test_receives_applied_state(self, store, session, weekly):
        sub = store.subscribe()
        applied = store.apply(session, weekly)
        assert sub.get(timeout=1) is applied

    def test_multicast(self, store, session):
        subs = [store.subscribe() for _ in range(3)]
        applied = store.apply(session, None)
        assert all(s.get(timeout=1) is applied for s in subs)

    def test_latest_value_wins(self, store, session):
        sub = store.subscribe()
        store.apply(session, None)
        store.report_error("first")
        latest = store.report_error("second")
        assert sub.get(timeout=1) is latest
        assert sub.get(timeout=0.05) is None

    def test_get_times_out(self, store):
        assert store.subscribe().get(timeout=0.05) is None

    def test_closed_subscription_stops_receiving(self, store, session):
        sub = store.subscribe()
        sub.close()
        store.apply(session, None)
        assert sub.closed
        assert sub.get(timeout=0.05) is None

    def test_iteration_ends_on_close(self, store, session):
        sub = store.subscribe()
        received = []

        def consume():
            for state in sub:
                received.append(state)

        thread = threading.Thread(target=consume)
        thread.start()
        applied = store.apply(session, None)
        deadline = time.monotonic() + 2
        while not received and time.monotonic() < deadline:
            time.sleep(0.01)
        sub.close()
        thread.join(timeout=2)
        assert not thread.is_alive()
        assert received == [applied]


class TestOnChange:
    def test_callback_runs_off_writer_thread(self, store, session):
        seen = []
        done = threading.Event()

        def callback(state: UsageState) -> None:
            seen.append((state, threading.current_thread().name))
            done.set()

        store.on_change(callback)
        applied = store.apply(session, None)
        assert done.wait(2)
        assert seen[0][0] is applied
        assert seen[0][1] != threading.current_thread().name

    def test_slow_callback_does_not_block_apply(self, store, session):
        gate = threading.Event()
        store.on_change(lambda state: gate.wait(2))
        start = time.monotonic()
        for _ in range(10):
            store.apply(session, None)
        assert time.monotonic() - start < 1
        gate.set()

    def test_callback_errors_are_contained(self, store, session):
        calls = []
        done = threading.Event()

        def flaky(state):
            calls.append(state)
            if len(calls) == 1:
                raise RuntimeError("boom")
            done.set()

        store.on_change(flaky)
        store.apply(session, None)
        deadline = time.monotonic() + 2
        while not calls and time.monotonic() < deadline:
            time.sleep(0.01)
        store.report_error("again")
        assert done.wait(2)
        assert len(calls) == 2
