"""Tests for the window data model."""

from __future__ import annotations

from datetime import timedelta

import pytest

from headroom.errors import ConfigurationError
from headroom.windows import AlertColor, WindowKind, WindowObservation

from conftest import NOW, observation


class TestWindowKind:
    def test_durations(self):
        assert WindowKind.SESSION.duration == timedelta(hours=5)
        assert WindowKind.WEEKLY.duration == timedelta(days=7)

    def test_labels(self):
        assert WindowKind.SESSION.label == "Session"
        assert WindowKind.WEEKLY.label == "Weekly"


class TestAlertColor:
    def test_severity_order(self):
        assert AlertColor.GRAY < AlertColor.GREEN < AlertColor.YELLOW < AlertColor.RED < AlertColor.RED_BLINK

    def test_only_red_blink_blinks(self):
        assert [c for c in AlertColor if c.blinks] == [AlertColor.RED_BLINK]


class TestWindowObservation:
    def test_valid_construction(self):
        obs = observation(40)
        assert obs.raw_used == 40
        assert obs.duration == timedelta(hours=5)

    @pytest.mark.parametrize("limit", [0, -1])
    def test_rejects_non_positive_limit(self, limit):
        with pytest.raises(ConfigurationError, match="limit"):
            observation(10, limit=limit)

    def test_rejects_negative_usage(self):
        with pytest.raises(ConfigurationError, match="negative"):
            observation(-1)

    def test_rejects_reset_not_after_start(self):
        with pytest.raises(ConfigurationError):
            WindowObservation(WindowKind.SESSION, 1, 100, NOW, NOW)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            observation(10, limit=0)

    def test_used_above_limit_is_allowed(self):
        assert observation(150).raw_used == 150

    def test_fresh_observation_is_not_rolled(self):
        obs = observation(40)
        assert not obs.is_stale(NOW)
        assert obs.rolled(NOW) is obs

    def test_reset_instant_is_still_fresh(self):
        obs = observation(40, elapsed=timedelta(hours=5))
        assert obs.reset_at == NOW
        assert not obs.is_stale(NOW)

    def test_stale_observation_rolls_to_next_window(self):
        obs = observation(80, elapsed=timedelta(hours=6))
        rolled = obs.rolled(NOW)
        assert obs.is_stale(NOW)
        assert rolled.raw_used == 0
        assert rolled.raw_limit == obs.raw_limit
        assert rolled.window_start == obs.reset_at
        assert rolled.reset_at == obs.reset_at + timedelta(hours=5)
        assert rolled.window_start < NOW <= rolled.reset_at

    def test_rolls_across_several_windows(self):
        obs = observation(80, elapsed=timedelta(hours=17))
        rolled = obs.rolled(NOW)
        assert rolled.window_start == obs.window_start + timedelta(hours=15)
        assert rolled.window_start < NOW <= rolled.reset_at
