"""Burn-rate projection and alert color decision.

Everything here is a pure function of its arguments: no I/O, no clock
reads unless ``now`` is omitted, no shared state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from .config import (
    BLINK_UTILIZATION,
    ELEVATED_THRESHOLD,
    IMMINENT_FRACTION,
    LIMIT_THRESHOLD,
    MIN_ELAPSED_FRACTION,
)
from .errors import ConfigurationError
from .utils import format_headroom, format_lockout, format_reset_time
from .windows import AlertColor, UsageWindow, WindowObservation


@dataclass(frozen=True)
class ProjectionPolicy:
    """Alert thresholds. Percentages for utilization, fractions of the window for time."""
    elevated_threshold: float = ELEVATED_THRESHOLD
    limit_threshold: float = LIMIT_THRESHOLD
    blink_utilization: float = BLINK_UTILIZATION
    imminent_fraction: float = IMMINENT_FRACTION
    min_elapsed_fraction: float = MIN_ELAPSED_FRACTION

    def __post_init__(self) -> None:
        if not 0 < self.elevated_threshold <= self.limit_threshold:
            raise ConfigurationError("elevated threshold must be between 0 and the limit threshold")
        if self.blink_utilization <= 0:
            raise ConfigurationError("blink utilization must be positive")
        for name in ("imminent_fraction", "min_elapsed_fraction"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1]")


DEFAULT_POLICY = ProjectionPolicy()


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def elapsed_fraction(window_start: datetime, reset_at: datetime, now: datetime) -> float:
    """Fraction of the window already elapsed, clamped to [0, 1]."""
    total = (reset_at - window_start).total_seconds()
    return _clamp((now - window_start).total_seconds() / total, 0.0, 1.0)


def project_utilization(utilization: float, elapsed: float,
                        policy: ProjectionPolicy = DEFAULT_POLICY) -> float:
    """Extrapolate utilization to the end of the window at the observed pace.

    Below ``min_elapsed_fraction`` there is not enough signal and the
    current utilization is returned as-is.
    """
    if elapsed <= policy.min_elapsed_fraction:
        return utilization
    return utilization + (utilization / elapsed) * (1.0 - elapsed)


def decide_color(utilization: float, projected: float, remaining_fraction: float,
                 policy: ProjectionPolicy = DEFAULT_POLICY) -> AlertColor:
    """Priority-ordered alert decision; the first matching rule wins."""
    if utilization >= policy.blink_utilization or (
        projected >= policy.limit_threshold
        and remaining_fraction <= policy.imminent_fraction
    ):
        return AlertColor.RED_BLINK
    if projected >= policy.limit_threshold:
        return AlertColor.RED
    if projected >= policy.elevated_threshold:
        return AlertColor.YELLOW
    return AlertColor.GREEN


def project(observation: WindowObservation, now: datetime | None = None,
            policy: ProjectionPolicy = DEFAULT_POLICY) -> UsageWindow:
    """Turn a raw observation into a UsageWindow as of ``now``."""
    now = now or datetime.now(timezone.utc)
    obs = observation.rolled(now)

    elapsed = elapsed_fraction(obs.window_start, obs.reset_at, now)
    utilization = 100.0 * obs.raw_used / obs.raw_limit
    burn_rate = utilization / elapsed if elapsed > 0 else 0.0
    projected = project_utilization(utilization, elapsed, policy)
    color = decide_color(utilization, projected, 1.0 - elapsed, policy)

    seconds_remaining = max((obs.reset_at - now).total_seconds(), 0.0)
    return UsageWindow(
        kind=obs.kind,
        raw_used=obs.raw_used,
        raw_limit=obs.raw_limit,
        window_start=obs.window_start,
        reset_at=obs.reset_at,
        utilization=utilization,
        elapsed_fraction=elapsed,
        burn_rate=burn_rate,
        projected=projected,
        color=color,
        seconds_remaining=seconds_remaining,
        reset_display=format_reset_time(seconds_remaining, obs.reset_at),
        gap_display=format_headroom(obs.raw_used, obs.raw_limit),
        lockout_display=format_lockout(utilization, projected, seconds_remaining,
                                       policy.limit_threshold),
    )


def worst_color(windows: Iterable[UsageWindow | None]) -> AlertColor:
    """Most severe color among the present windows, GRAY if none are present."""
    colors = [w.color for w in windows if w is not None]
    return max(colors, default=AlertColor.GRAY)
