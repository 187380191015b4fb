"""Window data model: raw observations in, derived usage windows out.

SECURITY MODEL:
- Contains only usage metric data (counters, timestamps).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta

from .config import SESSION_WINDOW, WEEKLY_WINDOW
from .errors import ConfigurationError


class WindowKind(enum.Enum):
    """The two rolling accounting windows."""
    SESSION = "session"
    WEEKLY = "weekly"

    @property
    def label(self) -> str:
        return "Session" if self is WindowKind.SESSION else "Weekly"

    @property
    def duration(self) -> timedelta:
        return SESSION_WINDOW if self is WindowKind.SESSION else WEEKLY_WINDOW


class AlertColor(enum.IntEnum):
    """Alert levels, ordered by severity. GRAY means no data."""
    GRAY = 0
    GREEN = 1
    YELLOW = 2
    RED = 3
    RED_BLINK = 4

    @property
    def blinks(self) -> bool:
        return self is AlertColor.RED_BLINK


@dataclass(frozen=True)
class WindowObservation:
    """Raw counters for one window as reported upstream.

    Raises ConfigurationError on construction if the counters are
    inconsistent; there is no partially valid observation.
    """
    kind: WindowKind
    raw_used: float
    raw_limit: float
    window_start: datetime
    reset_at: datetime

    def __post_init__(self) -> None:
        if self.raw_limit <= 0:
            raise ConfigurationError(f"{self.kind.label} limit must be positive")
        if self.raw_used < 0:
            raise ConfigurationError(f"{self.kind.label} usage must not be negative")
        if self.reset_at <= self.window_start:
            raise ConfigurationError(f"{self.kind.label} window resets before it starts")

    @property
    def duration(self) -> timedelta:
        return self.reset_at - self.window_start

    def is_stale(self, now: datetime) -> bool:
        return now > self.reset_at

    def rolled(self, now: datetime) -> WindowObservation:
        """Return the window that is current at ``now``.

        A stale observation is advanced by whole window lengths with its
        usage reset to zero. Fresh observations are returned unchanged.
        """
        if not self.is_stale(now):
            return self
        duration = self.duration
        periods = (now - self.reset_at) // duration + 1
        start = self.reset_at + duration * (periods - 1)
        return WindowObservation(
            kind=self.kind,
            raw_used=0.0,
            raw_limit=self.raw_limit,
            window_start=start,
            reset_at=start + duration,
        )


@dataclass(frozen=True)
class UsageWindow:
    """Derived metrics for one window. Produced only by projection.project."""
    kind: WindowKind
    raw_used: float
    raw_limit: float
    window_start: datetime
    reset_at: datetime
    utilization: float
    elapsed_fraction: float
    burn_rate: float
    projected: float
    color: AlertColor
    seconds_remaining: float
    reset_display: str
    gap_display: str
    lockout_display: str | None = None

    @property
    def label(self) -> str:
        return self.kind.label

    @property
    def remaining_fraction(self) -> float:
        return 1.0 - self.elapsed_fraction

    @property
    def display_utilization(self) -> float:
        """Utilization clamped to [0, 100], for bar widths only."""
        return min(max(self.utilization, 0.0), 100.0)
