"""Utility functions for time formatting and display helpers."""

from __future__ import annotations

import math
from datetime import datetime

from .config import LIMIT_THRESHOLD


def format_reset_time(seconds_remaining: float, reset_at: datetime) -> str:
    """Human-readable time until reset.

    Examples: "resets in 2h 15m", "resets Mon 3:05 PM" (24h or more away)
    """
    if seconds_remaining <= 0:
        return "resetting..."

    hours = int(seconds_remaining // 3600)
    minutes = int((seconds_remaining % 3600) // 60)
    if hours < 24:
        return f"resets in {hours}h {minutes}m"

    # %-I / %#I differ between platforms, build the 12h clock by hand
    local_dt = reset_at.astimezone()
    hour12 = local_dt.hour % 12 or 12
    return f"resets {local_dt:%a} {hour12}:{local_dt:%M %p}"


def format_headroom(raw_used: float, raw_limit: float) -> str:
    """Units left before the limit: "60% left", "950 of 1,000 left"."""
    left = raw_limit - raw_used
    if left <= 0:
        return "limit reached"
    if raw_limit == 100:
        return f"{left:.0f}% left"
    return f"{left:,.0f} of {raw_limit:,.0f} left"


def format_lockout(utilization: float, projected: float, seconds_remaining: float,
                   limit: float = LIMIT_THRESHOLD) -> str | None:
    """How long the user will sit at the limit before the window resets.

    Only meaningful when the projection exceeds the limit. Assumes the
    observed burn rate continues linearly, so the limit is hit at the
    point where the remaining projected growth crosses ``limit``.
    """
    if projected <= limit or seconds_remaining <= 0:
        return None

    if utilization >= limit:
        gap = seconds_remaining
    else:
        gap = seconds_remaining * (projected - limit) / (projected - utilization)
    gap = max(round(gap), 0)

    hours = int(gap // 3600)
    minutes = math.ceil((gap % 3600) / 60)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    if hours > 0:
        return f"{hours}h {minutes}m gap"
    return f"{max(minutes, 1)}m gap"


def pct_str(value: float | None) -> str:
    """Format a percentage value as a compact string."""
    if value is None:
        return "--"
    return f"{value:.0f}%"
