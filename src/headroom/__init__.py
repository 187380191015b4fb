"""Headroom: predictive usage alerts for rate-limited Claude accounts."""

__version__ = "0.1.0"
