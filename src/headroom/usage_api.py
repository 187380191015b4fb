"""HTTP client for the Anthropic OAuth usage API.

SECURITY MODEL:
- Only calls the OAuth usage endpoint (read-only, no billing).
- Uses explicit SSL context with certificate verification.
- Error messages are sanitized — no raw response bodies shown to users.
"""

from __future__ import annotations

import json
import logging
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timezone

import certifi

from .config import HTTP_TIMEOUT_SECONDS, OAUTH_BETA_HEADER, USAGE_API_URL
from .errors import MalformedResponse, NetworkError, Unauthorized
from .windows import WindowKind, WindowObservation

log = logging.getLogger(__name__)

# Upstream bucket name for each window
BUCKET_KEYS = {
    WindowKind.SESSION: "five_hour",
    WindowKind.WEEKLY: "seven_day",
}


@dataclass(frozen=True)
class UsageSnapshot:
    """Raw observations for both windows. Either may be absent upstream."""
    session: WindowObservation | None = None
    weekly: WindowObservation | None = None


def _ssl_context() -> ssl.SSLContext:
    """Create an SSL context with certificate verification enforced."""
    ctx = ssl.create_default_context(cafile=certifi.where())
    # Enforce minimum TLS 1.2
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    return ctx


def _parse_timestamp(value) -> datetime:
    if not isinstance(value, str):
        raise MalformedResponse("Missing reset time in usage response")
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise MalformedResponse("Unparsable reset time in usage response") from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _number(d: dict, key: str, default=None) -> float:
    value = d.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponse(f"Unparsable '{key}' in usage response")
    return float(value)


def parse_bucket(kind: WindowKind, bucket, now: datetime) -> WindowObservation | None:
    """Build an observation from one upstream bucket.

    Buckets carry either ``utilization`` (a percentage, limit 100) or raw
    ``used``/``limit`` counts. A bucket with no usage and no reset time is
    a window that has not started yet: it starts now.
    """
    if bucket is None:
        return None
    if not isinstance(bucket, dict):
        raise MalformedResponse(f"Unexpected {kind.label.lower()} bucket in usage response")

    if "used" in bucket or "limit" in bucket:
        used, limit = _number(bucket, "used"), _number(bucket, "limit")
    else:
        used, limit = _number(bucket, "utilization", 0), 100.0

    if bucket.get("resets_at") is None and used == 0:
        reset_at = now + kind.duration
    else:
        reset_at = _parse_timestamp(bucket.get("resets_at"))

    return WindowObservation(
        kind=kind,
        raw_used=used,
        raw_limit=limit,
        window_start=reset_at - kind.duration,
        reset_at=reset_at,
    )


def parse_usage(raw, now: datetime | None = None) -> UsageSnapshot:
    """Parse the raw JSON response into a UsageSnapshot."""
    if not isinstance(raw, dict):
        raise MalformedResponse()
    now = now or datetime.now(timezone.utc)
    return UsageSnapshot(
        session=parse_bucket(WindowKind.SESSION, raw.get(BUCKET_KEYS[WindowKind.SESSION]), now),
        weekly=parse_bucket(WindowKind.WEEKLY, raw.get(BUCKET_KEYS[WindowKind.WEEKLY]), now),
    )


class UsageClient:
    """Fetches raw counters for both windows with a supplied credential."""

    def __init__(self, url: str = USAGE_API_URL, timeout: float = HTTP_TIMEOUT_SECONDS) -> None:
        self._url = url
        self._timeout = timeout

    def _request(self, credential: str) -> urllib.request.Request:
        return urllib.request.Request(
            self._url,
            headers={
                "Authorization": f"Bearer {credential}",
                "anthropic-beta": OAUTH_BETA_HEADER,
                "Content-Type": "application/json",
            },
            method="GET",
        )

    def fetch(self, credential: str) -> UsageSnapshot:
        """Call the usage API. Raises Unauthorized, NetworkError or MalformedResponse."""
        try:
            with urllib.request.urlopen(self._request(credential), timeout=self._timeout,
                                        context=_ssl_context()) as resp:
                body = resp.read()
        except urllib.error.HTTPError as exc:
            log.error("API HTTP %d", exc.code)
            if exc.code in (401, 403):
                raise Unauthorized(f"HTTP {exc.code}") from None
            raise NetworkError(f"HTTP {exc.code}") from None
        except urllib.error.URLError as exc:
            reason = str(exc.reason) if exc.reason else "Unknown"
            # Sanitize — don't expose internal network details
            if "certificate" in reason.lower():
                raise NetworkError("SSL certificate error") from None
            raise NetworkError() from None
        except (TimeoutError, OSError):
            raise NetworkError("Connection timed out") from None

        try:
            raw = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            log.error("Usage response is not valid JSON")
            raise MalformedResponse() from None
        return parse_usage(raw)
