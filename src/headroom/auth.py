"""Credential store backed by Claude Code's OAuth credential file.

SECURITY MODEL:
- Headroom NEVER stores, caches, or writes credentials to disk.
- The OAuth token is read fresh from Claude Code's file on every call.
- Tokens are never logged; only the file path and parse failures are.

ROTATION:
- Claude Code rewrites the file when it refreshes its token. A watcher
  thread compares the file's mtime/size and notifies listeners, so the
  monitor can retry without waiting for the next tick.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Callable

from .config import CREDENTIAL_WATCH_SECONDS, CREDENTIALS_PATH

log = logging.getLogger(__name__)

# Buffer before expiry to trigger early re-read (5 minutes in ms)
_EXPIRY_BUFFER_MS = 5 * 60 * 1000


def _read_oauth(path: Path) -> dict | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        log.error("Credentials file not found: %s", path)
        return None
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        log.error("Failed to parse credentials file")
        return None
    oauth = data.get("claudeAiOauth") if isinstance(data, dict) else None
    return oauth if isinstance(oauth, dict) else None


def read_access_token(path: Path | None = None) -> str | None:
    """Read the OAuth access token from ~/.claude/.credentials.json.

    Returns the token string, or None if unavailable.
    """
    oauth = _read_oauth(path or CREDENTIALS_PATH)
    token = oauth.get("accessToken") if oauth else None
    if not token:
        log.error("No accessToken found in credentials file")
        return None
    return token


def check_token_health(path: Path | None = None) -> tuple[str, str]:
    """Check if the OAuth token exists and whether it's expired or expiring soon.

    Returns (status, message) where status is one of:
    - "ok"       — token exists and has plenty of time left
    - "expiring" — token is within 5 minutes of expiry
    - "expired"  — token has passed its expiresAt timestamp
    - "missing"  — no token or credentials file found
    """
    oauth = _read_oauth(path or CREDENTIALS_PATH)
    if not oauth or not oauth.get("accessToken"):
        return "missing", "No accessToken in credentials"

    expires_at = oauth.get("expiresAt")
    if not expires_at:
        return "ok", "Token present (no expiry info)"
    try:
        exp_ms = int(expires_at)
    except (ValueError, TypeError):
        return "ok", "Token present (unparseable expiry)"

    now_ms = int(time.time() * 1000)
    if now_ms > exp_ms:
        return "expired", "Token expired — open Claude Code to refresh"
    elif now_ms > exp_ms - _EXPIRY_BUFFER_MS:
        mins_left = max(0, (exp_ms - now_ms) // 60000)
        return "expiring", f"Token expires in {mins_left}m"
    else:
        mins_left = (exp_ms - now_ms) // 60000
        return "ok", f"Token valid ({mins_left}m remaining)"


class CredentialStore:
    """Secret store facade: fresh reads plus change notification."""

    def __init__(self, path: Path | None = None,
                 watch_interval: float = CREDENTIAL_WATCH_SECONDS) -> None:
        self._path = path or CREDENTIALS_PATH
        self._watch_interval = watch_interval
        self._listeners: list[Callable[[], None]] = []
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._signature = self._file_signature()

    @property
    def path(self) -> Path:
        return self._path

    def get_credential(self) -> str | None:
        """Return the current access token, or None if there is none."""
        return read_access_token(self._path)

    def health(self) -> tuple[str, str]:
        return check_token_health(self._path)

    def on_credential_changed(self, callback: Callable[[], None]) -> None:
        """Register a callback fired when the credential file changes."""
        self._listeners.append(callback)

    def _file_signature(self) -> tuple[int, int] | None:
        try:
            st = self._path.stat()
        except OSError:
            return None
        return st.st_mtime_ns, st.st_size

    def check_for_change(self) -> bool:
        """Compare the file with the last seen version; notify on change."""
        signature = self._file_signature()
        if signature == self._signature:
            return False
        self._signature = signature
        log.info("Credentials file changed")
        for cb in list(self._listeners):
            try:
                cb()
            except Exception:
                log.warning("Credential listener error", exc_info=True)
        return True

    def start_watching(self) -> None:
        """Start the background thread that watches the credential file."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._watch, daemon=True, name="CredentialWatcher")
        self._thread.start()

    def stop_watching(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self._watch_interval + 1)
            self._thread = None

    def _watch(self) -> None:
        while not self._stop_event.wait(self._watch_interval):
            self.check_for_change()
