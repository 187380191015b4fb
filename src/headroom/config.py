"""Constants and configuration for Headroom."""

import os
from datetime import timedelta
from pathlib import Path

# App identity
APP_NAME = "Headroom"
APP_TAGLINE = "See the limit coming."

# API
USAGE_API_URL = "https://api.anthropic.com/api/oauth/usage"
USAGE_PAGE_URL = "https://claude.ai/settings/usage"
OAUTH_BETA_HEADER = "oauth-2025-04-20"
HTTP_TIMEOUT_SECONDS = 10

# Polling
POLL_INTERVAL_SECONDS = 60
MAX_BACKOFF_SECONDS = 300
STOP_TIMEOUT_SECONDS = 5
CREDENTIAL_WATCH_SECONDS = 2

# Credentials
CREDENTIALS_PATH = Path.home() / ".claude" / ".credentials.json"

# Settings and logs: LocalAppData on Windows, XDG-style elsewhere
if os.environ.get("LOCALAPPDATA"):
    DATA_DIR = Path(os.environ["LOCALAPPDATA"]) / APP_NAME
else:
    DATA_DIR = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / APP_NAME.lower()

# Accounting windows
SESSION_WINDOW = timedelta(hours=5)
WEEKLY_WINDOW = timedelta(days=7)

# Alert thresholds (percentage / fraction of window)
ELEVATED_THRESHOLD = 70.0       # projected >= 70% = yellow
LIMIT_THRESHOLD = 100.0         # projected >= 100% = red
BLINK_UTILIZATION = 95.0        # used >= 95% = blink regardless of pace
IMMINENT_FRACTION = 0.10        # last 10% of the window
MIN_ELAPSED_FRACTION = 0.03     # ~9 minutes of a session window

# Tray icon
ICON_SIZE = 32
BLINK_PERIOD_SECONDS = 0.5

# Colors (RGB)
COLOR_GREEN = (76, 175, 80)
COLOR_YELLOW = (255, 193, 7)
COLOR_RED = (244, 67, 54)
COLOR_GRAY = (120, 120, 120)
COLOR_TRACK = (68, 68, 72)
