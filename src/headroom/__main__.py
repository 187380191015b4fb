"""Entry point for Headroom.

SECURITY MODEL:
- The --test-api flag NEVER prints tokens, credentials, or partial keys.
- Only usage percentages, projections and reset times are displayed.
"""

import logging
import sys

from .config import APP_NAME, APP_TAGLINE, DATA_DIR


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
    datefmt = "%H:%M:%S"

    # Console handler
    logging.basicConfig(level=level, format=fmt, datefmt=datefmt)

    # File handler: headroom.log in the data dir, to diagnose after the fact
    log_path = DATA_DIR / "headroom.log"
    try:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_path), mode="w", encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
        logging.getLogger().addHandler(fh)
    except OSError:
        pass  # can't write log file — not fatal


def _describe(window) -> str:
    if window is None:
        return "no data"
    line = (f"{window.utilization:5.1f}% → {window.projected:5.1f}% projected  "
            f"[{window.color.name}]  {window.reset_display}, {window.gap_display}")
    if window.lockout_display:
        line += f", {window.lockout_display}"
    return line


def main() -> None:
    args = sys.argv[1:]

    if "--help" in args or "-h" in args:
        print(f"{APP_NAME} — {APP_TAGLINE}")
        print()
        print("Usage:")
        print("  python -m headroom                 Start the tray app")
        print("  python -m headroom --test-api      Fetch once and print usage")
        print("  python -m headroom --test-monitor  Test live polling")
        print("  python -m headroom --verbose       Verbose logging")
        return

    verbose = "--verbose" in args or "-v" in args
    _setup_logging(verbose)

    if "--test-api" in args:
        _test_api()
        return

    if "--test-monitor" in args:
        _test_monitor()
        return

    from .app import App
    App().run()


def _test_api() -> None:
    """One-shot API test: fetch, project and print current usage.

    SECURITY: Never prints tokens or credentials — only usage data.
    """
    from .auth import CredentialStore
    from .shared_state import StateStore
    from .usage_monitor import UsageMonitor

    store = StateStore()
    monitor = UsageMonitor(store, CredentialStore())
    print("Testing OAuth connection...")
    state = monitor.poll_once()

    if state.error:
        print(f"ERROR: {state.error}")
        sys.exit(1)

    print(f"\nSession (5h):  {_describe(state.session)}")
    print(f"Weekly  (7d):  {_describe(state.weekly)}")
    print("\nAPI test PASSED")


def _test_monitor() -> None:
    """Run the monitor and print every state it publishes."""
    from .auth import CredentialStore
    from .shared_state import StateStore
    from .tray_icon import compact_title
    from .usage_monitor import UsageMonitor

    store = StateStore()
    credentials = CredentialStore()
    monitor = UsageMonitor(store, credentials, interval=5)  # faster for testing
    subscription = store.subscribe()

    print("Starting monitor (Ctrl+C to stop, polling every 5s)...")
    credentials.start_watching()
    monitor.start()
    try:
        for state in subscription:
            if state.error:
                print(f"  ERROR: {state.error}  (showing {compact_title(state)})")
            else:
                print(f"  {compact_title(state)}  session={_describe(state.session)}")
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        monitor.stop()
        credentials.stop_watching()
        store.close()
        print("Done.")


if __name__ == "__main__":
    main()
