from __future__ import annotations

import argparse
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from ai_overlay.badge_config import default_config_path
from ai_overlay.logging_utils import configure_logging

# Lets the interpreter run Python signal handlers while Qt owns the loop.
_SIGNAL_POLL_MS = 250


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ai-overlay", description="On-screen AI activity badge")
    parser.add_argument("--config", help="Path to the badge config document (default: XDG config dir)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-dir", help="Directory for the rotating log file")
    parser.add_argument("--no-dbus", action="store_true", help="Do not export the session-bus control interface")
    parser.add_argument("--no-self-test", action="store_true", help="Skip the brief listening pulse at startup")
    parser.add_argument(
        "--strict-set-state",
        action="store_true",
        help="Reject unknown SetState values with an InvalidArgs error instead of ignoring them",
    )
    return parser


def resolve_config_path(arg_path: Optional[str]) -> Path:
    if arg_path:
        return Path(arg_path).expanduser().resolve()
    return default_config_path()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = configure_logging(
        debug=args.debug,
        log_dir=Path(args.log_dir).expanduser() if args.log_dir else None,
    ).getChild("Launcher")
    config_path = resolve_config_path(args.config)

    from PyQt6.QtCore import QTimer
    from PyQt6.QtWidgets import QApplication

    from ai_overlay.badge_widget import BadgeWidget
    from ai_overlay.qt_services import QtFileObserver, QtTimerService, create_display_topology
    from ai_overlay.runtime import OverlayRuntime

    logger.info("Starting overlay (pid=%s)", os.getpid())
    logger.debug("Resolved config path to %s", config_path)

    app = QApplication(sys.argv[:1])
    app.setQuitOnLastWindowClosed(False)

    timers = QtTimerService()
    runtime = OverlayRuntime(
        config_path,
        BadgeWidget(),
        create_display_topology(app),
        timers,
        QtFileObserver(),
        enable_dbus=not args.no_dbus,
        self_test=not args.no_self_test,
        strict_set_state=args.strict_set_state,
    )

    def _request_quit(signum: int, _frame: object) -> None:
        logger.info("Received signal %s; shutting down", signum)
        app.quit()

    signal.signal(signal.SIGINT, _request_quit)
    signal.signal(signal.SIGTERM, _request_quit)
    signal_poll = QTimer()
    signal_poll.timeout.connect(lambda: None)
    signal_poll.start(_SIGNAL_POLL_MS)

    runtime.enable()
    try:
        exit_code = app.exec()
    finally:
        signal_poll.stop()
        runtime.disable()
        timers.cancel_all()
    logger.info("Overlay exiting with code %s", exit_code)
    return int(exit_code)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
