"""Command-line client for a running overlay (``ai-overlay-ctl``)."""

from __future__ import annotations

import argparse
import sys
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ai_overlay.control_surface import BUS_NAME, INTERFACE, OBJECT_PATH

CallResult = Tuple[bool, Any]
CallFn = Callable[[str, Sequence[Any]], CallResult]

_COMMANDS = {
    "set": "SetState",
    "get": "GetState",
    "show": "Show",
    "hide": "Hide",
    "ping": "Ping",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ai-overlay-ctl", description="Control a running AI overlay badge")
    sub = parser.add_subparsers(dest="command", required=True)
    set_parser = sub.add_parser("set", help="Set the badge state")
    set_parser.add_argument("state", help="idle, listening, thinking or error")
    sub.add_parser("get", help="Print the current state")
    sub.add_parser("show", help="Force the badge visible")
    sub.add_parser("hide", help="Force the badge hidden")
    sub.add_parser("ping", help="Check that the overlay is running")
    return parser


def _qt_call(method: str, args: Sequence[Any]) -> CallResult:
    from PyQt6.QtCore import QCoreApplication
    from PyQt6.QtDBus import QDBusConnection, QDBusInterface, QDBusMessage

    _app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    connection = QDBusConnection.sessionBus()
    if not connection.isConnected():
        return False, ("org.freedesktop.DBus.Error.NoServer", connection.lastError().message())
    remote = QDBusInterface(BUS_NAME, OBJECT_PATH, INTERFACE, connection)
    reply = remote.call(method, *args)
    if reply.type() == QDBusMessage.MessageType.ErrorMessage:
        return False, (reply.errorName(), reply.errorMessage())
    values = reply.arguments()
    return True, values[0] if values else None


def main(argv: Optional[List[str]] = None, call: Optional[CallFn] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)
    method = _COMMANDS[args.command]
    call_args: Tuple[Any, ...] = (args.state,) if args.command == "set" else ()
    ok, value = (call or _qt_call)(method, call_args)
    if not ok:
        name, message = value
        print(f"{name}: {message}", file=sys.stderr)
        return 1
    if value is not None:
        print(value)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
