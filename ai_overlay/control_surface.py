"""Remote control method table for the badge (transport-agnostic)."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Sequence, Tuple

from ai_overlay.state_machine import StateMachine, parse_status

_LOGGER = logging.getLogger("AIOverlay.Control")

BUS_NAME = "org.example.AIOverlay"
OBJECT_PATH = "/org/example/AIOverlay"
INTERFACE = "org.example.AIOverlay"
PING_REPLY = "ok"

INTERFACE_XML = f"""
<node>
  <interface name="{INTERFACE}">
    <method name="SetState"><arg type="s" name="state" direction="in"/></method>
    <method name="GetState"><arg type="s" name="state" direction="out"/></method>
    <method name="Show"/>
    <method name="Hide"/>
    <method name="Ping"><arg type="s" name="reply" direction="out"/></method>
  </interface>
</node>
"""

ERROR_UNKNOWN_METHOD = "org.freedesktop.DBus.Error.UnknownMethod"
ERROR_INVALID_ARGS = "org.freedesktop.DBus.Error.InvalidArgs"
ERROR_FAILED = f"{INTERFACE}.Error"


class ControlError(Exception):
    """Error returned to the remote caller, tagged with a D-Bus style error name."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name
        self.message = message


class UnknownMethodError(ControlError):
    def __init__(self, method: str) -> None:
        super().__init__(ERROR_UNKNOWN_METHOD, f"Unknown method {method!r} on interface {INTERFACE}")
        self.method = method


class InvalidArgsError(ControlError):
    def __init__(self, message: str) -> None:
        super().__init__(ERROR_INVALID_ARGS, message)


class ControlSurface:
    """SetState/GetState/Show/Hide/Ping, delegated to the state machine.

    ``strict`` turns an unrecognised SetState argument into an InvalidArgs error
    instead of the default log-and-ignore behaviour.
    """

    def __init__(self, machine: StateMachine, *, strict: bool = False) -> None:
        self._machine = machine
        self._strict = bool(strict)
        self._methods: Dict[str, Tuple[int, Callable[..., Any]]] = {
            "SetState": (1, self.set_state),
            "GetState": (0, self.get_state),
            "Show": (0, self.show),
            "Hide": (0, self.hide),
            "Ping": (0, self.ping),
        }

    @property
    def method_names(self) -> Tuple[str, ...]:
        return tuple(self._methods)

    def dispatch(self, method: str, args: Sequence[Any] = ()) -> Any:
        entry = self._methods.get(method)
        if entry is None:
            _LOGGER.warning("Rejected call to unknown method %r", method)
            raise UnknownMethodError(method)
        arity, handler = entry
        if len(args) != arity:
            raise InvalidArgsError(f"{method} expects {arity} argument(s), got {len(args)}")
        try:
            return handler(*args)
        except ControlError:
            raise
        except Exception as exc:
            _LOGGER.exception("Control method %s failed", method)
            raise ControlError(ERROR_FAILED, str(exc)) from exc

    def set_state(self, state: Any) -> None:
        if self._strict and parse_status(state) is None:
            _LOGGER.warning("Rejected SetState(%r) in strict mode", state)
            raise InvalidArgsError(f"Unknown state {state!r}")
        self._machine.set_state(state)

    def get_state(self) -> str:
        return self._machine.get_state()

    def show(self) -> None:
        self._machine.show()

    def hide(self) -> None:
        self._machine.hide()

    def ping(self) -> str:
        return PING_REPLY
