"""Badge state machine.

Drives label text, pulse, colouring, visibility and placement of the badge from a
single status value. Kept free of Qt types: the rendering surface, display
topology and timers are injected.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from ai_overlay.badge_config import BadgeSettings, PulseSettings
from ai_overlay.capabilities import DisplayTopology, Unsubscribe
from ai_overlay.config_store import AfterCancelFn, AfterFn, ConfigStore
from ai_overlay.placement import Point, Size, place_on_topology
from ai_overlay.pulse_scheduler import NEUTRAL_SCALE, PulseScheduler

_LOGGER = logging.getLogger("AIOverlay.State")

SELF_TEST_MS = 700
FADE_IN_MS = 150
FADE_OUT_MS = 120
ERROR_FLASH_MS = 220
ERROR_FLASH_START = 0.7


class Status(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    THINKING = "thinking"
    ERROR = "error"


LABELS = {
    Status.IDLE: "",
    Status.LISTENING: "Listening…",
    Status.THINKING: "Thinking…",
    Status.ERROR: "Error",
}


def parse_status(value: Any) -> Optional[Status]:
    if isinstance(value, Status):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Status(value.strip().lower())
    except ValueError:
        return None


def label_for(status: Status, settings: BadgeSettings) -> str:
    if not settings.show_label:
        return ""
    return LABELS[status]


def colors_for(status: Status, settings: BadgeSettings) -> tuple[str, str, str]:
    """Return (background, dot, text) colours for ``status``."""
    colors = settings.colors
    dot = {
        Status.IDLE: colors.dot_idle,
        Status.LISTENING: colors.dot_listening,
        Status.THINKING: colors.dot_thinking,
        Status.ERROR: colors.dot_error,
    }[status]
    background = colors.bg_error if status is Status.ERROR else colors.bg
    return background, dot, colors.text


DoneFn = Optional[Callable[[], None]]


class BadgeSurface(Protocol):
    def measure(self) -> Size: ...

    def set_position(self, x: int, y: int) -> None: ...

    def show(self, on_done: DoneFn = None) -> None: ...

    def hide(self, on_done: DoneFn = None) -> None: ...

    def set_opacity(self, value: float) -> None: ...

    def ease_opacity(self, target: float, duration_ms: int, on_done: DoneFn = None) -> None: ...

    def set_scale(self, value: float) -> None: ...

    def ease_scale(self, target: float, duration_ms: int, on_done: DoneFn = None) -> None: ...

    def set_label(self, text: str) -> None: ...

    def set_colors(self, background: str, dot: str, text: str) -> None: ...

    def apply_style(self, settings: BadgeSettings) -> None: ...

    def raise_(self) -> None: ...

    def release(self) -> None: ...


class StateMachine:
    """Owns the current status and applies its side effects in a fixed order."""

    def __init__(
        self,
        surface: BadgeSurface,
        store: ConfigStore,
        pulse: PulseScheduler,
        topology: DisplayTopology,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
    ) -> None:
        self._surface = surface
        self._store = store
        self._pulse = pulse
        self._topology = topology
        self._after = after
        self._after_cancel = after_cancel
        self._status = Status.IDLE
        self._visible = False
        self._visibility_generation = 0
        self._self_test_timer: Optional[object] = None
        self._pulse_settings: Optional[PulseSettings] = None
        self._last_position: Optional[Point] = None
        self._topology_unsubscribe: Optional[Unsubscribe] = None
        self._shut_down = False
        self._surface.apply_style(self._store.settings)

    # Public API -----------------------------------------------------------

    @property
    def status(self) -> Status:
        return self._status

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def last_position(self) -> Optional[Point]:
        return self._last_position

    @property
    def self_test_pending(self) -> bool:
        return self._self_test_timer is not None

    def get_state(self) -> str:
        return self._status.value

    def set_state(self, value: Any) -> bool:
        """Transition to ``value``; unknown values are logged and ignored.

        An explicit transition supersedes a pending startup self-test.
        """
        if self._shut_down:
            _LOGGER.debug("Ignoring state %r after shutdown", value)
            return False
        status = parse_status(value)
        if status is None:
            _LOGGER.warning("Ignoring unknown state %r (current=%s)", value, self._status.value)
            return False
        self._cancel_self_test()
        self._transition(status)
        return True

    def show(self) -> None:
        if self._shut_down:
            return
        self._visibility_generation += 1
        self._visible = True
        settings = self._store.settings
        self._surface.set_opacity(0.0)
        self._surface.show()
        self._surface.raise_()
        self._surface.ease_opacity(settings.opacity, FADE_IN_MS)

    def hide(self) -> None:
        if self._shut_down:
            return
        self._visibility_generation += 1
        generation = self._visibility_generation
        self._visible = False

        def _finish() -> None:
            if generation == self._visibility_generation:
                self._surface.hide()

        self._surface.ease_opacity(0.0, FADE_OUT_MS, on_done=_finish)

    def apply_config(self, settings: Optional[BadgeSettings] = None) -> None:
        """Restyle for new settings without changing status."""
        if self._shut_down:
            return
        settings = settings or self._store.settings
        self._surface.apply_style(settings)
        self._apply_label(settings)
        if self._pulsing_status() and settings.pulse != self._pulse_settings:
            _LOGGER.debug("Pulse settings changed while %s; restarting pulse", self._status.value)
            self._apply_pulse(settings)
        self._apply_colors(settings)
        if self._visible:
            self._surface.set_opacity(settings.opacity)
        self.reposition(settings)
        _LOGGER.debug("Config applied: corner=%s monitor=%s", settings.corner, settings.monitor)

    def reposition(self, settings: Optional[BadgeSettings] = None) -> Point:
        settings = settings or self._store.settings
        size = self._surface.measure()
        point = place_on_topology(self._topology, size, settings)
        self._surface.set_position(point.x, point.y)
        if point != self._last_position:
            _LOGGER.debug(
                "Badge placed at (%d, %d): size=%dx%d corner=%s monitor=%s",
                point.x,
                point.y,
                size.width,
                size.height,
                settings.corner,
                settings.monitor,
            )
        self._last_position = point
        return point

    def follow_topology(self) -> None:
        if self._topology_unsubscribe is None:
            self._topology_unsubscribe = self._topology.subscribe(self._on_topology_changed)

    def unfollow_topology(self) -> None:
        unsubscribe = self._topology_unsubscribe
        self._topology_unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()

    def run_self_test(self, duration_ms: int = SELF_TEST_MS) -> None:
        """Brief listening pulse at startup so the user can see the overlay is alive."""
        if self._shut_down:
            return
        self._cancel_self_test()
        self._transition(Status.LISTENING)
        self._self_test_timer = self._after(duration_ms, self._finish_self_test)

    def shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        self._cancel_self_test()
        self._pulse.stop()
        self._pulse_settings = None
        self._visibility_generation += 1
        self._visible = False
        self._surface.hide()
        self.unfollow_topology()

    # Transition steps -----------------------------------------------------

    def _transition(self, status: Status) -> None:
        previous = self._status
        self._status = status
        settings = self._store.settings
        self._apply_label(settings)
        self._apply_pulse(settings)
        self._apply_colors(settings)
        self._apply_visibility(settings)
        self.reposition()
        self._surface.raise_()
        _LOGGER.info("State %s -> %s", previous.value, status.value)

    def _apply_label(self, settings: BadgeSettings) -> None:
        self._surface.set_label(label_for(self._status, settings))

    def _apply_pulse(self, settings: BadgeSettings) -> None:
        if not self._pulsing_status():
            self._pulse.stop()
            self._pulse_settings = None
            return
        pulse = settings.pulse
        self._pulse.set_enabled(pulse.enabled)
        period = pulse.period_listening if self._status is Status.LISTENING else pulse.period_thinking
        self._pulse.restart(period, pulse.scale, self._pulse_tick)
        self._pulse_settings = pulse

    def _apply_colors(self, settings: BadgeSettings) -> None:
        background, dot, text = colors_for(self._status, settings)
        self._surface.set_colors(background, dot, text)

    def _apply_visibility(self, settings: BadgeSettings) -> None:
        if self._status is Status.IDLE:
            self.hide()
            return
        self.show()
        if self._status is Status.ERROR:
            self._surface.set_opacity(settings.opacity * ERROR_FLASH_START)
            self._surface.ease_opacity(settings.opacity, ERROR_FLASH_MS)

    def _pulse_tick(self, scale_target: float, phase_ms: int) -> None:
        def _ease_back() -> None:
            if self._pulse.active:
                self._surface.ease_scale(NEUTRAL_SCALE, phase_ms)

        self._surface.ease_scale(scale_target, phase_ms, on_done=_ease_back)

    def _pulsing_status(self) -> bool:
        return self._status in (Status.LISTENING, Status.THINKING)

    def _on_topology_changed(self) -> None:
        _LOGGER.debug("Display topology changed; recomputing placement")
        self.reposition()

    def _finish_self_test(self) -> None:
        self._self_test_timer = None
        self._transition(Status.IDLE)

    def _cancel_self_test(self) -> None:
        handle = self._self_test_timer
        self._self_test_timer = None
        if handle is not None:
            try:
                self._after_cancel(handle)
            except Exception:
                pass
