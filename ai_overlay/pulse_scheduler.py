from __future__ import annotations

import logging
from typing import Callable, Optional

_LOGGER = logging.getLogger("AIOverlay.Pulse")

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]
TickFn = Callable[[float, int], None]

MIN_PHASE_MS = 150
NEUTRAL_SCALE = 1.0


def phase_duration(period_ms: int) -> int:
    """Length of each half (grow, shrink) of one pulse."""
    return max(MIN_PHASE_MS, int(period_ms) // 2)


class PulseHandle:
    """Identity of one running pulse loop; replaced wholesale on every restart."""

    __slots__ = ("period_ms", "scale_target", "timer")

    def __init__(self, period_ms: int, scale_target: float) -> None:
        self.period_ms = period_ms
        self.scale_target = scale_target
        self.timer: Optional[object] = None

    def __repr__(self) -> str:
        return f"PulseHandle(period_ms={self.period_ms}, scale_target={self.scale_target})"


class PulseScheduler:
    """Periodic pulse trigger: first tick fires immediately, then every ``period_ms``.

    ``on_tick(scale_target, phase_ms)`` is expected to ease towards the target scale
    and back; the scheduler only decides when ticks happen.
    """

    def __init__(
        self,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        reset_scale: Callable[[float], None],
        enabled: bool = True,
    ) -> None:
        self._after = after
        self._after_cancel = after_cancel
        self._reset_scale = reset_scale
        self._enabled = bool(enabled)
        self._handle: Optional[PulseHandle] = None
        self._on_tick: Optional[TickFn] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def active(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[PulseHandle]:
        return self._handle

    @property
    def period_ms(self) -> Optional[int]:
        return self._handle.period_ms if self._handle is not None else None

    @property
    def phase_ms(self) -> Optional[int]:
        return phase_duration(self._handle.period_ms) if self._handle is not None else None

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = bool(enabled)
        if not self._enabled:
            self.stop()

    def start(self, period_ms: int, scale_target: float, on_tick: TickFn) -> Optional[PulseHandle]:
        self.stop()
        if not self._enabled:
            return None
        period = max(1, int(period_ms))
        handle = PulseHandle(period, float(scale_target))
        self._handle = handle
        self._on_tick = on_tick
        _LOGGER.debug("Pulse started: period=%dms phase=%dms scale=%.3f", period, phase_duration(period), scale_target)
        self._tick(handle)
        return handle

    def restart(self, period_ms: int, scale_target: float, on_tick: TickFn) -> Optional[PulseHandle]:
        return self.start(period_ms, scale_target, on_tick)

    def stop(self) -> None:
        handle = self._handle
        self._handle = None
        self._on_tick = None
        if handle is not None:
            timer = handle.timer
            handle.timer = None
            if timer is not None:
                try:
                    self._after_cancel(timer)
                except Exception:
                    pass
            _LOGGER.debug("Pulse stopped: %r", handle)
        self._reset_scale(NEUTRAL_SCALE)

    def _tick(self, handle: PulseHandle) -> None:
        if handle is not self._handle:
            return
        handle.timer = None
        callback = self._on_tick
        try:
            if callback is not None:
                callback(handle.scale_target, phase_duration(handle.period_ms))
        finally:
            if handle is self._handle:
                handle.timer = self._after(handle.period_ms, lambda: self._tick(handle))
