from __future__ import annotations

import os
from typing import Callable, List, Optional, Tuple

import pytest

from ai_overlay.placement import Size


def pytest_runtest_setup(item):
    if item.get_closest_marker("pyqt_required"):
        if not os.getenv("PYQT_TESTS"):
            pytest.skip("PYQT_TESTS not set; skipping PyQt-dependent test")


class AfterHarness:
    """Manual clock for ``after``/``after_cancel`` callers."""

    def __init__(self) -> None:
        self.scheduled: List[Tuple[str, int, Callable[[], None]]] = []
        self.cancelled: List[object] = []
        self.ran: List[str] = []

    def after(self, ms: int, cb) -> str:
        handle = f"h{len(self.scheduled) + 1}"
        self.scheduled.append((handle, ms, cb))
        return handle

    def cancel(self, handle: object) -> None:
        self.cancelled.append(handle)

    after_cancel = cancel

    def pending(self) -> List[str]:
        return [h for h, _ms, _cb in self.scheduled if h not in self.cancelled and h not in self.ran]

    def delay_of(self, handle: str) -> int:
        for h, ms, _cb in self.scheduled:
            if h == handle:
                return ms
        raise AssertionError(f"Handle {handle} not found")

    def run(self, handle: str) -> None:
        for h, _ms, cb in list(self.scheduled):
            if h == handle:
                self.ran.append(h)
                cb()
                return
        raise AssertionError(f"Handle {handle} not found")

    def run_latest(self) -> None:
        pending = self.pending()
        assert pending, "nothing scheduled"
        self.run(pending[-1])


class FakeSurface:
    """Records every surface call; eased animations finish only when completed by the test."""

    def __init__(self, size: Size = Size(80, 24)) -> None:
        self.size = size
        self.calls: List[tuple] = []
        self.visible = False
        self.opacity = 1.0
        self.scale = 1.0
        self.label = ""
        self.colors: Optional[Tuple[str, str, str]] = None
        self.position: Optional[Tuple[int, int]] = None
        self.released = 0
        self.opacity_done: Optional[Callable[[], None]] = None
        self.scale_done: Optional[Callable[[], None]] = None

    def measure(self) -> Size:
        return self.size

    def set_position(self, x: int, y: int) -> None:
        self.calls.append(("set_position", x, y))
        self.position = (x, y)

    def show(self, on_done=None) -> None:
        self.calls.append(("show",))
        self.visible = True
        if on_done is not None:
            on_done()

    def hide(self, on_done=None) -> None:
        self.calls.append(("hide",))
        self.visible = False
        if on_done is not None:
            on_done()

    def set_opacity(self, value: float) -> None:
        self.calls.append(("set_opacity", value))
        self.opacity = value

    def ease_opacity(self, target: float, duration_ms: int, on_done=None) -> None:
        self.calls.append(("ease_opacity", target, duration_ms))
        self.opacity = target
        self.opacity_done = on_done

    def finish_opacity(self) -> None:
        callback, self.opacity_done = self.opacity_done, None
        if callback is not None:
            callback()

    def set_scale(self, value: float) -> None:
        self.calls.append(("set_scale", value))
        self.scale = value

    def ease_scale(self, target: float, duration_ms: int, on_done=None) -> None:
        self.calls.append(("ease_scale", target, duration_ms))
        self.scale = target
        self.scale_done = on_done

    def finish_scale(self) -> None:
        callback, self.scale_done = self.scale_done, None
        if callback is not None:
            callback()

    def set_label(self, text: str) -> None:
        self.calls.append(("set_label", text))
        self.label = text

    def set_colors(self, background: str, dot: str, text: str) -> None:
        self.calls.append(("set_colors", background, dot, text))
        self.colors = (background, dot, text)

    def apply_style(self, settings) -> None:
        self.calls.append(("apply_style",))

    def raise_(self) -> None:
        self.calls.append(("raise_",))

    def release(self) -> None:
        self.calls.append(("release",))
        self.released += 1

    def names(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakeObserver:
    def __init__(self) -> None:
        self.callbacks: List[Callable[[], None]] = []
        self.released = 0

    def observe(self, path, callback):
        self.callbacks.append(callback)

        def _release() -> None:
            self.released += 1

        return _release

    def fire(self) -> None:
        for callback in list(self.callbacks):
            callback()


@pytest.fixture
def harness() -> AfterHarness:
    return AfterHarness()


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def observer() -> FakeObserver:
    return FakeObserver()
