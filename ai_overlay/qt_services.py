"""Qt-backed implementations of the timer, file-observer and display-topology services."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from PyQt6.QtCore import QFileSystemWatcher, QObject, QTimer
from PyQt6.QtGui import QGuiApplication, QScreen

from ai_overlay.capabilities import DisplayTopology, NullDisplayTopology, Unsubscribe
from ai_overlay.placement import Rect

_LOGGER = logging.getLogger("AIOverlay.Qt")

FileSignature = Optional[Tuple[int, int]]


class QtTimerService(QObject):
    """``after``/``after_cancel`` on single-shot QTimers owned by the Qt event loop."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._timers: Dict[int, QTimer] = {}
        self._next_token = 0

    @property
    def pending(self) -> int:
        return len(self._timers)

    def after(self, delay_ms: int, callback: Callable[[], None]) -> int:
        self._next_token += 1
        token = self._next_token
        timer = QTimer(self)
        timer.setSingleShot(True)

        def _fire() -> None:
            if self._timers.pop(token, None) is None:
                return
            timer.deleteLater()
            callback()

        timer.timeout.connect(_fire)
        self._timers[token] = timer
        timer.start(max(0, int(delay_ms)))
        return token

    def after_cancel(self, handle: object) -> None:
        timer = self._timers.pop(handle, None)  # type: ignore[arg-type]
        if timer is None:
            return
        timer.stop()
        timer.deleteLater()

    def cancel_all(self) -> None:
        for token in list(self._timers):
            self.after_cancel(token)


def _file_signature(path: Path) -> FileSignature:
    try:
        stat = path.stat()
    except OSError:
        return None
    return stat.st_mtime_ns, stat.st_size


class QtFileObserver:
    """Raw change events for one file via QFileSystemWatcher.

    The parent directory is watched as well so editors that save by writing a temp
    file and renaming it over the original keep being observed.
    """

    def observe(self, path: Path, callback: Callable[[], None]) -> Callable[[], None]:
        watcher = QFileSystemWatcher()
        target = str(path)
        directory = str(path.parent)
        state = {"signature": _file_signature(path)}

        def _rearm() -> None:
            if path.exists() and target not in watcher.files():
                watcher.addPath(target)

        def _on_file_changed(_changed: str) -> None:
            state["signature"] = _file_signature(path)
            _rearm()
            callback()

        def _on_directory_changed(_changed: str) -> None:
            signature = _file_signature(path)
            if signature == state["signature"]:
                return
            state["signature"] = signature
            _rearm()
            callback()

        if path.parent.exists():
            watcher.addPath(directory)
        _rearm()
        watcher.fileChanged.connect(_on_file_changed)
        watcher.directoryChanged.connect(_on_directory_changed)
        _LOGGER.debug("File observer armed for %s (files=%s dirs=%s)", path, watcher.files(), watcher.directories())

        def _release() -> None:
            paths = watcher.files() + watcher.directories()
            if paths:
                watcher.removePaths(paths)
            try:
                watcher.fileChanged.disconnect(_on_file_changed)
                watcher.directoryChanged.disconnect(_on_directory_changed)
            except TypeError:
                pass
            watcher.deleteLater()

        return _release


def _rect_for(screen: QScreen) -> Rect:
    geometry = screen.geometry()
    return Rect(geometry.x(), geometry.y(), geometry.width(), geometry.height())


class QtDisplayTopology:
    """Display list and change notifications from QGuiApplication screens."""

    def __init__(self, app: QGuiApplication) -> None:
        self._app = app

    def _screens(self) -> List[QScreen]:
        return list(QGuiApplication.screens())

    def primary_index(self) -> int:
        primary = QGuiApplication.primaryScreen()
        for index, screen in enumerate(self._screens()):
            if screen == primary:
                return index
        return 0

    def count(self) -> int:
        return len(self._screens())

    def geometry(self, index: int) -> Optional[Rect]:
        screens = self._screens()
        if 0 <= index < len(screens):
            return _rect_for(screens[index])
        return None

    def subscribe(self, callback: Callable[[], None]) -> Unsubscribe:
        connected: List[QScreen] = []

        def _changed(*_args: object) -> None:
            callback()

        def _watch_screen(screen: QScreen) -> None:
            screen.geometryChanged.connect(_changed)
            connected.append(screen)

        def _screen_added(screen: QScreen) -> None:
            _LOGGER.debug("Screen added: %s", screen.name())
            _watch_screen(screen)
            callback()

        def _screen_removed(screen: QScreen) -> None:
            _LOGGER.debug("Screen removed: %s", screen.name())
            if screen in connected:
                connected.remove(screen)
            callback()

        for screen in self._screens():
            _watch_screen(screen)
        self._app.screenAdded.connect(_screen_added)
        self._app.screenRemoved.connect(_screen_removed)
        self._app.primaryScreenChanged.connect(_changed)

        def _unsubscribe() -> None:
            for signal, slot in (
                (self._app.screenAdded, _screen_added),
                (self._app.screenRemoved, _screen_removed),
                (self._app.primaryScreenChanged, _changed),
            ):
                try:
                    signal.disconnect(slot)
                except TypeError:
                    pass
            for screen in connected:
                try:
                    screen.geometryChanged.disconnect(_changed)
                except (TypeError, RuntimeError):
                    pass
            connected.clear()

        return _unsubscribe


def create_display_topology(app: QGuiApplication) -> DisplayTopology:
    if QGuiApplication.primaryScreen() is None:
        _LOGGER.info("No screens reported by Qt; badge placement falls back to the origin")
        return NullDisplayTopology()
    return QtDisplayTopology(app)
