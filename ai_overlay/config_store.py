"""Settings store with persistence and debounced hot-reload."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from ai_overlay.badge_config import (
    DEFAULT_CONFIG,
    BadgeSettings,
    ensure_document,
    load_document,
)

_LOGGER = logging.getLogger("AIOverlay.Config")

WATCH_DEBOUNCE_MS = 150

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]
ReleaseFn = Callable[[], None]
ObserveFn = Callable[[Path, Callable[[], None]], ReleaseFn]
SettingsListener = Callable[[BadgeSettings], None]


class WatchHandle:
    """Debounces raw file events into a single ``on_change()`` call.

    Each raw event replaces the pending timer handle, so a burst of writes only
    fires once, ``debounce_ms`` after the last event.
    """

    def __init__(
        self,
        path: Path,
        on_change: Callable[[], None],
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        debounce_ms: int = WATCH_DEBOUNCE_MS,
    ) -> None:
        self._path = path
        self._on_change = on_change
        self._after = after
        self._after_cancel = after_cancel
        self._debounce_ms = max(0, int(debounce_ms))
        self._pending: Optional[object] = None
        self._release: Optional[ReleaseFn] = None
        self._cancelled = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def attach(self, observe: ObserveFn) -> None:
        self._release = observe(self._path, self.notify)

    def notify(self) -> None:
        """Raw change event from the observer."""
        if self._cancelled:
            return
        self._cancel_pending()
        self._pending = self._after(self._debounce_ms, self._fire)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._cancel_pending()
        release = self._release
        self._release = None
        if release is not None:
            try:
                release()
            except Exception as exc:
                _LOGGER.debug("Releasing file observer for %s failed: %s", self._path, exc)
        _LOGGER.debug("Stopped watching %s", self._path)

    def _fire(self) -> None:
        self._pending = None
        if self._cancelled:
            return
        self._on_change()

    def _cancel_pending(self) -> None:
        handle = self._pending
        self._pending = None
        if handle is not None:
            try:
                self._after_cancel(handle)
            except Exception:
                pass


def watch(
    path: Path,
    on_change: Callable[[], None],
    *,
    observe: ObserveFn,
    after: AfterFn,
    after_cancel: AfterCancelFn,
    debounce_ms: int = WATCH_DEBOUNCE_MS,
) -> WatchHandle:
    handle = WatchHandle(path, on_change, after=after, after_cancel=after_cancel, debounce_ms=debounce_ms)
    handle.attach(observe)
    _LOGGER.debug("Watching %s (debounce=%dms)", path, debounce_ms)
    return handle


class ConfigStore:
    """Owns the current settings document and swaps it atomically on reload."""

    def __init__(self, path: Path, defaults: Mapping[str, Any] = DEFAULT_CONFIG) -> None:
        self._path = path
        self._defaults = defaults
        self._state = (dict(defaults), BadgeSettings.from_document(defaults))
        self._listeners: List[SettingsListener] = []
        self._watch: Optional[WatchHandle] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def document(self) -> Dict[str, Any]:
        return self._state[0]

    @property
    def settings(self) -> BadgeSettings:
        return self._state[1]

    @property
    def watching(self) -> bool:
        return self._watch is not None and not self._watch.cancelled

    def ensure(self) -> bool:
        return ensure_document(self._path, self._defaults)

    def reload(self) -> BadgeSettings:
        """Re-read the file, then replace the (document, settings) pair in one assignment."""
        document = load_document(self._path, self._defaults)
        settings = BadgeSettings.from_document(document)
        previous = self._state[1]
        self._state = (document, settings)
        if settings != previous:
            _LOGGER.debug("Settings reloaded from %s: %s", self._path, settings)
        for listener in list(self._listeners):
            listener(settings)
        return settings

    def add_listener(self, listener: SettingsListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SettingsListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def start_watch(
        self,
        on_change: Callable[[], None],
        *,
        observe: ObserveFn,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        debounce_ms: int = WATCH_DEBOUNCE_MS,
    ) -> WatchHandle:
        self.stop_watch()
        self._watch = watch(
            self._path,
            on_change,
            observe=observe,
            after=after,
            after_cancel=after_cancel,
            debounce_ms=debounce_ms,
        )
        return self._watch

    def stop_watch(self) -> None:
        handle = self._watch
        self._watch = None
        if handle is not None:
            handle.cancel()
