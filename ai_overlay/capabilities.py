"""Capability providers consumed by the badge core.

Concrete providers are chosen once at construction; the core never inspects the
toolkit for optional features.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Protocol, Sequence

from ai_overlay.placement import Rect

Unsubscribe = Callable[[], None]


class DisplayTopology(Protocol):
    def primary_index(self) -> int: ...

    def count(self) -> int: ...

    def geometry(self, index: int) -> Optional[Rect]: ...

    def subscribe(self, callback: Callable[[], None]) -> Unsubscribe: ...


def _noop() -> None:
    return None


class StaticDisplayTopology:
    """Fixed display list; also the fallback when no screen information is available."""

    def __init__(self, rects: Sequence[Rect] = (), primary: int = 0) -> None:
        self._rects: List[Rect] = list(rects)
        self._primary = primary
        self._callbacks: List[Callable[[], None]] = []

    def primary_index(self) -> int:
        return self._primary

    def count(self) -> int:
        return len(self._rects)

    def geometry(self, index: int) -> Optional[Rect]:
        if 0 <= index < len(self._rects):
            return self._rects[index]
        return None

    def subscribe(self, callback: Callable[[], None]) -> Unsubscribe:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def update(self, rects: Sequence[Rect], primary: Optional[int] = None) -> None:
        """Replace the display list and notify subscribers (monitors added/removed/resized)."""
        self._rects = list(rects)
        if primary is not None:
            self._primary = primary
        for callback in list(self._callbacks):
            callback()

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)


class NullDisplayTopology(StaticDisplayTopology):
    """No displays at all; placement falls back to the origin."""

    def __init__(self) -> None:
        super().__init__(())

    def subscribe(self, callback: Callable[[], None]) -> Unsubscribe:
        return _noop
