"""Monitor-aware badge placement (pure, no Qt)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Tuple

from ai_overlay.badge_config import DEFAULT_CORNER, PRIMARY_MONITOR

if TYPE_CHECKING:
    from ai_overlay.badge_config import BadgeSettings
    from ai_overlay.capabilities import DisplayTopology


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class Size:
    width: int
    height: int


@dataclass(frozen=True)
class Point:
    x: int
    y: int


# corner -> (horizontal rule, vertical rule)
_ANCHORS = {
    "top-left": ("left", "top"),
    "top-right": ("right", "top"),
    "bottom-left": ("left", "bottom"),
    "bottom-right": ("right", "bottom"),
    "top-center": ("center", "top"),
    "bottom-center": ("center", "bottom"),
    "left-center": ("left", "center"),
    "right-center": ("right", "center"),
    "center": ("center", "center"),
}


def _axis(rule: str, origin: int, span: int, extent: int, offset: int) -> int:
    if rule in ("left", "top"):
        return origin + offset
    if rule in ("right", "bottom"):
        return origin + span - extent - offset
    return origin + (span - extent) // 2


def place(display_rect: Rect, badge_size: Size, corner: str, offset: Tuple[int, int]) -> Point:
    """Absolute position of a ``badge_size`` badge anchored at ``corner`` of ``display_rect``.

    Offsets are margins from the anchored edge(s) and are ignored on centred axes.
    Unknown corners use the top-right rule.
    """
    horizontal, vertical = _ANCHORS.get(corner, _ANCHORS[DEFAULT_CORNER])
    offset_x, offset_y = offset
    x = _axis(horizontal, display_rect.x, display_rect.width, badge_size.width, offset_x)
    y = _axis(vertical, display_rect.y, display_rect.height, badge_size.height, offset_y)
    return Point(x, y)


def select_display(monitor: Any, primary_index: int, count: int) -> int:
    """Resolve the configured monitor to a valid display index, falling back to primary."""
    if monitor == PRIMARY_MONITOR or isinstance(monitor, bool):
        return primary_index
    try:
        index = int(monitor)
    except (TypeError, ValueError):
        return primary_index
    if isinstance(monitor, float) and not monitor.is_integer():
        return primary_index
    if 0 <= index < count:
        return index
    return primary_index


def place_on_topology(
    topology: "DisplayTopology",
    badge_size: Size,
    settings: "BadgeSettings",
) -> Point:
    count = topology.count()
    if count <= 0:
        return place(Rect(0, 0, 0, 0), badge_size, settings.corner, settings.offset)
    primary = topology.primary_index()
    if not 0 <= primary < count:
        primary = 0
    index = select_display(settings.monitor, primary, count)
    rect: Optional[Rect] = topology.geometry(index)
    if rect is None:
        rect = Rect(0, 0, 0, 0)
    return place(rect, badge_size, settings.corner, settings.offset)
