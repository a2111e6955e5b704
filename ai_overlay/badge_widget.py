"""Frameless PyQt6 badge: a coloured dot plus an optional label."""

from __future__ import annotations

import logging
import math
import sys
from typing import Callable, Optional

from PyQt6.QtCore import QEasingCurve, QPropertyAnimation, QRectF, Qt, pyqtProperty
from PyQt6.QtGui import QColor, QFont, QFontMetrics, QPainter, QPaintEvent
from PyQt6.QtWidgets import QWidget

from ai_overlay.badge_config import BadgeColors, BadgeSettings
from ai_overlay.placement import Size

_LOGGER = logging.getLogger("AIOverlay.Surface")

DoneFn = Optional[Callable[[], None]]

_LABEL_SPACING = 8


def _color(value: str, fallback: str) -> QColor:
    color = QColor(value)
    if color.isValid():
        return color
    _LOGGER.debug("Invalid colour %r; using %s", value, fallback)
    return QColor(fallback)


class BadgeWidget(QWidget):
    """Rendering surface driven by the state machine.

    The window is sized for the largest pulse scale so the scaled badge is never
    clipped; ``measure()`` reports that window size.
    """

    def __init__(self, settings: Optional[BadgeSettings] = None) -> None:
        super().__init__()
        self._settings = settings or BadgeSettings()
        defaults = BadgeColors()
        self._background = QColor(defaults.bg)
        self._dot = QColor(defaults.dot_idle)
        self._text = QColor(defaults.text)
        self._label = ""
        self._scale = 1.0
        self._released = False
        self._font = QFont()
        self._content_width = 0
        self._content_height = 0

        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        window_flags = (
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
        )
        if sys.platform.startswith("linux"):
            window_flags |= Qt.WindowType.X11BypassWindowManagerHint
        self.setWindowFlags(window_flags)
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, True)
        self.setAttribute(Qt.WidgetAttribute.WA_NoSystemBackground, True)
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating, True)

        self._opacity_anim = QPropertyAnimation(self, b"windowOpacity", self)
        self._opacity_anim.setEasingCurve(QEasingCurve.Type.OutQuad)
        self._opacity_anim.finished.connect(self._on_opacity_finished)
        self._opacity_done: DoneFn = None

        self._scale_anim = QPropertyAnimation(self, b"badgeScale", self)
        self._scale_anim.setEasingCurve(QEasingCurve.Type.InOutQuad)
        self._scale_anim.finished.connect(self._on_scale_finished)
        self._scale_done: DoneFn = None

        self._relayout()

    # Animated scale property ------------------------------------------------

    def _get_badge_scale(self) -> float:
        return self._scale

    def _set_badge_scale(self, value: float) -> None:
        self._scale = float(value)
        self.update()

    badgeScale = pyqtProperty(float, fget=_get_badge_scale, fset=_set_badge_scale)

    # Surface contract -------------------------------------------------------

    @property
    def label(self) -> str:
        return self._label

    def measure(self) -> Size:
        return Size(self.width(), self.height())

    def set_position(self, x: int, y: int) -> None:
        self.move(int(x), int(y))

    def show(self, on_done: DoneFn = None) -> None:  # type: ignore[override]
        if self._released:
            return
        super().show()
        if on_done is not None:
            on_done()

    def hide(self, on_done: DoneFn = None) -> None:  # type: ignore[override]
        super().hide()
        if on_done is not None:
            on_done()

    def set_opacity(self, value: float) -> None:
        self._opacity_anim.stop()
        self._opacity_done = None
        self.setWindowOpacity(max(0.0, min(1.0, float(value))))

    def ease_opacity(self, target: float, duration_ms: int, on_done: DoneFn = None) -> None:
        self._opacity_anim.stop()
        self._opacity_done = on_done
        self._opacity_anim.setDuration(max(0, int(duration_ms)))
        self._opacity_anim.setStartValue(self.windowOpacity())
        self._opacity_anim.setEndValue(max(0.0, min(1.0, float(target))))
        self._opacity_anim.start()

    def set_scale(self, value: float) -> None:
        self._scale_anim.stop()
        self._scale_done = None
        self._set_badge_scale(value)

    def ease_scale(self, target: float, duration_ms: int, on_done: DoneFn = None) -> None:
        self._scale_anim.stop()
        self._scale_done = on_done
        self._scale_anim.setDuration(max(0, int(duration_ms)))
        self._scale_anim.setStartValue(self._scale)
        self._scale_anim.setEndValue(float(target))
        self._scale_anim.start()

    def set_label(self, text: str) -> None:
        if text == self._label:
            return
        self._label = text
        self._relayout()

    def set_colors(self, background: str, dot: str, text: str) -> None:
        defaults = BadgeColors()
        self._background = _color(background, defaults.bg)
        self._dot = _color(dot, defaults.dot_idle)
        self._text = _color(text, defaults.text)
        self.update()

    def apply_style(self, settings: BadgeSettings) -> None:
        self._settings = settings
        self._relayout()

    def raise_(self) -> None:  # type: ignore[override]
        if self._released:
            return
        super().raise_()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._opacity_anim.stop()
        self._scale_anim.stop()
        self._opacity_done = None
        self._scale_done = None
        super().hide()
        self.deleteLater()

    # Internals --------------------------------------------------------------

    def _on_opacity_finished(self) -> None:
        callback = self._opacity_done
        self._opacity_done = None
        if callback is not None:
            callback()

    def _on_scale_finished(self) -> None:
        callback = self._scale_done
        self._scale_done = None
        if callback is not None:
            callback()

    def _relayout(self) -> None:
        settings = self._settings
        font = QFont()
        font.setPointSizeF(settings.font_size)
        font.setWeight(QFont.Weight.DemiBold)
        self._font = font
        metrics = QFontMetrics(font)
        pad_v, pad_h = settings.padding
        text_width = metrics.horizontalAdvance(self._label) if self._label else 0
        spacing = _LABEL_SPACING if self._label else 0
        self._content_width = pad_h * 2 + settings.dot_size + spacing + text_width
        self._content_height = pad_v * 2 + max(settings.dot_size, metrics.height())
        headroom = max(1.0, settings.pulse.scale)
        self.setFixedSize(
            int(math.ceil(self._content_width * headroom)),
            int(math.ceil(self._content_height * headroom)),
        )
        self.update()

    def paintEvent(self, event: QPaintEvent) -> None:  # type: ignore[override]
        settings = self._settings
        painter = QPainter(self)
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
            origin_x = (self.width() - self._content_width) / 2.0
            origin_y = (self.height() - self._content_height) / 2.0
            pivot_x = origin_x + self._content_width * settings.pivot[0]
            pivot_y = origin_y + self._content_height * settings.pivot[1]
            painter.translate(pivot_x, pivot_y)
            painter.scale(self._scale, self._scale)
            painter.translate(-pivot_x, -pivot_y)

            body = QRectF(origin_x, origin_y, self._content_width, self._content_height)
            radius = min(float(settings.radius), body.height() / 2.0)
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(self._background)
            painter.drawRoundedRect(body, radius, radius)

            pad_v, pad_h = settings.padding
            dot_size = float(settings.dot_size)
            dot_rect = QRectF(
                origin_x + pad_h,
                origin_y + (self._content_height - dot_size) / 2.0,
                dot_size,
                dot_size,
            )
            painter.setBrush(self._dot)
            painter.drawEllipse(dot_rect)

            if self._label:
                painter.setFont(self._font)
                painter.setPen(self._text)
                text_rect = QRectF(
                    dot_rect.right() + _LABEL_SPACING,
                    origin_y + pad_v,
                    self._content_width - (dot_rect.right() - origin_x) - _LABEL_SPACING - pad_h,
                    self._content_height - pad_v * 2,
                )
                painter.drawText(
                    text_rect,
                    Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft,
                    self._label,
                )
        finally:
            painter.end()
