"""Badge settings document: defaults, deep-merge, legacy migration, normalisation."""

from __future__ import annotations

import json
import logging
import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

_LOGGER = logging.getLogger("AIOverlay.Config")

CONFIG_ENV_VAR = "AI_OVERLAY_CONFIG"
CONFIG_FILENAME = "config.json"

CORNERS: Tuple[str, ...] = (
    "top-left",
    "top-right",
    "bottom-left",
    "bottom-right",
    "top-center",
    "bottom-center",
    "left-center",
    "right-center",
    "center",
)
DEFAULT_CORNER = "top-right"
PRIMARY_MONITOR = "primary"

DEFAULT_CONFIG: Dict[str, Any] = {
    "corner": DEFAULT_CORNER,
    "offset": {"x": 24, "y": 24},
    "monitor": PRIMARY_MONITOR,
    "showLabel": True,
    "dotSize": 12,
    "fontSize": 11,
    "padding": [6, 10],
    "radius": 12,
    "opacity": 0.92,
    "pivot": {"x": 0.5, "y": 0.5},
    "pulse": {
        "enabled": True,
        "scale": 1.06,
        "periodListening": 700,
        "periodThinking": 1100,
    },
    "colors": {
        "bg": "#202124",
        "bgError": "#5c1a1a",
        "text": "#ffffff",
        "dotListening": "#34a853",
        "dotThinking": "#fbbc04",
        "dotError": "#ea4335",
        "dotIdle": "#9aa0a6",
    },
}

# Flat keys written by the first (static config) release of the overlay.
_LEGACY_KEYS = ("position", "margin", "pulseScale", "listeningPeriod", "thinkingPeriod", "font")

Monitor = Union[str, int]

_TRUE_TOKENS = {"1", "true", "yes", "on"}
_FALSE_TOKENS = {"0", "false", "no", "off"}


def default_config_path() -> Path:
    env_override = os.environ.get(CONFIG_ENV_VAR)
    if env_override:
        return Path(env_override).expanduser()
    config_home = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return config_home / "ai-overlay" / CONFIG_FILENAME


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep-merge override into base. Override values win; lists are replaced, not merged."""
    result: Dict[str, Any] = deepcopy(dict(base))
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = deepcopy(value)
    return result


def migrate_legacy_keys(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate flat keys from the first config layout onto the sectioned layout.

    New keys always win; legacy keys are removed from the returned copy.
    """
    data: Dict[str, Any] = deepcopy(dict(document))
    present = [key for key in _LEGACY_KEYS if key in data]
    if not present:
        return data

    position = data.pop("position", None)
    if position is not None and "corner" not in data:
        data["corner"] = position

    margin = data.pop("margin", None)
    if margin is not None and "offset" not in data:
        if isinstance(margin, (list, tuple)) and len(margin) >= 2:
            data["offset"] = {"x": margin[0], "y": margin[1]}
        else:
            data["offset"] = {"x": margin, "y": margin}

    pulse_updates: Dict[str, Any] = {}
    for legacy_key, pulse_key in (
        ("pulseScale", "scale"),
        ("listeningPeriod", "periodListening"),
        ("thinkingPeriod", "periodThinking"),
    ):
        value = data.pop(legacy_key, None)
        if value is not None:
            pulse_updates[pulse_key] = value
    if pulse_updates:
        pulse_section = data.get("pulse")
        if not isinstance(pulse_section, dict):
            pulse_section = {}
        for key, value in pulse_updates.items():
            pulse_section.setdefault(key, value)
        data["pulse"] = pulse_section

    data.pop("font", None)
    _LOGGER.info("Migrated legacy config keys: %s", ", ".join(present))
    return data


def _coerce_float(value: Any, fallback: float, *, minimum: Optional[float] = None, maximum: Optional[float] = None) -> float:
    if isinstance(value, bool):
        return fallback
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return fallback
    if numeric != numeric:
        return fallback
    if minimum is not None and numeric < minimum:
        numeric = minimum
    if maximum is not None and numeric > maximum:
        numeric = maximum
    return numeric


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
    return fallback


def _coerce_int(value: Any, fallback: int, *, minimum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        return fallback
    try:
        numeric = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return fallback
    if minimum is not None and numeric < minimum:
        numeric = minimum
    return numeric


def normalise_corner(value: Any) -> str:
    if isinstance(value, str):
        token = value.strip().lower()
        if token in CORNERS:
            return token
    return DEFAULT_CORNER


def normalise_monitor(value: Any) -> Monitor:
    """Return ``"primary"`` or a non-negative integer index; anything else means primary."""
    if isinstance(value, bool):
        return PRIMARY_MONITOR
    if isinstance(value, int):
        return value if value >= 0 else PRIMARY_MONITOR
    if isinstance(value, float):
        if value.is_integer() and value >= 0:
            return int(value)
        return PRIMARY_MONITOR
    if isinstance(value, str):
        token = value.strip().lower()
        if token == PRIMARY_MONITOR:
            return PRIMARY_MONITOR
        try:
            index = int(token)
        except ValueError:
            return PRIMARY_MONITOR
        return index if index >= 0 else PRIMARY_MONITOR
    return PRIMARY_MONITOR


def _section(document: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = document.get(key)
    return value if isinstance(value, Mapping) else DEFAULT_CONFIG[key]


@dataclass(frozen=True)
class PulseSettings:
    enabled: bool = True
    scale: float = 1.06
    period_listening: int = 700
    period_thinking: int = 1100


@dataclass(frozen=True)
class BadgeColors:
    bg: str = "#202124"
    bg_error: str = "#5c1a1a"
    text: str = "#ffffff"
    dot_listening: str = "#34a853"
    dot_thinking: str = "#fbbc04"
    dot_error: str = "#ea4335"
    dot_idle: str = "#9aa0a6"


@dataclass(frozen=True)
class BadgeSettings:
    """Normalised, always-valid view of the merged settings document."""

    corner: str = DEFAULT_CORNER
    offset: Tuple[int, int] = (24, 24)
    monitor: Monitor = PRIMARY_MONITOR
    show_label: bool = True
    dot_size: int = 12
    font_size: float = 11.0
    padding: Tuple[int, int] = (6, 10)
    radius: int = 12
    opacity: float = 0.92
    pivot: Tuple[float, float] = (0.5, 0.5)
    pulse: PulseSettings = PulseSettings()
    colors: BadgeColors = BadgeColors()

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "BadgeSettings":
        defaults = DEFAULT_CONFIG
        offset_raw = _section(document, "offset")
        offset = (
            _coerce_int(offset_raw.get("x"), defaults["offset"]["x"]),
            _coerce_int(offset_raw.get("y"), defaults["offset"]["y"]),
        )

        padding_raw = document.get("padding", defaults["padding"])
        if isinstance(padding_raw, (list, tuple)) and len(padding_raw) >= 2:
            padding = (
                _coerce_int(padding_raw[0], defaults["padding"][0], minimum=0),
                _coerce_int(padding_raw[1], defaults["padding"][1], minimum=0),
            )
        else:
            single = _coerce_int(padding_raw, defaults["padding"][0], minimum=0)
            padding = (single, single)

        pivot_raw = _section(document, "pivot")
        pivot = (
            _coerce_float(pivot_raw.get("x"), defaults["pivot"]["x"], minimum=0.0, maximum=1.0),
            _coerce_float(pivot_raw.get("y"), defaults["pivot"]["y"], minimum=0.0, maximum=1.0),
        )

        pulse_raw = _section(document, "pulse")
        pulse_defaults = defaults["pulse"]
        pulse = PulseSettings(
            enabled=_coerce_bool(pulse_raw.get("enabled"), pulse_defaults["enabled"]),
            scale=_coerce_float(pulse_raw.get("scale"), pulse_defaults["scale"], minimum=1.0),
            period_listening=_coerce_int(
                pulse_raw.get("periodListening"), pulse_defaults["periodListening"], minimum=1
            ),
            period_thinking=_coerce_int(
                pulse_raw.get("periodThinking"), pulse_defaults["periodThinking"], minimum=1
            ),
        )

        colors_raw = _section(document, "colors")
        color_defaults = defaults["colors"]

        def _color(key: str) -> str:
            value = colors_raw.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            return color_defaults[key]

        colors = BadgeColors(
            bg=_color("bg"),
            bg_error=_color("bgError"),
            text=_color("text"),
            dot_listening=_color("dotListening"),
            dot_thinking=_color("dotThinking"),
            dot_error=_color("dotError"),
            dot_idle=_color("dotIdle"),
        )

        return cls(
            corner=normalise_corner(document.get("corner")),
            offset=offset,
            monitor=normalise_monitor(document.get("monitor")),
            show_label=_coerce_bool(document.get("showLabel"), defaults["showLabel"]),
            dot_size=_coerce_int(document.get("dotSize"), defaults["dotSize"], minimum=1),
            font_size=_coerce_float(document.get("fontSize"), float(defaults["fontSize"]), minimum=1.0),
            padding=padding,
            radius=_coerce_int(document.get("radius"), defaults["radius"], minimum=0),
            opacity=_coerce_float(document.get("opacity"), defaults["opacity"], minimum=0.0, maximum=1.0),
            pivot=pivot,
            pulse=pulse,
            colors=colors,
        )


def ensure_document(path: Path, defaults: Mapping[str, Any] = DEFAULT_CONFIG) -> bool:
    """Create the settings file (and its directory) with ``defaults`` when absent.

    Returns True when the file exists afterwards. I/O failures are logged and swallowed
    so the caller can carry on with in-memory defaults.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return True
        write_document(path, defaults)
    except OSError as exc:
        _LOGGER.warning("Unable to create settings file %s; using built-in defaults (%s)", path, exc)
        return False
    _LOGGER.info("Wrote default settings to %s", path)
    return True


def write_document(path: Path, document: Mapping[str, Any]) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps(document, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    os.replace(tmp_path, path)


def load_document(path: Path, defaults: Mapping[str, Any] = DEFAULT_CONFIG) -> Dict[str, Any]:
    """Read the user document and deep-merge it onto ``defaults``.

    Any read/parse failure returns a copy of ``defaults``.
    """
    try:
        raw_text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        _LOGGER.debug("Settings file %s not found; using defaults", path)
        return deepcopy(dict(defaults))
    except (OSError, UnicodeDecodeError) as exc:
        _LOGGER.warning("Failed to read %s; using defaults (%s)", path, exc)
        return deepcopy(dict(defaults))
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        _LOGGER.warning("Failed to parse %s; using defaults (%s)", path, exc)
        return deepcopy(dict(defaults))
    if not isinstance(data, dict):
        _LOGGER.warning("Settings file %s is not a JSON object; using defaults", path)
        return deepcopy(dict(defaults))
    return deep_merge(defaults, migrate_legacy_keys(data))
