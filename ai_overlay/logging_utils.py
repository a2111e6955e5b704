from __future__ import annotations

import logging
import os
import sys
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

LOGGER_NAME = "AIOverlay"
LOG_FILENAME = "ai-overlay.log"
LOG_DIR_ENV_VAR = "AI_OVERLAY_LOG_DIR"
DEBUG_ENV_VAR = "AI_OVERLAY_DEBUG"
PROPAGATE_ENV_VAR = "AI_OVERLAY_PROPAGATE_LOGS"

_TRUTHY = {"1", "true", "yes", "on"}
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUTHY


def resolve_logs_dir(log_dir_name: str = "logs") -> Path:
    """
    Resolve the directory to store overlay logs.

    Strategy:
    - Use AI_OVERLAY_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `cwd/logs`.
    - Final fallback: tempdir/ai-overlay/<log_dir_name>.
    Candidates that cannot be created are skipped.
    """
    candidates: List[Path] = []

    env_override = os.environ.get(LOG_DIR_ENV_VAR)
    if env_override:
        candidates.append(Path(env_override).expanduser())

    state_home = Path(os.environ.get("XDG_STATE_HOME") or Path.home() / ".local" / "state")
    cache_home = Path(os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache")
    candidates.append(state_home / "ai-overlay" / log_dir_name)
    candidates.append(cache_home / "ai-overlay" / log_dir_name)
    candidates.append(Path.cwd() / "logs")

    for target in candidates:
        try:
            target.mkdir(parents=True, exist_ok=True)
            return target
        except OSError:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / "ai-overlay" / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str,
    *,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler with sane defaults."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / filename
    handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    return logging.DEBUG if debug_enabled else logging.INFO


def configure_logging(
    *,
    debug: bool = False,
    log_dir: Optional[Path] = None,
    retention: int = 5,
    stream: Optional[object] = None,
) -> logging.Logger:
    """Attach one rotating file handler (and a stderr handler on a tty) to the overlay logger.

    Calling this again replaces the handlers installed by the previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    debug_enabled = debug or env_flag(DEBUG_ENV_VAR)
    logger.setLevel(resolve_log_level(debug_enabled))
    # Opt-in propagation flag for environments/tests that want overlay logs upstream.
    logger.propagate = env_flag(PROPAGATE_ENV_VAR)

    for handler in list(logger.handlers):
        if getattr(handler, "_ai_overlay_owned", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(_FORMAT)
    target_dir = log_dir if log_dir is not None else resolve_logs_dir()
    try:
        file_handler = build_rotating_file_handler(target_dir, LOG_FILENAME, retention=retention, formatter=formatter)
    except OSError as exc:
        file_handler = None
        print(f"ai-overlay: cannot write logs to {target_dir}: {exc}", file=sys.stderr)
    if file_handler is not None:
        file_handler._ai_overlay_owned = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    out = stream if stream is not None else sys.stderr
    if stream is not None or getattr(out, "isatty", lambda: False)():
        stream_handler = logging.StreamHandler(out)  # type: ignore[arg-type]
        stream_handler.setFormatter(formatter)
        stream_handler._ai_overlay_owned = True  # type: ignore[attr-defined]
        logger.addHandler(stream_handler)

    logger.debug("Logging configured (level=%s dir=%s)", logging.getLevelName(logger.level), target_dir)
    return logger
