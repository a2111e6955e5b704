from __future__ import annotations

import json
from pathlib import Path

from ai_overlay.config_store import WATCH_DEBOUNCE_MS, ConfigStore, watch


def test_burst_of_events_fires_once(harness, observer, tmp_path: Path) -> None:
    changes: list[str] = []
    handle = watch(
        tmp_path / "config.json",
        lambda: changes.append("changed"),
        observe=observer.observe,
        after=harness.after,
        after_cancel=harness.cancel,
    )

    observer.fire()
    observer.fire()
    observer.fire()

    assert harness.cancelled == ["h1", "h2"]
    assert harness.pending() == ["h3"]
    assert harness.delay_of("h3") == WATCH_DEBOUNCE_MS
    assert handle.pending is True

    harness.run("h3")

    assert changes == ["changed"]
    assert handle.pending is False


def test_cancel_is_idempotent_and_drops_pending(harness, observer, tmp_path: Path) -> None:
    changes: list[str] = []
    handle = watch(
        tmp_path / "config.json",
        lambda: changes.append("changed"),
        observe=observer.observe,
        after=harness.after,
        after_cancel=harness.cancel,
        debounce_ms=50,
    )
    observer.fire()

    handle.cancel()
    handle.cancel()

    assert handle.cancelled is True
    assert observer.released == 1
    assert harness.cancelled == ["h1"]
    # A late timer or raw event after cancel is ignored.
    harness.run("h1")
    observer.fire()
    assert changes == []
    assert len(harness.scheduled) == 1


def test_store_reload_swaps_settings_and_notifies(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = ConfigStore(path)
    seen = []
    store.add_listener(seen.append)

    assert store.ensure() is True
    first = store.reload()
    assert first.corner == "top-right"

    path.write_text(json.dumps({"corner": "bottom-left", "monitor": 1}), encoding="utf-8")
    second = store.reload()

    assert second.corner == "bottom-left"
    assert second.monitor == 1
    assert store.settings is second
    assert store.document["corner"] == "bottom-left"
    assert seen == [first, second]


def test_store_keeps_defaults_on_broken_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{", encoding="utf-8")
    store = ConfigStore(path)

    settings = store.reload()

    assert settings.corner == "top-right"
    assert settings.opacity == 0.92


def test_store_watch_lifecycle(harness, observer, tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")
    changes: list[str] = []

    store.start_watch(lambda: changes.append("x"), observe=observer.observe, after=harness.after, after_cancel=harness.cancel)
    assert store.watching is True

    # Restarting replaces the previous watch.
    store.start_watch(lambda: changes.append("y"), observe=observer.observe, after=harness.after, after_cancel=harness.cancel)
    assert observer.released == 1

    store.stop_watch()
    store.stop_watch()
    assert store.watching is False
    assert observer.released == 2


def test_remove_listener_tolerates_unknown() -> None:
    store = ConfigStore(Path("/nonexistent/config.json"))
    store.remove_listener(print)
