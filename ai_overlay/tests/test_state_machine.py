from __future__ import annotations

import json
from pathlib import Path

import pytest

from ai_overlay.badge_config import BadgeSettings
from ai_overlay.capabilities import StaticDisplayTopology
from ai_overlay.config_store import ConfigStore
from ai_overlay.placement import Point, Rect
from ai_overlay.pulse_scheduler import PulseScheduler
from ai_overlay.state_machine import (
    ERROR_FLASH_MS,
    FADE_IN_MS,
    FADE_OUT_MS,
    SELF_TEST_MS,
    StateMachine,
    Status,
    parse_status,
)


class Rig:
    def __init__(self, surface, harness, tmp_path: Path) -> None:
        self.surface = surface
        self.harness = harness
        self.path = tmp_path / "config.json"
        self.store = ConfigStore(self.path)
        self.pulse = PulseScheduler(after=harness.after, after_cancel=harness.cancel, reset_scale=surface.set_scale)
        self.topology = StaticDisplayTopology([Rect(0, 0, 1920, 1080)])
        self.machine = StateMachine(
            surface,
            self.store,
            self.pulse,
            self.topology,
            after=harness.after,
            after_cancel=harness.cancel,
        )

    def write_config(self, document: dict) -> None:
        self.path.write_text(json.dumps(document), encoding="utf-8")
        self.store.reload()


@pytest.fixture
def rig(surface, harness, tmp_path: Path) -> Rig:
    return Rig(surface, harness, tmp_path)


def test_parse_status() -> None:
    assert parse_status(" Thinking ") is Status.THINKING
    assert parse_status(Status.ERROR) is Status.ERROR
    assert parse_status("bogus") is None
    assert parse_status(3) is None


def test_initial_state_is_idle_and_hidden(rig: Rig) -> None:
    assert rig.machine.get_state() == "idle"
    assert rig.machine.visible is False
    assert rig.surface.names() == ["apply_style"]


def test_unknown_state_has_no_side_effects(rig: Rig) -> None:
    rig.machine.set_state("listening")
    before = list(rig.surface.calls)
    scheduled = list(rig.harness.scheduled)

    assert rig.machine.set_state("bogus") is False

    assert rig.machine.get_state() == "listening"
    assert rig.surface.calls == before
    assert rig.harness.scheduled == scheduled


def test_listening_applies_label_pulse_colors_visibility_and_position(rig: Rig) -> None:
    assert rig.machine.set_state("listening") is True

    surface = rig.surface
    assert surface.label == "Listening…"
    assert surface.colors == ("#202124", "#34a853", "#ffffff")
    assert surface.visible is True
    assert ("ease_opacity", 0.92, FADE_IN_MS) in surface.calls
    assert surface.position == (1920 - 80 - 24, 24)
    assert rig.pulse.active is True
    assert rig.pulse.period_ms == 700
    assert ("ease_scale", 1.06, 350) in surface.calls

    names = surface.names()
    assert names.index("set_label") < names.index("ease_scale") < names.index("set_colors")
    assert names.index("set_colors") < names.index("show") < names.index("set_position")
    assert names[-1] == "raise_"


def test_thinking_uses_thinking_period_and_color(rig: Rig) -> None:
    rig.machine.set_state("thinking")

    assert rig.surface.label == "Thinking…"
    assert rig.surface.colors[1] == "#fbbc04"
    assert rig.pulse.period_ms == 1100


def test_pulse_eases_back_to_neutral(rig: Rig) -> None:
    rig.machine.set_state("listening")

    rig.surface.finish_scale()

    assert rig.surface.calls[-1] == ("ease_scale", 1.0, 350)


def test_listening_to_idle_stops_pulse_and_hides(rig: Rig) -> None:
    rig.machine.set_state("listening")
    pulse_timer = rig.harness.pending()[-1]

    rig.machine.set_state("idle")

    assert rig.pulse.active is False
    assert pulse_timer in rig.harness.cancelled
    assert rig.surface.scale == 1.0
    assert rig.surface.label == ""
    assert rig.surface.colors[1] == "#9aa0a6"
    assert ("ease_opacity", 0.0, FADE_OUT_MS) in rig.surface.calls
    assert rig.surface.visible is True

    rig.surface.finish_opacity()

    assert rig.surface.visible is False
    assert rig.machine.visible is False


def test_show_after_hide_cancels_pending_hide(rig: Rig) -> None:
    rig.machine.set_state("listening")
    rig.machine.set_state("idle")
    stale_finish = rig.surface.opacity_done

    rig.machine.set_state("thinking")
    stale_finish()

    assert rig.surface.visible is True
    assert rig.machine.visible is True


def test_error_flashes_without_pulse(rig: Rig) -> None:
    rig.machine.set_state("listening")

    rig.machine.set_state("error")

    assert rig.pulse.active is False
    assert rig.surface.label == "Error"
    assert rig.surface.colors == ("#5c1a1a", "#ea4335", "#ffffff")
    assert ("set_opacity", pytest.approx(0.92 * 0.7)) in rig.surface.calls
    assert ("ease_opacity", 0.92, ERROR_FLASH_MS) in rig.surface.calls


def test_hidden_label_when_disabled(rig: Rig) -> None:
    rig.write_config({"showLabel": False})

    rig.machine.set_state("thinking")

    assert rig.surface.label == ""


def test_disabled_pulse_never_ticks(rig: Rig) -> None:
    rig.write_config({"pulse": {"enabled": False}})

    rig.machine.set_state("listening")

    assert rig.pulse.active is False
    assert not any(name == "ease_scale" for name in rig.surface.names())


def test_apply_config_restarts_pulse_only_when_pulse_changes(rig: Rig) -> None:
    rig.machine.set_state("listening")
    first_timer = rig.harness.pending()[-1]

    rig.write_config({"corner": "bottom-left"})
    rig.machine.apply_config()

    assert rig.harness.cancelled == []
    assert rig.surface.position == (24, 1080 - 24 - 24)
    assert rig.machine.get_state() == "listening"

    rig.write_config({"pulse": {"periodListening": 400}})
    rig.machine.apply_config()

    assert first_timer in rig.harness.cancelled
    assert rig.pulse.period_ms == 400


def test_apply_config_updates_opacity_only_when_visible(rig: Rig) -> None:
    rig.write_config({"opacity": 0.5})
    rig.machine.apply_config()
    assert ("set_opacity", 0.5) not in rig.surface.calls

    rig.machine.set_state("thinking")
    rig.write_config({"opacity": 0.6})
    rig.machine.apply_config()
    assert ("set_opacity", 0.6) in rig.surface.calls


def test_topology_change_repositions(rig: Rig) -> None:
    rig.machine.follow_topology()
    rig.machine.follow_topology()
    assert rig.topology.subscriber_count == 1

    rig.topology.update([Rect(0, 0, 1280, 720)])

    assert rig.machine.last_position == Point(1280 - 80 - 24, 24)

    rig.machine.unfollow_topology()
    assert rig.topology.subscriber_count == 0


def test_self_test_returns_to_idle(rig: Rig) -> None:
    rig.machine.run_self_test()

    assert rig.machine.get_state() == "listening"
    assert rig.machine.self_test_pending is True
    self_test_timer = rig.harness.scheduled[-1][0]
    assert rig.harness.delay_of(self_test_timer) == SELF_TEST_MS

    rig.harness.run(self_test_timer)

    assert rig.machine.get_state() == "idle"
    assert rig.machine.self_test_pending is False
    assert rig.pulse.active is False


def test_explicit_state_cancels_self_test(rig: Rig) -> None:
    rig.machine.run_self_test()
    self_test_timer = rig.harness.scheduled[-1][0]

    rig.machine.set_state("thinking")

    assert self_test_timer in rig.harness.cancelled
    assert rig.machine.self_test_pending is False
    assert rig.machine.get_state() == "thinking"


def test_shutdown_is_idempotent(rig: Rig) -> None:
    rig.machine.follow_topology()
    rig.machine.run_self_test()

    rig.machine.shutdown()
    rig.machine.shutdown()

    assert rig.pulse.active is False
    assert rig.machine.self_test_pending is False
    assert rig.topology.subscriber_count == 0
    assert rig.surface.scale == 1.0


def test_shutdown_hides_visible_badge(rig: Rig) -> None:
    rig.machine.set_state("thinking")
    assert rig.surface.visible is True

    rig.machine.shutdown()

    assert rig.machine.visible is False
    assert rig.surface.visible is False
    assert rig.surface.names()[-1] == "hide"


def test_calls_after_shutdown_are_ignored(rig: Rig) -> None:
    rig.machine.shutdown()
    calls = list(rig.surface.calls)
    scheduled = list(rig.harness.scheduled)

    assert rig.machine.set_state("listening") is False
    rig.machine.run_self_test()
    rig.machine.show()
    rig.machine.apply_config()

    assert rig.machine.get_state() == "idle"
    assert rig.machine.self_test_pending is False
    assert rig.pulse.active is False
    assert rig.surface.calls == calls
    assert rig.harness.scheduled == scheduled


def test_apply_config_places_with_given_settings(rig: Rig) -> None:
    rig.machine.apply_config(BadgeSettings(corner="bottom-left"))

    assert rig.store.settings.corner != "bottom-left"
    assert rig.surface.position == (24, 1080 - 24 - 24)
    assert rig.machine.last_position == Point(24, 1080 - 24 - 24)
