from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from ai_overlay.capabilities import DisplayTopology
from ai_overlay.config_store import ConfigStore
from ai_overlay.control_surface import ControlSurface
from ai_overlay.pulse_scheduler import PulseScheduler
from ai_overlay.state_machine import BadgeSurface, StateMachine

_LOGGER = logging.getLogger("AIOverlay.Runtime")


class TimerService(Protocol):
    def after(self, delay_ms: int, callback: Callable[[], None]) -> Any: ...

    def after_cancel(self, handle: Any) -> None: ...


class FileObserver(Protocol):
    def observe(self, path: Path, callback: Callable[[], None]) -> Callable[[], None]: ...


class ControlService(Protocol):
    def enable(self) -> bool: ...

    def disable(self) -> None: ...


ServiceFactory = Callable[[ControlSurface], ControlService]


def _dbus_service(surface: ControlSurface) -> ControlService:
    from ai_overlay.dbus_service import DBusService

    return DBusService(surface)


class OverlayRuntime:
    """Wires config, pulse, state machine and remote control around one surface.

    ``enable()`` and ``disable()`` are idempotent; teardown stops the pulse and the display
    subscription first, then the file watch and the control service, and finally
    releases the surface.
    """

    def __init__(
        self,
        settings_path: Path,
        surface: BadgeSurface,
        topology: DisplayTopology,
        timers: TimerService,
        observer: FileObserver,
        *,
        enable_dbus: bool = True,
        self_test: bool = True,
        strict_set_state: bool = False,
        service_factory: Optional[ServiceFactory] = None,
    ) -> None:
        self._surface = surface
        self._timers = timers
        self._observer = observer
        self._self_test = self_test
        self.store = ConfigStore(settings_path)
        self.pulse = PulseScheduler(after=timers.after, after_cancel=timers.after_cancel, reset_scale=surface.set_scale)
        self.machine = StateMachine(
            surface,
            self.store,
            self.pulse,
            topology,
            after=timers.after,
            after_cancel=timers.after_cancel,
        )
        self.control = ControlSurface(self.machine, strict=strict_set_state)
        self.service: Optional[ControlService] = None
        if enable_dbus:
            self.service = (service_factory or _dbus_service)(self.control)
        self._enabled = False
        self._disabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        if self._enabled or self._disabled:
            return
        self._enabled = True
        created = self.store.ensure()
        settings = self.store.reload()
        _LOGGER.info("Overlay config %s (%s)", self.store.path, "created" if created else "loaded")
        self.machine.apply_config(settings)
        self.machine.follow_topology()
        self.store.start_watch(
            self._on_config_changed,
            observe=self._observer.observe,
            after=self._timers.after,
            after_cancel=self._timers.after_cancel,
        )
        if self.service is not None and not self.service.enable():
            _LOGGER.warning("Remote control unavailable; badge stays in its current state")
        if self._self_test:
            self.machine.run_self_test()

    def disable(self) -> None:
        if not self._enabled or self._disabled:
            return
        self._disabled = True
        self._enabled = False
        self.machine.shutdown()
        self.store.stop_watch()
        if self.service is not None:
            self.service.disable()
        self._surface.release()
        _LOGGER.info("Overlay runtime stopped")

    def _on_config_changed(self) -> None:
        _LOGGER.debug("Config file changed: %s", self.store.path)
        settings = self.store.reload()
        self.machine.apply_config(settings)
