"""Session-bus export of the control surface via QtDBus."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from PyQt6.QtCore import QObject, pyqtClassInfo, pyqtSlot
from PyQt6.QtDBus import QDBusAbstractAdaptor, QDBusConnection, QDBusConnectionInterface, QDBusMessage

from ai_overlay.control_surface import (
    BUS_NAME,
    INTERFACE,
    INTERFACE_XML,
    OBJECT_PATH,
    ControlError,
    ControlSurface,
)

_LOGGER = logging.getLogger("AIOverlay.DBus")


def _introspection_fragment(xml: str) -> str:
    start = xml.index("<interface")
    end = xml.index("</interface>") + len("</interface>")
    return xml[start:end]


def _registered(value: object) -> bool:
    expected = QDBusConnectionInterface.RegisterServiceReply.ServiceRegistered
    return value == expected or getattr(value, "value", value) == expected.value


@pyqtClassInfo("D-Bus Interface", INTERFACE)
@pyqtClassInfo("D-Bus Introspection", _introspection_fragment(INTERFACE_XML))
class _OverlayAdaptor(QDBusAbstractAdaptor):
    """Every slot takes the incoming message so replies (and error replies) are sent explicitly."""

    def __init__(self, parent: QObject, service: "DBusService") -> None:
        super().__init__(parent)
        self._service = service
        self.setAutoRelaySignals(False)

    @pyqtSlot(str, QDBusMessage)
    def SetState(self, state: str, message: QDBusMessage) -> None:
        self._service.handle_call("SetState", (state,), message)

    @pyqtSlot(QDBusMessage)
    def GetState(self, message: QDBusMessage) -> None:
        self._service.handle_call("GetState", (), message)

    @pyqtSlot(QDBusMessage)
    def Show(self, message: QDBusMessage) -> None:
        self._service.handle_call("Show", (), message)

    @pyqtSlot(QDBusMessage)
    def Hide(self, message: QDBusMessage) -> None:
        self._service.handle_call("Hide", (), message)

    @pyqtSlot(QDBusMessage)
    def Ping(self, message: QDBusMessage) -> None:
        self._service.handle_call("Ping", (), message)


class DBusService:
    """Owns the bus name and exported object; enable/disable are idempotent.

    The name is requested with replace-existing and allow-replacement, so a newer
    instance displaces a stale owner and can itself be displaced later.
    """

    def __init__(self, surface: ControlSurface, connection: Optional[QDBusConnection] = None) -> None:
        self._surface = surface
        self._connection = connection
        self._host: Optional[QObject] = None
        self._adaptor: Optional[_OverlayAdaptor] = None
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> bool:
        if self._enabled:
            return True
        connection = self._connection or QDBusConnection.sessionBus()
        if not connection.isConnected():
            _LOGGER.warning("Session bus unavailable; remote control disabled (%s)", connection.lastError().message())
            return False
        self._connection = connection
        host = QObject()
        adaptor = _OverlayAdaptor(host, self)
        if not connection.registerObject(OBJECT_PATH, host):
            _LOGGER.warning("Failed to export %s: %s", OBJECT_PATH, connection.lastError().message())
            return False
        bus = connection.interface()
        reply = bus.registerService(
            BUS_NAME,
            QDBusConnectionInterface.ServiceQueueOptions.ReplaceExistingService,
            QDBusConnectionInterface.ServiceReplacementOptions.AllowReplacement,
        )
        if not reply.isValid():
            _LOGGER.warning("Failed to own %s: %s", BUS_NAME, reply.error().message())
            connection.unregisterObject(OBJECT_PATH)
            return False
        if not _registered(reply.value()):
            _LOGGER.warning("%s is held by another process that does not allow replacement (reply=%s)", BUS_NAME, reply.value())
            connection.unregisterService(BUS_NAME)
            connection.unregisterObject(OBJECT_PATH)
            return False
        bus.serviceUnregistered.connect(self._on_service_unregistered)
        self._host = host
        self._adaptor = adaptor
        self._enabled = True
        _LOGGER.info("D-Bus exported as %s at %s", BUS_NAME, OBJECT_PATH)
        return True

    def disable(self) -> None:
        if not self._enabled:
            return
        self._enabled = False
        connection = self._connection
        if connection is not None:
            try:
                connection.interface().serviceUnregistered.disconnect(self._on_service_unregistered)
            except TypeError:
                pass
            connection.unregisterObject(OBJECT_PATH)
            connection.unregisterService(BUS_NAME)
        self._adaptor = None
        if self._host is not None:
            self._host.deleteLater()
        self._host = None
        _LOGGER.info("D-Bus service %s released", BUS_NAME)

    def handle_call(self, method: str, args: Sequence[Any], message: QDBusMessage) -> None:
        message.setDelayedReply(True)
        try:
            result = self._surface.dispatch(method, args)
        except ControlError as exc:
            reply = message.createErrorReply(exc.name, exc.message)
        else:
            reply = message.createReply([] if result is None else [result])
        if self._connection is not None:
            self._connection.send(reply)

    def _on_service_unregistered(self, name: str) -> None:
        if name == BUS_NAME:
            _LOGGER.warning("Name lost: %s", name)
