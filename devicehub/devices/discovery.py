"""Discovery source contract.

Each platform family has one watcher (Android devices, iOS devices, iOS
simulators). A watcher enumerates its platform on demand and reports changes
as :class:`DeviceEvent` values to every subscribed listener. The concrete
watchers wrap platform command-line tools and live outside this package.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from devicehub.devices.models import Device

logger = logging.getLogger(__name__)


class DeviceEventKind(str, Enum):
    FOUND = "found"
    LOST = "lost"


@dataclass(frozen=True)
class DeviceEvent:
    """A single found/lost notification.

    ``device`` is set for FOUND events; LOST events only carry the identifier.
    """

    kind: DeviceEventKind
    identifier: str
    device: Device | None = None

    @classmethod
    def found(cls, device: Device) -> DeviceEvent:
        return cls(DeviceEventKind.FOUND, device.info.identifier, device)

    @classmethod
    def lost(cls, identifier: str) -> DeviceEvent:
        return cls(DeviceEventKind.LOST, identifier)


DeviceListener = Callable[[DeviceEvent], None]


class DeviceDiscovery(abc.ABC):
    """Base class for a platform watcher."""

    #: Short name used in logs, e.g. ``"android"`` / ``"ios-simulator"``
    name: str = ""

    #: Simulator watchers only run on hosts that support simulators
    requires_simulator_host: bool = False

    def __init__(self) -> None:
        self._listeners: list[DeviceListener] = []

    # ── Contract ───────────────────────────────────────────────────

    @abc.abstractmethod
    async def start_looking_for_devices(self) -> None:
        """Full (possibly first-time) enumeration of attached devices."""
        raise NotImplementedError

    @abc.abstractmethod
    async def check_for_devices(self) -> None:
        """Cheap refresh used by the recurring detection loop."""
        raise NotImplementedError

    # ── Notifications ──────────────────────────────────────────────

    def subscribe(self, listener: DeviceListener) -> None:
        """Register a listener for found/lost events."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: DeviceListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit_found(self, device: Device) -> None:
        self._emit(DeviceEvent.found(device))

    def emit_lost(self, identifier: str) -> None:
        self._emit(DeviceEvent.lost(identifier))

    def _emit(self, event: DeviceEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Error in %s discovery listener", self.name or type(self).__name__)
