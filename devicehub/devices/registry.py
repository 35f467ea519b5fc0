"""Device registry — the live, discovery-ordered set of reachable devices."""

from __future__ import annotations

import logging
import threading

from devicehub.devices.discovery import DeviceEvent, DeviceEventKind
from devicehub.devices.models import Device, Platform

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Identifier → device mapping folded from discovery events.

    Ordering is discovery order. A repeated ``found`` for a known identifier
    replaces the stored device in place; a ``lost`` removes it, so a later
    ``found`` re-inserts it at the tail.
    """

    def __init__(self) -> None:
        self._devices: dict[str, Device] = {}
        self._lock = threading.RLock()

    # ── Mutation ───────────────────────────────────────────────────

    def apply(self, event: DeviceEvent) -> None:
        """Fold a single discovery event into the registry."""
        if event.kind is DeviceEventKind.FOUND and event.device is not None:
            self.on_found(event.device)
        elif event.kind is DeviceEventKind.LOST:
            self.on_lost(event.identifier)

    def on_found(self, device: Device) -> None:
        identifier = device.info.identifier
        with self._lock:
            is_new = identifier not in self._devices
            self._devices[identifier] = device
        if is_new:
            logger.debug("Device found: %s (%s)", identifier, device.info.platform)
        else:
            logger.debug("Device updated: %s", identifier)

    def on_lost(self, identifier: str) -> None:
        with self._lock:
            removed = self._devices.pop(identifier, None)
        if removed is not None:
            logger.debug("Device lost: %s", identifier)

    # ── Queries ────────────────────────────────────────────────────

    def list(self) -> list[Device]:
        with self._lock:
            return list(self._devices.values())

    def list_by_platform(self, platform: str | Platform) -> list[Device]:
        """Devices whose platform matches *platform*, case-insensitively."""
        wanted = platform.value if isinstance(platform, Platform) else (platform or "")
        wanted = wanted.lower()
        return [d for d in self.list() if (d.info.platform or "").lower() == wanted]

    def find_by_identifier(self, identifier: str) -> Device | None:
        with self._lock:
            return self._devices.get(identifier)

    def find_by_index(self, index: int) -> Device | None:
        """0-based position in :meth:`list` order at call time."""
        devices = self.list()
        if 0 <= index < len(devices):
            return devices[index]
        return None

    def has_any(self) -> bool:
        with self._lock:
            return bool(self._devices)

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._devices
