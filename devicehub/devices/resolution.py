"""Resolution state machine — platform / device intent → execution scope.

``UNINITIALIZED → RESOLVING → COMMITTED``. Only success is sticky: a failed
resolution drops back to ``UNINITIALIZED`` so a later call can retry with
different input, while every call after the first success returns the scope
that was committed then.
"""

from __future__ import annotations

import asyncio
import logging
import re
from enum import Enum
from typing import Awaitable, Callable

from devicehub.devices.errors import (
    DEFAULT_CLIENT_NAME,
    AmbiguousPlatform,
    DeviceIndexOutOfRange,
    DeviceNotFound,
    DeviceNotFoundForPlatform,
    NoDevicesFound,
    PlatformDeviceMismatch,
    UnsupportedHostForSimulator,
    UnsupportedPlatform,
)
from devicehub.devices.host import HostInfo
from devicehub.devices.models import Device, ExecutionScope, InitializeOptions, Platform
from devicehub.devices.registry import DeviceRegistry

logger = logging.getLogger(__name__)

_INDEX_SELECTOR = re.compile(r"^-?\d+$")

PrepareHook = Callable[[InitializeOptions], Awaitable[None]]


class ResolutionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    COMMITTED = "committed"


class ScopeResolver:
    """Commits exactly one :class:`ExecutionScope` per lifetime.

    Args:
        registry:    Registry snapshot source.
        host:        Host capability oracle (simulator support).
        prepare:     Optional coroutine run in the ``RESOLVING`` state before
                     the registry is read (the service uses it to detect
                     attached devices).
        client_name: Name used in user-facing remediation hints.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        host: HostInfo,
        prepare: PrepareHook | None = None,
        client_name: str = DEFAULT_CLIENT_NAME,
    ) -> None:
        self._registry = registry
        self._host = host
        self._prepare = prepare
        self._client_name = client_name
        self._state = ResolutionState.UNINITIALIZED
        self._scope: ExecutionScope | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ResolutionState:
        return self._state

    @property
    def scope(self) -> ExecutionScope | None:
        """The committed scope, or ``None`` before the first success."""
        return self._scope

    @property
    def is_committed(self) -> bool:
        return self._state is ResolutionState.COMMITTED

    async def resolve(self, options: InitializeOptions | None = None) -> ExecutionScope:
        """Resolve *options* into a scope, or return the committed one."""
        if self._scope is not None:
            return self._scope

        async with self._lock:
            # Another caller may have committed while we waited
            if self._scope is not None:
                return self._scope

            options = options or InitializeOptions()
            self._state = ResolutionState.RESOLVING
            try:
                if self._prepare is not None:
                    await self._prepare(options)
                scope = self._resolve(options)
            except Exception:
                self._state = ResolutionState.UNINITIALIZED
                raise

            self._scope = scope
            self._state = ResolutionState.COMMITTED
            logger.debug(
                "Execution scope committed: platform=%s device=%s skip_inference=%s",
                scope.target_platform.value if scope.target_platform else None,
                scope.pinned_device_identifier,
                scope.skip_inference,
            )
            return scope

    # ── Algorithm ──────────────────────────────────────────────────

    def _resolve(self, options: InitializeOptions) -> ExecutionScope:
        if options.skip_infer_platform:
            return ExecutionScope(skip_inference=True, emulator_only=options.emulator)

        requested: Platform | None = None
        if options.platform:
            requested = Platform.parse(options.platform)
            if requested is None:
                raise UnsupportedPlatform(options.platform)

        target = requested
        pinned: str | None = None

        if options.device_id:
            device = self.resolve_selector(options.device_id, requested)
            device_platform = device.info.platform_family
            if requested is not None and device_platform is not requested:
                raise PlatformDeviceMismatch(
                    device.info.identifier,
                    requested.value,
                    device.info.platform,
                    client_name=self._client_name,
                )
            if requested is not None:
                logger.warning(
                    "Your application will be deployed only on the device specified "
                    "by the provided index or identifier."
                )
            pinned = device.info.identifier
            target = device_platform
        elif requested is None:
            target = self._infer_platform()

        if (
            target is Platform.IOS
            and options.emulator
            and not self._host.supports_simulators()
        ):
            raise UnsupportedHostForSimulator()

        return ExecutionScope(
            target_platform=target,
            pinned_device_identifier=pinned,
            skip_inference=False,
            emulator_only=options.emulator,
        )

    def resolve_selector(self, selector: str, platform: Platform | None = None) -> Device:
        """Resolve an identifier or 1-based index against the registry.

        Raises:
            DeviceIndexOutOfRange: numeric selector outside the registry.
            DeviceNotFound / DeviceNotFoundForPlatform: unknown identifier.
        """
        selector = selector.strip()
        if _INDEX_SELECTOR.match(selector):
            index = int(selector) - 1
            device = self._registry.find_by_index(index)
            if device is None:
                raise DeviceIndexOutOfRange(
                    index, len(self._registry) - 1, client_name=self._client_name
                )
            return device

        device = self._registry.find_by_identifier(selector)
        if device is None:
            if platform is not None:
                raise DeviceNotFoundForPlatform(
                    selector, platform.value, client_name=self._client_name
                )
            raise DeviceNotFound(selector, client_name=self._client_name)
        return device

    def _infer_platform(self) -> Platform | None:
        devices = self._registry.list()
        if not devices:
            # Discovery may still be in flight; decided at execute time
            return None

        platforms: list[Platform] = []
        for device in devices:
            family = device.info.platform_family
            if family is None:
                logger.info(
                    "Device %s with platform %s is not supported",
                    device.info.identifier,
                    device.info.platform,
                )
                continue
            if family not in platforms:
                platforms.append(family)

        if not platforms:
            raise NoDevicesFound()
        if len(platforms) > 1:
            raise AmbiguousPlatform([p.value for p in platforms])
        return platforms[0]
