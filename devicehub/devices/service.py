"""Devices service — the facade tying discovery, resolution and dispatch together.

Typical use::

    service = DevicesService([android, ios, ios_simulators], bootstrappers)
    await service.initialize(InitializeOptions(platform="android"))
    outcomes = await service.execute(lambda device: device.deploy(pkg, name))
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from devicehub.config import DevicesConfig
from devicehub.devices.detection import DetectionLoop, detect_currently_attached_devices
from devicehub.devices.discovery import DeviceDiscovery
from devicehub.devices.dispatcher import ExecutionDispatcher
from devicehub.devices.emulators import EmulatorBootstrapper
from devicehub.devices.errors import DeviceNotFound
from devicehub.devices.host import HostInfo
from devicehub.devices.models import (
    ActionOutcome,
    AppInstalledInfo,
    CanExecute,
    CompanionAppResolver,
    Device,
    DeviceAction,
    DeviceInfo,
    DeviceLogProvider,
    ExecuteOptions,
    ExecutionScope,
    InitializeOptions,
    Platform,
    is_android_device,
    is_ios_device,
    is_ios_simulator,
)
from devicehub.devices.registry import DeviceRegistry
from devicehub.devices.resolution import ResolutionState, ScopeResolver

logger = logging.getLogger(__name__)


class DevicesService:
    """Tracks attached devices and runs actions on the committed scope.

    Args:
        sources:       Discovery sources (Android devices, iOS devices, iOS
                       simulators). Each is subscribed to the registry.
        bootstrappers: Emulator starters keyed by platform family.
        host:          Host capability oracle.
        config:        Service configuration.
        log_provider:  Device log provider for :meth:`set_log_level`.
        companion_apps: Maps (framework, platform) to the companion app
                       identifier.
    """

    def __init__(
        self,
        sources: Sequence[DeviceDiscovery] = (),
        bootstrappers: dict[Platform, EmulatorBootstrapper] | None = None,
        host: HostInfo | None = None,
        config: DevicesConfig | None = None,
        log_provider: DeviceLogProvider | None = None,
        companion_apps: CompanionAppResolver | None = None,
    ) -> None:
        self.config = config or DevicesConfig()
        self._host = host or HostInfo()
        self._sources = list(sources)
        self._log_provider = log_provider
        self._companion_apps = companion_apps

        self._registry = DeviceRegistry()
        for source in self._sources:
            source.subscribe(self._registry.apply)

        self._resolver = ScopeResolver(
            self._registry,
            self._host,
            prepare=self._prepare,
            client_name=self.config.client_name,
        )
        self._dispatcher = ExecutionDispatcher(
            self._registry,
            bootstrappers,
            self._host,
            client_name=self.config.client_name,
        )
        self._detection = DetectionLoop(
            self._sources,
            self._host,
            interval=self.config.detection_interval,
        )

    # ── Introspection ──────────────────────────────────────────────

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def state(self) -> ResolutionState:
        return self._resolver.state

    @property
    def scope(self) -> ExecutionScope | None:
        return self._resolver.scope

    @property
    def platform(self) -> str | None:
        """Committed platform value, or ``None`` when unset."""
        scope = self._resolver.scope
        if scope is None or scope.target_platform is None:
            return None
        return scope.target_platform.value

    @property
    def device_count(self) -> int:
        scope = self._resolver.scope
        if scope is not None and scope.pinned_device_identifier is not None:
            return 1
        if scope is not None and scope.target_platform is not None:
            return len(self._registry.list_by_platform(scope.target_platform))
        return len(self._registry)

    @property
    def has_devices(self) -> bool:
        return self._registry.has_any()

    @property
    def detection_running(self) -> bool:
        return self._detection.running

    # ── Resolution ─────────────────────────────────────────────────

    async def initialize(self, options: InitializeOptions | None = None) -> ExecutionScope:
        """Resolve the execution scope; later calls return the first success."""
        return await self._resolver.resolve(options or InitializeOptions())

    async def _prepare(self, options: InitializeOptions) -> None:
        if not options.skip_infer_platform:
            await self.detect_currently_attached_devices()
            return

        skip_interval = (
            options.skip_device_detection_interval
            or self.config.skip_device_detection_interval
        )
        if skip_interval:
            await self.detect_currently_attached_devices()
        else:
            await self.start_device_detection_interval()

    # ── Dispatch ───────────────────────────────────────────────────

    async def execute(
        self,
        action: DeviceAction,
        can_execute: CanExecute | None = None,
        options: ExecuteOptions | None = None,
    ) -> list[ActionOutcome]:
        """Run *action* on every device in the committed scope.

        Raises:
            RuntimeError: :meth:`initialize` has not succeeded yet.
        """
        scope = self._resolver.scope
        if scope is None:
            raise RuntimeError("DevicesService.execute() called before initialize()")
        return await self._dispatcher.execute(scope, action, can_execute, options)

    async def execute_on_devices(
        self,
        identifiers: Iterable[str],
        action: DeviceAction,
    ) -> list[ActionOutcome]:
        return await self._dispatcher.execute_on_identifiers(identifiers, action)

    # ── Queries ────────────────────────────────────────────────────

    def get_devices(self) -> list[DeviceInfo]:
        return [d.info for d in self._registry.list()]

    def get_device_instances(self) -> list[Device]:
        return self._registry.list()

    def get_devices_for_platform(self, platform: str | Platform) -> list[DeviceInfo]:
        return [d.info for d in self._registry.list_by_platform(platform)]

    def get_device_by_identifier_or_index(self, selector: str) -> Device:
        """Look up a device by identifier or 1-based index."""
        return self._resolver.resolve_selector(selector)

    def get_device_by_device_option(self) -> Device | None:
        """The pinned device of the committed scope, if there is one."""
        scope = self._resolver.scope
        if scope is None or scope.pinned_device_identifier is None:
            return None
        return self._registry.find_by_identifier(scope.pinned_device_identifier)

    def is_android_device(self, device: Device) -> bool:
        return is_android_device(device)

    def is_ios_device(self, device: Device) -> bool:
        return is_ios_device(device)

    def is_ios_simulator(self, device: Device) -> bool:
        return is_ios_simulator(device)

    # ── Detection ──────────────────────────────────────────────────

    async def start_device_detection_interval(self) -> None:
        """Start the recurring detection loop (no-op if already running)."""
        await self._detection.start()

    async def stop_device_detection_interval(self) -> None:
        await self._detection.stop()

    async def detect_currently_attached_devices(self) -> None:
        await detect_currently_attached_devices(self._sources, self._host)

    async def close(self) -> None:
        await self.stop_device_detection_interval()

    # ── Application operations ─────────────────────────────────────

    async def is_app_installed_on_devices(
        self,
        identifiers: Iterable[str],
        app_identifier: str,
    ) -> list[ActionOutcome]:
        """Per device: an :class:`AppInstalledInfo` for *app_identifier*."""

        async def check(device: Device) -> AppInstalledInfo:
            return await _app_installed_info(device, app_identifier)

        return await self.execute_on_devices(identifiers, check)

    async def is_companion_app_installed_on_devices(
        self,
        identifiers: Iterable[str],
        framework: str,
    ) -> list[ActionOutcome]:
        """Like :meth:`is_app_installed_on_devices` for the companion app.

        The companion app identifier depends on *framework* and on each
        device's platform, so it is resolved per device.
        """
        resolve = self._companion_apps
        if resolve is None:
            raise RuntimeError("No companion app resolver configured")

        async def check(device: Device) -> AppInstalledInfo:
            app_identifier = resolve(framework, device.info.platform)
            return await _app_installed_info(device, app_identifier)

        return await self.execute_on_devices(identifiers, check)

    async def deploy_on_devices(
        self,
        identifiers: Iterable[str],
        package_file: str,
        package_name: str,
        framework: str | None = None,
    ) -> list[ActionOutcome]:
        """Deploy a package, then start it where the device allows it."""

        async def deploy(device: Device) -> None:
            await device.deploy(package_file, package_name)
            manager = device.application_manager
            if manager.can_start_application():
                await manager.start_application(package_name, framework)
            else:
                logger.info(
                    "Successfully deployed on device %s, but the application "
                    "cannot be started automatically.",
                    device.info.identifier,
                )

        return await self.execute_on_devices(identifiers, deploy)

    async def get_debuggable_apps(self, identifiers: Iterable[str]) -> list[ActionOutcome]:
        async def apps(device: Device) -> list[dict]:
            return await device.application_manager.get_debuggable_apps()

        return await self.execute_on_devices(identifiers, apps)

    async def get_debuggable_views(
        self,
        device_identifier: str,
        app_identifier: str,
    ) -> list[dict] | None:
        """Debuggable views of one app, or ``None`` when it has none."""
        device = self._registry.find_by_identifier(device_identifier)
        if device is None:
            raise DeviceNotFound(device_identifier, client_name=self.config.client_name)
        views: dict[str, Any] = await device.application_manager.get_debuggable_app_views(
            [app_identifier]
        )
        return (views or {}).get(app_identifier)

    def set_log_level(self, level: str, device_identifier: str | None = None) -> None:
        if self._log_provider is None:
            logger.debug("No device log provider configured; ignoring log level %s", level)
            return
        self._log_provider.set_log_level(level, device_identifier)


async def _app_installed_info(device: Device, app_identifier: str) -> AppInstalledInfo:
    manager = device.application_manager
    is_installed = await manager.is_application_installed(app_identifier)
    is_live_sync_supported = await manager.is_live_sync_supported(app_identifier)
    return AppInstalledInfo(
        device_identifier=device.info.identifier,
        app_identifier=app_identifier,
        is_installed=is_installed,
        is_live_sync_supported=is_live_sync_supported,
    )
