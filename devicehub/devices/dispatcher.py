"""Execution dispatcher — fans an action out over the committed scope.

Every selected device gets its own concurrent invocation; a failure on one
device is captured as a tagged :class:`ActionOutcome` and never affects its
siblings. What to do with failures (await all, partition, re-raise) is up to
the caller; :func:`raise_for_failures` covers the common "fail if any failed"
policy.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Iterable

from devicehub.devices.emulators import EmulatorBootstrapper
from devicehub.devices.errors import (
    DEFAULT_CLIENT_NAME,
    ERROR_NO_DEVICES,
    ActionFailure,
    DeviceNotFound,
    DevicesActionError,
    NoDevicesFound,
    UnableToDetectPlatformForEmulator,
)
from devicehub.devices.host import HostInfo
from devicehub.devices.models import (
    ActionOutcome,
    CanExecute,
    Device,
    DeviceAction,
    ExecuteOptions,
    ExecutionScope,
    Platform,
)
from devicehub.devices.registry import DeviceRegistry

logger = logging.getLogger(__name__)


class ExecutionDispatcher:
    """Selects devices for a scope and runs an action on each of them.

    Args:
        registry:      Live device registry (read only).
        bootstrappers: Emulator starters keyed by platform family.
        host:          Host capability oracle; iOS simulators are only
                       bootstrapped when the host supports them.
        client_name:   Name used in user-facing remediation hints.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        bootstrappers: dict[Platform, EmulatorBootstrapper] | None = None,
        host: HostInfo | None = None,
        client_name: str = DEFAULT_CLIENT_NAME,
    ) -> None:
        self._registry = registry
        self._bootstrappers = dict(bootstrappers or {})
        self._host = host or HostInfo()
        self._client_name = client_name

    # ── Scope dispatch ─────────────────────────────────────────────

    def select_devices(
        self,
        scope: ExecutionScope,
        can_execute: CanExecute | None = None,
        emulator_only: bool | None = None,
    ) -> list[Device]:
        """Return the live subset of devices *scope* currently targets."""
        if emulator_only is None:
            emulator_only = scope.emulator_only

        if scope.pinned_device_identifier is not None:
            device = self._registry.find_by_identifier(scope.pinned_device_identifier)
            if device is None:
                return []
            if can_execute is not None and not can_execute(device):
                return []
            return [device]

        if scope.target_platform is not None:
            candidates = self._registry.list_by_platform(scope.target_platform)
        else:
            candidates = self._registry.list()

        if emulator_only:
            candidates = [d for d in candidates if getattr(d, "is_emulator", False)]
        if can_execute is not None:
            candidates = [d for d in candidates if can_execute(d)]
        return candidates

    async def execute(
        self,
        scope: ExecutionScope,
        action: DeviceAction,
        can_execute: CanExecute | None = None,
        options: ExecuteOptions | None = None,
    ) -> list[ActionOutcome]:
        """Run *action* on every device in *scope*.

        Raises:
            UnableToDetectPlatformForEmulator: nothing to run on and no
                platform to start an emulator for.
            NoDevicesFound: nothing to run on, even after an emulator start.
        """
        options = options or ExecuteOptions()
        devices = self.select_devices(scope, can_execute, options.emulator)

        if not devices:
            if options.allow_no_devices:
                logger.info(ERROR_NO_DEVICES)
                return []

            platform = scope.target_platform
            if platform is None:
                raise UnableToDetectPlatformForEmulator()

            await self._start_emulator(platform)
            devices = self.select_devices(scope, can_execute, options.emulator)
            if not devices:
                raise NoDevicesFound()

        return await self.run_on_devices(devices, action)

    async def run_on_devices(
        self,
        devices: Iterable[Device],
        action: DeviceAction,
    ) -> list[ActionOutcome]:
        """Start *action* on every device at once; outcomes keep device order."""
        return list(await asyncio.gather(*(self._invoke(action, d) for d in devices)))

    # ── Identifier-addressed dispatch ──────────────────────────────

    async def execute_on_identifiers(
        self,
        identifiers: Iterable[str],
        action: DeviceAction,
    ) -> list[ActionOutcome]:
        """Run *action* on explicitly listed devices.

        An identifier missing from the registry fails its own slot with a
        tagged :class:`DeviceNotFound`; the other slots run normally.
        """
        return list(
            await asyncio.gather(*(self._invoke_by_identifier(i, action) for i in identifiers))
        )

    async def _invoke_by_identifier(self, identifier: str, action: DeviceAction) -> ActionOutcome:
        device = self._registry.find_by_identifier(identifier)
        if device is None:
            error = DeviceNotFound(identifier, client_name=self._client_name)
            return ActionOutcome(identifier, error=ActionFailure(identifier, error))
        return await self._invoke(action, device)

    # ── Internal ───────────────────────────────────────────────────

    async def _invoke(self, action: DeviceAction, device: Device) -> ActionOutcome:
        identifier = device.info.identifier
        try:
            result: Any = action(device)
            if inspect.isawaitable(result):
                result = await result
            return ActionOutcome(identifier, result=result)
        except Exception as exc:
            logger.debug("Action failed on %s: %s", identifier, exc)
            return ActionOutcome(identifier, error=ActionFailure(identifier, exc))

    async def _start_emulator(self, platform: Platform) -> None:
        if platform is Platform.IOS and not self._host.supports_simulators():
            logger.debug("Host cannot run iOS simulators; skipping emulator start")
            return

        bootstrapper = self._bootstrappers.get(platform)
        if bootstrapper is None:
            logger.debug("No emulator bootstrapper registered for %s", platform.value)
            return

        try:
            await bootstrapper.start_emulator()
        except Exception:
            logger.exception("Failed to start %s emulator", platform.value)


def successes(outcomes: Iterable[ActionOutcome]) -> list[ActionOutcome]:
    return [o for o in outcomes if o.ok]


def failures(outcomes: Iterable[ActionOutcome]) -> list[ActionFailure]:
    return [o.error for o in outcomes if o.error is not None]


def raise_for_failures(outcomes: Iterable[ActionOutcome]) -> list[Any]:
    """Return all results, or raise one combined error if any device failed."""
    outcomes = list(outcomes)
    failed = failures(outcomes)
    if failed:
        raise DevicesActionError(failed)
    return [o.result for o in outcomes]


