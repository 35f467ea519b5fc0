"""Emulator images — startable iOS simulators and Android virtual devices."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Protocol

from devicehub.devices.errors import DevicesError
from devicehub.devices.models import (
    ActionOutcome,
    CanExecute,
    Device,
    DeviceAction,
    EmulatorInfo,
    ExecuteOptions,
    InitializeOptions,
    Platform,
)

logger = logging.getLogger(__name__)

SIMCTL_LIST_COMMAND = ["xcrun", "simctl", "list", "--json"]
_IOS_RUNTIME_PREFIX = "com.apple.CoreSimulator.SimRuntime.iOS-"

CommandRunner = Callable[[list[str]], Awaitable[str]]


class EmulatorCommandError(DevicesError):
    """A simulator tool exited with a non-zero status."""


# ── Collaborator contracts ────────────────────────────────────────


class EmulatorBootstrapper(Protocol):
    """Starts the default emulator/simulator for one platform family."""

    async def start_emulator(self) -> None: ...


class AndroidVirtualDevices(Protocol):
    """Enumerates configured Android virtual devices (AVDs)."""

    def get_avds(self) -> list[str]: ...

    def get_info_from_avd(self, avd: str) -> dict[str, Any]: ...


class DeviceExecutor(Protocol):
    async def initialize(self, options: InitializeOptions | None = None) -> Any: ...

    async def execute(
        self,
        action: DeviceAction,
        can_execute: CanExecute | None = None,
        options: ExecuteOptions | None = None,
    ) -> list[ActionOutcome]: ...


async def run_command(cmd: list[str]) -> str:
    """Run *cmd* and return its stdout. Raises on non-zero exit."""
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout_bytes, stderr_bytes = await proc.communicate()
    if proc.returncode != 0:
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        raise EmulatorCommandError(
            f"Command {cmd[0]} failed (rc={proc.returncode}): {stderr[:500]}"
        )
    return stdout_bytes.decode("utf-8", errors="replace")


def parse_ios_version(runtime: str) -> str:
    """``com.apple.CoreSimulator.SimRuntime.iOS-11-2`` → ``11.2``."""
    version = runtime.replace(_IOS_RUNTIME_PREFIX, "")
    version = version.replace("-", ".")
    version = version.replace("iOS", "")
    return version.strip()


def parse_simctl_devices(output: str) -> list[EmulatorInfo]:
    """Available simulators of iOS runtimes from ``simctl list --json``."""
    listing = json.loads(output)
    emulators: list[EmulatorInfo] = []
    for runtime, devices in (listing.get("devices") or {}).items():
        if "iOS" not in runtime:
            continue
        version = parse_ios_version(runtime)
        for device in devices:
            if device.get("availability") != "(available)":
                continue
            emulators.append(EmulatorInfo(
                id=device.get("udid", ""),
                name=device.get("name", ""),
                version=version,
                platform="iOS",
                type="simulator",
                is_running=device.get("state") == "Booted",
            ))
    return emulators


class EmulatorImageService:
    """Lists and looks up emulator images for both platform families.

    Args:
        devices_service: Used to find running Android emulators that have no
                         matching AVD.
        android_avds:    AVD enumerator; Android images are skipped when None.
        runner:          Async command runner (defaults to a subprocess).
    """

    def __init__(
        self,
        devices_service: DeviceExecutor | None = None,
        android_avds: AndroidVirtualDevices | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self._devices = devices_service
        self._avds = android_avds
        self._run = runner or run_command

    async def get_ios_emulators(self) -> list[EmulatorInfo]:
        output = await self._run(SIMCTL_LIST_COMMAND)
        return parse_simctl_devices(output)

    def get_android_emulators(self) -> list[EmulatorInfo]:
        if self._avds is None:
            return []
        emulators = []
        for avd in self._avds.get_avds():
            info = self._avds.get_info_from_avd(avd)
            emulators.append(EmulatorInfo(
                id=info.get("name", avd),
                name=info.get("device", ""),
                version=info.get("target", ""),
                platform="Android",
            ))
        return emulators

    async def get_emulator_info(self, platform: str, id_or_name: str) -> EmulatorInfo | None:
        """Find an image by identifier or name.

        iOS names may carry an SDK suffix, e.g. ``"iPhone 8 (11.2)"``. Android
        identifiers that match no AVD are looked up among running emulators.
        """
        family = Platform.parse(platform)

        if family is Platform.ANDROID:
            for info in self.get_android_emulators():
                if info.id == id_or_name:
                    return info
            return await self._find_running_android(platform, id_or_name)

        if family is Platform.IOS:
            sdk: str | None = None
            version_start = id_or_name.find("(")
            if version_start > 0:
                version_end = id_or_name.find(")", version_start)
                if version_end < 0:
                    version_end = len(id_or_name)
                sdk = id_or_name[version_start + 1:version_end].strip()
                id_or_name = id_or_name[:version_start].strip()

            for info in await self.get_ios_emulators():
                sdk_match = sdk is None or info.version == sdk
                if sdk_match and (info.id == id_or_name or info.name == id_or_name):
                    return info
            return None

        return None

    async def list_available_emulators(self, platform: str | None = None) -> list[EmulatorInfo]:
        """Collect images for *platform* (or both) and log them as a table."""
        family = Platform.parse(platform)
        emulators: list[EmulatorInfo] = []
        if not platform or family is Platform.IOS:
            emulators.extend(await self.get_ios_emulators())
        if not platform or family is Platform.ANDROID:
            emulators.extend(self.get_android_emulators())

        logger.info("Available emulators")
        logger.info("%-30s %-10s %-10s %s", "Device Name", "Platform", "Version", "Device Identifier")
        for info in emulators:
            logger.info("%-30s %-10s %-10s %s", info.name, info.platform, info.version, info.id)
        return emulators

    async def _find_running_android(self, platform: str, identifier: str) -> EmulatorInfo | None:
        if self._devices is None:
            return None

        await self._devices.initialize(
            InitializeOptions(platform=platform, skip_infer_platform=True)
        )

        def describe(device: Device) -> EmulatorInfo | None:
            if device.info.identifier != identifier:
                return None
            return EmulatorInfo(
                id=device.info.identifier,
                name=device.info.display_name,
                version=device.info.version,
                platform="Android",
                is_running=True,
            )

        outcomes = await self._devices.execute(
            describe, options=ExecuteOptions(allow_no_devices=True)
        )
        for outcome in outcomes:
            if outcome.ok and outcome.result is not None:
                return outcome.result
        return None
