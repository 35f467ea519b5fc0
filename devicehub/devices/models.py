"""Data models shared by the registry, resolver and dispatcher."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, Union

from devicehub.devices.errors import ActionFailure


class Platform(str, Enum):
    """Recognized device platform families."""

    ANDROID = "android"
    IOS = "ios"

    @classmethod
    def parse(cls, value: str | None) -> Platform | None:
        """Case-insensitive lookup; ``None`` for empty or unknown values."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class DeviceStatus(str, Enum):
    CONNECTED = "Connected"
    UNREACHABLE = "Unreachable"


@dataclass
class DeviceInfo:
    """Public descriptor of an attached device."""

    identifier: str
    platform: str
    status: str = DeviceStatus.CONNECTED.value
    display_name: str = ""
    model: str = ""
    version: str = ""
    vendor: str = ""

    @property
    def platform_family(self) -> Platform | None:
        return Platform.parse(self.platform)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AppInstalledInfo:
    device_identifier: str
    app_identifier: str
    is_installed: bool
    is_live_sync_supported: bool


# ── Collaborator contracts ────────────────────────────────────────


class ApplicationManager(Protocol):
    """Per-device application surface, implemented by platform wrappers."""

    async def is_application_installed(self, app_identifier: str) -> bool: ...

    async def is_live_sync_supported(self, app_identifier: str) -> bool: ...

    def can_start_application(self) -> bool: ...

    async def start_application(self, app_identifier: str, framework: str | None = None) -> None: ...

    async def get_debuggable_apps(self) -> list[dict]: ...

    async def get_debuggable_app_views(self, app_identifiers: list[str]) -> dict[str, list[dict]]: ...


class Device(Protocol):
    """A reachable device as produced by a discovery source."""

    info: DeviceInfo
    is_emulator: bool
    application_manager: ApplicationManager

    async def deploy(self, package_file: str, package_name: str) -> None: ...


DeviceAction = Callable[[Device], Union[Awaitable[Any], Any]]
CanExecute = Callable[[Device], bool]
# (framework, platform) -> companion app identifier
CompanionAppResolver = Callable[[str, str], str]


# ── Scope / options ───────────────────────────────────────────────


@dataclass
class InitializeOptions:
    """Caller intent fed to the resolution state machine."""

    platform: str | None = None
    device_id: str | None = None
    skip_infer_platform: bool = False
    skip_device_detection_interval: bool = False
    emulator: bool = False


@dataclass(frozen=True)
class ExecutionScope:
    """Committed target: platform and, optionally, a single pinned device."""

    target_platform: Platform | None = None
    pinned_device_identifier: str | None = None
    skip_inference: bool = False
    emulator_only: bool = False


@dataclass
class ExecuteOptions:
    allow_no_devices: bool = False
    # None defers to the committed scope
    emulator: bool | None = None


@dataclass
class ActionOutcome:
    """Result of one action invocation on one device."""

    device_identifier: str
    result: Any = None
    error: ActionFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the result, or raise the captured failure."""
        if self.error is not None:
            raise self.error
        return self.result


@dataclass
class EmulatorInfo:
    """An emulator image / simulator that could be started."""

    id: str
    name: str
    version: str
    platform: str
    type: str = "emulator"
    is_running: bool = False
    extra: dict = field(default_factory=dict)


# ── Classification helpers ────────────────────────────────────────


def is_android_device(device: Device) -> bool:
    return device.info.platform_family is Platform.ANDROID


def is_ios_device(device: Device) -> bool:
    """True for physical iOS devices only."""
    return device.info.platform_family is Platform.IOS and not getattr(device, "is_emulator", False)


def is_ios_simulator(device: Device) -> bool:
    return device.info.platform_family is Platform.IOS and bool(getattr(device, "is_emulator", False))


class DeviceLogProvider(Protocol):
    def set_log_level(self, level: str, device_identifier: str | None = None) -> None: ...
