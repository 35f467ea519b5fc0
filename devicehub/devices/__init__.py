"""Device tracking core.

Server-side components for working with attached mobile devices:
  - Discovery: per-platform watchers emitting found/lost events
  - Registry: authoritative collection folded from those events
  - Resolution: platform / device selection state machine
  - Dispatcher: per-device fan-out with emulator bootstrap fallback
  - Detection: background refresh loop + one-shot detection
  - Service: orchestrates all of the above
"""

from devicehub.devices.errors import (
    ActionFailure,
    AmbiguousPlatform,
    DeviceIndexOutOfRange,
    DeviceNotFound,
    DeviceNotFoundForPlatform,
    DevicesActionError,
    DevicesError,
    NoDevicesFound,
    PlatformDeviceMismatch,
    UnableToDetectPlatformForEmulator,
    UnsupportedHostForSimulator,
    UnsupportedPlatform,
)
from devicehub.devices.models import (
    ActionOutcome,
    DeviceInfo,
    DeviceStatus,
    ExecuteOptions,
    ExecutionScope,
    InitializeOptions,
    Platform,
)
from devicehub.devices.service import DevicesService

__all__ = [
    "ActionFailure",
    "ActionOutcome",
    "AmbiguousPlatform",
    "DeviceIndexOutOfRange",
    "DeviceInfo",
    "DeviceNotFound",
    "DeviceNotFoundForPlatform",
    "DeviceStatus",
    "DevicesActionError",
    "DevicesError",
    "DevicesService",
    "ExecuteOptions",
    "ExecutionScope",
    "InitializeOptions",
    "NoDevicesFound",
    "Platform",
    "PlatformDeviceMismatch",
    "UnableToDetectPlatformForEmulator",
    "UnsupportedHostForSimulator",
    "UnsupportedPlatform",
]
