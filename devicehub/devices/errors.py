"""Error taxonomy for device resolution and dispatch.

Message strings are stable: callers and tests match on them.
"""

from __future__ import annotations

DEFAULT_CLIENT_NAME = "devicehub"

ERROR_NO_DEVICES = (
    "Cannot find connected devices. Reconnect any connected devices, "
    "verify that your system recognizes them, and run this command again."
)
ERROR_AMBIGUOUS_PLATFORM = (
    "Multiple device platforms detected ({platforms}). "
    "Specify platform or device on command line."
)
ERROR_PLATFORM_MISMATCH = (
    "Cannot resolve the specified connected device. The provided platform does not "
    "match the provided index or identifier. To list currently connected devices and "
    "verify that the specified pair of platform and index or identifier exists, "
    "run '{client} device'."
)
ERROR_DEVICE_NOT_FOUND = (
    "Could not find device by specified identifier '{identifier}'. To list currently "
    "connected devices and verify that the specified identifier exists, "
    "run '{client} device'."
)
ERROR_DEVICE_NOT_FOUND_FOR_PLATFORM = (
    "Could not find {platform} device by specified identifier '{identifier}'. To list "
    "currently connected devices and verify that the specified identifier exists, "
    "run '{client} device {platform}'."
)
ERROR_DEVICE_INDEX = (
    "Could not find device by specified index {index}. To list currently connected "
    "devices and verify that the specified index exists, run '{client} device'."
)
ERROR_SIMULATOR_HOST = "You can use iOS simulator only on OS X."
ERROR_UNSUPPORTED_PLATFORM = (
    "Deploying to {platform} connected devices is not supported. Build the app "
    "using the `build` command and deploy the package manually."
)
ERROR_EMULATOR_PLATFORM = "Unable to detect platform for which to start emulator."


def format_list_of_names(names: list[str], conjunction: str = "and") -> str:
    """``["a", "b", "c"]`` → ``"a, b and c"``."""
    if len(names) <= 1:
        return "".join(names)
    return f"{', '.join(names[:-1])} {conjunction} {names[-1]}"


class DevicesError(Exception):
    """Base error for device resolution and dispatch failures."""


class DeviceNotFound(DevicesError):
    """No device matches the given identifier."""

    def __init__(self, identifier: str, client_name: str = DEFAULT_CLIENT_NAME) -> None:
        self.identifier = identifier
        super().__init__(
            ERROR_DEVICE_NOT_FOUND.format(identifier=identifier, client=client_name)
        )


class DeviceNotFoundForPlatform(DeviceNotFound):
    """No device of any platform matches the identifier given with a platform."""

    def __init__(
        self,
        identifier: str,
        platform: str,
        client_name: str = DEFAULT_CLIENT_NAME,
    ) -> None:
        self.identifier = identifier
        self.platform = platform
        DevicesError.__init__(
            self,
            ERROR_DEVICE_NOT_FOUND_FOR_PLATFORM.format(
                identifier=identifier, platform=platform, client=client_name
            ),
        )


class DeviceIndexOutOfRange(DevicesError):
    """A numeric selector points outside ``[0, count)``."""

    def __init__(self, index: int, max_index: int, client_name: str = DEFAULT_CLIENT_NAME) -> None:
        self.index = index
        self.max_index = max_index
        super().__init__(ERROR_DEVICE_INDEX.format(index=index, client=client_name))


class PlatformDeviceMismatch(DevicesError):
    def __init__(
        self,
        identifier: str,
        requested_platform: str,
        device_platform: str,
        client_name: str = DEFAULT_CLIENT_NAME,
    ) -> None:
        self.identifier = identifier
        self.requested_platform = requested_platform
        self.device_platform = device_platform
        super().__init__(ERROR_PLATFORM_MISMATCH.format(client=client_name))


class AmbiguousPlatform(DevicesError):
    def __init__(self, platforms: list[str]) -> None:
        self.platforms = list(platforms)
        super().__init__(
            ERROR_AMBIGUOUS_PLATFORM.format(platforms=format_list_of_names(self.platforms))
        )


class UnsupportedHostForSimulator(DevicesError):
    def __init__(self) -> None:
        super().__init__(ERROR_SIMULATOR_HOST)


class UnsupportedPlatform(DevicesError):
    def __init__(self, platform: str) -> None:
        self.platform = platform
        super().__init__(ERROR_UNSUPPORTED_PLATFORM.format(platform=platform))


class NoDevicesFound(DevicesError):
    def __init__(self) -> None:
        super().__init__(ERROR_NO_DEVICES)


class UnableToDetectPlatformForEmulator(DevicesError):
    def __init__(self) -> None:
        super().__init__(ERROR_EMULATOR_PLATFORM)


class ActionFailure(DevicesError):
    """An action failed on a single device; carries the device identifier."""

    def __init__(self, device_identifier: str, cause: BaseException) -> None:
        self.device_identifier = device_identifier
        self.cause = cause
        super().__init__(f"{device_identifier}: {cause}")
        self.__cause__ = cause


class DevicesActionError(DevicesError):
    """Combined failure for callers that propagate partial dispatch failures."""

    def __init__(self, failures: list[ActionFailure]) -> None:
        self.failures = list(failures)
        super().__init__("\n".join(str(f) for f in self.failures))
