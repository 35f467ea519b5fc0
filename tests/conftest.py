"""pytest configuration for DeviceHub tests."""

import pytest

from devicehub.devices.host import HostInfo


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


@pytest.fixture
def darwin_host():
    return HostInfo(platform="darwin")


@pytest.fixture
def linux_host():
    return HostInfo(platform="linux")
