"""Tests for the ScopeResolver state machine."""

from __future__ import annotations

import asyncio
import logging

import pytest

from devicehub.devices.errors import (
    AmbiguousPlatform,
    DeviceIndexOutOfRange,
    DeviceNotFound,
    DeviceNotFoundForPlatform,
    NoDevicesFound,
    PlatformDeviceMismatch,
    UnsupportedHostForSimulator,
    UnsupportedPlatform,
)
from devicehub.devices.models import InitializeOptions, Platform
from devicehub.devices.registry import DeviceRegistry
from devicehub.devices.resolution import ResolutionState, ScopeResolver

from fakes import FakeDevice


def _registry(*devices) -> DeviceRegistry:
    registry = DeviceRegistry()
    for device in devices:
        registry.on_found(device)
    return registry


class TestSkipInference:
    async def test_commits_without_platform(self, linux_host):
        registry = _registry(FakeDevice("a1"), FakeDevice("i1", platform="ios"))
        resolver = ScopeResolver(registry, linux_host)
        scope = await resolver.resolve(InitializeOptions(skip_infer_platform=True))
        assert scope.skip_inference is True
        assert scope.target_platform is None
        assert scope.pinned_device_identifier is None
        assert resolver.state is ResolutionState.COMMITTED

    async def test_ignores_invalid_platform(self, linux_host):
        resolver = ScopeResolver(DeviceRegistry(), linux_host)
        scope = await resolver.resolve(
            InitializeOptions(platform="windows", skip_infer_platform=True)
        )
        assert scope.skip_inference is True


class TestSelectors:
    async def test_numeric_selector_is_one_based(self, linux_host):
        registry = _registry(FakeDevice("a1"), FakeDevice("a2"))
        resolver = ScopeResolver(registry, linux_host)
        scope = await resolver.resolve(InitializeOptions(device_id="2"))
        assert scope.pinned_device_identifier == "a2"
        assert scope.target_platform is Platform.ANDROID

    async def test_index_out_of_range_on_empty_registry(self, linux_host):
        resolver = ScopeResolver(DeviceRegistry(), linux_host)
        with pytest.raises(DeviceIndexOutOfRange) as exc_info:
            await resolver.resolve(InitializeOptions(device_id="100"))
        assert exc_info.value.index == 99
        assert exc_info.value.max_index == -1
        assert "index 99" in str(exc_info.value)

    async def test_negative_index(self, linux_host):
        resolver = ScopeResolver(_registry(FakeDevice("a1")), linux_host)
        with pytest.raises(DeviceIndexOutOfRange) as exc_info:
            await resolver.resolve(InitializeOptions(device_id="-1"))
        assert exc_info.value.index == -2
        assert exc_info.value.max_index == 0

    async def test_identifier_selector(self, linux_host):
        registry = _registry(FakeDevice("a1"), FakeDevice("i1", platform="ios"))
        resolver = ScopeResolver(registry, linux_host)
        scope = await resolver.resolve(InitializeOptions(device_id="i1"))
        assert scope.pinned_device_identifier == "i1"
        assert scope.target_platform is Platform.IOS

    async def test_unknown_identifier(self, linux_host):
        resolver = ScopeResolver(_registry(FakeDevice("a1")), linux_host)
        with pytest.raises(DeviceNotFound) as exc_info:
            await resolver.resolve(InitializeOptions(device_id="nope"))
        assert not isinstance(exc_info.value, DeviceNotFoundForPlatform)
        assert "'nope'" in str(exc_info.value)

    async def test_unknown_identifier_with_platform(self, linux_host):
        resolver = ScopeResolver(_registry(FakeDevice("a1")), linux_host)
        with pytest.raises(DeviceNotFoundForPlatform) as exc_info:
            await resolver.resolve(InitializeOptions(platform="android", device_id="nope"))
        assert exc_info.value.platform == "android"

    async def test_platform_device_mismatch(self, linux_host):
        registry = _registry(FakeDevice("a1"), FakeDevice("i1", platform="ios"))
        resolver = ScopeResolver(registry, linux_host)
        with pytest.raises(PlatformDeviceMismatch):
            await resolver.resolve(InitializeOptions(platform="android", device_id="i1"))

    async def test_platform_and_device_warns_device_only(self, linux_host, caplog):
        registry = _registry(FakeDevice("a1"), FakeDevice("a2"))
        resolver = ScopeResolver(registry, linux_host)
        with caplog.at_level(logging.WARNING):
            scope = await resolver.resolve(InitializeOptions(platform="Android", device_id="a2"))
        assert scope.pinned_device_identifier == "a2"
        assert "only on the device specified" in caplog.text

    async def test_resolve_selector_is_reusable_outside_resolution(self, linux_host):
        resolver = ScopeResolver(_registry(FakeDevice("a1")), linux_host)
        assert resolver.resolve_selector("1").info.identifier == "a1"
        assert resolver.resolve_selector(" a1 ").info.identifier == "a1"
        assert resolver.state is ResolutionState.UNINITIALIZED


class TestPlatformInference:
    async def test_single_platform_is_adopted(self, linux_host):
        resolver = ScopeResolver(_registry(FakeDevice("a1"), FakeDevice("a2")), linux_host)
        scope = await resolver.resolve()
        assert scope.target_platform is Platform.ANDROID
        assert scope.pinned_device_identifier is None

    async def test_two_platforms_are_ambiguous(self, linux_host):
        registry = _registry(FakeDevice("a1"), FakeDevice("i1", platform="iOS"))
        resolver = ScopeResolver(registry, linux_host)
        with pytest.raises(AmbiguousPlatform) as exc_info:
            await resolver.resolve()
        assert exc_info.value.platforms == ["android", "ios"]
        assert "(android and ios)" in str(exc_info.value)

    async def test_empty_registry_defers_platform(self, linux_host):
        resolver = ScopeResolver(DeviceRegistry(), linux_host)
        scope = await resolver.resolve()
        assert scope.target_platform is None
        assert scope.skip_inference is False

    async def test_unsupported_platform_devices_are_skipped(self, linux_host, caplog):
        registry = _registry(FakeDevice("w1", platform="windows"), FakeDevice("a1"))
        resolver = ScopeResolver(registry, linux_host)
        with caplog.at_level(logging.INFO):
            scope = await resolver.resolve()
        assert scope.target_platform is Platform.ANDROID
        assert "Device w1 with platform windows is not supported" in caplog.text

    async def test_only_unsupported_platform_devices(self, linux_host):
        resolver = ScopeResolver(_registry(FakeDevice("w1", platform="windows")), linux_host)
        with pytest.raises(NoDevicesFound):
            await resolver.resolve()

    async def test_platform_only_is_accepted_without_devices(self, linux_host):
        resolver = ScopeResolver(DeviceRegistry(), linux_host)
        scope = await resolver.resolve(InitializeOptions(platform="iOS"))
        assert scope.target_platform is Platform.IOS

    async def test_unsupported_requested_platform(self, linux_host):
        resolver = ScopeResolver(_registry(FakeDevice("a1")), linux_host)
        with pytest.raises(UnsupportedPlatform) as exc_info:
            await resolver.resolve(InitializeOptions(platform="windows", device_id="a1"))
        assert "Deploying to windows connected devices is not supported" in str(exc_info.value)


class TestSimulatorHostGuard:
    async def test_ios_emulator_on_linux(self, linux_host):
        resolver = ScopeResolver(DeviceRegistry(), linux_host)
        with pytest.raises(UnsupportedHostForSimulator):
            await resolver.resolve(InitializeOptions(platform="ios", emulator=True))

    async def test_ios_emulator_on_darwin(self, darwin_host):
        resolver = ScopeResolver(DeviceRegistry(), darwin_host)
        scope = await resolver.resolve(InitializeOptions(platform="ios", emulator=True))
        assert scope.emulator_only is True

    async def test_android_emulator_on_linux(self, linux_host):
        resolver = ScopeResolver(DeviceRegistry(), linux_host)
        scope = await resolver.resolve(InitializeOptions(platform="android", emulator=True))
        assert scope.target_platform is Platform.ANDROID

    async def test_skip_inference_bypasses_guard(self, linux_host):
        resolver = ScopeResolver(DeviceRegistry(), linux_host)
        scope = await resolver.resolve(
            InitializeOptions(platform="ios", emulator=True, skip_infer_platform=True)
        )
        assert scope.skip_inference is True


class TestStickyCommit:
    async def test_second_resolve_returns_committed_scope(self, linux_host):
        registry = _registry(FakeDevice("a1"))
        resolver = ScopeResolver(registry, linux_host)
        first = await resolver.resolve()
        registry.on_found(FakeDevice("i1", platform="ios"))
        second = await resolver.resolve(InitializeOptions(platform="ios", device_id="i1"))
        assert second is first
        assert second.target_platform is Platform.ANDROID

    async def test_failure_returns_to_uninitialized(self, linux_host):
        registry = _registry(FakeDevice("a1"), FakeDevice("i1", platform="ios"))
        resolver = ScopeResolver(registry, linux_host)
        with pytest.raises(AmbiguousPlatform):
            await resolver.resolve()
        assert resolver.state is ResolutionState.UNINITIALIZED
        assert resolver.scope is None

        scope = await resolver.resolve(InitializeOptions(platform="ios"))
        assert scope.target_platform is Platform.IOS
        assert resolver.is_committed

    async def test_concurrent_resolves_commit_once(self, linux_host):
        calls = 0

        async def prepare(options):
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)

        resolver = ScopeResolver(_registry(FakeDevice("a1")), linux_host, prepare=prepare)
        scopes = await asyncio.gather(*(resolver.resolve() for _ in range(5)))
        assert calls == 1
        assert all(s is scopes[0] for s in scopes)

    async def test_prepare_runs_in_resolving_state(self, linux_host):
        seen = []
        resolver = None

        async def prepare(options):
            seen.append(resolver.state)

        resolver = ScopeResolver(DeviceRegistry(), linux_host, prepare=prepare)
        await resolver.resolve()
        assert seen == [ResolutionState.RESOLVING]
