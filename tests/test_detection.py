"""Tests for DetectionLoop and one-shot detection."""

from __future__ import annotations

import asyncio
import logging

from devicehub.devices.detection import (
    DetectionLoop,
    detect_currently_attached_devices,
    eligible_sources,
)
from devicehub.devices.host import HostInfo
from devicehub.devices.registry import DeviceRegistry

from fakes import FakeDevice, FakeDiscovery


class TestEligibility:
    def test_simulator_source_needs_darwin(self, linux_host, darwin_host):
        android = FakeDiscovery("android")
        simulators = FakeDiscovery("ios-simulator", requires_simulator_host=True)
        assert eligible_sources([android, simulators], linux_host) == [android]
        assert eligible_sources([android, simulators], darwin_host) == [android, simulators]


class TestOneShotDetection:
    async def test_calls_every_source(self, darwin_host):
        sources = [
            FakeDiscovery("android"),
            FakeDiscovery("ios"),
            FakeDiscovery("ios-simulator", requires_simulator_host=True),
        ]
        await detect_currently_attached_devices(sources, darwin_host)
        assert [s.start_calls for s in sources] == [1, 1, 1]
        assert all(s.check_calls == 0 for s in sources)

    async def test_failing_source_is_logged_at_debug(self, linux_host, caplog):
        registry = DeviceRegistry()
        broken = FakeDiscovery("ios", fail=True)
        healthy = FakeDiscovery("android", devices=[FakeDevice("a1")])
        for source in (broken, healthy):
            source.subscribe(registry.apply)

        with caplog.at_level(logging.DEBUG, logger="devicehub.devices.detection"):
            await detect_currently_attached_devices([broken, healthy], linux_host)

        assert registry.find_by_identifier("a1") is not None
        records = [r for r in caplog.records if "ios watcher unavailable" in r.getMessage()]
        assert records and all(r.levelno == logging.DEBUG for r in records)

    async def test_source_raising_synchronously_is_isolated(self, linux_host, caplog):
        registry = DeviceRegistry()
        broken = FakeDiscovery("ios")
        healthy = FakeDiscovery("android", devices=[FakeDevice("a1")])
        for source in (broken, healthy):
            source.subscribe(registry.apply)

        def boom():
            raise RuntimeError("my error")

        broken.start_looking_for_devices = boom

        with caplog.at_level(logging.DEBUG, logger="devicehub.devices.detection"):
            await detect_currently_attached_devices([broken, healthy], linux_host)

        assert healthy.start_calls == 1
        assert registry.find_by_identifier("a1") is not None
        assert "my error" in caplog.text


class TestDetectionLoop:
    async def test_start_waits_for_first_cycle(self, linux_host):
        registry = DeviceRegistry()
        source = FakeDiscovery("android", devices=[FakeDevice("a1")])
        source.subscribe(registry.apply)
        loop = DetectionLoop([source], linux_host, interval=60)

        await loop.start()
        try:
            assert loop.running is True
            assert loop.cycles == 1
            assert source.check_calls == 1
            assert len(registry) == 1
        finally:
            await loop.stop()
        assert loop.running is False

    async def test_start_is_idempotent(self, linux_host):
        source = FakeDiscovery("android")
        loop = DetectionLoop([source], linux_host, interval=60)
        await loop.start()
        await loop.start()
        await loop.stop()
        assert source.check_calls == 1

    async def test_stop_when_not_running(self, linux_host):
        loop = DetectionLoop([], linux_host)
        await loop.stop()
        assert loop.running is False

    async def test_cycles_repeat(self, linux_host):
        source = FakeDiscovery("android")
        loop = DetectionLoop([source], linux_host, interval=0.01)
        await loop.start()
        await asyncio.sleep(0.1)
        await loop.stop()
        assert source.check_calls >= 2

    async def test_failing_source_does_not_stop_loop(self, linux_host):
        broken = FakeDiscovery("ios", fail=True)
        healthy = FakeDiscovery("android")
        loop = DetectionLoop([broken, healthy], linux_host, interval=60)
        await loop.start()
        await loop.stop()
        assert broken.check_calls == 1
        assert healthy.check_calls == 1
        assert loop.cycles == 1

    async def test_source_raising_synchronously_does_not_stop_loop(self, linux_host):
        broken = FakeDiscovery("ios")
        healthy = FakeDiscovery("android")

        def boom():
            raise RuntimeError("my error")

        broken.check_for_devices = boom
        loop = DetectionLoop([broken, healthy], linux_host, interval=60)
        await loop.start()
        await loop.stop()
        assert healthy.check_calls == 1
        assert loop.cycles == 1

    async def test_host_support_reevaluated_each_cycle(self):
        host = HostInfo(platform="linux")
        simulators = FakeDiscovery("ios-simulator", requires_simulator_host=True)
        loop = DetectionLoop([simulators], host)

        await loop.run_cycle()
        assert simulators.check_calls == 0

        host._platform = "darwin"
        await loop.run_cycle()
        assert simulators.check_calls == 1
