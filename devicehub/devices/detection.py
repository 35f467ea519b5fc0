"""Detection loop — recurring refresh of every discovery source."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Sequence

from devicehub.devices.discovery import DeviceDiscovery
from devicehub.devices.host import HostInfo

logger = logging.getLogger(__name__)

DEFAULT_DETECTION_INTERVAL = 10.0  # seconds


def eligible_sources(sources: Iterable[DeviceDiscovery], host: HostInfo) -> list[DeviceDiscovery]:
    """Drop simulator watchers when the host cannot run simulators."""
    return [
        s for s in sources
        if not s.requires_simulator_host or host.supports_simulators()
    ]


async def _call(source: DeviceDiscovery, method: str) -> None:
    # Sources that raise before returning an awaitable fail inside this task
    await getattr(source, method)()


async def _settle(sources: Sequence[DeviceDiscovery], method: str) -> None:
    results = await asyncio.gather(
        *(_call(s, method) for s in sources),
        return_exceptions=True,
    )
    for source, result in zip(sources, results):
        if isinstance(result, BaseException):
            logger.debug(
                "Error while checking for %s devices: %s",
                source.name or type(source).__name__,
                result,
            )


async def detect_currently_attached_devices(
    sources: Iterable[DeviceDiscovery],
    host: HostInfo,
) -> None:
    """One full enumeration of every eligible source; never raises."""
    await _settle(eligible_sources(sources, host), "start_looking_for_devices")


class DetectionLoop:
    """Periodically asks every discovery source to refresh its devices.

    Args:
        sources:  Discovery sources to poll.
        host:     Host capability oracle, re-asked every cycle.
        interval: Seconds between cycles.
    """

    def __init__(
        self,
        sources: Sequence[DeviceDiscovery],
        host: HostInfo,
        interval: float = DEFAULT_DETECTION_INTERVAL,
    ) -> None:
        self._sources = list(sources)
        self._host = host
        self.interval = interval
        self._running = False
        self._task: asyncio.Task | None = None
        self._first_cycle: asyncio.Event | None = None
        self._cycles = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cycles(self) -> int:
        """Number of completed cycles since construction."""
        return self._cycles

    # ── Lifecycle ──────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the loop and wait for its first cycle to finish."""
        if self._running:
            logger.debug("Device detection interval is already running")
            return

        self._running = True
        self._first_cycle = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.debug("Device detection interval started (interval=%.1fs)", self.interval)
        await self._first_cycle.wait()

    async def stop(self) -> None:
        """Cancel the loop; safe to call when not running."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._first_cycle is not None:
            self._first_cycle.set()
        logger.debug("Device detection interval stopped")

    async def run_cycle(self) -> None:
        """Single refresh of every eligible source."""
        await _settle(eligible_sources(self._sources, self._host), "check_for_devices")
        self._cycles += 1

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Device detection cycle failed")
            finally:
                if self._first_cycle is not None:
                    self._first_cycle.set()
            await asyncio.sleep(self.interval)
