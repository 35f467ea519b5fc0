"""Host capability queries."""

from __future__ import annotations

import platform


class HostInfo:
    """Answers questions about the machine we run on.

    Nothing is cached: callers re-ask every time, so tests (or a long-lived
    process) can flip the answer.
    """

    def __init__(self, platform: str | None = None) -> None:
        self._platform = platform

    @property
    def system(self) -> str:
        return self._platform or platform.system()

    @property
    def is_darwin(self) -> bool:
        return self.system.lower() == "darwin"

    def supports_simulators(self) -> bool:
        """iOS simulators only run on macOS hosts."""
        return self.is_darwin
