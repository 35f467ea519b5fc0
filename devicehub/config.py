"""Configuration for the DeviceHub service."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_ENV_PREFIX = "DEVICEHUB_"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class DevicesConfig:
    """DeviceHub configuration — loaded from config.json or the environment."""

    client_name: str = "devicehub"

    # Detection
    detection_interval: float = 10.0  # seconds between detection cycles
    skip_device_detection_interval: bool = False

    # Defaults applied when a request carries no explicit intent
    default_platform: str | None = None
    emulator: bool = False

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 5200

    @classmethod
    def load(cls, path: str | Path) -> DevicesConfig:
        path = Path(path)
        if path.exists():
            with open(path) as f:
                data = json.load(f)
            known = {k for k in cls.__dataclass_fields__}
            filtered = {k: v for k, v in data.items() if k in known}
            return cls(**filtered)
        logger.warning("Config not found at %s, using defaults", path)
        return cls()

    @classmethod
    def from_env(cls) -> DevicesConfig:
        """Defaults overridden by ``DEVICEHUB_*`` environment variables.

        ``DEVICEHUB_CONFIG`` points at a JSON file loaded first.
        """
        config_path = os.environ.get(f"{_ENV_PREFIX}CONFIG")
        config = cls.load(config_path) if config_path else cls()

        if (value := os.environ.get(f"{_ENV_PREFIX}CLIENT_NAME")):
            config.client_name = value
        if (value := os.environ.get(f"{_ENV_PREFIX}DETECTION_INTERVAL")):
            config.detection_interval = float(value)
        if (value := os.environ.get(f"{_ENV_PREFIX}SKIP_DETECTION_INTERVAL")):
            config.skip_device_detection_interval = _env_bool(value)
        if (value := os.environ.get(f"{_ENV_PREFIX}PLATFORM")):
            config.default_platform = value
        if (value := os.environ.get(f"{_ENV_PREFIX}EMULATOR")):
            config.emulator = _env_bool(value)
        if (value := os.environ.get(f"{_ENV_PREFIX}HOST")):
            config.host = value
        if (value := os.environ.get(f"{_ENV_PREFIX}PORT")):
            config.port = int(value)
        return config

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)
