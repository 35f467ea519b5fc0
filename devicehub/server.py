"""DeviceHub — standalone HTTP server.

Exposes:
  GET  /devices                     — all attached devices
  GET  /devices/platform/{platform} — devices of one platform
  GET  /devices/{selector}          — device by identifier or 1-based index
  POST /devices/detect              — one-shot detection
  POST /devices/initialize          — resolve the execution scope
  GET  /health                      — liveness check

Start with::

    python -m devicehub.server
    # or
    uvicorn devicehub.server:app --host 0.0.0.0 --port 5200
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI

from devicehub import __version__
from devicehub.api import configure, get_devices_service, router
from devicehub.config import DevicesConfig
from devicehub.devices.service import DevicesService

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────
# FastAPI app
# ──────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await get_devices_service().close()


app = FastAPI(title="DeviceHub", version=__version__, lifespan=lifespan)
app.include_router(router)


@app.get("/health")
async def health(service: DevicesService = Depends(get_devices_service)):
    return {
        "status": "ok",
        "devices": len(service.registry),
        "state": service.state.value,
        "detection_running": service.detection_running,
    }


# ──────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────

def main(service: DevicesService | None = None):
    """Run the server; *service* carries the discovery sources to serve."""
    import uvicorn
    config = service.config if service is not None else DevicesConfig.from_env()
    if service is not None:
        configure(service)
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting DeviceHub server on %s:%d", config.host, config.port)
    uvicorn.run("devicehub.server:app", host=config.host, port=config.port, reload=False)


if __name__ == "__main__":
    main()
