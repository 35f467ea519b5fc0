"""Devices API router for DeviceHub.

Read-only views over the device registry plus the two operations that move
the service forward: a one-shot detection and scope initialization.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from devicehub.config import DevicesConfig
from devicehub.devices.errors import DeviceIndexOutOfRange, DeviceNotFound, DevicesError
from devicehub.devices.models import ExecutionScope, InitializeOptions, Platform
from devicehub.devices.service import DevicesService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/devices", tags=["devices"])

_service: DevicesService | None = None


def configure(service: DevicesService | None) -> None:
    """Install the service the routes use, e.g. one wired with discovery sources.

    ``None`` drops it; the next request builds a bare service from the
    environment.
    """
    global _service
    _service = service


def get_devices_service() -> DevicesService:
    global _service
    if _service is None:
        logger.warning("No devices service configured; using one without discovery sources")
        _service = DevicesService(config=DevicesConfig.from_env())
    return _service


# ── Helper ────────────────────────────────────────────────────────

def _http_error(exc: DevicesError) -> HTTPException:
    if isinstance(exc, (DeviceNotFound, DeviceIndexOutOfRange)):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _scope_dict(scope: ExecutionScope) -> dict:
    return {
        "platform": scope.target_platform.value if scope.target_platform else None,
        "device_identifier": scope.pinned_device_identifier,
        "skip_inference": scope.skip_inference,
        "emulator": scope.emulator_only,
    }


class InitializeRequest(BaseModel):
    platform: str | None = None
    device_id: str | None = None
    skip_infer_platform: bool = False
    skip_device_detection_interval: bool = False
    emulator: bool | None = None


# ── Routes ────────────────────────────────────────────────────────

@router.get("")
async def list_devices(service: DevicesService = Depends(get_devices_service)):
    return {"devices": [info.to_dict() for info in service.get_devices()]}


@router.get("/platform/{platform}")
async def list_platform_devices(
    platform: str,
    service: DevicesService = Depends(get_devices_service),
):
    if Platform.parse(platform) is None:
        raise HTTPException(status_code=400, detail=f"Unknown platform: {platform}")
    devices = service.get_devices_for_platform(platform)
    return {"platform": platform.lower(), "devices": [info.to_dict() for info in devices]}


@router.get("/{selector}")
async def get_device(selector: str, service: DevicesService = Depends(get_devices_service)):
    try:
        device = service.get_device_by_identifier_or_index(selector)
    except DevicesError as exc:
        raise _http_error(exc)
    return device.info.to_dict()


@router.post("/detect")
async def detect_devices(service: DevicesService = Depends(get_devices_service)):
    await service.detect_currently_attached_devices()
    return {"devices": [info.to_dict() for info in service.get_devices()]}


@router.post("/initialize")
async def initialize(
    req: InitializeRequest,
    service: DevicesService = Depends(get_devices_service),
):
    config = service.config
    options = InitializeOptions(
        platform=req.platform or config.default_platform,
        device_id=req.device_id,
        skip_infer_platform=req.skip_infer_platform,
        skip_device_detection_interval=req.skip_device_detection_interval,
        emulator=config.emulator if req.emulator is None else req.emulator,
    )
    try:
        scope = await service.initialize(options)
    except DevicesError as exc:
        logger.info("Initialization failed: %s", exc)
        raise _http_error(exc)
    return {"scope": _scope_dict(scope), "device_count": service.device_count}
