import asyncio
import logging
import platform

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ctrldeck.app.controls.base import MediaCommand
from ctrldeck.app.schemas import ActionResult, LevelRequest, MediaRequest, MetricsSnapshot, ServerInfo
from ctrldeck.app.services.container import Services, get_services
from ctrldeck.app.services.metrics import local_ipv4_addresses


router = APIRouter(prefix="/api/system", tags=["system"])
logger = logging.getLogger(__name__)

MEDIA_ACTIONS = {
    "play_pause": MediaCommand.PLAY_PAUSE,
    "next": MediaCommand.NEXT,
    "prev": MediaCommand.PREVIOUS,
}


def action_response(result: ActionResult) -> JSONResponse:
    """Serialize ``result``; failed actions answer 500 with the same body."""
    status_code = status.HTTP_200_OK if result.success else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=status_code, content=result.model_dump(exclude_none=True))


@router.get("/metrics", response_model=MetricsSnapshot)
async def get_metrics(services: Services = Depends(get_services)) -> MetricsSnapshot:
    return services.sampler.current


@router.post("/volume", response_model=ActionResult)
async def set_volume(payload: LevelRequest, services: Services = Depends(get_services)) -> JSONResponse:
    result = await services.dispatcher.set_volume_level(payload.level)
    if not result.success:
        logger.warning("Setting volume to %s failed: %s", payload.level, result.error)
    return action_response(result)


@router.post("/brightness", response_model=ActionResult)
async def set_brightness(payload: LevelRequest, services: Services = Depends(get_services)) -> JSONResponse:
    result = await services.dispatcher.set_brightness_level(payload.level)
    if not result.success:
        logger.warning("Setting brightness to %s failed: %s", payload.level, result.error)
    return action_response(result)


@router.post("/media", response_model=ActionResult)
async def control_media(payload: MediaRequest, services: Services = Depends(get_services)) -> JSONResponse:
    command = MEDIA_ACTIONS.get(payload.action)
    if command is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid action: {payload.action}")
    return action_response(await services.dispatcher.media_control(command))


@router.get("/info", response_model=ServerInfo)
async def server_info(services: Services = Depends(get_services)) -> ServerInfo:
    addresses = await asyncio.to_thread(local_ipv4_addresses)
    return ServerInfo(
        ip_addresses=addresses,
        port=str(services.settings.port),
        hostname=platform.node() or None,
    )
