import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ctrldeck.app.routers.system import action_response
from ctrldeck.app.schemas import ActionResult, Button, Script
from ctrldeck.app.services.config_store import ConfigStoreError
from ctrldeck.app.services.container import Services, get_services


router = APIRouter(prefix="/api", tags=["actions"])
logger = logging.getLogger(__name__)


@router.post("/action/{button_id}", response_model=ActionResult)
async def execute_action(button_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    try:
        button = await asyncio.to_thread(services.store.get_button, button_id)
    except ConfigStoreError as exc:
        logger.error("Cannot load buttons: %s", exc)
        return action_response(ActionResult.fail(str(exc)))
    if button is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ActionResult.fail("Button not found").model_dump(exclude_none=True),
        )
    return action_response(await services.dispatcher.dispatch(button))


@router.get("/buttons", response_model=list[Button])
async def list_buttons(services: Services = Depends(get_services)) -> list[Button]:
    try:
        return await asyncio.to_thread(services.store.list_buttons)
    except ConfigStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


@router.get("/scripts", response_model=list[Script])
async def list_scripts(services: Services = Depends(get_services)) -> list[Script]:
    try:
        return await asyncio.to_thread(services.store.list_scripts)
    except ConfigStoreError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
