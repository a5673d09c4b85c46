"""WebSocket endpoint streaming live system metrics."""

from fastapi import APIRouter, WebSocket

router = APIRouter()


@router.websocket("/ws/system")
async def system_metrics_stream(websocket: WebSocket) -> None:
    await websocket.app.state.services.hub.serve(websocket)
