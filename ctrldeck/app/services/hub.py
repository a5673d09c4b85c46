from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from ctrldeck.app.schemas import MetricsEnvelope, MetricsSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_PENDING = 10
DEFAULT_SEND_TIMEOUT_SECONDS = 5.0

SnapshotSource = Callable[[], MetricsSnapshot]


def metrics_envelope(snapshot: MetricsSnapshot) -> dict[str, Any]:
    return MetricsEnvelope(data=snapshot).model_dump(mode="json")


@dataclass(eq=False)
class _Subscriber:
    websocket: WebSocket
    queue: asyncio.Queue[dict[str, Any]]
    writer: asyncio.Task[None] | None = None
    closed: bool = field(default=False)


class BroadcastHub:
    """Fan metrics snapshots out to every connected WebSocket client.

    Each client gets a bounded queue drained by its own writer task, so a slow
    or broken client is dropped without delaying the others or the sampler.
    """

    def __init__(
        self,
        snapshot_source: SnapshotSource,
        *,
        max_pending: int = DEFAULT_MAX_PENDING,
        send_timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS,
    ) -> None:
        self._snapshot_source = snapshot_source
        self._max_pending = max(1, max_pending)
        self._send_timeout = send_timeout
        self._subscribers: list[_Subscriber] = []
        self._lock = asyncio.Lock()
        self._pending_drops: set[asyncio.Task[None]] = set()

    @property
    def client_count(self) -> int:
        return len(self._subscribers)

    def latest(self) -> MetricsSnapshot:
        return self._snapshot_source()

    async def connect(self, websocket: WebSocket) -> _Subscriber:
        subscriber = _Subscriber(websocket=websocket, queue=asyncio.Queue(maxsize=self._max_pending))
        async with self._lock:
            self._subscribers.append(subscriber)
        subscriber.writer = asyncio.create_task(self._write_loop(subscriber), name="ws-writer")
        logger.info("WebSocket client connected (%d total)", self.client_count)
        return subscriber

    async def disconnect(self, subscriber: _Subscriber) -> None:
        async with self._lock:
            if subscriber.closed:
                return
            subscriber.closed = True
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        writer = subscriber.writer
        if writer is not None and writer is not asyncio.current_task() and not writer.done():
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

        websocket = subscriber.websocket
        if WebSocketState.DISCONNECTED not in (websocket.application_state, websocket.client_state):
            try:
                await websocket.close()
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.debug("Closing WebSocket failed: %s", exc)
        logger.info("WebSocket client disconnected (%d remaining)", self.client_count)

    def publish(self, snapshot: MetricsSnapshot) -> None:
        """Queue ``snapshot`` for every client. Never awaits."""
        message = metrics_envelope(snapshot)
        for subscriber in tuple(self._subscribers):
            self._enqueue(subscriber, message)

    async def close(self) -> None:
        for subscriber in tuple(self._subscribers):
            await self.disconnect(subscriber)
        if self._pending_drops:
            await asyncio.gather(*self._pending_drops, return_exceptions=True)

    async def serve(self, websocket: WebSocket) -> None:
        await websocket.accept()
        subscriber = await self.connect(websocket)
        try:
            self._enqueue(subscriber, metrics_envelope(self.latest()))
            while not subscriber.closed:
                raw = await websocket.receive_text()
                reply = self._handle_message(raw)
                if reply is not None:
                    self._enqueue(subscriber, reply)
        except WebSocketDisconnect:
            pass
        except RuntimeError as exc:
            # Raised by receive once the socket was closed from our side.
            logger.debug("WebSocket receive stopped: %s", exc)
        finally:
            await self.disconnect(subscriber)

    def _handle_message(self, raw: str) -> dict[str, Any] | None:
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(payload, dict):
            return None
        message_type = payload.get("type")
        if message_type == "ping":
            return {"type": "pong"}
        if message_type == "get_metrics":
            return metrics_envelope(self.latest())
        return None

    def _enqueue(self, subscriber: _Subscriber, message: dict[str, Any]) -> None:
        if subscriber.closed:
            return
        try:
            subscriber.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Dropping slow WebSocket client (%d messages pending)", subscriber.queue.qsize())
            self._drop(subscriber)

    def _drop(self, subscriber: _Subscriber) -> None:
        task = asyncio.get_running_loop().create_task(self.disconnect(subscriber))
        self._pending_drops.add(task)
        task.add_done_callback(self._pending_drops.discard)

    async def _write_loop(self, subscriber: _Subscriber) -> None:
        websocket = subscriber.websocket
        while True:
            message = await subscriber.queue.get()
            try:
                await asyncio.wait_for(websocket.send_json(message), timeout=self._send_timeout)
            except asyncio.TimeoutError:
                logger.warning("Dropping WebSocket client: send timed out after %.1fs", self._send_timeout)
                break
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.warning("Dropping WebSocket client: %s", exc)
                break
        await self.disconnect(subscriber)
