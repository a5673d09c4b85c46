from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from fastapi import Request

from ctrldeck.app.controls.base import ControlAdapter
from ctrldeck.app.controls.factory import get_adapter
from ctrldeck.app.core.config import Settings, get_settings
from ctrldeck.app.services.config_store import JsonConfigStore
from ctrldeck.app.services.dispatcher import ActionDispatcher
from ctrldeck.app.services.hub import BroadcastHub
from ctrldeck.app.services.launcher import Launcher
from ctrldeck.app.services.metrics import MetricsCollector
from ctrldeck.app.services.runner import ScriptRunner
from ctrldeck.app.services.sampler import MetricsSampler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    """Everything the HTTP and WebSocket handlers need, built once per app lifespan."""

    adapter: ControlAdapter
    store: JsonConfigStore
    dispatcher: ActionDispatcher
    sampler: MetricsSampler
    hub: BroadcastHub
    settings: Settings

    async def start(self) -> None:
        await asyncio.to_thread(self.store.initialize)
        await self.sampler.start()

    async def stop(self) -> None:
        try:
            await self.sampler.stop()
        finally:
            await self.hub.close()


def build_services(
    settings: Settings | None = None,
    *,
    adapter: ControlAdapter | None = None,
    launcher: Launcher | None = None,
) -> Services:
    settings = settings or get_settings()
    adapter = adapter or get_adapter()
    store = JsonConfigStore(settings.config_dir)
    runner = ScriptRunner(
        timeout_seconds=settings.script_timeout_seconds,
        output_limit_bytes=settings.script_output_limit_bytes,
    )
    dispatcher = ActionDispatcher(adapter, runner, launcher or Launcher(), store)
    sampler = MetricsSampler(MetricsCollector(adapter), interval_seconds=settings.metrics_interval_seconds)
    hub = BroadcastHub(
        lambda: sampler.current,
        max_pending=settings.ws_max_pending_messages,
        send_timeout=settings.ws_send_timeout_seconds,
    )
    sampler.add_listener(hub.publish)
    logger.debug("Services built with config dir %s", settings.config_dir)
    return Services(
        adapter=adapter,
        store=store,
        dispatcher=dispatcher,
        sampler=sampler,
        hub=hub,
        settings=settings,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
