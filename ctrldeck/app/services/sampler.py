from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable, Iterable

from ctrldeck.app.schemas import MetricsSnapshot
from ctrldeck.app.services.metrics import MetricsCollector

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 0.1

SnapshotListener = Callable[[MetricsSnapshot], None]


class MetricsSampler:
    """Background task that refreshes the published metrics snapshot every interval."""

    def __init__(
        self,
        collector: MetricsCollector,
        *,
        interval_seconds: float = 1.0,
        listeners: Iterable[SnapshotListener] = (),
    ) -> None:
        self._collector = collector
        self._interval = max(MIN_INTERVAL_SECONDS, interval_seconds)
        self._listeners: list[SnapshotListener] = list(listeners)
        self._snapshot: MetricsSnapshot | None = None
        self._snapshot_lock = threading.Lock()
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def current(self) -> MetricsSnapshot:
        with self._snapshot_lock:
            snapshot = self._snapshot
        return snapshot if snapshot is not None else MetricsSnapshot.empty()

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        if self.running:
            return
        logger.info("Starting metrics sampler (interval %.2fs)", self._interval)
        self._collector.reset()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="metrics-sampler")

    async def stop(self) -> None:
        if not self._task:
            return
        logger.info("Stopping metrics sampler")
        self._stop_event.set()
        await self._task
        self._task = None

    async def tick(self) -> MetricsSnapshot:
        snapshot = await asyncio.to_thread(self._collector.collect)
        with self._snapshot_lock:
            self._snapshot = snapshot
        for listener in tuple(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Metrics listener %r failed", listener)
        return snapshot

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                await self.tick()
            except Exception:
                logger.exception("Unexpected error during metrics sampling tick")
            await self._sleep(self._interval - (time.monotonic() - started))

    async def _sleep(self, timeout: float) -> None:
        if timeout <= 0:
            # Tick overran the interval; yield once before the next one.
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
