from __future__ import annotations
import asyncio
import logging
import time
from typing import Optional

from corridor.sim.simulator import Simulation

logger = logging.getLogger(__name__)


class SimulationRunner:
    """Drives Simulation.tick() from an asyncio task, one tick per frame.

    Ticks run back to back on a single task, so two ticks never overlap.
    The run ends, and stops the simulation, once every train has arrived.
    """

    def __init__(self, sim: Simulation, frame_ms: Optional[float] = None) -> None:
        self.sim = sim
        self.frame_ms = frame_ms if frame_ms is not None else sim.config.sim_frame_ms
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, duration_s: Optional[float] = None) -> None:
        last = time.perf_counter()
        started = last
        while self.sim.running:
            await asyncio.sleep(self.frame_ms / 1000.0)
            now = time.perf_counter()
            self.sim.tick((now - last) * 1000.0)
            last = now
            if self.sim.finished:
                logger.info("all trains arrived after %.1f sim min", self.sim.clock)
                self.sim.stop()
                break
            if duration_s is not None and now - started >= duration_s:
                break

    def start(self, duration_s: Optional[float] = None) -> asyncio.Task:
        if self.active:
            return self._task  # type: ignore[return-value]
        self._task = asyncio.create_task(self.run(duration_s))
        return self._task

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self.sim.stop()
        logger.info("runner stopped")
