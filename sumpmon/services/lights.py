from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..domain.interfaces import LightDriver
from ..domain.models import Pause, Program, SetLight, TurnOff

logger = logging.getLogger(__name__)


class LightingActor:
    """Runs light programs, one at a time, on a dedicated task.

    ``send`` never waits: programs queue up behind the one that is
    running, so a slow bridge cannot hold up the monitor.
    """

    def __init__(
        self,
        driver: LightDriver,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._driver = driver
        self._sleep = sleep
        self._queue: asyncio.Queue[Program] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="lighting_actor")

    async def stop(self, drain_timeout: float = 0.0) -> None:
        """Stop the consumer, first giving queued programs up to ``drain_timeout`` seconds."""
        if self._task and drain_timeout > 0:
            try:
                await asyncio.wait_for(self.drain(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning("light programs still queued at shutdown, dropping them")
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def send(self, program: Program) -> None:
        self._queue.put_nowait(list(program))

    async def drain(self) -> None:
        """Wait until every queued program has run."""
        await self._queue.join()

    async def _run(self) -> None:
        logger.info("Lighting actor started (driver=%s)", self._driver.driver_id)
        while True:
            program = await self._queue.get()
            try:
                await self._execute(program)
            finally:
                self._queue.task_done()

    async def _execute(self, program: Program) -> None:
        for step in program:
            try:
                if isinstance(step, SetLight):
                    await self._driver.set_light(step.light, step.brightness, step.color)
                elif isinstance(step, TurnOff):
                    await self._driver.turn_off(step.light)
                elif isinstance(step, Pause):
                    await self._sleep(step.seconds)
                else:
                    logger.warning("unknown light directive %r", step)
            except Exception as e:
                logger.warning("light directive %r failed: %s", step, e, exc_info=True)
