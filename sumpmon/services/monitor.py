from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Sequence

from ..domain import programs
from ..domain.cycle import CycleStateMachine
from ..domain.interfaces import TelemetrySink
from ..domain.models import CycleState, DutyResult, Frame, Program, Unknown
from ..sensors.pump_link import ConnectError, FrameReader, PumpLink, ReadError
from ..storage.base import PersistenceError

logger = logging.getLogger(__name__)

DISCONNECTED = "disconnected"
CONNECTING = "connecting"
CONNECTED = "connected"


class ProgramChannel(Protocol):
    def send(self, program: Program) -> None:
        ...


@dataclass
class LiveState:
    connection: str = DISCONNECTED
    cycle_state: CycleState = field(default_factory=Unknown)
    last_frame: Optional[Frame] = None
    last_result: Optional[DutyResult] = None
    last_result_stamp: Optional[int] = None
    last_error: Optional[str] = None
    attempts: int = 0
    connect_failures: int = 0
    read_failures: int = 0
    cycles: int = 0


class MonitorService:
    """Keeps a connection to the pump process and turns its events into telemetry.

    The loop never gives up: after a connect failure, a read failure or a
    failed history write it waits ``retry_delay`` seconds and connects
    again. Frames are handled one at a time, so history entries are
    written in the order the pump reported them.
    """

    def __init__(
        self,
        link_factory: Callable[[], PumpLink],
        sink: TelemetrySink,
        lights: ProgramChannel,
        light_ids: Sequence[int] = (5, 8),
        retry_delay: float = 10.0,
    ) -> None:
        self._link_factory = link_factory
        self._sink = sink
        self._lights = lights
        self._light_ids = tuple(light_ids)
        self._retry_delay = retry_delay

        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()

        self.live = LiveState()

    async def start(self) -> None:
        self._stop.clear()
        self._task = asyncio.create_task(self.run(), name="monitor_loop")

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            # a session may be parked in a socket read
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run(self) -> None:
        logger.info("Monitor loop started (retry_delay=%ss)", self._retry_delay)

        while not self._stop.is_set():
            try:
                await self._attempt()
            except PersistenceError as e:
                self.live.last_error = str(e)
                logger.exception("history write failed, dropping session: %s", e)

            self.live.connection = DISCONNECTED
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._retry_delay)
            except asyncio.TimeoutError:
                pass

        logger.info("Monitor loop stopped")

    async def _attempt(self) -> None:
        link = self._link_factory()
        self.live.connection = CONNECTING
        self.live.attempts += 1

        try:
            reader = await link.connect()
        except ConnectError as e:
            self.live.connect_failures += 1
            self.live.last_error = str(e)
            await self._sink.set_service_state("down")
            self._alert()
            logger.error("couldn't connect to pump process -- %s", e)
            return

        try:
            await self._session(reader)
        finally:
            await link.close()
            self.live.connection = DISCONNECTED

    async def _session(self, reader: FrameReader) -> None:
        self.live.connection = CONNECTED
        await self._sink.set_service_state("up")

        machine = CycleStateMachine()
        self.live.cycle_state = machine.state

        while not self._stop.is_set():
            try:
                frame = await reader.next_frame()
            except ReadError as e:
                self.live.read_failures += 1
                self.live.last_error = str(e)
                logger.error("couldn't read sump state -- %s", e)
                await self._sink.set_service_state("crash")
                self._alert()
                return

            await self._handle(machine, frame)
            logger.info("state: %s", machine.state)

    async def _handle(self, machine: CycleStateMachine, frame: Frame) -> None:
        self.live.last_frame = frame

        if frame.pump_on:
            if machine.observe_on(frame.stamp):
                self._lights.send(programs.pump_running(self._light_ids))
                await self._sink.record_on(frame.stamp)
        else:
            result = machine.observe_off(frame.stamp)
            if result is not None:
                logger.info("duty: %s%%, in flow: %s gpm", result.duty_percent, result.inflow_gpm)
                self._lights.send(programs.duty_alert(self._light_ids, result.duty_percent))
                await self._sink.record_off(frame.stamp, result)
                self.live.last_result = result
                self.live.last_result_stamp = frame.stamp
                self.live.cycles += 1

        self.live.cycle_state = machine.state

    def _alert(self) -> None:
        self._lights.send(programs.service_alert(self._light_ids))
