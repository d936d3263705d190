"""Tests for the monitor loop: sessions, telemetry, alerts and retries."""

import asyncio

from sumpmon.domain import programs
from sumpmon.domain.models import DutyResult, Frame, Off
from sumpmon.sensors.pump_link import ConnectError, PumpLink, ReadError, build_frame
from sumpmon.services.monitor import DISCONNECTED, MonitorService
from sumpmon.storage.base import PersistenceWriteError

LIGHTS = (5, 8)


class RecordingSink:
    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    async def init(self):
        pass

    async def close(self):
        pass

    async def set_service_state(self, value):
        self.calls.append(("service", value))

    async def record_on(self, stamp):
        if self.fail_on == "on":
            raise PersistenceWriteError("store down")
        self.calls.append(("on", stamp))

    async def record_off(self, stamp, result):
        self.calls.append(("off", stamp, result))

    async def latest(self, log):
        return None

    def services(self):
        return [v for kind, *rest in self.calls if kind == "service" for v in rest]


class RecordingChannel:
    def __init__(self):
        self.programs = []

    def send(self, program):
        self.programs.append(program)


class ScriptedReader:
    """Hands out frames, then fails (or blocks forever when ``hang``)."""

    def __init__(self, frames, hang=False):
        self._frames = list(frames)
        self._hang = hang
        self.failed_at = None

    async def next_frame(self):
        if self._frames:
            return self._frames.pop(0)
        if self._hang:
            await asyncio.Event().wait()
        self.failed_at = asyncio.get_running_loop().time()
        raise ReadError("connection closed")


class ScriptedLink:
    def __init__(self, owner, reader):
        self._owner = owner
        self._reader = reader
        self.closed = False

    async def connect(self):
        self._owner.connect_times.append(asyncio.get_running_loop().time())
        if self._reader is None:
            raise ConnectError("refused")
        return self._reader

    async def close(self):
        self.closed = True


class LinkFactory:
    def __init__(self, readers):
        self._readers = list(readers)
        self.links = []
        self.connect_times = []

    def __call__(self):
        reader = self._readers.pop(0) if len(self._readers) > 1 else self._readers[0]
        link = ScriptedLink(self, reader)
        self.links.append(link)
        return link


async def wait_until(cond, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not cond():
        assert loop.time() < deadline, "condition not reached"
        await asyncio.sleep(0.01)


def test_end_to_end_over_tcp():
    """OFF, ON, OFF from the pump gives one ON record and one OFF batch."""
    sink = RecordingSink()
    channel = RecordingChannel()

    async def scenario():
        async def pump(reader, writer):
            for stamp, on in ((1000, False), (2000, True), (5000, False)):
                writer.write(build_frame(stamp, on))
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(pump, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        monitor = MonitorService(
            link_factory=lambda: PumpLink("127.0.0.1", port),
            sink=sink,
            lights=channel,
            light_ids=LIGHTS,
            retry_delay=60,
        )
        await monitor.start()
        try:
            await wait_until(lambda: ("service", "crash") in sink.calls)
        finally:
            await monitor.stop()
            server.close()
            await server.wait_closed()
        return monitor

    monitor = asyncio.run(scenario())

    result = DutyResult(duty_percent=75.0, inflow_gpm=33.5)
    assert sink.calls == [
        ("service", "up"),
        ("on", 2000),
        ("off", 5000, result),
        ("service", "crash"),
    ]
    assert channel.programs == [
        programs.pump_running(LIGHTS),
        programs.duty_alert(LIGHTS, 75.0),
        programs.service_alert(LIGHTS),
    ]
    assert monitor.live.cycles == 1
    assert monitor.live.last_result == result
    assert monitor.live.last_result_stamp == 5000
    assert monitor.live.cycle_state == Off(off_time=5000)


def test_sync_off_writes_nothing():
    sink = RecordingSink()
    channel = RecordingChannel()
    factory = LinkFactory([ScriptedReader([Frame(1000, False), Frame(1500, False)], hang=True)])

    async def scenario():
        monitor = MonitorService(factory, sink, channel, LIGHTS, retry_delay=60)
        await monitor.start()
        try:
            await wait_until(lambda: monitor.live.last_frame == Frame(1500, False))
        finally:
            await monitor.stop()

    asyncio.run(scenario())
    assert sink.calls == [("service", "up")]
    assert channel.programs == []


def test_read_failure_records_crash_and_retries_after_delay():
    sink = RecordingSink()
    channel = RecordingChannel()
    first = ScriptedReader([Frame(1000, False)])
    factory = LinkFactory([first, ScriptedReader([], hang=True)])
    delay = 0.2

    async def scenario():
        monitor = MonitorService(factory, sink, channel, LIGHTS, retry_delay=delay)
        await monitor.start()
        try:
            await wait_until(lambda: len(factory.connect_times) == 2)
        finally:
            await monitor.stop()
        return monitor

    monitor = asyncio.run(scenario())
    assert sink.services() == ["up", "crash", "up"]
    assert channel.programs == [programs.service_alert(LIGHTS)]
    assert factory.connect_times[1] - first.failed_at >= delay
    assert factory.links[0].closed
    assert monitor.live.read_failures == 1
    assert monitor.live.connection == DISCONNECTED


def test_connect_failure_records_down_each_attempt():
    sink = RecordingSink()
    channel = RecordingChannel()
    factory = LinkFactory([None])

    async def scenario():
        monitor = MonitorService(factory, sink, channel, LIGHTS, retry_delay=0.05)
        await monitor.start()
        try:
            await wait_until(lambda: len(factory.connect_times) >= 3)
        finally:
            await monitor.stop()
        return monitor

    monitor = asyncio.run(scenario())
    n = monitor.live.connect_failures
    assert n >= 3
    assert sink.services() == ["down"] * n
    assert channel.programs == [programs.service_alert(LIGHTS)] * n


def test_write_failure_drops_session():
    """A failed history write ends the session and the monitor reconnects."""
    sink = RecordingSink(fail_on="on")
    channel = RecordingChannel()
    factory = LinkFactory([
        ScriptedReader([Frame(1000, False), Frame(2000, True)], hang=True),
        ScriptedReader([], hang=True),
    ])

    async def scenario():
        monitor = MonitorService(factory, sink, channel, LIGHTS, retry_delay=0.05)
        await monitor.start()
        try:
            await wait_until(lambda: len(factory.connect_times) == 2)
        finally:
            await monitor.stop()
        return monitor

    monitor = asyncio.run(scenario())
    assert factory.links[0].closed
    assert sink.services() == ["up", "up"]
    assert "store down" in monitor.live.last_error


def test_stop_interrupts_retry_delay():
    factory = LinkFactory([None])

    async def scenario():
        monitor = MonitorService(factory, RecordingSink(), RecordingChannel(), LIGHTS, retry_delay=60)
        await monitor.start()
        await wait_until(lambda: monitor.live.connect_failures == 1)
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        await monitor.stop()
        return loop.time() - t0

    assert asyncio.run(scenario()) < 1.0
