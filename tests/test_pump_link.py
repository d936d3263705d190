"""Tests for the pump process frame format and TCP link."""

import asyncio

import pytest

from sumpmon.domain.models import Frame
from sumpmon.sensors.pump_link import (
    FRAME_SIZE,
    ConnectError,
    FrameReader,
    PumpLink,
    ReadError,
    build_frame,
    parse_frame,
)


def _reader(data: bytes, eof: bool = True) -> FrameReader:
    stream = asyncio.StreamReader()
    stream.feed_data(data)
    if eof:
        stream.feed_eof()
    return FrameReader(stream)


def test_frame_size():
    assert FRAME_SIZE == 12


def test_parse_frame_layout():
    """u64 big-endian timestamp followed by a u32 big-endian flag."""
    data = bytes.fromhex("0000018bcfe56800" "00000001")
    assert parse_frame(data) == Frame(stamp=0x18BCFE56800, pump_on=True)


def test_any_nonzero_flag_is_on():
    data = (1234).to_bytes(8, "big") + bytes.fromhex("80000000")
    assert parse_frame(data).pump_on is True
    assert parse_frame((1234).to_bytes(8, "big") + b"\x00" * 4).pump_on is False


def test_build_frame():
    assert build_frame(1, False) == b"\x00" * 7 + b"\x01" + b"\x00" * 4
    assert parse_frame(build_frame(2**64 - 1, True)) == Frame(stamp=2**64 - 1, pump_on=True)


def test_parse_frame_wrong_size():
    with pytest.raises(ValueError):
        parse_frame(b"\x00" * 11)


def test_reader_returns_frames_in_order():
    async def scenario():
        reader = _reader(build_frame(100, False) + build_frame(200, True))
        return [await reader.next_frame(), await reader.next_frame()]

    assert asyncio.run(scenario()) == [Frame(100, False), Frame(200, True)]


def test_reader_short_read():
    """A frame cut short by the peer is a read error."""
    async def scenario():
        reader = _reader(build_frame(100, False)[:7])
        await reader.next_frame()

    with pytest.raises(ReadError):
        asyncio.run(scenario())


def test_reader_eof():
    async def scenario():
        reader = _reader(b"")
        await reader.next_frame()

    with pytest.raises(ReadError) as info:
        asyncio.run(scenario())
    assert isinstance(info.value.__cause__, asyncio.IncompleteReadError)


def test_reader_socket_error():
    async def scenario():
        stream = asyncio.StreamReader()
        stream.set_exception(ConnectionResetError("reset by peer"))
        await FrameReader(stream).next_frame()

    with pytest.raises(ReadError):
        asyncio.run(scenario())


def test_link_reads_from_server():
    async def scenario():
        async def handle(reader, writer):
            writer.write(build_frame(42, True))
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        link = PumpLink("127.0.0.1", port)
        try:
            frames = await link.connect()
            frame = await frames.next_frame()
            with pytest.raises(ReadError):
                await frames.next_frame()
        finally:
            await link.close()
            server.close()
            await server.wait_closed()
        return frame

    assert asyncio.run(scenario()) == Frame(42, True)


def test_link_connect_refused():
    async def scenario():
        # grab a free port, then close it so nothing is listening
        server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()
        await PumpLink("127.0.0.1", port).connect()

    with pytest.raises(ConnectError):
        asyncio.run(scenario())
