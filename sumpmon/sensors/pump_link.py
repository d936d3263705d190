"""TCP link to the sump pump process.

The pump process streams one 12-byte frame per float switch event::

    +---------------------------+------------------+
    |         Timestamp         |       Flag       |
    |  8 bytes, u64 big-endian  | 4 bytes, u32 BE  |
    +---------------------------+------------------+

- Timestamp: milliseconds since the epoch
- Flag: 0 when the pump turned off, anything else when it turned on
"""

from __future__ import annotations

import asyncio
import logging
import struct
from typing import Optional

from ..domain.models import Frame

logger = logging.getLogger(__name__)

_FRAME = struct.Struct(">QI")
FRAME_SIZE = _FRAME.size  # 12


class PumpLinkError(Exception):
    pass


class ConnectError(PumpLinkError):
    pass


class ReadError(PumpLinkError):
    pass


def parse_frame(data: bytes) -> Frame:
    if len(data) != FRAME_SIZE:
        raise ValueError(f"frame must be {FRAME_SIZE} bytes, got {len(data)}")
    stamp, flag = _FRAME.unpack(data)
    return Frame(stamp=stamp, pump_on=flag != 0)


def build_frame(stamp: int, pump_on: bool) -> bytes:
    """Inverse of :func:`parse_frame`."""
    return _FRAME.pack(stamp, 1 if pump_on else 0)


class FrameReader:
    def __init__(self, reader: asyncio.StreamReader) -> None:
        self._reader = reader

    async def next_frame(self) -> Frame:
        """Wait for the next frame. Raises ReadError on EOF, short read or socket error."""
        try:
            data = await self._reader.readexactly(FRAME_SIZE)
        except asyncio.IncompleteReadError as e:
            raise ReadError(
                f"connection closed after {len(e.partial)} of {FRAME_SIZE} bytes"
            ) from e
        except OSError as e:
            raise ReadError(str(e)) from e
        return parse_frame(data)


class PumpLink:
    """One connection attempt to the pump process. Not reused after a fault."""

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self._writer: Optional[asyncio.StreamWriter] = None

    async def connect(self) -> FrameReader:
        try:
            reader, writer = await asyncio.open_connection(self.host, self.port)
        except OSError as e:
            raise ConnectError(f"{self.host}:{self.port}: {e}") from e
        self._writer = writer
        logger.info("connected to pump process at %s:%s", self.host, self.port)
        return FrameReader(reader)

    async def close(self) -> None:
        if self._writer is None:
            return
        writer, self._writer = self._writer, None
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("error closing pump link: %s", e)
