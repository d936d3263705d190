from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..domain import codec
from ..domain.models import DutyResult, Value
from .base import (
    DUTY,
    FIELD,
    IN_FLOW,
    SERVICE,
    STATE,
    PersistenceError,
    PersistenceWriteError,
    log_key,
)

logger = logging.getLogger(__name__)


def _text(entry_id: Any) -> str:
    return entry_id.decode() if isinstance(entry_id, bytes) else str(entry_id)


def _stamp_of(entry_id: Any) -> int:
    """Millisecond part of a stream id such as ``b"2000-0"``."""
    return int(_text(entry_id).split("-", 1)[0])


class RedisTelemetrySink:
    """Appends telemetry to Redis streams.

    Entries written for a pump event use the event's timestamp as the
    stream id; service state entries let Redis assign the id. Every
    payload is encoded with :mod:`sumpmon.domain.codec`.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 6379,
        db: int = 0,
        namespace: str = "sump",
        client: Optional[Any] = None,
    ) -> None:
        self._host = host
        self._port = port
        self._db = db
        self._ns = namespace
        self._con = client

    async def init(self) -> None:
        if self._con is None:
            logger.debug("connecting to redis at %s:%s", self._host, self._port)
            self._con = redis.Redis(host=self._host, port=self._port, db=self._db)
        try:
            await self._con.ping()
        except (RedisError, OSError) as e:
            raise PersistenceError(f"redis unavailable: {e}") from e

    async def close(self) -> None:
        if self._con is not None:
            await self._con.aclose()
            self._con = None

    def _key(self, log: str) -> str:
        return log_key(self._ns, log)

    async def _xadd(self, log: str, value: Value, stamp: Any = "*") -> None:
        try:
            await self._con.xadd(self._key(log), {FIELD: codec.encode(value)}, id=stamp)
        except (RedisError, OSError) as e:
            raise PersistenceWriteError(f"XADD {self._key(log)} failed: {e}") from e

    async def set_service_state(self, value: str) -> None:
        await self._xadd(SERVICE, value)

    async def record_on(self, stamp: int) -> None:
        await self._xadd(STATE, "on", stamp)

    async def record_off(self, stamp: int, result: DutyResult) -> None:
        """Append state=off, duty and in-flow at ``stamp``, all or none.

        Redis applies the rest of a MULTI/EXEC block when one command in
        it fails, so every stream id is checked under WATCH before the
        transaction is queued.
        """
        records = [
            (self._key(STATE), "off"),
            (self._key(DUTY), float(result.duty_percent)),
            (self._key(IN_FLOW), float(result.inflow_gpm)),
        ]
        keys = [key for key, _ in records]
        if stamp < 1:
            raise PersistenceWriteError(f"OFF batch at {stamp} rejected: stream ids start at 1")
        try:
            async with self._con.pipeline(transaction=True) as pipe:
                await pipe.watch(*keys)
                for key in keys:
                    last = await pipe.xrevrange(key, count=1)
                    if last and _stamp_of(last[0][0]) >= stamp:
                        raise PersistenceWriteError(
                            f"OFF batch at {stamp} rejected: {key} already holds {_text(last[0][0])}"
                        )
                pipe.multi()
                for key, value in records:
                    pipe.xadd(key, {FIELD: codec.encode(value)}, id=stamp)
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise PersistenceWriteError(f"OFF batch at {stamp} failed: {e}") from e

    async def latest(self, log: str) -> Optional[Tuple[str, Value]]:
        try:
            entries = await self._con.xrevrange(self._key(log), count=1)
        except (RedisError, OSError) as e:
            raise PersistenceError(f"XREVRANGE {self._key(log)} failed: {e}") from e
        if not entries:
            return None
        entry_id, fields = entries[0]
        raw = fields.get(FIELD.encode(), fields.get(FIELD, b""))
        return _text(entry_id), codec.decode(raw)
