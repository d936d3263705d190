from __future__ import annotations
import logging
from typing import Optional, Tuple

import aiosqlite

from ..core.timeutil import now_ms
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


class SQLiteTelemetrySink:
    """History logs in a single SQLite table, for hosts without Redis."""

    def __init__(self, path: str, namespace: str = "sump") -> None:
        self._path = path
        self._ns = namespace
        self._db: Optional[aiosqlite.Connection] = None

    async def init(self) -> None:
        try:
            self._db = await aiosqlite.connect(self._path)
            await self._db.execute(
                """
                CREATE TABLE IF NOT EXISTS history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    key TEXT NOT NULL,
                    stamp INTEGER NOT NULL,
                    field TEXT NOT NULL,
                    value BLOB NOT NULL
                )
                """
            )
            await self._db.execute("CREATE INDEX IF NOT EXISTS idx_history_key ON history(key, id)")
            await self._db.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"cannot open {self._path}: {e}") from e
        logger.info("history database ready at %s", self._path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    def _row(self, log: str, stamp: int, value: Value) -> tuple:
        return (log_key(self._ns, log), stamp, FIELD, codec.encode(value))

    async def _append(self, rows: list[tuple]) -> None:
        try:
            await self._db.executemany(
                "INSERT INTO history(key,stamp,field,value) VALUES (?,?,?,?)", rows
            )
            await self._db.commit()
        except aiosqlite.Error as e:
            await self._db.rollback()
            raise PersistenceWriteError(f"append of {len(rows)} record(s) failed: {e}") from e

    async def set_service_state(self, value: str) -> None:
        await self._append([self._row(SERVICE, now_ms(), value)])

    async def record_on(self, stamp: int) -> None:
        await self._append([self._row(STATE, stamp, "on")])

    async def record_off(self, stamp: int, result: DutyResult) -> None:
        await self._append(
            [
                self._row(STATE, stamp, "off"),
                self._row(DUTY, stamp, float(result.duty_percent)),
                self._row(IN_FLOW, stamp, float(result.inflow_gpm)),
            ]
        )

    async def latest(self, log: str) -> Optional[Tuple[str, Value]]:
        try:
            cur = await self._db.execute(
                "SELECT stamp, value FROM history WHERE key = ? ORDER BY id DESC LIMIT 1",
                (log_key(self._ns, log),),
            )
            row = await cur.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"query of {log} failed: {e}") from e
        if row is None:
            return None
        stamp, raw = row
        return str(stamp), codec.decode(raw)
