from __future__ import annotations
from typing import Protocol, Optional, Tuple, runtime_checkable
from .models import Color, DutyResult, Value


@runtime_checkable
class TelemetrySink(Protocol):
    async def init(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def set_service_state(self, value: str) -> None:
        ...

    async def record_on(self, stamp: int) -> None:
        ...

    async def record_off(self, stamp: int, result: DutyResult) -> None:
        ...

    async def latest(self, log: str) -> Optional[Tuple[str, Value]]:
        ...


@runtime_checkable
class LightDriver(Protocol):
    driver_id: str

    async def set_light(self, light: int, brightness: int, color: Optional[Color]) -> None:
        ...

    async def turn_off(self, light: int) -> None:
        ...
