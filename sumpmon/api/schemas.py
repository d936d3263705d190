from __future__ import annotations
from pydantic import BaseModel
from typing import Optional, Literal, Union


class CycleStateOut(BaseModel):
    state: Literal["unknown", "off", "on"]
    off_time: Optional[int] = None
    on_time: Optional[int] = None


class FrameOut(BaseModel):
    stamp: int
    pump_on: bool


class DutyOut(BaseModel):
    stamp: int
    duty_percent: float
    inflow_gpm: float


class LiveOut(BaseModel):
    app: str
    now_local: str
    connection: Literal["disconnected", "connecting", "connected"]
    cycle: CycleStateOut
    last_frame: Optional[FrameOut] = None
    last_duty: Optional[DutyOut] = None
    last_error: Optional[str] = None
    attempts: int
    connect_failures: int
    read_failures: int
    cycles: int


class HistoryEntryOut(BaseModel):
    log: str
    id: str
    value: Union[None, bool, int, float, str]
