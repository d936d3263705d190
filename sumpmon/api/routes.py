from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import Settings
from ..core.timeutil import now_local
from ..domain.codec import DecodeError
from ..domain.interfaces import TelemetrySink
from ..domain.models import Off, On
from ..services.monitor import MonitorService
from ..storage.base import LOGS, PersistenceError
from .schemas import CycleStateOut, DutyOut, FrameOut, HistoryEntryOut, LiveOut

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters ---
# main.py points these at the running instances via app.dependency_overrides.
def get_monitor() -> MonitorService:  # overridden in main
    raise RuntimeError("Monitor dependency not configured")

def get_sink() -> TelemetrySink:  # overridden in main
    raise RuntimeError("Sink dependency not configured")

def get_settings() -> Settings:  # overridden in main
    raise RuntimeError("Settings dependency not configured")


def _cycle_out(st) -> CycleStateOut:
    if isinstance(st, On):
        return CycleStateOut(state="on", off_time=st.off_time, on_time=st.on_time)
    if isinstance(st, Off):
        return CycleStateOut(state="off", off_time=st.off_time)
    return CycleStateOut(state="unknown")


@router.get("/live", response_model=LiveOut)
async def get_live(
    svc: MonitorService = Depends(get_monitor),
    cfg: Settings = Depends(get_settings),
):
    live = svc.live
    f = live.last_frame
    r = live.last_result
    return LiveOut(
        app=cfg.app_name,
        now_local=now_local(cfg.timezone).isoformat(),
        connection=live.connection,
        cycle=_cycle_out(live.cycle_state),
        last_frame=FrameOut(stamp=f.stamp, pump_on=f.pump_on) if f else None,
        last_duty=(
            DutyOut(stamp=live.last_result_stamp, duty_percent=r.duty_percent, inflow_gpm=r.inflow_gpm)
            if r else None
        ),
        last_error=live.last_error,
        attempts=live.attempts,
        connect_failures=live.connect_failures,
        read_failures=live.read_failures,
        cycles=live.cycles,
    )


@router.get("/history/{log}/latest", response_model=HistoryEntryOut)
async def get_latest(log: str, sink: TelemetrySink = Depends(get_sink)):
    if log not in LOGS:
        raise HTTPException(status_code=404, detail=f"Unknown log: {log}")
    try:
        entry = await sink.latest(log)
    except PersistenceError as e:
        logger.warning("history query failed: %s", e)
        raise HTTPException(status_code=503, detail=str(e))
    except DecodeError as e:
        raise HTTPException(status_code=500, detail=f"Undecodable {log} entry: {e}")
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No {log} history yet")
    entry_id, value = entry
    return HistoryEntryOut(log=log, id=entry_id, value=value)
