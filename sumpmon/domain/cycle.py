from __future__ import annotations
import logging
import math
from typing import Optional

from .models import CycleState, DutyResult, Off, On, Unknown

logger = logging.getLogger(__name__)

# Pump output at 100% duty
PUMP_CAPACITY_GPH = 2680.0


def _round(x: float) -> float:
    # half away from zero
    return math.copysign(math.floor(abs(x) + 0.5), x)


def duty_and_inflow(off_time: int, on_time: int, stamp: int) -> Optional[DutyResult]:
    """Duty cycle (%) and estimated in-flow (gpm) of the cycle ending at ``stamp``."""
    on_s = (stamp - on_time) / 1000.0
    off_s = (stamp - off_time) / 1000.0
    if off_s <= 0:
        return None

    duty = _round(on_s * 100.0 / off_s)
    in_flow = _round(PUMP_CAPACITY_GPH * duty / 60.0) / 100.0
    return DutyResult(duty_percent=duty, inflow_gpm=in_flow)


class CycleStateMachine:
    """Tracks pump transitions to decide when a full cycle can be measured.

    One OFF event is needed to sync with the pump before an ON/OFF pair
    produces a duty cycle, so the cycle in progress at connect time is
    never reported.
    """

    def __init__(self) -> None:
        self.state: CycleState = Unknown()

    def observe_off(self, stamp: int) -> Optional[DutyResult]:
        st = self.state

        if isinstance(st, Unknown):
            logger.info("sync-ed with OFF state")
            self.state = Off(off_time=stamp)
            return None

        if isinstance(st, Off):
            logger.warning("ignoring duplicate OFF event")
            return None

        self.state = Off(off_time=stamp)
        result = duty_and_inflow(st.off_time, st.on_time, stamp)
        if result is None:
            logger.warning("ignoring zero-length pump cycle at %d", stamp)
        return result

    def observe_on(self, stamp: int) -> bool:
        st = self.state

        if isinstance(st, Unknown):
            return False

        if isinstance(st, Off):
            self.state = On(off_time=st.off_time, on_time=stamp)
            return True

        logger.warning("ignoring duplicate ON event")
        return False
