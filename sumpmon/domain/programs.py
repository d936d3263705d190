from __future__ import annotations
from typing import Sequence

from .models import Color, Pause, Program, SetLight, TurnOff

# CIE 1931 xy of the named sRGB colors
RED: Color = (0.6400, 0.3300)
YELLOW: Color = (0.4193, 0.5053)
BLUE: Color = (0.1500, 0.0600)
WHITE: Color = (0.3127, 0.3290)

FULL = 255

# Duty thresholds (%) for the end-of-cycle indication
DUTY_CAUTION = 10.0
DUTY_ALERT = 30.0


def _all_on(lights: Sequence[int], color: Color) -> Program:
    return [SetLight(light=l, brightness=FULL, color=color) for l in lights]


def _all_off(lights: Sequence[int]) -> Program:
    return [TurnOff(light=l) for l in lights]


def startup(lights: Sequence[int]) -> Program:
    prog: Program = []
    for color in (RED, WHITE, BLUE):
        prog += _all_on(lights, color)
        prog.append(Pause(seconds=1.0))
    return prog + _all_off(lights)


def pump_running(lights: Sequence[int]) -> Program:
    return _all_on(lights, BLUE)


def duty_alert(lights: Sequence[int], duty: float) -> Program:
    if duty < DUTY_CAUTION:
        return _all_off(lights)

    color = YELLOW if duty < DUTY_ALERT else RED
    return _all_on(lights, color) + [Pause(seconds=5.0)] + _all_off(lights)


def service_alert(lights: Sequence[int]) -> Program:
    return (
        _all_on(lights, BLUE)
        + [Pause(seconds=0.5)]
        + _all_on(lights, RED)
        + [Pause(seconds=5.0)]
        + _all_off(lights)
    )
