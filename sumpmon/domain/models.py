from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

# Scalar values that can be stored for a device. Nil is None, and ints
# are limited to the signed 64-bit range.
Value = Union[None, bool, int, float, str]


@dataclass(frozen=True)
class Frame:
    stamp: int  # ms since the epoch, as reported by the pump process
    pump_on: bool


@dataclass(frozen=True)
class DutyResult:
    duty_percent: float
    inflow_gpm: float


# Pump cycle states


@dataclass(frozen=True)
class Unknown:
    pass


@dataclass(frozen=True)
class Off:
    off_time: int


@dataclass(frozen=True)
class On:
    off_time: int
    on_time: int


CycleState = Union[Unknown, Off, On]


# Lighting directives. A program is an ordered list of these.

Color = Tuple[float, float]  # CIE 1931 xy chromaticity


@dataclass(frozen=True)
class SetLight:
    light: int
    brightness: int
    color: Optional[Color] = None


@dataclass(frozen=True)
class TurnOff:
    light: int


@dataclass(frozen=True)
class Pause:
    seconds: float


Directive = Union[SetLight, TurnOff, Pause]
Program = List[Directive]
