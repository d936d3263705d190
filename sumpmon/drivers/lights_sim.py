from __future__ import annotations
import logging
from typing import Optional

from ..domain.models import Color

logger = logging.getLogger(__name__)


class SimulatedLightDriver:
    driver_id = "lights_sim"

    def __init__(self) -> None:
        self.lights: dict[int, Optional[tuple[int, Optional[Color]]]] = {}

    async def set_light(self, light: int, brightness: int, color: Optional[Color]) -> None:
        self.lights[light] = (brightness, color)
        logger.info("LIGHT %s on bri=%s color=%s", light, brightness, color)

    async def turn_off(self, light: int) -> None:
        self.lights[light] = None
        logger.info("LIGHT %s off", light)
