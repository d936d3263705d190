from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..domain.models import Color

logger = logging.getLogger(__name__)


class HueBridgeDriver:
    """Light driver for a Philips Hue bridge (v1 REST API)."""

    driver_id = "hue_bridge"

    def __init__(
        self,
        host: str = "192.168.1.2",
        username: str = "",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = f"http://{host}/api/{username}"
        self._timeout = timeout
        self._transport = transport

    async def _put_state(self, light: int, body: dict[str, Any]) -> None:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.put(f"{self._base_url}/lights/{light}/state", json=body)
            resp.raise_for_status()
            # The bridge reports per-attribute failures with a 200 status
            errors = [r["error"] for r in resp.json() if isinstance(r, dict) and "error" in r]
            if errors:
                raise RuntimeError(f"hue light {light}: {errors[0].get('description', errors[0])}")

    async def set_light(self, light: int, brightness: int, color: Optional[Color]) -> None:
        body: dict[str, Any] = {"on": True, "bri": max(1, min(254, brightness))}
        if color is not None:
            body["xy"] = [round(color[0], 4), round(color[1], 4)]
        await self._put_state(light, body)
        logger.debug("hue light %s on bri=%s xy=%s", light, body["bri"], body.get("xy"))

    async def turn_off(self, light: int) -> None:
        await self._put_state(light, {"on": False})
        logger.debug("hue light %s off", light)
