from __future__ import annotations

import logging

import httpx

from ..core.errors import DriverError
from ..domain import topics
from ..domain.events import ChangeNotifier

logger = logging.getLogger(__name__)

# outlet 0 drives the min winding, outlet 1 the max winding
_OUTLETS = {
    "off": ("off", "off"),
    "min": ("on", "off"),
    "max": ("off", "on"),
}


class SonoffFan(ChangeNotifier):
    """Two-speed fan on a Sonoff multi-channel relay in eWeLink DIY mode."""

    kind = topics.FAN

    def __init__(
        self,
        device_id: str,
        ip: str,
        port: int = 8081,
        sonoff_device_id: str = "",
        timeout: float = 5.0,
    ) -> None:
        super().__init__(device_id)
        self._base_url = f"http://{ip}:{port}"
        self._sonoff_device_id = sonoff_device_id
        self._timeout = timeout
        self.speed = "off"

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def _set(self, speed: str) -> None:
        min_state, max_state = _OUTLETS[speed]
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    f"{self._base_url}/zeroconf/switches",
                    json={
                        "deviceid": self._sonoff_device_id,
                        "data": {
                            "switches": [
                                {"switch": min_state, "outlet": 0},
                                {"switch": max_state, "outlet": 1},
                            ]
                        },
                    },
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise DriverError(f"Sonoff fan {self.device_id} set {speed} failed: {e}") from e

        if speed != self.speed:
            logger.info("Sonoff fan %s speed=%s", self.device_id, speed)
        self.speed = speed

    async def off(self) -> None:
        await self._set("off")

    async def min(self) -> None:
        await self._set("min")

    async def max(self) -> None:
        await self._set("max")
