from __future__ import annotations

import asyncio
import logging
from typing import Optional

import adafruit_dht
import board

from ..core.tasks import PeriodicTask
from ..domain import topics
from ..domain.events import ChangeNotifier

logger = logging.getLogger(__name__)


class AdafruitDht22(ChangeNotifier):
    """DHT22 temperature/humidity sensor sampled on an interval.

    Readings are rounded to one decimal; only changes are emitted.
    """

    def __init__(self, device_id: str, pin: int, interval: float) -> None:
        super().__init__(device_id)
        gpio_pin = getattr(board, f"D{pin}", None)
        if gpio_pin is None:
            raise ValueError(f"Invalid GPIO pin: D{pin}")
        self._sensor = adafruit_dht.DHT22(gpio_pin)
        self.temperature: Optional[float] = None
        self.humidity: Optional[float] = None
        self._ticker = PeriodicTask(f"dht22_{device_id}_poll", interval, self._poll, run_immediately=True)

    def _read(self) -> tuple[Optional[float], Optional[float]]:
        try:
            return self._sensor.temperature, self._sensor.humidity
        except RuntimeError as e:
            # DHT sensors fail transiently all the time
            logger.debug("DHT22 %s read failed: %s", self.device_id, e)
            return None, None

    async def _poll(self) -> None:
        loop = asyncio.get_running_loop()
        temperature, humidity = await loop.run_in_executor(None, self._read)

        if temperature is not None:
            temperature = round(float(temperature), 1)
            if temperature != self.temperature:
                self.temperature = temperature
                await self._emit(topics.STATUS, temperature, kind=topics.TEMPERATURE)

        if humidity is not None:
            humidity = round(float(humidity), 1)
            if humidity != self.humidity:
                self.humidity = humidity
                await self._emit(topics.STATUS, humidity, kind=topics.HUMIDITY)

    async def start(self) -> None:
        self._ticker.start()

    async def stop(self) -> None:
        await self._ticker.stop()

    def close(self) -> None:
        self._sensor.exit()
