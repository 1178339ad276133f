from __future__ import annotations

import logging
from typing import Optional

from ..core.config import settings
from ..core.errors import ConfigError
from ..domain.models import ButtonConfig, Dht22Config, FanConfig, LightConfig, ShutterConfig, WindowConfig
from . import sim

logger = logging.getLogger(__name__)


class DriverFactory:
    """Builds the driver for a device descriptor.

    The descriptor's `driver` field wins over the factory's default mode.
    Hardware modules are imported on first use so the simulated drivers work
    on any machine.
    """

    def __init__(self, mode: Optional[str] = None) -> None:
        self.mode = (mode or settings.driver_mode).lower()

    def _mode(self, driver: Optional[str]) -> str:
        return (driver or self.mode).lower()

    @staticmethod
    def _require(value, what: str, device_id: str):
        if value is None:
            raise ConfigError(f"{device_id}: {what} is required for hardware drivers")
        return value

    def fan(self, cfg: FanConfig):
        mode = self._mode(cfg.driver)
        if mode == "sonoff":
            from .actuator_sonoff import SonoffFan
            return SonoffFan(
                cfg.id,
                ip=self._require(cfg.sonoff_ip, "sonoffIp", cfg.id),
                port=cfg.sonoff_port,
                sonoff_device_id=cfg.sonoff_device_id or "",
                timeout=settings.sonoff_timeout_seconds,
            )
        if mode == "gpio":
            from .gpio import GpioFan
            return GpioFan(
                cfg.id,
                pin_min=self._require(cfg.gpio_min, "gpioMin", cfg.id),
                pin_max=self._require(cfg.gpio_max, "gpioMax", cfg.id),
            )
        return sim.SimulatedFan(cfg.id)

    def shutter(self, cfg: ShutterConfig, position: float = 0):
        if self._mode(cfg.driver) == "gpio":
            from .gpio import GpioShutter
            return GpioShutter(
                cfg.id,
                pin_up=self._require(cfg.gpio_up, "gpioUp", cfg.id),
                pin_down=self._require(cfg.gpio_down, "gpioDown", cfg.id),
                travel_seconds=cfg.travel_seconds,
                max_position=cfg.max,
                position=position,
            )
        return sim.SimulatedShutter(cfg.id, position=position, max_position=cfg.max)

    def button(self, cfg: ButtonConfig):
        if self._mode(cfg.driver) == "gpio":
            from .gpio import GpioButton
            return GpioButton(cfg.id, pin=self._require(cfg.gpio, "gpio", cfg.id), interval=cfg.interval)
        return sim.SimulatedButton(cfg.id)

    def window(self, cfg: WindowConfig):
        if self._mode(cfg.driver) == "gpio":
            from .gpio import GpioCircuit
            return GpioCircuit(
                cfg.id, "window", self._require(cfg.gpio, "gpio", cfg.id), cfg.interval,
                active_value="closed", inactive_value="open",
            )
        return sim.simulated_window(cfg.id)

    def light(self, cfg: LightConfig):
        if self._mode(cfg.driver) == "gpio":
            from .gpio import GpioCircuit
            return GpioCircuit(
                cfg.id, "light", self._require(cfg.gpio, "gpio", cfg.id), cfg.interval,
                active_value="on", inactive_value="off",
            )
        return sim.simulated_light(cfg.id)

    def dht22(self, cfg: Dht22Config):
        if self._mode(cfg.driver) == "gpio":
            from .dht22 import AdafruitDht22
            return AdafruitDht22(cfg.id, pin=self._require(cfg.gpio, "gpio", cfg.id), interval=cfg.interval)
        return sim.SimulatedDht22(cfg.id)
