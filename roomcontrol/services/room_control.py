from __future__ import annotations
import logging
from typing import Any, Iterable, Optional

from .context import RoomContext
from .fan_service import FanService
from ..drivers.factory import DriverFactory
from ..domain import topics
from ..domain.controller import FanController
from ..domain.interfaces import Button, Circuit, Dht22, Fan, Repository, Shutter
from ..domain.models import ButtonAction, ButtonConfig, DeviceChange, StatusKey


logger = logging.getLogger(__name__)

TASKS = ("shutters", "windows", "buttons", "dht22", "lights", "fans")


class RoomControl:
    """Owns the drivers of one room and is the only place that acts on them."""

    def __init__(
        self,
        ctx: RoomContext,
        tasks: Iterable[str],
        factory: Optional[DriverFactory] = None,
        repo: Optional[Repository] = None,
        controller: Optional[FanController] = None,
        fan_interval: Optional[float] = None,
        settle_seconds: Optional[float] = None,
    ) -> None:
        self.ctx = ctx
        self.tasks = frozenset(tasks)
        factory = factory or DriverFactory()
        room = ctx.room
        cache = ctx.cache

        self.shutters: dict[str, Shutter] = {}
        self.windows: dict[str, Circuit] = {}
        self.buttons: dict[str, Button] = {}
        self.dht22: dict[str, Dht22] = {}
        self.lights: dict[str, Circuit] = {}
        self.fans: dict[str, Fan] = {}
        self._button_configs: dict[str, ButtonConfig] = {}
        self._stopped = False

        if "shutters" in self.tasks:
            for cfg in room.shutters:
                position = cache.get(StatusKey(room.id, topics.SHUTTER, cfg.id), 0)
                self.shutters[cfg.id] = factory.shutter(cfg, position=_position(position))

        if "windows" in self.tasks:
            for cfg in room.windows:
                self.windows[cfg.id] = factory.window(cfg)

        if "buttons" in self.tasks:
            for cfg in room.buttons:
                self.buttons[cfg.id] = factory.button(cfg)
                self._button_configs[cfg.id] = cfg

        if "dht22" in self.tasks:
            for cfg in room.dht22:
                self.dht22[cfg.id] = factory.dht22(cfg)

        if "lights" in self.tasks:
            for cfg in room.lights:
                self.lights[cfg.id] = factory.light(cfg)

        if "fans" in self.tasks:
            for cfg in room.fans:
                self.fans[cfg.id] = factory.fan(cfg)

        self.fan_service: Optional[FanService] = None
        if self.fans:
            self.fan_service = FanService(
                ctx,
                self.fans,
                controller=controller,
                repo=repo,
                interval=fan_interval,
                settle_seconds=settle_seconds,
            )

        for driver in self._drivers():
            driver.add_listener(self._on_change)

    def __repr__(self) -> str:
        return f"RoomControl({self.ctx.room_id}, tasks={sorted(self.tasks)})"

    def _drivers(self) -> list:
        out: list = []
        for group in (self.shutters, self.windows, self.buttons, self.dht22, self.lights, self.fans):
            out.extend(group.values())
        return out

    async def start(self) -> None:
        room = self.ctx.room
        for group in (self.shutters, self.windows, self.dht22, self.lights, self.fans):
            for driver in group.values():
                await driver.start()

        for button_id, driver in self.buttons.items():
            active = self.ctx.cache.get(StatusKey(room.id, topics.BUTTON, button_id, "active"), True)
            if active:
                await driver.start()
            else:
                logger.warning("[%s] button %s is not active", room.id, button_id)

        if self.fan_service is not None:
            self.fan_service.start()
            # Apply settings retained before start without waiting for the first tick
            for fan_id in self.fan_service.fan_ids:
                self.fan_service.schedule_evaluation(fan_id)

        logger.info("%s started", self)

    async def stop(self) -> None:
        self._stopped = True
        if self.fan_service is not None:
            await self.fan_service.stop()

        for driver in self._drivers():
            try:
                await driver.stop()
                close = getattr(driver, "close", None)
                if close is not None:
                    close()
            except Exception:
                logger.exception("Failed to release driver %s", driver.device_id)

        logger.info("%s stopped", self)

    # --- Actions used by the router ---

    async def shutter(self, action: str, shutter_id: str, value: Any = None) -> bool:
        driver = self.shutters.get(shutter_id)
        if driver is None:
            logger.debug("[%s] unknown shutter %s", self.ctx.room_id, shutter_id)
            return False

        if action == "max":
            await driver.set_max(value)
        elif action == "stop":
            await driver.stop_movement()
        elif action in ("up", "down", "toggle"):
            await getattr(driver, action)()
        else:
            logger.warning("[%s] unknown shutter action %s", self.ctx.room_id, action)
            return False
        return True

    async def button(self, action: str, button_id: str, value: Any = None) -> bool:
        if action != "active":
            return False
        driver = self.buttons.get(button_id)
        if driver is None:
            logger.debug("[%s] unknown button %s", self.ctx.room_id, button_id)
            return False

        if value:
            await driver.start()
        else:
            await driver.stop()
        logger.info("[%s] button %s active=%s", self.ctx.room_id, button_id, bool(value))
        return True

    def has_fan(self, fan_id: str) -> bool:
        return fan_id in self.fans

    async def fan(self, fan_id: Optional[str] = None) -> None:
        """Evaluate the given fan (or every fan) right away."""
        if self.fan_service is not None:
            await self.fan_service.evaluate(fan_id)

    def schedule_fan(self, fan_id: str) -> None:
        """Evaluate the fan after the settle delay."""
        if self.fan_service is not None and fan_id in self.fans:
            self.fan_service.schedule_evaluation(fan_id)

    # --- Driver notifications -> outbound publishes ---

    async def _on_change(self, change: DeviceChange) -> None:
        if self._stopped:
            return

        topic = topics.device_topic(self.ctx.room_id, change.kind, change.device_id, change.attribute)
        payload = None if change.value is None else topics.value_payload(change.value)
        await self._publish(topic, payload, change.retain)

        if change.kind == topics.BUTTON and change.attribute in ("close", "open"):
            cfg = self._button_configs.get(change.device_id)
            if cfg is not None:
                await self._run_button_action(cfg.on_close if change.attribute == "close" else cfg.on_open)

    async def _run_button_action(self, action: Optional[ButtonAction]) -> None:
        if action is None:
            return
        payload = None if action.value is None else topics.value_payload(action.value)
        await self._publish(action.topic, payload, retain=False)

    async def _publish(self, topic: str, payload: Optional[dict], retain: bool) -> None:
        try:
            await self.ctx.publisher.publish(topic, payload, retain=retain)
        except Exception as e:
            logger.warning("Failed to publish %s: %s", topic, e)


def _position(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
