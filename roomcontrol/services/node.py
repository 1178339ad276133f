from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Mapping, Optional

from .context import RoomContext
from .room_control import RoomControl
from .router import CommandRouter
from ..core.config import settings
from ..core.tasks import PeriodicTask
from ..domain import topics
from ..domain.interfaces import Repository
from ..domain.models import Room
from ..domain.status import StatusCache
from ..drivers.factory import DriverFactory

logger = logging.getLogger(__name__)


def cleanup_lock_file(path: str) -> bool:
    """Remove a stale pigpio lock file. Returns True when one was deleted."""
    p = Path(path)
    try:
        p.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error("Failed to cleanup lockfile [%s]: %s", path, e)
        return False
    logger.warning("Deleted lockfile [%s]", path)
    return True


def subscriptions(room: Room, tasks: list[str]) -> list[str]:
    """Topics a node running `tasks` for `room` listens to."""
    out: list[str] = []

    def add(topic: str) -> None:
        if topic not in out:
            out.append(topic)

    if "shutters" in tasks:
        for s in room.shutters:
            for action in topics.SHUTTER_ACTIONS:
                add(topics.shutter_action(room.id, s.id, action))
            add(topics.shutter_status(room.id, s.id))

    if "buttons" in tasks:
        for b in room.buttons:
            add(topics.button_active(room.id, b.id))
            add(topics.button_status(room.id, b.id))

    if "windows" in tasks:
        for w in room.windows:
            add(topics.window_status(room.id, w.id))

    if "dht22" in tasks:
        for d in room.dht22:
            add(topics.temperature_status(room.id, d.id))
            add(topics.humidity_status(room.id, d.id))

    if "lights" in tasks:
        for lt in room.lights:
            add(topics.light_status(room.id, lt.id))

    if "fans" in tasks:
        # Fans read humidity and trigger lights even when another node owns them
        if room.main_humidity:
            add(topics.humidity_status(room.id, room.main_humidity))
        for f in room.fans:
            for attribute in topics.FAN_ATTRIBUTES:
                add(topics.fan_attribute(room.id, f.id, attribute))
            add(topics.fan_attribute(room.id, f.id, topics.FAN_EVALUATE))
            for light_id in f.trigger_lights:
                add(topics.light_status(room.id, light_id))

    return out


class Node:
    """One automation node: the rooms it serves, their controls and the bus."""

    def __init__(
        self,
        rooms: Mapping[str, Room],
        tasks: Mapping[str, list[str]],
        transport,
        node_name: Optional[str] = None,
        factory: Optional[DriverFactory] = None,
        repo: Optional[Repository] = None,
        settle_seconds: Optional[float] = None,
    ) -> None:
        self.node_name = node_name or settings.node_name
        self.tasks = {room_id: list(t) for room_id, t in tasks.items()}
        self.rooms = {room_id: rooms[room_id] for room_id in self.tasks}
        self.transport = transport
        self.cache = StatusCache()
        self._factory = factory or DriverFactory()
        self._repo = repo
        self._settle = settings.settle_seconds if settle_seconds is None else settle_seconds

        self.contexts: dict[str, RoomContext] = {
            room_id: RoomContext(room=room, cache=self.cache, publisher=transport)
            for room_id, room in self.rooms.items()
        }
        self.controls: dict[str, RoomControl] = {}
        self.router = CommandRouter(self.contexts, self.controls)
        self._dump = PeriodicTask("status_dump", settings.status_dump_seconds, self._dump_status)
        self.started = False

    async def start(self) -> None:
        logger.info("INIT: %s - %s", self.node_name, self.tasks)

        await self.transport.connect(self.router.handle)

        for room_id, room in self.rooms.items():
            for topic in subscriptions(room, self.tasks[room_id]):
                await self.transport.subscribe(topic)

        try:
            await self.transport.publish(
                topics.automation_init(self.node_name), topics.value_payload("done"), retain=True
            )
        except Exception as e:
            logger.warning("Failed to announce readiness: %s", e)

        # Give retained status (button active, shutter position, fan settings) time to arrive
        if self._settle > 0:
            await asyncio.sleep(self._settle)

        for room_id, ctx in self.contexts.items():
            control = RoomControl(
                ctx, self.tasks[room_id], factory=self._factory, repo=self._repo, settle_seconds=self._settle
            )
            self.controls[room_id] = control
            await control.start()

        self._dump.start()
        self.started = True

    async def stop(self) -> None:
        await self._dump.stop()
        for control in self.controls.values():
            await control.stop()
        await self.transport.disconnect()
        self.started = False
        logger.info("Node %s stopped", self.node_name)

    async def _dump_status(self) -> None:
        logger.debug("Status %s", json.dumps(self.cache.snapshot(), indent=2, default=str))
