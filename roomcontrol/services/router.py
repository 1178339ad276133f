from __future__ import annotations
import enum
import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from .context import RoomContext
from .room_control import RoomControl
from ..domain import topics
from ..domain.models import CONTROL_MODES, SPEEDS, StatusKey

logger = logging.getLogger(__name__)

_NUMERIC_FAN_ATTRIBUTES = frozenset(topics.FAN_ATTRIBUTES) - {"control", "speed"}


class RouteResult(str, enum.Enum):
    STATUS = "status"
    SHUTTER = "shutter"
    BUTTON = "button"
    FAN_SETTING = "fan_setting"
    FAN_EVALUATE = "fan_evaluate"
    IGNORED = "ignored"
    UNKNOWN_DEVICE = "unknown_device"
    DROPPED = "dropped"
    FAILED = "failed"


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        float(value)
    except (TypeError, ValueError):
        return False
    return True


def _valid_fan_value(attribute: str, value: Any) -> bool:
    if attribute == "control":
        return value in CONTROL_MODES
    if attribute == "speed":
        return value in SPEEDS
    if attribute in _NUMERIC_FAN_ATTRIBUTES:
        return _is_number(value)
    return False


class CommandRouter:
    """Classifies inbound bus messages and dispatches them.

    Status reports go into the status cache, commands to the room's
    `RoomControl`. `handle` never raises.
    """

    def __init__(self, contexts: Mapping[str, RoomContext], controls: Mapping[str, RoomControl]) -> None:
        self._contexts = contexts
        self._controls = controls

    async def handle(self, topic: str, payload: Any = None, now: Optional[datetime] = None) -> RouteResult:
        try:
            return await self._dispatch(topic, payload, now)
        except Exception:
            logger.warning("Failed to handle message %s", topic, exc_info=True)
            return RouteResult.FAILED

    async def _dispatch(self, topic: str, payload: Any, now: Optional[datetime]) -> RouteResult:
        logger.debug("handle %s %r", topic, payload)

        addr = topics.parse_topic(topic)
        if addr is None:
            logger.warning("Dropping message on malformed topic %r", topic)
            return RouteResult.DROPPED

        ctx = self._contexts.get(addr.room_id)
        if ctx is None:
            logger.warning("Dropping message for unknown room %s (%s)", addr.room_id, topic)
            return RouteResult.DROPPED

        if addr.kind not in topics.KINDS:
            logger.warning("Dropping message for unknown device kind %s (%s)", addr.kind, topic)
            return RouteResult.DROPPED

        try:
            data = topics.decode_payload(payload)
        except ValueError as e:
            logger.warning("Dropping message on %s with bad payload: %s", topic, e)
            return RouteResult.DROPPED

        value = data.get("value")
        sub = addr.sub_action

        if sub == topics.STATUS:
            async with ctx.lock:
                ctx.cache.merge(StatusKey(addr.room_id, addr.kind, addr.device_id), value, now)
            return RouteResult.STATUS

        if sub in topics.EVENT_ACTIONS:
            logger.debug("Ignoring event %s", topic)
            return RouteResult.IGNORED

        control = self._controls.get(addr.room_id)

        if addr.kind == topics.SHUTTER and sub in topics.SHUTTER_ACTIONS:
            if sub == "max" and not _is_number(value):
                logger.warning("Dropping shutter max without numeric value (%s: %r)", topic, value)
                return RouteResult.DROPPED
            if control is None:
                return self._not_started(topic)
            async with ctx.lock:
                ok = await control.shutter(sub, addr.device_id, value)
            return RouteResult.SHUTTER if ok else RouteResult.UNKNOWN_DEVICE

        if addr.kind == topics.BUTTON and sub in topics.BUTTON_ACTIONS:
            if not any(b.id == addr.device_id for b in ctx.room.buttons):
                return self._unknown_device(topic)
            async with ctx.lock:
                ctx.cache.merge(StatusKey(addr.room_id, addr.kind, addr.device_id, sub), bool(value), now)
                # Without a control the flag is picked up when the buttons start
                if control is not None:
                    await control.button(sub, addr.device_id, value)
            return RouteResult.BUTTON

        if addr.kind == topics.FAN and sub in topics.FAN_ATTRIBUTES:
            if ctx.room.fan(addr.device_id) is None:
                return self._unknown_device(topic)
            if not _valid_fan_value(sub, value):
                logger.warning("Dropping invalid fan %s value %r (%s)", sub, value, topic)
                return RouteResult.DROPPED
            async with ctx.lock:
                changed = ctx.cache.merge(StatusKey(addr.room_id, addr.kind, addr.device_id, sub), value, now)
            if changed and control is not None:
                control.schedule_fan(addr.device_id)
            return RouteResult.FAN_SETTING

        if addr.kind == topics.FAN and sub == topics.FAN_EVALUATE:
            if control is None:
                return self._not_started(topic)
            if not control.has_fan(addr.device_id):
                logger.debug("Unknown fan %s in room %s", addr.device_id, addr.room_id)
                return RouteResult.UNKNOWN_DEVICE
            await control.fan(addr.device_id)
            return RouteResult.FAN_EVALUATE

        logger.warning("Dropping unrecognized action %s", topic)
        return RouteResult.DROPPED

    @staticmethod
    def _unknown_device(topic: str) -> RouteResult:
        logger.debug("Unknown device for %s", topic)
        return RouteResult.UNKNOWN_DEVICE

    @staticmethod
    def _not_started(topic: str) -> RouteResult:
        logger.warning("Dropping command %s, room controls not started", topic)
        return RouteResult.DROPPED
