from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from .context import RoomContext
from ..core.config import settings
from ..core.tasks import DelayedCall, PeriodicTask
from ..core.timeutil import now_utc
from ..domain import topics
from ..domain.controller import FanController
from ..domain.interfaces import Fan, Repository
from ..domain.models import FanAction, FanConfig, FanDecision, FanInputs, LightReading, StatusKey


logger = logging.getLogger(__name__)


def _number(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return float(default)
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric value %r, using %s", value, default)
        return float(default)


def _humidity(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class FanService:
    """Evaluates the fans of one room against the status cache.

    Runs on a fixed period and on demand (immediately, or after the settle
    delay for command-triggered evaluations).
    """

    def __init__(
        self,
        ctx: RoomContext,
        fans: Mapping[str, Fan],
        controller: Optional[FanController] = None,
        repo: Optional[Repository] = None,
        interval: Optional[float] = None,
        settle_seconds: Optional[float] = None,
    ) -> None:
        self._ctx = ctx
        self._fans = dict(fans)
        self.controller = controller or FanController()
        self._repo = repo
        self._settle = settings.settle_seconds if settle_seconds is None else settle_seconds

        self._ticker = PeriodicTask(
            name=f"fans_{ctx.room_id}",
            interval=settings.fan_eval_seconds if interval is None else interval,
            callback=self.evaluate,
        )
        self._pending: dict[str, DelayedCall] = {}

    @property
    def fan_ids(self) -> list[str]:
        return [f.id for f in self._ctx.room.fans if f.id in self._fans]

    def start(self) -> None:
        self._ticker.start()

    async def stop(self) -> None:
        await self._ticker.stop()
        for call in self._pending.values():
            await call.cancel()
        self._pending.clear()

    def _key(self, fan_id: str, attribute: str) -> StatusKey:
        return StatusKey(self._ctx.room_id, topics.FAN, fan_id, attribute)

    def gather_inputs(self, fan: FanConfig, now: datetime) -> FanInputs:
        cache = self._ctx.cache
        room = self._ctx.room

        humidity = None
        if room.main_humidity:
            humidity = _humidity(cache.get(StatusKey(room.id, topics.HUMIDITY, room.main_humidity)))

        lights = []
        for light_id in fan.trigger_lights:
            entry = cache.get_entry(StatusKey(room.id, topics.LIGHT, light_id))
            if entry is not None:
                lights.append(LightReading(light_id, entry.value, entry.since))

        speed_key = self._key(fan.id, "speed")
        return FanInputs(
            humidity=humidity,
            min_humidity_threshold=_number(cache.get(self._key(fan.id, "minHumidityThreshold")), fan.min_humidity_threshold),
            max_humidity_threshold=_number(cache.get(self._key(fan.id, "maxHumidityThreshold")), fan.max_humidity_threshold),
            min_run_time=_number(cache.get(self._key(fan.id, "minRunTime")), fan.min_run_time),
            light_timeout=_number(cache.get(self._key(fan.id, "lightTimeout")), fan.light_timeout),
            trailing_time=_number(cache.get(self._key(fan.id, "trailingTime")), fan.trailing_time),
            control=str(cache.get(self._key(fan.id, "control"), "manual")),
            speed=str(cache.get(speed_key, "off")),
            speed_since=cache.since(speed_key, now) or now,
            lights=tuple(lights),
        )

    async def evaluate(self, fan_id: Optional[str] = None, now: Optional[datetime] = None) -> list[FanDecision]:
        """Evaluate one fan (or all) under the room lock."""
        fans = [f for f in self._ctx.room.fans if f.id in self._fans and (fan_id is None or f.id == fan_id)]
        if fan_id is not None and not fans:
            logger.debug("No fan %s in room %s", fan_id, self._ctx.room_id)
            return []

        decisions = []
        async with self._ctx.lock:
            for fan in fans:
                decisions.append(await self._evaluate_fan(fan, now or now_utc()))
        return decisions

    def schedule_evaluation(self, fan_id: str) -> None:
        """Re-evaluate `fan_id` once the settle delay has passed."""
        call = self._pending.get(fan_id)
        if call is None:
            call = self._pending[fan_id] = DelayedCall(
                name=f"fan_settle_{self._ctx.room_id}_{fan_id}",
                delay=self._settle,
                callback=lambda: self._evaluate_one(fan_id),
            )
        call.schedule()

    async def _evaluate_one(self, fan_id: str) -> None:
        await self.evaluate(fan_id)

    async def _evaluate_fan(self, fan: FanConfig, now: datetime) -> FanDecision:
        location = self._ctx.location(fan.label or fan.id)
        inputs = self.gather_inputs(fan, now)
        decision = self.controller.decide(fan.id, inputs, now)

        logger.debug(
            "[%s] %s speed=%s -> %s (%s) humidity=%s trailing=%s",
            location, decision.action, decision.previous, decision.speed,
            decision.reason, decision.humidity, decision.trailing,
        )

        if decision.speed is None:
            logger.warning("[%s] no actuation: %s", location, decision.reason)
            return decision

        if decision.changed:
            logger.info("[%s] fan %s -> %s: %s", location, decision.previous, decision.speed, decision.reason)
            await self._announce(fan, decision, now)

        await self._actuate(fan, decision.speed, location)
        return decision

    async def _announce(self, fan: FanConfig, decision: FanDecision, now: datetime) -> None:
        try:
            await self._ctx.publisher.publish(
                topics.fan_speed(self._ctx.room_id, fan.id),
                topics.value_payload(decision.speed),
                retain=True,
            )
        except Exception as e:
            logger.warning("Failed to publish speed of fan %s: %s", fan.id, e)

        # The retained publish comes back through the router as well; merging
        # here keeps the next tick correct when the broker is unreachable.
        self._ctx.cache.merge(self._key(fan.id, "speed"), decision.speed, now)

        if self._repo is not None:
            try:
                await self._repo.insert_action(
                    FanAction(
                        ts_utc=now,
                        room_id=self._ctx.room_id,
                        fan_id=fan.id,
                        speed=decision.speed or "off",
                        previous=decision.previous,
                        reason=decision.reason,
                        humidity=decision.humidity,
                        trailing=decision.trailing,
                    )
                )
            except Exception as e:
                logger.exception("Failed to record fan action: %s", e)

    async def _actuate(self, fan: FanConfig, speed: str, location: str) -> None:
        driver = self._fans[fan.id]
        try:
            await getattr(driver, speed)()
        except Exception as e:
            logger.exception("[%s] fan driver failed to set %s: %s", location, speed, e)

    def status(self) -> list[dict]:
        out = []
        now = now_utc()
        for fan in self._ctx.room.fans:
            if fan.id not in self._fans:
                continue
            inputs = self.gather_inputs(fan, now)
            st = self.controller.state(fan.id)
            d = st.last_decision
            out.append({
                "id": fan.id,
                "label": fan.label,
                "control": inputs.control,
                "speed": inputs.speed,
                "speed_since": inputs.speed_since.isoformat(),
                "humidity": inputs.humidity,
                "trailing": st.trailing,
                "thresholds": {
                    "min_humidity": inputs.min_humidity_threshold,
                    "max_humidity": inputs.max_humidity_threshold,
                    "min_run_time": inputs.min_run_time,
                    "light_timeout": inputs.light_timeout,
                    "trailing_time": inputs.trailing_time,
                },
                "last_evaluated_utc": st.last_evaluated_utc.isoformat() if st.last_evaluated_utc else None,
                "last_decision": d.action if d else None,
                "last_reason": d.reason if d else None,
            })
        return out
