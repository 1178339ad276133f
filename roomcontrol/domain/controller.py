from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional
from .models import SPEEDS, FanDecision, FanInputs, FanRuntimeState, Speed
from ..core.timeutil import seconds_since

logger = logging.getLogger(__name__)

# Drop-out bands below the switch-on thresholds
MIN_BAND_HYSTERESIS = 5.0
MAX_BAND_HYSTERESIS = 10.0


def humidity_speed(humidity: Optional[float], speed: str, min_threshold: float, max_threshold: float) -> tuple[Speed, str]:
    """Speed demanded by humidity alone, with the reason for it."""
    if humidity is None:
        return "off", "No humidity reading"

    down_to_max = max_threshold - MAX_BAND_HYSTERESIS
    down_to_min = min_threshold - MIN_BAND_HYSTERESIS

    if humidity > max_threshold:
        return "max", f"Humidity {humidity:.1f} > {max_threshold:.0f}"
    if speed == "max" and humidity > down_to_max:
        return "max", f"Keep max, humidity {humidity:.1f} > {down_to_max:.0f}"
    if humidity > min_threshold:
        return "min", f"Humidity {humidity:.1f} > {min_threshold:.0f}"
    if speed == "min" and humidity > down_to_min:
        return "min", f"Keep min, humidity {humidity:.1f} > {down_to_min:.0f}"
    return "off", f"Humidity {humidity:.1f} within limits"


class FanController:
    """Per-fan speed decision: manual override, minimum run time, humidity
    hysteresis and the light trailing latch.

    The controller only decides. Reading the status cache, driving the fan and
    announcing the new speed is done by the fan service.
    """

    def __init__(self) -> None:
        self._states: dict[str, FanRuntimeState] = {}

    def state(self, fan_id: str) -> FanRuntimeState:
        st = self._states.get(fan_id)
        if st is None:
            st = self._states[fan_id] = FanRuntimeState()
        return st

    def _update_trailing(self, fan_id: str, inputs: FanInputs, now: datetime) -> bool:
        st = self.state(fan_id)

        min_on_since: Optional[datetime] = None
        max_off_since: Optional[datetime] = None
        any_on = False

        for light in inputs.lights:
            if light.on:
                any_on = True
                if min_on_since is None or light.since < min_on_since:
                    min_on_since = light.since
            elif max_off_since is None or light.since > max_off_since:
                max_off_since = light.since

        if any_on and min_on_since is not None:
            on_for = seconds_since(min_on_since, now)
            logger.debug("[%s] light(s) on for %.0fs", fan_id, on_for)
            if on_for > inputs.light_timeout:
                if not st.trailing:
                    logger.info("[%s] light timeout of %ss reached, trailing", fan_id, inputs.light_timeout)
                st.trailing = True

        if not any_on and st.trailing and max_off_since is not None:
            off_for = seconds_since(max_off_since, now)
            if off_for > inputs.trailing_time:
                logger.info("[%s] trailing time of %ss reached", fan_id, inputs.trailing_time)
                st.trailing = False
            else:
                logger.debug("[%s] keep trailing, lights off for %.0fs of %ss", fan_id, off_for, inputs.trailing_time)

        return st.trailing

    def decide(self, fan_id: str, inputs: FanInputs, now: datetime) -> FanDecision:
        st = self.state(fan_id)
        st.last_evaluated_utc = now
        decision = self._decide(fan_id, inputs, now)
        st.last_decision = decision
        return decision

    def _decide(self, fan_id: str, inputs: FanInputs, now: datetime) -> FanDecision:
        st = self.state(fan_id)
        speed = inputs.speed

        # Manual override always wins
        if inputs.control == "manual":
            if speed not in SPEEDS:
                return FanDecision("INVALID", None, speed, f"Unknown manual speed {speed!r}", st.trailing, inputs.humidity)
            return FanDecision("MANUAL", speed, speed, "Manual control", st.trailing, inputs.humidity)

        if speed not in SPEEDS:
            logger.warning("[%s] unknown cached speed %r, treating as off", fan_id, speed)
            speed = "off"

        # Prevent motor short-cycling
        if speed != "off":
            running_for = seconds_since(inputs.speed_since, now)
            if running_for < inputs.min_run_time:
                return FanDecision(
                    "HOLD",
                    speed,
                    speed,
                    f"Keep {speed}, min run time {inputs.min_run_time:.0f}s not reached ({running_for:.0f}s)",
                    st.trailing,
                    inputs.humidity,
                )

        new_speed, reason = humidity_speed(
            inputs.humidity, speed, inputs.min_humidity_threshold, inputs.max_humidity_threshold
        )

        if self._update_trailing(fan_id, inputs, now):
            if new_speed != "min":
                reason = f"Trailing after light use ({reason})"
            new_speed = "min"

        return FanDecision("AUTO", new_speed, inputs.speed, reason, st.trailing, inputs.humidity)
