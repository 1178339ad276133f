from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from .models import DeviceChange

logger = logging.getLogger(__name__)

ChangeListener = Callable[[DeviceChange], Awaitable[None]]


class ChangeNotifier:
    """Typed "state changed" notification shared by all drivers.

    A failing listener is logged and does not stop the others.
    """

    kind: str = ""

    def __init__(self, device_id: str) -> None:
        self.device_id = device_id
        self._listeners: list[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    async def _emit(self, attribute: str, value: Any = None, retain: bool = True, kind: str = "") -> None:
        change = DeviceChange(
            kind=kind or self.kind,
            device_id=self.device_id,
            attribute=attribute,
            value=value,
            retain=retain,
        )
        for listener in list(self._listeners):
            try:
                await listener(change)
            except Exception:
                logger.exception("Listener failed for %s/%s/%s", change.kind, change.device_id, attribute)
