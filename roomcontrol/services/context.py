from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from ..domain.interfaces import Publisher
from ..domain.models import Room
from ..domain.status import StatusCache


@dataclass
class RoomContext:
    """Everything one room's actor works on. The lock serializes status merges,
    device commands and fan evaluations of the room."""

    room: Room
    cache: StatusCache
    publisher: Publisher
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def room_id(self) -> str:
        return self.room.id

    def location(self, label: str) -> str:
        return f"{self.room.label or self.room.id}/{label}"
