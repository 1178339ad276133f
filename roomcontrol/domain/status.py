from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Any, Optional

from .models import StatusEntry, StatusKey
from ..core.timeutil import now_utc


class StatusCache:
    """Last observed value of every device attribute, keyed by `StatusKey`.

    `since` is the time the value last *changed*; re-reporting the same value
    leaves it alone and it never moves backwards.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._entries: dict[StatusKey, StatusEntry] = {}

    def merge(self, key: StatusKey, value: Any, now: Optional[datetime] = None) -> bool:
        """Store `value` under `key`. Returns True when the value changed."""
        ts = now or now_utc()
        with self._lock:
            prev = self._entries.get(key)
            if prev is not None and prev.value == value:
                return False
            since = ts if prev is None else max(ts, prev.since)
            self._entries[key] = StatusEntry(value=value, since=since)
            return True

    def get(self, key: StatusKey, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
        return default if entry is None else entry.value

    def get_entry(self, key: StatusKey) -> Optional[StatusEntry]:
        with self._lock:
            return self._entries.get(key)

    def since(self, key: StatusKey, default: Optional[datetime] = None) -> Optional[datetime]:
        entry = self.get_entry(key)
        return default if entry is None else entry.since

    def __contains__(self, key: StatusKey) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def snapshot(self, room: Optional[str] = None) -> dict:
        """Nested plain-dict view: {room: {kind: {device: {attribute: {value, since}}}}}.

        With `room` given, the outer room level is dropped.
        """
        with self._lock:
            items = list(self._entries.items())

        out: dict = {}
        for key, entry in items:
            if room is not None and key.room != room:
                continue
            node = out if room is not None else out.setdefault(key.room, {})
            node = node.setdefault(key.kind, {}).setdefault(key.device, {})
            node[key.attribute] = {"value": entry.value, "since": entry.since.isoformat()}
        return out
