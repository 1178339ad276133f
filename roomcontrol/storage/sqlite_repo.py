from __future__ import annotations
import aiosqlite
from datetime import datetime
from typing import List
from ..domain.models import FanAction


class SQLiteRepository:
    def __init__(self, path: str) -> None:
        self._path = path

    async def init(self) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS fan_actions (
                    ts_utc TEXT NOT NULL,
                    room_id TEXT NOT NULL,
                    fan_id TEXT NOT NULL,
                    speed TEXT NOT NULL,
                    previous TEXT NOT NULL,
                    reason TEXT NOT NULL,
                    humidity REAL,
                    trailing INTEGER NOT NULL
                )
                """
            )
            await db.execute("CREATE INDEX IF NOT EXISTS idx_fan_actions_ts ON fan_actions(ts_utc)")
            await db.commit()

    async def insert_action(self, a: FanAction) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                "INSERT INTO fan_actions(ts_utc,room_id,fan_id,speed,previous,reason,humidity,trailing) VALUES (?,?,?,?,?,?,?,?)",
                (
                    a.ts_utc.isoformat(),
                    a.room_id,
                    a.fan_id,
                    a.speed,
                    a.previous,
                    a.reason,
                    a.humidity,
                    1 if a.trailing else 0,
                ),
            )
            await db.commit()

    async def query_actions(self, start_ts: str, end_ts: str, limit: int) -> List[FanAction]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                """
                SELECT ts_utc,room_id,fan_id,speed,previous,reason,humidity,trailing
                FROM fan_actions
                WHERE ts_utc >= ? AND ts_utc <= ?
                ORDER BY ts_utc DESC
                LIMIT ?
                """,
                (start_ts, end_ts, limit),
            )
            rows = await cur.fetchall()
        out: list[FanAction] = []
        for ts, room_id, fan_id, speed, previous, reason, humidity, trailing in rows:
            out.append(
                FanAction(
                    ts_utc=datetime.fromisoformat(ts),
                    room_id=room_id,
                    fan_id=fan_id,
                    speed=speed,
                    previous=previous,
                    reason=reason,
                    humidity=humidity,
                    trailing=bool(trailing),
                )
            )
        return list(reversed(out))
