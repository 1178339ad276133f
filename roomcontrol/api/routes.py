from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import settings
from ..core.timeutil import now_utc, now_local
from ..domain import topics
from ..services.node import Node
from ..services.router import RouteResult
from ..storage.sqlite_repo import SQLiteRepository
from .schemas import ValueRequest

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters (imported from main via circular-safe approach) ---
# We define them here as callables that main.py will set via app.dependency_overrides.
def get_node() -> Node:  # overridden in main
    raise RuntimeError("Node dependency not configured")

def get_repo() -> SQLiteRepository:  # overridden in main
    raise RuntimeError("Repo dependency not configured")


def _room_or_404(node: Node, room_id: str):
    room = node.rooms.get(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail=f"Unknown room: {room_id}")
    return room


async def _route(node: Node, topic: str, req: Optional[ValueRequest]) -> dict:
    payload = {} if req is None else req.model_dump()
    result = await node.router.handle(topic, payload)
    if result == RouteResult.UNKNOWN_DEVICE:
        raise HTTPException(status_code=404, detail=f"Unknown device for {topic}")
    if result == RouteResult.DROPPED:
        raise HTTPException(status_code=400, detail=f"Command rejected: {topic}")
    if result == RouteResult.FAILED:
        raise HTTPException(status_code=500, detail=f"Command failed: {topic}")
    return {"ok": True, "topic": topic, "result": result.value}


@router.get("/live")
async def get_live(node: Node = Depends(get_node)):
    stats = getattr(node.transport, "stats", None)
    return {
        "app": settings.app_name,
        "node": node.node_name,
        "now_local": now_local().isoformat(),
        "started": node.started,
        "tasks": node.tasks,
        "rooms": [{"id": r.id, "label": r.label} for r in node.rooms.values()],
        "transport": stats.to_dict() if stats is not None else None,
    }


@router.get("/rooms/{room_id}/status")
async def get_room_status(room_id: str, node: Node = Depends(get_node)):
    _room_or_404(node, room_id)
    return {"room": room_id, "status": node.cache.snapshot(room_id)}


@router.get("/rooms/{room_id}/fans")
async def get_room_fans(room_id: str, node: Node = Depends(get_node)):
    _room_or_404(node, room_id)
    control = node.controls.get(room_id)
    fans = control.fan_service.status() if control and control.fan_service else []
    return {"room": room_id, "fans": fans}


@router.post("/rooms/{room_id}/fans/{fan_id}/{attribute}")
async def fan_command(
    room_id: str,
    fan_id: str,
    attribute: str,
    req: Optional[ValueRequest] = None,
    node: Node = Depends(get_node),
):
    _room_or_404(node, room_id)
    return await _route(node, topics.fan_attribute(room_id, fan_id, attribute), req)


@router.post("/rooms/{room_id}/shutters/{shutter_id}/{action}")
async def shutter_command(
    room_id: str,
    shutter_id: str,
    action: str,
    req: Optional[ValueRequest] = None,
    node: Node = Depends(get_node),
):
    _room_or_404(node, room_id)
    if action not in topics.SHUTTER_ACTIONS:
        raise HTTPException(status_code=400, detail=f"Unknown shutter action: {action}")
    return await _route(node, topics.shutter_action(room_id, shutter_id, action), req)


@router.post("/rooms/{room_id}/buttons/{button_id}/active")
async def button_active(
    room_id: str,
    button_id: str,
    req: ValueRequest,
    node: Node = Depends(get_node),
):
    _room_or_404(node, room_id)
    return await _route(node, topics.button_active(room_id, button_id), req)


@router.get("/actions")
async def actions(
    minutes: int = 240,
    limit: int = 2000,
    repo: SQLiteRepository = Depends(get_repo),
):
    end = now_utc()
    start = end - timedelta(minutes=max(1, minutes))
    rows = await repo.query_actions(start.isoformat(), end.isoformat(), limit=min(limit, 20000))
    return {
        "start_utc": start.isoformat(),
        "end_utc": end.isoformat(),
        "rows": [
            {
                "ts_utc": a.ts_utc.isoformat(),
                "room_id": a.room_id,
                "fan_id": a.fan_id,
                "speed": a.speed,
                "previous": a.previous,
                "reason": a.reason,
                "humidity": a.humidity,
                "trailing": a.trailing,
            }
            for a in rows
        ],
    }
