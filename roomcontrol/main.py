from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .core.config import settings
from .core.log import configure_logging
from .core.rooms import load_rooms, parse_tasks, resolve_tasks

from .api.routes import router as api_router
import roomcontrol.api.routes as routes_module

from .drivers.factory import DriverFactory
from .services.node import Node, cleanup_lock_file
from .services.transport import MqttTransport
from .storage.sqlite_repo import SQLiteRepository


logger = logging.getLogger(__name__)


repo = SQLiteRepository(settings.sqlite_path)
node: Node | None = None


def build_node() -> Node:
    rooms = load_rooms(settings.rooms_path)
    tasks = resolve_tasks(rooms, parse_tasks(settings.tasks))
    transport = MqttTransport(
        settings.mqtt_host,
        settings.mqtt_port,
        client_id=settings.mqtt_client_id,
        keepalive=settings.mqtt_keepalive,
    )
    return Node(
        rooms,
        tasks,
        transport,
        node_name=settings.node_name,
        factory=DriverFactory(settings.driver_mode),
        repo=repo,
    )


def get_node() -> Node:
    assert node is not None
    return node


def get_repo() -> SQLiteRepository:
    return repo


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting %s (node=%s drivers=%s)", settings.app_name, settings.node_name, settings.driver_mode)

    if settings.driver_mode.lower() == "gpio":
        cleanup_lock_file(settings.pigpio_lock_path)

    await repo.init()

    global node
    node = build_node()
    await node.start()

    try:
        yield
    finally:
        if node:
            await node.stop()

        logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Make the dependency functions in routes resolve to the real ones
app.dependency_overrides[routes_module.get_node] = get_node
app.dependency_overrides[routes_module.get_repo] = get_repo

app.include_router(api_router, prefix="/api")


def run() -> None:
    uvicorn.run("roomcontrol.main:app", host=settings.api_host, port=settings.api_port)
