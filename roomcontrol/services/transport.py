"""MQTT transport: paho network thread bridged onto the asyncio loop."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import paho.mqtt.client as mqtt

from ..core.errors import TransportError
from ..domain import topics

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, bytes], Awaitable[Any]]


def create_mqtt_client(client_id: str = "") -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
    )


@dataclass
class TransportStats:
    connected: bool = False
    connection_attempts: int = 0
    successful_publishes: int = 0
    failed_publishes: int = 0
    received: int = 0

    def to_dict(self) -> dict:
        return {
            "connected": self.connected,
            "connection_attempts": self.connection_attempts,
            "successful_publishes": self.successful_publishes,
            "failed_publishes": self.failed_publishes,
            "received": self.received,
        }


class MqttTransport:
    """Publish/subscribe client.

    Inbound messages are handed to `handler` as tasks on the event loop, in
    arrival order. Subscriptions are replayed after every (re)connect.
    """

    def __init__(self, host: str, port: int = 1883, client_id: str = "", keepalive: int = 60) -> None:
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self.client = create_mqtt_client(client_id)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message
        self.stats = TransportStats()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handler: Optional[MessageHandler] = None
        self._connected = asyncio.Event()
        self._topics: list[str] = []
        self._tasks: set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        return self.stats.connected

    async def connect(self, handler: MessageHandler, timeout: float = 10.0) -> None:
        self._loop = asyncio.get_running_loop()
        self._handler = handler
        self.stats.connection_attempts += 1
        try:
            self.client.connect_async(self.host, self.port, self.keepalive)
            self.client.loop_start()
        except Exception as e:
            raise TransportError(f"Cannot connect to MQTT broker {self.host}:{self.port}: {e}") from e

        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            # paho keeps retrying in the background
            logger.warning("MQTT broker %s:%s not reachable yet, continuing", self.host, self.port)

    async def disconnect(self) -> None:
        try:
            self.client.disconnect()
        finally:
            self.client.loop_stop()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.stats.connected = False
        logger.info("Disconnected from MQTT broker")

    async def publish(self, topic: str, payload: Optional[dict] = None, retain: bool = False) -> None:
        info = self.client.publish(topic, topics.encode_payload(payload), qos=1, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self.stats.failed_publishes += 1
            raise TransportError(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")
        self.stats.successful_publishes += 1
        logger.debug("Published %s %s retain=%s", topic, payload, retain)

    async def subscribe(self, topic: str) -> None:
        if topic in self._topics:
            return
        self._topics.append(topic)
        if self.connected:
            self._subscribe(topic)

    def _subscribe(self, topic: str) -> None:
        result, _mid = self.client.subscribe(topic, qos=1)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"Subscribe to {topic} failed: {mqtt.error_string(result)}")
        logger.debug("Subscribed to %s", topic)

    # --- paho callbacks (network thread) ---

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connect refused: %s", reason_code)
            return
        logger.info("Connected to MQTT broker %s:%s", self.host, self.port)
        self.stats.connected = True
        for topic in list(self._topics):
            try:
                self._subscribe(topic)
            except TransportError as e:
                logger.error("%s", e)
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._connected.set)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self.stats.connected = False
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._connected.clear)
        logger.warning("Disconnected from MQTT broker: %s", reason_code)

    def _on_message(self, client, userdata, msg) -> None:
        self.stats.received += 1
        if self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._spawn, msg.topic, msg.payload)

    def _spawn(self, topic: str, payload: bytes) -> None:
        if self._handler is None:
            return
        task = asyncio.create_task(self._handler(topic, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
