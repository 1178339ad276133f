from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


DEFAULT_ROOMS_PATH = Path(__file__).resolve().parent.parent / "config" / "rooms.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="ROOMCONTROL_", extra="ignore")

    app_name: str = "Room Control"
    timezone: str = "Europe/Berlin"

    # Node identity and which room tasks it runs ("room:task,room:task")
    node_name: str = "wohnzimmer"
    tasks: str = "wohnzimmer:shutters,wohnzimmer:dht22,wohnzimmer:windows"
    rooms_path: str = Field(default=str(DEFAULT_ROOMS_PATH))

    # MQTT broker
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_client_id: str = ""
    mqtt_keepalive: int = 60

    # Drivers: "sim" for development, "gpio" on the Raspberry Pi
    driver_mode: str = Field(default="sim")
    pigpio_lock_path: str = "/var/run/pigpio.pid"

    # Fan evaluation
    fan_eval_seconds: float = 10.0
    settle_seconds: float = 1.0

    # Debug dump of the status cache
    status_dump_seconds: float = 30.0

    # HTTP API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Storage
    sqlite_path: str = Field(default="roomcontrol.db")

    # Logging
    log_level: str = "INFO"
    log_file: str = "roomcontrol.log"

    # Sonoff DIY-mode fan relay
    sonoff_timeout_seconds: float = 5.0


settings = Settings()
