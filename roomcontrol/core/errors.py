class RoomControlError(Exception):
    """Base class for errors raised by the room control node."""


class ConfigError(RoomControlError):
    """Room configuration or task list could not be loaded."""


class TransportError(RoomControlError):
    """A publish or subscribe on the message broker failed."""


class DriverError(RoomControlError):
    """A device driver could not perform the requested action."""
