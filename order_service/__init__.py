"""Order lifecycle service: pricing over a message broker, ownership rules and inventory events."""

__version__ = "0.1.0"
