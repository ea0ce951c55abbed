"""Chat room bot: rate-limited actions and a runtime-configurable command table."""

__version__ = "0.1.0"
