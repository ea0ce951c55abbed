"""Data models shared by the bot and its repositories."""

from .room_settings import CommandOverrides, RoomSettings

__all__ = ["CommandOverrides", "RoomSettings"]
