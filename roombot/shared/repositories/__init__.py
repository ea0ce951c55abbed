"""Repository layer for persisted bot state."""

from .room_settings import (
    JsonSettingsRepository,
    PgSettingsRepository,
    SettingsLoadError,
    SettingsRepository,
)

__all__ = [
    "JsonSettingsRepository",
    "PgSettingsRepository",
    "SettingsLoadError",
    "SettingsRepository",
]
