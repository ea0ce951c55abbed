"""Repositories for persisted room settings (command overrides, disallow list).

Two interchangeable stores:
  - ``JsonSettingsRepository``: one JSON file per room, no infrastructure.
  - ``PgSettingsRepository``: ``room_settings`` table, one JSONB row per room.

``load`` raises ``SettingsLoadError`` when a stored payload exists but cannot
be parsed; callers abort startup rather than silently dropping overrides.
``save`` never raises: failures are logged and reported as ``False``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

import asyncpg
from pydantic import ValidationError

from roombot.shared.models.room_settings import RoomSettings

logger = logging.getLogger(__name__)


class SettingsLoadError(Exception):
    """A stored settings payload exists but is unreadable or malformed."""


class SettingsRepository(Protocol):
    async def load(self, room: str) -> RoomSettings | None: ...

    async def save(self, room: str, settings: RoomSettings) -> bool: ...


def _parse(payload: str | bytes, source: str) -> RoomSettings:
    try:
        return RoomSettings.model_validate_json(payload)
    except ValidationError as e:
        raise SettingsLoadError(f"Malformed settings in {source}: {e}") from e


class JsonSettingsRepository:
    """Settings stored as a JSON file; ``path_for(room)`` picks the file."""

    def __init__(self, data_dir: Path, *, per_room: bool = True) -> None:
        self.data_dir = Path(data_dir)
        self.per_room = per_room

    def path_for(self, room: str) -> Path:
        if self.per_room:
            return self.data_dir / f"settings-{room}.json"
        return self.data_dir / "settings.json"

    async def load(self, room: str) -> RoomSettings | None:
        path = self.path_for(room)
        try:
            payload = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            logger.info(f"No settings file at {path}, using defaults")
            return None
        except OSError as e:
            raise SettingsLoadError(f"Could not read {path}: {e}") from e
        return _parse(payload, str(path))

    async def save(self, room: str, settings: RoomSettings) -> bool:
        path = self.path_for(room)
        payload = settings.model_dump_json(indent=2)
        try:
            await asyncio.to_thread(self._write_atomic, path, payload)
        except OSError as e:
            logger.error(f"Failed to write settings to {path}: {e}")
            return False
        logger.debug(f"Settings written to {path}")
        return True

    @staticmethod
    def _write_atomic(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


class PgSettingsRepository:
    """Pure SQL operations for room_settings."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """CREATE TABLE IF NOT EXISTS room_settings(
                    room TEXT PRIMARY KEY,
                    data JSONB NOT NULL,
                    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                )"""
            )

    async def load(self, room: str) -> RoomSettings | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT data FROM room_settings WHERE room = $1", room)
        if not row:
            logger.info(f"No stored settings for room {room}, using defaults")
            return None
        data = row["data"]
        if not isinstance(data, (str, bytes)):
            data = json.dumps(data)
        return _parse(data, f"room_settings[{room}]")

    async def save(self, room: str, settings: RoomSettings) -> bool:
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO room_settings (room, data)
                    VALUES ($1, $2::jsonb)
                    ON CONFLICT (room) DO UPDATE SET
                        data       = EXCLUDED.data,
                        updated_at = NOW()
                    """,
                    room,
                    settings.model_dump_json(),
                )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to save settings for room {room}: {type(e).__name__}: {e}")
            return False
        return True
