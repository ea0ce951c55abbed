"""
Tests for room settings models and repositories.

Tests:
- Disallow list normalization
- Out-of-range override values load and are pruned on reconcile
- JSON file repository load/save and failure modes
- PostgreSQL repository against a mocked pool
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from roombot.core.ranks import RankMatch
from roombot.core.registry import Command, CommandRegistry
from roombot.shared.models import CommandOverrides, RoomSettings
from roombot.shared.repositories.room_settings import (
    JsonSettingsRepository,
    PgSettingsRepository,
    SettingsLoadError,
)


class TestModels:
    def test_disallow_is_normalized(self):
        settings = RoomSettings(disallow=[" Alice", "alice", "BOB", ""])
        assert settings.disallow == ["alice", "bob"]

    def test_defaults(self):
        settings = RoomSettings()
        assert settings.overrides.is_empty()
        assert settings.disallow == []
        assert not settings.muted

    @pytest.mark.asyncio
    async def test_out_of_range_values_load_and_are_pruned(self, tmp_path):
        repo = JsonSettingsRepository(tmp_path)
        repo.path_for("lobby").write_text(
            '{"overrides": {"user_cooldown": {"roll": -5}, "rank_match": {"roll": "!="}}}',
            encoding="utf-8",
        )

        settings = await repo.load("lobby")
        assert settings.overrides.for_command("roll") == {"rank_match": "!=", "user_cooldown": -5}

        command = Command("roll", lambda *args: None, min_rank=0, user_cooldown=3000)
        registry = CommandRegistry({"roll": command})

        assert registry.finalize(settings.overrides)
        assert command.user_cooldown == 3000
        assert command.rank_match is RankMatch.AT_LEAST
        assert settings.overrides.is_empty()

    def test_for_command_and_unknown_category(self):
        overrides = CommandOverrides(active={"roll": False}, cmd_cooldown={"roll": 10, "pick": 5})
        assert overrides.for_command("roll") == {"active": False, "cmd_cooldown": 10}
        assert overrides.for_command("ghost") == {}
        with pytest.raises(KeyError):
            overrides.category("colour")


class TestJsonRepository:
    """One JSON file per room."""

    def test_path_for(self, tmp_path):
        assert JsonSettingsRepository(tmp_path).path_for("lobby") == tmp_path / "settings-lobby.json"
        shared = JsonSettingsRepository(tmp_path, per_room=False)
        assert shared.path_for("lobby") == tmp_path / "settings.json"

    @pytest.mark.asyncio
    async def test_missing_file_loads_none(self, tmp_path):
        assert await JsonSettingsRepository(tmp_path).load("lobby") is None

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path):
        repo = JsonSettingsRepository(tmp_path / "nested")
        settings = RoomSettings(
            overrides=CommandOverrides(min_rank={"roll": 2}, rank_match={"roll": "=="}),
            disallow=["troll"],
            muted=True,
        )

        assert await repo.save("lobby", settings)
        loaded = await repo.load("lobby")

        assert loaded == settings
        stored = json.loads(repo.path_for("lobby").read_text(encoding="utf-8"))
        assert stored["overrides"]["min_rank"] == {"roll": 2.0}
        assert list(repo.path_for("lobby").parent.glob("*.tmp")) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload", ["{not json", '{"overrides": {"min_rank": {"roll": "high"}}}', "[]"]
    )
    async def test_malformed_file_raises(self, tmp_path, payload):
        repo = JsonSettingsRepository(tmp_path)
        repo.path_for("lobby").write_text(payload, encoding="utf-8")

        with pytest.raises(SettingsLoadError):
            await repo.load("lobby")

    @pytest.mark.asyncio
    async def test_unwritable_location_reports_failure(self, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        repo = JsonSettingsRepository(blocker)

        assert await repo.save("lobby", RoomSettings()) is False
        assert "Failed to write settings" in caplog.text


@pytest.fixture
def pg_pool():
    """Mocked asyncpg pool whose acquire() yields an AsyncMock connection."""
    conn = AsyncMock()
    pool = MagicMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.acquire.return_value.__aexit__.return_value = False
    return pool, conn


class TestPgRepository:
    """room_settings table with one JSONB row per room."""

    @pytest.mark.asyncio
    async def test_ensure_schema(self, pg_pool):
        pool, conn = pg_pool
        await PgSettingsRepository(pool).ensure_schema()

        sql = conn.execute.call_args.args[0]
        assert "CREATE TABLE IF NOT EXISTS room_settings" in sql

    @pytest.mark.asyncio
    async def test_missing_row(self, pg_pool):
        pool, conn = pg_pool
        conn.fetchrow.return_value = None

        assert await PgSettingsRepository(pool).load("lobby") is None
        assert conn.fetchrow.call_args.args[1] == "lobby"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data", [{"disallow": ["Troll"], "muted": True}, '{"disallow": ["Troll"], "muted": true}']
    )
    async def test_load_decoded_or_raw_json(self, pg_pool, data):
        pool, conn = pg_pool
        conn.fetchrow.return_value = {"data": data}

        settings = await PgSettingsRepository(pool).load("lobby")

        assert settings.disallow == ["troll"]
        assert settings.muted

    @pytest.mark.asyncio
    async def test_malformed_row_raises(self, pg_pool):
        pool, conn = pg_pool
        conn.fetchrow.return_value = {"data": {"muted": "sometimes"}}

        with pytest.raises(SettingsLoadError):
            await PgSettingsRepository(pool).load("lobby")

    @pytest.mark.asyncio
    async def test_save_upserts(self, pg_pool):
        pool, conn = pg_pool
        settings = RoomSettings(disallow=["troll"])

        assert await PgSettingsRepository(pool).save("lobby", settings)

        sql, room, payload = conn.execute.call_args.args
        assert "ON CONFLICT (room) DO UPDATE" in sql
        assert room == "lobby"
        assert json.loads(payload)["disallow"] == ["troll"]

    @pytest.mark.asyncio
    async def test_save_failure_is_logged(self, pg_pool, caplog):
        pool, conn = pg_pool
        conn.execute.side_effect = OSError("connection reset")

        assert await PgSettingsRepository(pool).save("lobby", RoomSettings()) is False
        assert "Failed to save settings for room lobby" in caplog.text
