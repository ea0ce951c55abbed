"""
Tests for the HTTP health server endpoints.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest
from aiohttp.test_utils import TestClient, TestServer

from roombot.core.health_server import HealthCheckServer


def make_bot(ready=True, killed=False):
    bot = Mock()
    bot.registry.ready = ready
    bot.killed = killed
    bot.get_status.return_value = {"room": "lobby", "killed": killed, "queues": []}
    return bot


class TestEndpoints:
    @pytest.mark.asyncio
    async def test_health_ready(self):
        server = HealthCheckServer(make_bot())
        async with TestClient(TestServer(server.app)) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            assert await resp.json() == {"status": "healthy", "ready": True}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bot", [None, make_bot(ready=False), make_bot(killed=True)])
    async def test_health_not_ready(self, bot):
        server = HealthCheckServer(bot)
        async with TestClient(TestServer(server.app)) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            assert (await resp.json())["ready"] is False

    @pytest.mark.asyncio
    async def test_status(self):
        server = HealthCheckServer(make_bot())
        async with TestClient(TestServer(server.app)) as client:
            data = await (await client.get("/status")).json()
            assert data["service"] == "roombot"
            assert data["room"] == "lobby"

    @pytest.mark.asyncio
    async def test_status_without_bot(self):
        server = HealthCheckServer()
        async with TestClient(TestServer(server.app)) as client:
            data = await (await client.get("/status")).json()
            assert "uptime_seconds" in data

    @pytest.mark.asyncio
    async def test_root_and_ping(self):
        server = HealthCheckServer(make_bot())
        async with TestClient(TestServer(server.app)) as client:
            assert (await (await client.get("/")).json())["status"] == "running"
            resp = await client.get("/ping")
            assert await resp.text() == "pong"


@pytest.mark.asyncio
async def test_start_and_stop():
    server = HealthCheckServer(make_bot(), host="127.0.0.1", port=0)
    await server.start()
    assert server._heartbeat_task is not None
    await server.stop()
    with pytest.raises(asyncio.CancelledError):
        await server._heartbeat_task


@pytest.mark.asyncio
async def test_commands_table(make_command, make_registry):
    bot = make_bot()
    bot.registry = make_registry(
        make_command("roll", min_rank=1, cmd_cooldown=1000),
        make_command("bad", rank_match="=>"),
        aliases={"dice": "roll"},
    )
    server = HealthCheckServer(bot)

    async with TestClient(TestServer(server.app)) as client:
        data = await (await client.get("/commands")).json()

    bad, roll = data["commands"]
    assert bad["broken"] and not bad["active"]
    assert roll == {
        "name": "roll",
        "aliases": ["dice"],
        "active": True,
        "broken": False,
        "rank": ">=1",
        "user_cooldown": 0,
        "cmd_cooldown": 1000,
    }


@pytest.mark.asyncio
async def test_heartbeat_logs(caplog):
    caplog.set_level(logging.INFO, logger="Bot.Health")
    server = HealthCheckServer(make_bot(), heartbeat_interval=0.01)

    task = asyncio.create_task(server._heartbeat())
    await asyncio.sleep(0.05)
    task.cancel()

    assert "Heartbeat: uptime=0s, ready=True, queued=0" in caplog.text


@pytest.mark.asyncio
async def test_status_reports_database():
    database = Mock()
    database.check_health = AsyncMock(return_value=False)
    server = HealthCheckServer(make_bot(), database=database)

    async with TestClient(TestServer(server.app)) as client:
        data = await (await client.get("/status")).json()

    assert data["database"] is False
