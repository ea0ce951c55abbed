"""HTTP health and status endpoints for the room bot"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from aiohttp import web

if TYPE_CHECKING:
    from roombot.shared.database import DatabaseManager

    from .bot import Bot

logger = logging.getLogger("Bot.Health")

SERVICE = "roombot"


class HealthCheckServer:
    """Liveness, status and command-table endpoints"""

    def __init__(
        self,
        bot: "Bot | None" = None,
        host: str = "0.0.0.0",
        port: int = 4344,
        heartbeat_interval: float = 300,
        database: "DatabaseManager | None" = None,
    ):
        self.bot: Any = bot
        self.database = database
        self.host = host
        self.port = port
        self.heartbeat_interval = heartbeat_interval
        self.app = web.Application()
        self.app.add_routes(
            [
                web.get("/", self.handle_root),
                web.get("/health", self.handle_health),
                web.get("/status", self.handle_status),
                web.get("/commands", self.handle_commands),
                web.get("/ping", self.handle_ping),
            ]
        )
        self.runner: web.AppRunner | None = None
        self._start_time: float = time.time()
        self._heartbeat_task: asyncio.Task | None = None

    @property
    def ready(self) -> bool:
        """Commands are being handled"""
        return self.bot is not None and self.bot.registry.ready and not self.bot.killed

    def _queued(self) -> int:
        if self.bot is None:
            return 0
        return sum(queue["size"] for queue in self.bot.get_status()["queues"])

    async def handle_root(self, request: web.Request) -> web.Response:
        return web.json_response({"service": SERVICE, "status": "running"})

    async def handle_health(self, request: web.Request) -> web.Response:
        """Always 200 (liveness); ``ready`` reports whether commands are handled"""
        ready = self.ready
        return web.json_response({"status": "healthy" if ready else "starting", "ready": ready})

    async def handle_status(self, request: web.Request) -> web.Response:
        status: dict[str, Any] = {"service": SERVICE}
        if self.bot is None:
            status["uptime_seconds"] = int(time.time() - self._start_time)
        else:
            status.update(self.bot.get_status())
        if self.database is not None:
            status["database"] = await self.database.check_health()
        return web.json_response(status)

    async def handle_commands(self, request: web.Request) -> web.Response:
        """Live command table: state, rank gate and cooldowns per command"""
        if self.bot is None:
            return web.json_response({"commands": []})
        registry = self.bot.registry
        commands = [
            {
                "name": command.name,
                "aliases": registry.aliases_for(command.name),
                "active": command.active,
                "broken": command.broken,
                "rank": f"{command.rank_match}{command.min_rank:g}",
                "user_cooldown": command.user_cooldown,
                "cmd_cooldown": command.cmd_cooldown,
            }
            for command in sorted(registry, key=lambda c: c.name)
        ]
        return web.json_response({"commands": commands})

    async def handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            uptime = int(time.time() - self._start_time)
            logger.info(f"Heartbeat: uptime={uptime}s, ready={self.ready}, queued={self._queued()}")

    async def start(self) -> None:
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            await web.TCPSite(self.runner, self.host, self.port).start()
            self._heartbeat_task = asyncio.create_task(self._heartbeat())
            logger.info(f"Health server listening on http://{self.host}:{self.port} (/health, /status, /commands)")
        except Exception as e:
            logger.exception(f"Failed to start health server: {e}")
            raise

    async def stop(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner:
            try:
                await self.runner.cleanup()
                logger.info("Health server stopped")
            except Exception as e:
                logger.exception(f"Error stopping health server: {e}")
