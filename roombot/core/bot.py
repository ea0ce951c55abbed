"""Room bot: session state, reply sink and inbound event handling."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from roombot.shared.models import RoomSettings
from roombot.shared.repositories import SettingsRepository

from .admin import CommandAdmin
from .config import BUILTIN_COMPONENTS, RoomBotSettings
from .dispatcher import Dispatcher, DispatchResult
from .loader import collect_sources
from .logging import MOD_LOGGER_NAME
from .queue import ActionQueue
from .ranks import RankTable
from .registry import ChatUser, CommandRegistry, OverlaySource

LOGGER: logging.Logger = logging.getLogger("Bot")
MOD_LOGGER: logging.Logger = logging.getLogger(MOD_LOGGER_NAME)


class RoomConnection(Protocol):
    """Outbound half of the room session."""

    async def emit(self, event: str, payload: Any = None) -> None: ...


class ConsoleConnection:
    """Connection that only logs what would be sent to the room."""

    def __init__(self) -> None:
        self.emitted: list[tuple[str, Any]] = []

    async def emit(self, event: str, payload: Any = None) -> None:
        self.emitted.append((event, payload))
        LOGGER.info(f"-> {event}: {payload}")


class Bot:
    def __init__(
        self,
        settings: RoomBotSettings,
        *,
        connection: RoomConnection | None = None,
        repository: SettingsRepository | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.cfg = settings
        self.room = settings.room
        self.username = settings.username
        self.trigger = settings.trigger
        self.ranks = RankTable(settings.ranks, settings.rank_names)
        self.rank: float = -1.0
        self.killed = False
        self.started_at = time.time()

        self.connection: RoomConnection = connection or ConsoleConnection()
        self.repository = repository
        self.settings = RoomSettings()

        # lowercased name -> user
        self.users: dict[str, ChatUser] = {}
        # capability name -> minimum rank
        self.permissions: dict[str, float] = {}
        self.permissions_received = False
        # lowercased name -> rank for everyone ranked in the room, online or not
        self.channel_ranks: dict[str, float] | None = None

        self.action_queue = ActionQueue(settings.queue_interval, "actions")
        self.broadcast_pm_queue = ActionQueue(settings.broadcast_pm_queue_interval, "broadcast_pm")
        self.large_data_queue = ActionQueue(settings.large_data_queue_interval, "large_data")

        self._clock = clock
        self._tasks: set[asyncio.Task[Any]] = set()
        self._use_registry(CommandRegistry())

    def _use_registry(self, registry: CommandRegistry) -> None:
        self.registry = registry
        self.dispatcher = Dispatcher(registry, self, clock=self._clock)
        self.admin = CommandAdmin(registry, self.ranks, reply=self.send_pm, persist=self.write_settings)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def setup(self, sources: Iterable[OverlaySource] | None = None) -> None:
        """Load settings, build the command registry and start handling commands.

        Raises ``SettingsLoadError`` if the stored settings cannot be parsed.
        """
        await self.read_settings()

        if sources is None:
            modules = [(name, True) for name in BUILTIN_COMPONENTS]
            modules.extend(self.cfg.custom_command_modules())
            sources = collect_sources(modules, self)

        self._use_registry(CommandRegistry.from_sources(sources, cooldowns=self.registry.cooldowns))
        if self.registry.finalize(self.settings.overrides):
            LOGGER.info("Stored command overrides were cleaned up")
            self.write_settings()

    async def read_settings(self) -> None:
        if self.repository is None:
            return
        loaded = await self.repository.load(self.room)
        if loaded is None:
            self.settings = RoomSettings()
            await self.repository.save(self.room, self.settings)
            return
        self.settings = loaded
        LOGGER.info(
            f"Loaded settings for {self.room} ({len(self.settings.disallow)} disallowed users)"
        )

    def write_settings(self) -> None:
        """Persist a snapshot of the settings without waiting for it."""
        if self.repository is None:
            return
        snapshot = self.settings.model_copy(deep=True)
        self._spawn(self._save_settings(self.repository, snapshot))

    async def _save_settings(self, repository: SettingsRepository, snapshot: RoomSettings) -> None:
        if not await repository.save(self.room, snapshot):
            LOGGER.error(f"Failed to write settings for {self.room}")

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.error(f"Background task failed: {task.exception()}", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for pending background writes."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Dispatcher host facts
    # ------------------------------------------------------------------

    @property
    def commands_disabled(self) -> bool:
        return self.cfg.disable_all_commands

    @property
    def min_rank_to_bypass_cooldown(self) -> float:
        return self.cfg.min_rank_to_bypass_cooldown

    @property
    def muted(self) -> bool:
        return self.settings.muted

    def has_capability(self, name: str) -> bool:
        """True if the bot's rank meets the room's threshold for ``name``."""
        if not self.permissions_received:
            return False
        threshold = self.permissions.get(name)
        if threshold is None:
            LOGGER.error(f"Tried to check permission {name} but it wasn't found!")
            return False
        return self.rank >= threshold

    def has_capabilities(self, names: Iterable[str]) -> bool:
        return all(self.has_capability(name) for name in names)

    # ------------------------------------------------------------------
    # Reply sink
    # ------------------------------------------------------------------

    def _emit(self, event: str, payload: Any = None) -> Any:
        return self.connection.emit(event, payload)

    def _can_chat(self, message: str) -> bool:
        return self.has_capability("chat") and (not self.muted or message.startswith("/"))

    def send_chat_msg(self, message: str, bypass_queue: bool = False, is_command: bool = False) -> None:
        """Send a chat line. Unless ``is_command``, a leading ``/`` is padded."""
        if not is_command and message.startswith("/"):
            message = " " + message
        if not self._can_chat(message):
            return

        def send(msg: str) -> Any:
            if not self._can_chat(msg):
                return None
            if not msg.strip():
                LOGGER.warning("Tried to send a blank chat message")
                return None
            return self._emit("chatMsg", {"msg": msg, "meta": {}})

        if bypass_queue:
            result = send(message)
            if result is not None:
                self._spawn(result)
        else:
            self.action_queue.submit(send, message, context="chat")

    def send_pm(self, username: str, message: str) -> None:
        if self.muted:
            return
        self.action_queue.submit(self._emit, "pm", {"to": username, "msg": message}, context=username)

    def broadcast_pm(self, users: Iterable[str], message: str) -> None:
        if self.muted:
            return
        for username in users:
            self.broadcast_pm_queue.submit(
                self._emit, "pm", {"to": username, "msg": message}, context=username
            )

    def get_online_mods(self, exclude_self: bool = True) -> list[str]:
        own = self.username.lower()
        return [
            user.name
            for key, user in self.users.items()
            if user.rank >= self.ranks.MOD and not (exclude_self and key == own)
        ]

    def broadcast_mod_pm(self, message: str) -> None:
        self.broadcast_pm(self.get_online_mods(), message)

    def request_channel_ranks(self) -> None:
        if self.rank >= self.ranks.ADMIN:
            self.large_data_queue.submit(self._emit, "requestChannelRanks", context="ranks")

    # ------------------------------------------------------------------
    # Users and disallow list
    # ------------------------------------------------------------------

    def get_user(self, username: str) -> ChatUser | None:
        return self.users.get(username.strip().lower())

    def get_channel_rank(self, username: str) -> float:
        """Stored room rank of ``username``; -1 if unknown."""
        return (self.channel_ranks or {}).get(username.strip().lower(), -1.0)

    def outranks(self, caller: ChatUser, target_name: str) -> bool:
        """Both the caller and the bot must rank above the target."""
        target = self.get_user(target_name)
        if target is not None:
            target_rank = target.rank
        elif self.channel_ranks is not None:
            target_rank = self.get_channel_rank(target_name)
        else:
            return False
        return caller.rank > target_rank and self.rank > target_rank

    def is_disallowed(self, username: str) -> bool:
        return username.strip().lower() in self.settings.disallow

    def disallow_user(self, username: str) -> bool:
        """Add ``username`` to the disallow list. False if already there."""
        name = username.strip().lower()
        if not name or name in self.settings.disallow:
            return False
        self.settings.disallow.append(name)
        MOD_LOGGER.info(f"{name} has been disallowed from using the bot")
        self.write_settings()
        return True

    def allow_user(self, username: str) -> bool:
        """Remove ``username`` from the disallow list. False if it was not there."""
        name = username.strip().lower()
        if name not in self.settings.disallow:
            return False
        self.settings.disallow.remove(name)
        MOD_LOGGER.info(f"{name} is allowed to use the bot again")
        self.write_settings()
        return True

    def set_muted(self, muted: bool) -> None:
        self.settings.muted = muted
        self.write_settings()

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    def event_login(self, payload: dict[str, Any]) -> None:
        if not payload.get("success"):
            LOGGER.error(f"Login failed: {payload.get('error', 'unknown error')}")
            return
        self.username = payload.get("name") or self.username
        LOGGER.info(f"Logged in as {self.username}")

    def event_rank(self, rank: float) -> None:
        self.rank = float(rank)
        LOGGER.info(f"Bot rank set to {self.ranks.label(self.rank)}")
        self.request_channel_ranks()

    def event_set_permissions(self, permissions: dict[str, float]) -> None:
        self.permissions = {name: float(value) for name, value in permissions.items()}
        self.permissions_received = True
        LOGGER.debug(f"Received {len(self.permissions)} channel permissions")

    def event_user_list(self, users: Iterable[dict[str, Any]]) -> None:
        self.users = {}
        for data in users:
            self.event_add_user(data)

    def event_add_user(self, data: dict[str, Any]) -> None:
        user = ChatUser(str(data["name"]), float(data.get("rank", 0)), dict(data.get("meta", {})))
        self.users[user.name.lower()] = user

    def event_user_leave(self, data: dict[str, Any]) -> None:
        self.users.pop(str(data["name"]).lower(), None)

    def event_set_user_rank(self, data: dict[str, Any]) -> None:
        user = self.get_user(str(data["name"]))
        if user is not None:
            user.rank = float(data["rank"])
        if self.channel_ranks is not None:
            self.channel_ranks[str(data["name"]).lower()] = float(data["rank"])

    def event_channel_ranks(self, ranks: Iterable[dict[str, Any]]) -> None:
        room = self.room.lower()
        self.channel_ranks = {
            str(entry["name"]).lower(): float(entry["rank"])
            for entry in ranks
            if str(entry.get("channel", room)).lower() == room
        }
        LOGGER.debug(f"Received {len(self.channel_ranks)} channel ranks")

    def event_chat_msg(self, data: dict[str, Any]) -> DispatchResult | None:
        return self.handle_line(str(data.get("username", "")), str(data.get("msg", "")), is_pm=False)

    def event_pm(self, data: dict[str, Any]) -> DispatchResult | None:
        if str(data.get("to", "")).lower() != self.username.lower():
            return None
        return self.handle_line(str(data.get("username", "")), str(data.get("msg", "")), is_pm=True)

    def extract_command(self, message: str) -> str | None:
        """Command part of a chat line (trigger removed), or None."""
        message = message.strip()
        if message.startswith(self.trigger):
            return message[len(self.trigger):] or None
        if self.cfg.allow_inline_cmd:
            marker = f"::{self.trigger}"
            index = message.find(marker)
            if index >= 0:
                return message[index + len(marker):] or None
        return None

    def handle_line(self, username: str, message: str, *, is_pm: bool = False) -> DispatchResult | None:
        if not username or not self.username or username.lower() == self.username.lower():
            return None
        line = self.extract_command(message)
        if line is None:
            return None
        user = self.get_user(username)
        if user is None:
            LOGGER.debug(f"Ignoring command from {username}, not in the room")
            return None
        LOGGER.debug(f"{username} used command: {line}")
        return self.dispatcher.dispatch(user, line, is_pm=is_pm)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def kill(self, reason: str = "") -> None:
        """Stop handling commands and drop every queued action."""
        if self.killed:
            return
        self.killed = True
        LOGGER.warning(f"Shutting down{': ' + reason if reason else ''}")
        for queue in (self.action_queue, self.broadcast_pm_queue, self.large_data_queue):
            queue.clear()

    def get_status(self) -> dict[str, Any]:
        return {
            "room": self.room,
            "username": self.username,
            "rank": self.rank,
            "killed": self.killed,
            "commands": self.registry.get_stats(),
            "queues": [
                queue.get_stats()
                for queue in (self.action_queue, self.broadcast_pm_queue, self.large_data_queue)
            ],
            "uptime_seconds": int(time.time() - self.started_at),
        }
