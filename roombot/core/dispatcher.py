"""Chat command dispatch.

``Dispatcher.dispatch`` turns one input line plus the invoking user into at
most one command execution. Gates run in a fixed order and stop at the first
failure; each failure is silent, logged, or replied to the invoker privately.
The dispatcher never raises: a handler fault is logged and the invoker gets a
generic reply.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .guards import CooldownKind, can_bypass_cooldown, has_rank
from .ranks import RankTable
from .registry import ChatUser, Command, CommandOptions, CommandOutcome, CommandRegistry

LOGGER = logging.getLogger("Dispatcher")

RUNTIME_ERROR_REPLY = "That command encountered a runtime error. Tell the bot maintainer."


class DispatchStatus(str, Enum):
    EXECUTED = "executed"
    NOT_HANDLED = "not_handled"
    IGNORED = "ignored"
    UNKNOWN = "unknown"
    BROKEN = "broken"
    INACTIVE = "inactive"
    PM_DISALLOWED = "pm_disallowed"
    DISALLOWED = "disallowed"
    MISSING_CAPABILITY = "missing_capability"
    RANK_TOO_LOW = "rank_too_low"
    COMMAND_COOLDOWN = "command_cooldown"
    USER_COOLDOWN = "user_cooldown"
    ERROR = "error"


@dataclass(frozen=True)
class DispatchResult:
    """Which gate stopped a line, or that its command ran."""

    status: DispatchStatus
    command: str | None = None
    detail: str = ""

    @property
    def executed(self) -> bool:
        return self.status in (DispatchStatus.EXECUTED, DispatchStatus.NOT_HANDLED)


class CommandHost(Protocol):
    """Session facts and reply sink the dispatcher depends on."""

    username: str
    ranks: RankTable

    @property
    def killed(self) -> bool: ...

    @property
    def commands_disabled(self) -> bool: ...

    @property
    def min_rank_to_bypass_cooldown(self) -> float: ...

    def is_disallowed(self, username: str) -> bool: ...

    def has_capability(self, name: str) -> bool: ...

    def send_pm(self, username: str, message: str) -> None: ...


def _now_ms() -> float:
    return time.time() * 1000


class Dispatcher:
    """Runs the gate chain for one registry on behalf of one host."""

    def __init__(
        self,
        registry: CommandRegistry,
        host: CommandHost,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.registry = registry
        self.host = host
        self.clock = clock or _now_ms
        self._tasks: set[asyncio.Future[Any]] = set()

    def dispatch(self, user: ChatUser | None, line: str, *, is_pm: bool = False) -> DispatchResult:
        """Handle ``line`` (trigger already stripped) typed by ``user``."""
        host = self.host
        registry = self.registry

        if not registry.ready or not host.username or host.commands_disabled or host.killed:
            LOGGER.debug(f"Ignoring command, not handling commands: {line!r}")
            return DispatchResult(DispatchStatus.IGNORED)
        if user is None or not user.name:
            LOGGER.debug(f"Ignoring command from unknown user: {line!r}")
            return DispatchResult(DispatchStatus.IGNORED)

        parts = line.split(None, 1)
        if not parts:
            return DispatchResult(DispatchStatus.IGNORED)
        given = parts[0]
        message = parts[1] if len(parts) > 1 else ""

        name = registry.resolve_name(given)
        if name is None:
            LOGGER.warning(f"Unknown chat command: {given.lower()}")
            return DispatchResult(DispatchStatus.UNKNOWN, given.lower())

        command = registry.commands[name]
        if command.broken:
            LOGGER.error(f"Broken command {name} used by {user.name}")
            host.send_pm(user.name, f'"{name}" is broken. Notify a bot maintainer.')
            return DispatchResult(DispatchStatus.BROKEN, name)
        if not command.active:
            LOGGER.warning(f"Inactive command {name} used by {user.name}")
            host.send_pm(user.name, f'"{name}" is not active.')
            return DispatchResult(DispatchStatus.INACTIVE, name)
        if is_pm and not command.can_be_used_in_pm:
            LOGGER.warning(f"Command {name} used in PM by {user.name}")
            host.send_pm(user.name, f'"{name}" cannot be used in PM.')
            return DispatchResult(DispatchStatus.PM_DISALLOWED, name)

        if user.rank < host.ranks.OWNER and host.is_disallowed(user.name):
            LOGGER.debug(f"Disallowed user {user.name} tried to use {name}")
            return DispatchResult(DispatchStatus.DISALLOWED, name)

        missing = self._missing_capability(command)
        if missing is not None:
            LOGGER.error(f"Bot lacks channel permission {missing} required for {name}")
            if user.rank >= host.ranks.MOD:
                host.send_pm(
                    user.name,
                    f"Bot is missing the channel permission {missing} required for {name} "
                    f"(needs: {', '.join(command.required_capabilities)})",
                )
            return DispatchResult(DispatchStatus.MISSING_CAPABILITY, name, missing)

        if not has_rank(user.rank, command):
            host.send_pm(
                user.name,
                f"Required rank for {name}: {command.rank_match}{host.ranks.label(command.min_rank)}",
            )
            return DispatchResult(DispatchStatus.RANK_TOO_LOW, name)

        now = self.clock()
        if not can_bypass_cooldown(user.rank, host.min_rank_to_bypass_cooldown):
            hit = registry.cooldowns.check(command, user.name, now)
            if hit is not None:
                seconds = f"{hit.remaining_seconds:g}"
                if hit.kind is CooldownKind.COMMAND:
                    host.send_pm(
                        user.name,
                        f"Command cooldown for {name} is still active. {seconds} seconds remaining.",
                    )
                    return DispatchResult(DispatchStatus.COMMAND_COOLDOWN, name, seconds)
                host.send_pm(
                    user.name,
                    f"User cooldown for {name} is still active. {seconds} seconds remaining.",
                )
                return DispatchResult(DispatchStatus.USER_COOLDOWN, name, seconds)

        opts = CommandOptions(is_pm=is_pm)
        try:
            result = command.run(given, user, message, opts)
        except Exception as e:
            LOGGER.exception(f"Chat command {name} raised for {user.name}: {e}")
            host.send_pm(user.name, RUNTIME_ERROR_REPLY)
            return DispatchResult(DispatchStatus.ERROR, name, f"{type(e).__name__}: {e}")

        if inspect.isawaitable(result):
            self._track(name, user, result)
            outcome = CommandOutcome.HANDLED
        else:
            outcome = CommandOutcome.from_result(result)

        if outcome is CommandOutcome.NOT_HANDLED:
            return DispatchResult(DispatchStatus.NOT_HANDLED, name)

        registry.cooldowns.record(command, user.name, now)
        return DispatchResult(DispatchStatus.EXECUTED, name)

    def _missing_capability(self, command: Command) -> str | None:
        for capability in command.required_capabilities:
            if not self.host.has_capability(capability):
                return capability
        return None

    def _track(self, name: str, user: ChatUser, result: Any) -> None:
        """Run a handler's asynchronous tail without waiting for it."""
        task = asyncio.ensure_future(result)
        self._tasks.add(task)

        def done(t: asyncio.Future[Any]) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                LOGGER.error(f"Chat command {name} failed for {user.name}: {exc}", exc_info=exc)
                self.host.send_pm(user.name, RUNTIME_ERROR_REPLY)

        task.add_done_callback(done)
