"""Shared command guards: rank check, cooldown bypass, cooldown tracking."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .registry import Command


class CooldownKind(str, Enum):
    COMMAND = "command"
    USER = "user"


@dataclass(frozen=True)
class CooldownHit:
    """A rejected invocation and how long the invoker still has to wait."""

    kind: CooldownKind
    remaining_ms: float

    @property
    def remaining_seconds(self) -> float:
        return self.remaining_ms / 1000


def has_rank(user_rank: float, command: Command) -> bool:
    """Check the invoker's rank against the command's rank gate."""
    return command.rank_match.allows(user_rank, command.min_rank)


def can_bypass_cooldown(user_rank: float, min_rank_to_bypass: float) -> bool:
    """A negative threshold disables the bypass for every rank."""
    return min_rank_to_bypass >= 0 and user_rank >= min_rank_to_bypass


class CooldownTracker:
    """Per-command, per-user timestamps of the last successful invocation.

    The command-wide timestamp lives on the command itself (``last_use``);
    the two clocks are checked independently. Timestamps are milliseconds.
    """

    def __init__(self) -> None:
        # command name -> lowercased username -> last successful use
        self._user_uses: dict[str, dict[str, float]] = {}

    def reset(self, command_name: str) -> None:
        """Start (or restart) tracking a command with an empty user map."""
        self._user_uses[command_name] = {}

    def last_use(self, command_name: str, username: str) -> float | None:
        return self._user_uses.get(command_name, {}).get(username.lower())

    def check(self, command: Command, username: str, now: float) -> CooldownHit | None:
        """Return the cooldown blocking this invocation, or None if it may run."""
        if command.last_use is not None and now - command.last_use < command.cmd_cooldown:
            return CooldownHit(
                CooldownKind.COMMAND, command.cmd_cooldown - (now - command.last_use)
            )

        last = self.last_use(command.name, username)
        if last is not None and now - last < command.user_cooldown:
            return CooldownHit(CooldownKind.USER, command.user_cooldown - (now - last))

        return None

    def record(self, command: Command, username: str, now: float) -> None:
        """Stamp both clocks after a successful invocation."""
        command.last_use = now
        self._user_uses.setdefault(command.name, {})[username.lower()] = now

    def tracked_users(self, command_name: str) -> int:
        return len(self._user_uses.get(command_name, {}))
