"""Runtime administration of chat commands.

Every successful mutation updates the live command, re-derives its stored
overrides (kept only while they differ from the defaults), is logged on the
moderation logger, is replied to the caller and is persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .logging import MOD_LOGGER_NAME
from .ranks import RankMatch, RankTable
from .registry import Command, CommandRegistry, parse_duration

LOGGER = logging.getLogger("CommandAdmin")
MOD_LOGGER = logging.getLogger(MOD_LOGGER_NAME)

PROTECTED_COMMANDS = frozenset({"enable", "disable"})

COOLDOWN_KINDS = {
    "global": "cmd_cooldown",
    "cmd": "cmd_cooldown",
    "user": "user_cooldown",
}


class CommandAdmin:
    """Enable/disable, rank and cooldown changes against one registry."""

    def __init__(
        self,
        registry: CommandRegistry,
        ranks: RankTable,
        *,
        reply: Callable[[str, str], Any] | None = None,
        persist: Callable[[], Any] | None = None,
    ) -> None:
        self.registry = registry
        self.ranks = ranks
        self._reply = reply
        self._persist = persist

    # ------------------------------------------------------------------

    def _tell(self, caller: str | None, message: str) -> None:
        if caller and self._reply is not None:
            self._reply(caller, message)

    def _lookup(self, name: str, caller: str | None) -> Command | None:
        command = self.registry.resolve(name.strip()) if name else None
        if command is None:
            self._tell(caller, "That command does not exist.")
        return command

    def _commit(self, command: Command, *categories: str) -> None:
        self.registry.record_overrides(command, *categories)
        if self._persist is not None:
            self._persist()

    # ------------------------------------------------------------------
    # Active state
    # ------------------------------------------------------------------

    def enable(self, name: str, caller: str | None = None) -> bool:
        command = self._lookup(name, caller)
        if command is None:
            return False
        if command.broken:
            message = (
                f'Tried to enable chat command "{command.name}" but it is broken. '
                "Make sure it is correctly written."
            )
            LOGGER.error(message)
            self._tell(caller, message)
            return False
        if command.active:
            self._tell(
                caller, f'Tried to enable chat command "{command.name}" but it is already enabled.'
            )
            return False

        command.active = True
        self._commit(command, "active")
        message = f'Chat command "{command.name}" enabled.'
        MOD_LOGGER.info(f"{message} ({caller or 'console'})")
        self._tell(caller, message)
        return True

    def disable(self, name: str, caller: str | None = None) -> bool:
        command = self._lookup(name, caller)
        if command is None:
            return False
        if command.name in PROTECTED_COMMANDS:
            self._tell(caller, f'Chat command "{command.name}" cannot be disabled.')
            return False
        if not command.active:
            self._tell(
                caller, f'Tried to disable chat command "{command.name}" but it is already disabled.'
            )
            return False

        command.active = False
        self._commit(command, "active")
        message = f'Chat command "{command.name}" disabled.'
        MOD_LOGGER.info(f"{message} ({caller or 'console'})")
        self._tell(caller, message)
        return True

    # ------------------------------------------------------------------
    # Rank gate
    # ------------------------------------------------------------------

    def _rank_changeable(self, command: Command, caller: str | None, force: bool) -> bool:
        if not command.allow_rank_change and not force:
            self._tell(caller, "That command cannot have its rank changed.")
            return False
        if command.broken:
            self._tell(caller, "That command is broken. Tell the bot maintainer.")
            return False
        return True

    def set_rank(
        self, name: str, rank: object, caller: str | None = None, *, force: bool = False
    ) -> bool:
        """Set the minimum rank from a number or a rank name ("mod", "2", 1.5)."""
        command = self._lookup(name, caller)
        if command is None or not self._rank_changeable(command, caller, force):
            return False
        new_rank = self.ranks.parse(rank)
        if new_rank is None:
            self._tell(caller, f"Invalid rank: {rank}")
            return False

        old_rank = command.min_rank
        command.min_rank = new_rank
        self._commit(command, "min_rank")
        MOD_LOGGER.info(
            f"Rank for chat command {command.name} changed from {old_rank:g}=>{new_rank:g} "
            f"by {caller or 'console'}."
        )
        self._tell(
            caller,
            f"Required rank for {command.name} is now {command.rank_match}{self.ranks.label(new_rank)}.",
        )
        return True

    def set_rank_match(
        self, name: str, rank_match: object, caller: str | None = None, *, force: bool = False
    ) -> bool:
        command = self._lookup(name, caller)
        if command is None or not self._rank_changeable(command, caller, force):
            return False
        new_match = RankMatch.parse(rank_match)
        if new_match is None:
            self._tell(caller, "Invalid input. Comparison operator can either be <=, ==, or >=.")
            return False

        old_match = command.rank_match
        command.rank_match = new_match
        self._commit(command, "rank_match")
        MOD_LOGGER.info(
            f"Rank match for chat command {command.name} changed from {old_match} to {new_match} "
            f"by {caller or 'console'}."
        )
        self._tell(
            caller,
            f"Required rank for {command.name} is now {new_match}{self.ranks.label(command.min_rank)}.",
        )
        return True

    def reset_rank(self, name: str, caller: str | None = None) -> bool:
        """Restore the compiled-in rank and rank match, even if rank changes are locked."""
        command = self._lookup(name, caller)
        if command is None:
            return False
        return self.set_rank(
            command.name, command.defaults.min_rank, caller, force=True
        ) and self.set_rank_match(command.name, command.defaults.rank_match, caller, force=True)

    # ------------------------------------------------------------------
    # Cooldowns
    # ------------------------------------------------------------------

    def set_cooldown(
        self, name: str, kind: str, duration: object, caller: str | None = None
    ) -> bool:
        """Set a cooldown in ms; ``kind`` is ``global``/``cmd`` or ``user``."""
        command = self._lookup(name, caller)
        if command is None:
            return False
        if command.broken:
            self._tell(caller, "That command is broken. Tell the bot maintainer.")
            return False
        category = COOLDOWN_KINDS.get(kind.strip().lower())
        if category is None:
            self._tell(caller, f"Unknown cooldown type {kind}. Use global, cmd or user.")
            return False
        ms = parse_duration(duration)
        if ms is None:
            self._tell(caller, "Invalid duration. Must be 0 or higher.")
            return False

        old = command.live_value(category)
        setattr(command, category, ms)
        self._commit(command, category)
        label = "global" if category == "cmd_cooldown" else "user"
        MOD_LOGGER.info(
            f"{caller or 'console'} changed the cooldown ({label}) for {command.name}: {old} => {ms}"
        )
        self._tell(caller, f"Set the {label} cooldown for {command.name} to {ms / 1000:g} seconds.")
        return True

    def reset_cooldowns(self, name: str, caller: str | None = None) -> bool:
        command = self._lookup(name, caller)
        if command is None:
            return False
        command.user_cooldown = command.defaults.user_cooldown
        command.cmd_cooldown = command.defaults.cmd_cooldown
        self._commit(command, "user_cooldown", "cmd_cooldown")
        MOD_LOGGER.info(f"Cooldowns for {command.name} reset by {caller or 'console'}")
        self._tell(caller, f"Cooldowns have been reset for {command.name}.")
        return True
