"""Chat command definitions and the registry that owns them.

A ``Command`` validates its own metadata when it is built; anything that does
not parse leaves the command ``broken`` (permanently inactive) instead of
raising. Commands are contributed by components as ``CommandSet`` bundles
(commands plus aliases) and merged into one ``CommandRegistry`` at startup,
later sources overwriting earlier ones with a warning.

``CommandRegistry.finalize`` then reconciles the persisted overrides against
each command's compiled-in defaults: overrides that still differ are applied
to the live command, overrides equal to the default are pruned.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from roombot.shared.models.room_settings import CommandOverrides

from .guards import CooldownTracker
from .ranks import Rank, RankMatch

LOGGER = logging.getLogger("CommandRegistry")


class CommandOutcome(Enum):
    """What a handler reports back to the dispatcher."""

    HANDLED = "handled"
    NOT_HANDLED = "not_handled"

    @classmethod
    def from_result(cls, result: object) -> CommandOutcome:
        """Only an explicit ``False`` (or NOT_HANDLED) opts out of cooldown stamping.

        Every other return value, ``None`` included, counts as handled.
        """
        if result is False or result is cls.NOT_HANDLED:
            return cls.NOT_HANDLED
        return cls.HANDLED


@dataclass
class ChatUser:
    """A room participant as seen by the bot."""

    name: str
    rank: float = 0.0
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandOptions:
    """Extra invocation context passed to every handler."""

    is_pm: bool = False


# handler(command_as_typed, user, rest_of_line, options) -> CommandOutcome | bool | None
CommandHandler = Callable[[str, ChatUser, str, CommandOptions], Any]


@dataclass(frozen=True)
class CommandDefaults:
    """Compiled-in values; overrides are only persisted while they differ."""

    active: bool
    min_rank: Rank
    rank_match: RankMatch
    user_cooldown: int
    cmd_cooldown: int


def parse_bool(value: object) -> bool | None:
    """Parse a boolean-ish value. Returns None if unrecognised."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def _parse_rank(value: object) -> Rank | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else Rank(number)


def parse_duration(value: object) -> int | None:
    """Cooldowns are non-negative whole milliseconds."""
    if isinstance(value, bool):
        return None
    try:
        number = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number >= 0 else None


def _parse_capabilities(value: object) -> tuple[str, ...] | None:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
        return None
    if not all(isinstance(item, str) for item in value):
        return None
    return tuple(dict.fromkeys(value))


class Command:
    """A named, executable chat command with its live mutable state.

    Metadata is accepted loosely (strings, ints) and parsed here. A command
    whose metadata does not parse is marked ``broken`` and logged; it can
    never run or be enabled.
    """

    def __init__(
        self,
        name: str,
        handler: CommandHandler,
        *,
        min_rank: float | str,
        rank_match: RankMatch | str = RankMatch.AT_LEAST,
        user_cooldown: int | str = 0,
        cmd_cooldown: int | str = 0,
        active: bool | str = True,
        required_capabilities: Iterable[str] = (),
        allow_rank_change: bool | str = True,
        can_be_used_in_pm: bool | str = True,
        description: str = "",
    ) -> None:
        self.name = name
        self.handler = handler
        self.description = description
        self.broken = False
        self.last_use: float | None = None

        problems: list[str] = []

        def check(value: Any, label: str) -> Any:
            if value is None:
                problems.append(label)
            return value

        capabilities = check(_parse_capabilities(required_capabilities), "required_capabilities")
        parsed_match = check(RankMatch.parse(rank_match), "rank_match")
        parsed_rank = check(_parse_rank(min_rank), "min_rank")
        parsed_user_cd = check(parse_duration(user_cooldown), "user_cooldown")
        parsed_cmd_cd = check(parse_duration(cmd_cooldown), "cmd_cooldown")
        parsed_active = check(parse_bool(active), "active")
        parsed_allow = check(parse_bool(allow_rank_change), "allow_rank_change")
        parsed_pm = check(parse_bool(can_be_used_in_pm), "can_be_used_in_pm")
        if not isinstance(name, str) or not name or name.lower() != name:
            problems.append("name")
        if not callable(handler):
            problems.append("handler")

        self.required_capabilities: tuple[str, ...] = capabilities or ()
        self.rank_match: RankMatch = parsed_match or RankMatch.AT_LEAST
        self.min_rank: Rank = parsed_rank if parsed_rank is not None else Rank(math.inf)
        self.user_cooldown: int = parsed_user_cd or 0
        self.cmd_cooldown: int = parsed_cmd_cd or 0
        self.active: bool = bool(parsed_active)
        self.allow_rank_change: bool = bool(parsed_allow)
        self.can_be_used_in_pm: bool = bool(parsed_pm)

        self.defaults = CommandDefaults(
            active=self.active,
            min_rank=self.min_rank,
            rank_match=self.rank_match,
            user_cooldown=self.user_cooldown,
            cmd_cooldown=self.cmd_cooldown,
        )

        if problems:
            self.mark_broken(f"invalid {', '.join(problems)}")
        elif not self.active:
            LOGGER.warning(f'Chat command "{name}" is starting inactive.')

    def __repr__(self) -> str:
        state = "broken" if self.broken else ("active" if self.active else "inactive")
        return f"<Command {self.name!r} {self.rank_match.value}{self.min_rank:g} {state}>"

    def mark_broken(self, reason: str) -> None:
        self.active = False
        self.broken = True
        LOGGER.error(f'Chat command "{self.name}" has invalid properties and will not work ({reason}).')

    def run(self, given: str, user: ChatUser, message: str, opts: CommandOptions) -> Any:
        return self.handler(given, user, message, opts)

    def live_value(self, category: str) -> Any:
        return getattr(self, category)

    def default_value(self, category: str) -> Any:
        return getattr(self.defaults, category)


class CommandSet:
    """Commands and aliases contributed by one component.

    Usage::

        command_set = CommandSet("cmds")

        @command_set.command("roll", min_rank=1, user_cooldown=2000)
        def roll(cmd, user, message, opts):
            ...

        command_set.alias("dice", "roll")
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.commands: dict[str, Command] = {}
        self.aliases: dict[str, str] = {}

    def add(self, command: Command, key: str | None = None) -> Command:
        self.commands[key if key is not None else command.name] = command
        return command

    def command(self, name: str, **meta: Any) -> Callable[[CommandHandler], CommandHandler]:
        """Decorator registering ``fn`` as the handler of a new command."""

        def decorator(fn: CommandHandler) -> CommandHandler:
            self.add(Command(name, fn, description=(fn.__doc__ or "").strip(), **meta))
            return fn

        return decorator

    def alias(self, alias: str, target: str) -> None:
        self.aliases[alias] = target


@dataclass(frozen=True)
class OverlaySource:
    """One ``{commands, aliases}`` bundle to merge, ordered by ``priority``."""

    priority: int
    name: str
    payload: object


def _unpack(source: OverlaySource) -> tuple[Mapping[str, Command], Mapping[str, str]]:
    payload = source.payload
    if isinstance(payload, CommandSet):
        raw_commands: object = payload.commands
        raw_aliases: object = payload.aliases
    elif isinstance(payload, Mapping):
        raw_commands = payload.get("commands", {})
        raw_aliases = payload.get("aliases", {})
    else:
        LOGGER.error(
            f'Could not load command set "{source.name}": expected commands and aliases, '
            f"got {type(payload).__name__}"
        )
        return {}, {}

    commands: Mapping[str, Command] = {}
    if isinstance(raw_commands, Mapping) and all(
        isinstance(k, str) and isinstance(v, Command) for k, v in raw_commands.items()
    ):
        commands = raw_commands
    else:
        LOGGER.error(
            f'Could not load commands from "{source.name}": '
            "expected a mapping of names to Command objects."
        )

    aliases: Mapping[str, str] = {}
    if isinstance(raw_aliases, Mapping) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in raw_aliases.items()
    ):
        aliases = raw_aliases
    else:
        LOGGER.error(
            f'Could not load command aliases from "{source.name}": '
            "expected a mapping of aliases to command names."
        )
    return commands, aliases


def merge_command_sets(
    sources: Iterable[OverlaySource],
) -> tuple[dict[str, Command], dict[str, str]]:
    """Merge command sets in priority order; the last writer wins.

    Overwriting an existing command or alias is intentional (customization)
    and only logged as a warning. Malformed parts of a source are logged and
    skipped.
    """
    commands: dict[str, Command] = {}
    aliases: dict[str, str] = {}
    for source in sorted(sources, key=lambda s: s.priority):
        new_commands, new_aliases = _unpack(source)
        for key, command in new_commands.items():
            if key in commands:
                LOGGER.warning(f"Overwriting existing command with definition from {source.name}: {key}")
            commands[key] = command
        for alias, target in new_aliases.items():
            alias, target = alias.lower(), target.lower()
            if alias in aliases:
                LOGGER.warning(f"Overwriting existing command alias from {source.name}: {alias}")
            aliases[alias] = target
        if new_commands or new_aliases:
            LOGGER.debug(
                f"Loaded {len(new_commands)} command(s) and {len(new_aliases)} alias(es) "
                f"from {source.name}"
            )
    return commands, aliases


class CommandRegistry:
    """The authoritative table of commands and aliases for one bot."""

    def __init__(
        self,
        commands: Mapping[str, Command] | None = None,
        aliases: Mapping[str, str] | None = None,
        *,
        cooldowns: CooldownTracker | None = None,
    ) -> None:
        self.commands: dict[str, Command] = dict(commands or {})
        self.aliases: dict[str, str] = {k.lower(): v.lower() for k, v in (aliases or {}).items()}
        self.cooldowns = cooldowns or CooldownTracker()
        self.overrides = CommandOverrides()
        self.ready = False

    @classmethod
    def from_sources(cls, sources: Iterable[OverlaySource], **kwargs: Any) -> CommandRegistry:
        commands, aliases = merge_command_sets(sources)
        return cls(commands, aliases, **kwargs)

    def __len__(self) -> int:
        return len(self.commands)

    def __iter__(self) -> Iterator[Command]:
        return iter(self.commands.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self.commands

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_name(self, token: str) -> str | None:
        """Canonical command name for a typed token, or None.

        A live command always wins over an alias with the same name.
        """
        token = token.lower()
        if token in self.commands:
            return token
        target = self.aliases.get(token)
        if target is not None and target in self.commands:
            return target
        return None

    def resolve(self, token: str) -> Command | None:
        name = self.resolve_name(token)
        return self.commands[name] if name is not None else None

    def aliases_for(self, name: str) -> list[str]:
        return sorted(alias for alias, target in self.aliases.items() if target == name)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def finalize(self, overrides: CommandOverrides | None = None) -> bool:
        """Check keys, reconcile overrides and start handling commands.

        Returns True if reconciliation pruned or changed any stored override.
        """
        if overrides is not None:
            self.overrides = overrides
        changed = False
        LOGGER.debug("Checking commands for overrides")
        for key, command in self.commands.items():
            if key != command.name:
                if not command.broken:
                    command.mark_broken(f'registered as "{key}", key must equal its lowercase name')
                continue
            self.cooldowns.reset(key)
            changed |= self.reconcile(command)
        self.ready = True
        LOGGER.info(
            f"Chat commands created ({len(self.commands)} commands, "
            f"{len(self.aliases)} aliases), now listening for commands"
        )
        return changed

    def reconcile(self, command: Command) -> bool:
        """Apply stored overrides that differ from the defaults, prune the rest."""
        name = command.name
        ov = self.overrides
        before = ov.for_command(name)

        if name in ov.active:
            state = ov.active[name]
            if state == command.defaults.active:
                del ov.active[name]
            elif command.broken:
                LOGGER.debug(f"Ignoring active override for broken command {name}")
            else:
                LOGGER.debug(f"Found state override for {name}: {command.defaults.active} => {state}")
                command.active = state

        if name in ov.min_rank:
            if not command.allow_rank_change:
                LOGGER.debug(f"Found rank override for {name}, but its rank may not be changed")
            elif ov.min_rank[name] == command.defaults.min_rank:
                del ov.min_rank[name]
            else:
                LOGGER.debug(f"Found rank override for {name}: {command.min_rank:g} => {ov.min_rank[name]:g}")
                command.min_rank = Rank(ov.min_rank[name])

        if name in ov.rank_match:
            rank_match = RankMatch.parse(ov.rank_match[name])
            if not command.allow_rank_change:
                LOGGER.debug(f"Found rank match override for {name}, but its rank may not be changed")
            elif rank_match is None:
                LOGGER.warning(f"Dropping invalid rank match override for {name}: {ov.rank_match[name]!r}")
                del ov.rank_match[name]
            elif rank_match == command.defaults.rank_match:
                del ov.rank_match[name]
            else:
                LOGGER.debug(f"Found rank match override for {name}: {command.rank_match} => {rank_match}")
                command.rank_match = rank_match

        for category in ("user_cooldown", "cmd_cooldown"):
            values = ov.category(category)
            if name not in values:
                continue
            duration = values[name]
            if duration >= 0 and duration != command.default_value(category):
                LOGGER.debug(f"Found {category} override for {name}: {command.live_value(category)} => {duration}")
                setattr(command, category, duration)
            else:
                del values[name]

        return ov.for_command(name) != before

    # ------------------------------------------------------------------
    # Runtime override bookkeeping
    # ------------------------------------------------------------------

    def record_overrides(self, command: Command, *categories: str) -> None:
        """Store live values that differ from their defaults, delete the rest."""
        for category in categories or CommandOverrides.CATEGORIES:
            values = self.overrides.category(category)
            live = command.live_value(category)
            if live == command.default_value(category):
                values.pop(command.name, None)
            else:
                values[command.name] = live.value if isinstance(live, RankMatch) else live

    def get_stats(self) -> dict[str, int]:
        commands = list(self.commands.values())
        return {
            "commands": len(commands),
            "active": sum(1 for c in commands if c.active),
            "broken": sum(1 for c in commands if c.broken),
            "aliases": len(self.aliases),
        }
