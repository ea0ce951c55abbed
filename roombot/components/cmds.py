"""General user commands for the bot."""

from __future__ import annotations

import html
import random
import re
import time
from typing import TYPE_CHECKING

import aiohttp

from roombot import __version__
from roombot.core.registry import ChatUser, CommandOptions, CommandOutcome, CommandSet

if TYPE_CHECKING:
    from roombot.core.bot import Bot

EIGHTBALL_ANSWERS = [
    "It is certain", "It is decidedly so", "Without a doubt", "Yes - definitely",
    "You may rely on it", "As I see it, yes", "Most likely", "Outlook good",
    "Signs point to yes", "Yes", "Ask again later", "Better not tell you now",
    "Cannot predict now", "Don't count on it", "My reply is no", "My sources say no",
    "Outlook not so good", "Very doubtful", "Never", "Of course not",
]

URBAN_DICTIONARY_URL = "https://api.urbandictionary.com/v0/define"

_DICE_PATTERN = re.compile(r"^(\d{1,2})?d(\d{1,3})(?:([+-])(\d{1,3}))?$", re.IGNORECASE)


def format_duration(seconds: int) -> str:
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    parts = [f"{days}d"] if days else []
    parts.append(f"{hours:02d}:{minutes:02d}:{seconds:02d}")
    return " ".join(parts)


def roll_dice(spec: str, rng: random.Random | None = None) -> tuple[str, list[int], int] | None:
    """Roll ``NdS[+-K]`` dice. Returns (normalized spec, rolls, total), or None.

    Out-of-range counts fall back to 2 dice and out-of-range sides to 6.
    """
    m = _DICE_PATTERN.match(spec.strip())
    if not m:
        return None
    rng = rng or random.Random()
    count = int(m.group(1)) if m.group(1) else 1
    if not 1 <= count <= 15:
        count = 2
    sides = int(m.group(2))
    if not 2 <= sides <= 999:
        sides = 6
    offset = int(m.group(4) or 0) * (-1 if m.group(3) == "-" else 1)

    rolls = [rng.randint(1, sides) for _ in range(count)]
    normalized = f"{count}d{sides}"
    if offset:
        normalized += f"{m.group(3)}{abs(offset)}"
    return normalized, rolls, sum(rolls) + offset


async def lookup_definition(
    term: str,
    session: aiohttp.ClientSession | None = None,
) -> str | None:
    """Urban Dictionary definition for ``term``, or None.

    If `session` is None a temporary one-shot session is created and closed.
    """
    _own_session = session is None
    _session: aiohttp.ClientSession = session or aiohttp.ClientSession()
    try:
        async with _session.get(
            URBAN_DICTIONARY_URL, params={"term": term}, timeout=aiohttp.ClientTimeout(total=5)
        ) as resp:
            if resp.status != 200:
                return None
            data = await resp.json()
    finally:
        if _own_session:
            await _session.close()

    for entry in data.get("list", []):
        if "definition" in entry and str(entry.get("word", "")).lower() == term.lower():
            definition = " ".join(html.unescape(entry["definition"]).split())
            return re.sub(r"[\[\]]+", "", definition)
    return None


def get_commands(bot: Bot) -> CommandSet:
    command_set = CommandSet("cmds")
    ranks = bot.ranks

    @command_set.command(
        "8ball", min_rank=ranks.USER, user_cooldown=30000, cmd_cooldown=500,
        required_capabilities=["chat"], can_be_used_in_pm=False,
    )
    def eightball(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """Ask the magic 8 ball a question."""
        if not message.strip():
            return CommandOutcome.NOT_HANDLED
        bot.send_chat_msg(f"[8ball: {message.strip()}] {random.choice(EIGHTBALL_ANSWERS)}")
        return CommandOutcome.HANDLED

    @command_set.command(
        "about", min_rank=ranks.USER, user_cooldown=120000, cmd_cooldown=60000,
        required_capabilities=["chat"], can_be_used_in_pm=False,
    )
    def about(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> None:
        bot.send_chat_msg(f"roombot v{__version__} :: {len(bot.registry)} chat commands")

    @command_set.command(
        "pick", min_rank=ranks.USER, user_cooldown=5000, cmd_cooldown=1000,
        required_capabilities=["chat"], can_be_used_in_pm=False,
    )
    def pick(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """Pick one of several ;-separated choices."""
        choices = [choice.strip() for choice in message.split(";") if choice.strip()]
        if len(choices) <= 1:
            bot.send_pm(
                user.name, "You must have at least two things to pick from! Separate choices with a ;"
            )
            return CommandOutcome.NOT_HANDLED
        bot.send_chat_msg(f"{user.name}: {random.choice(choices)}")
        return CommandOutcome.HANDLED

    @command_set.command(
        "roll", min_rank=ranks.USER, user_cooldown=10000, cmd_cooldown=1000,
        required_capabilities=["chat"], can_be_used_in_pm=False,
    )
    def roll(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """Roll dice (NdS+K), or a number from 0 to 99 without arguments."""
        spec = message.split()[0] if message.split() else ""
        if not spec:
            bot.send_chat_msg(f"{user.name} rolled {random.randint(0, 99):02d}")
            return CommandOutcome.HANDLED
        result = roll_dice(spec)
        if result is None:
            return CommandOutcome.NOT_HANDLED
        normalized, rolls, total = result
        bot.send_chat_msg(
            f"{user.name} rolled {normalized}: {', '.join(map(str, rolls))} (total {total})"
        )
        return CommandOutcome.HANDLED

    @command_set.command(
        "uptime", min_rank=ranks.USER, user_cooldown=2000, cmd_cooldown=1000,
        required_capabilities=["chat"], can_be_used_in_pm=False,
    )
    def uptime(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> None:
        bot.send_chat_msg(f"Uptime: {format_duration(int(time.time() - bot.started_at))}")

    @command_set.command(
        "echo", min_rank=ranks.ADMIN, cmd_cooldown=500,
        required_capabilities=["chat"], can_be_used_in_pm=False,
    )
    def echo(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        if not message.strip():
            return CommandOutcome.NOT_HANDLED
        bot.send_chat_msg(message)
        return CommandOutcome.HANDLED

    @command_set.command(
        "urbandictionary", min_rank=ranks.USER, user_cooldown=20000, cmd_cooldown=10000,
        required_capabilities=["chat"], can_be_used_in_pm=False,
    )
    def urbandictionary(cmd: str, user: ChatUser, message: str, opts: CommandOptions):
        """Look up a term; the reply is sent once the lookup finishes."""
        term = message.strip()
        if not term:
            return CommandOutcome.NOT_HANDLED

        async def reply() -> None:
            definition = await lookup_definition(term)
            bot.send_chat_msg(f"[ud] {definition or 'No definition found.'}")

        return reply()

    command_set.alias("ask", "8ball")
    command_set.alias("choose", "pick")
    command_set.alias("ud", "urbandictionary")
    return command_set
