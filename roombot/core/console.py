"""Interactive console: administer the bot and feed test lines from stdin."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from .registry import ChatUser

if TYPE_CHECKING:
    from .bot import Bot

LOGGER = logging.getLogger("Bot.Console")

HELP = "Commands: /enable <cmd>, /disable <cmd>, /say <text>, /as <user> <rank> <line>, /exit"


def handle_console_line(bot: Bot, line: str) -> bool:
    """Run one console line. Returns False once the console should stop."""
    line = line.strip()
    if not line:
        return True
    if not line.startswith("/"):
        bot.send_chat_msg(line)
        return True

    command, _, rest = line[1:].partition(" ")
    rest = rest.strip()
    match command.lower():
        case "enable":
            bot.admin.enable(rest)
        case "disable":
            bot.admin.disable(rest)
        case "say":
            if rest:
                bot.send_chat_msg(rest, is_command=True)
        case "as":
            parts = rest.split(None, 2)
            rank = bot.ranks.parse(parts[1]) if len(parts) >= 2 else None
            if len(parts) < 3 or rank is None:
                LOGGER.warning("Usage: /as <user> <rank> <line>")
                return True
            online = bot.get_user(parts[0])
            user = ChatUser(online.name if online else parts[0], rank)
            command_line = bot.extract_command(parts[2])
            if command_line is None:
                LOGGER.info(f"{parts[0]}: {parts[2]}")
                return True
            result = bot.dispatcher.dispatch(user, command_line)
            LOGGER.info(f"{parts[0]} -> {result.status.value}")
        case "exit" | "quit":
            bot.kill("console exit")
            return False
        case "help":
            LOGGER.info(HELP)
        case _:
            LOGGER.warning(f"Unknown console command: /{command}. {HELP}")
    return True


async def run_console(bot: Bot) -> None:
    """Read stdin until EOF or ``/exit``."""
    LOGGER.info(HELP)
    while not bot.killed:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            LOGGER.info("Console input closed")
            return
        try:
            if not handle_console_line(bot, line):
                return
        except Exception as e:
            LOGGER.exception(f"Console command failed: {e}")
