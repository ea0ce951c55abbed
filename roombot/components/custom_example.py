"""Example custom command set.

Copy this module to ``custom.py`` (every room) or ``custom_<room>.py`` (one
room) in the components package; it is merged after the built-in commands, so
a command or alias with an existing name replaces the built-in one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from roombot.core.registry import ChatUser, CommandOptions, CommandSet

if TYPE_CHECKING:
    from roombot.core.bot import Bot


def get_commands(bot: Bot) -> CommandSet:
    command_set = CommandSet("custom_example")

    @command_set.command(
        "testcommand",
        min_rank=bot.ranks.USER,
        user_cooldown=5000,
        cmd_cooldown=1000,
        required_capabilities=["chat"],
        can_be_used_in_pm=False,
    )
    def testcommand(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> None:
        bot.send_chat_msg(f"Hello, {user.name}! You used {cmd}.")

    command_set.alias("testcmd", "testcommand")
    return command_set
