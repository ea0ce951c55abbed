"""Moderation commands: kick, ban, and muting the bot itself."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from roombot.core.logging import MOD_LOGGER_NAME
from roombot.core.registry import ChatUser, CommandOptions, CommandOutcome, CommandSet

if TYPE_CHECKING:
    from roombot.core.bot import Bot

MOD_LOGGER = logging.getLogger(MOD_LOGGER_NAME)


def discipline(bot: Bot, caller: ChatUser, given: str, method: str, message: str) -> CommandOutcome:
    """Emit ``/<method> <target> <reason>`` if the caller and the bot outrank the target.

    Offline targets can be banned but not kicked.
    """
    target_name, _, reason = message.strip().partition(" ")
    reason = reason.strip()
    lowered = target_name.lower()
    if not target_name or lowered in (caller.name.lower(), bot.username.lower()):
        return CommandOutcome.NOT_HANDLED
    if not bot.outranks(caller, target_name):
        return CommandOutcome.NOT_HANDLED

    target = bot.get_user(target_name)
    if target is not None:
        target_name = target.name
    elif method == "kick":
        return CommandOutcome.NOT_HANDLED

    bot.send_chat_msg(f"/{method} {target_name} {reason}".rstrip(), bypass_queue=True, is_command=True)
    MOD_LOGGER.info(f"{caller.name} used {given} on {target_name}. Reason: {reason or '<none>'}")
    return CommandOutcome.HANDLED


def get_commands(bot: Bot) -> CommandSet:
    command_set = CommandSet("moderation")
    ranks = bot.ranks

    @command_set.command("kick", min_rank=ranks.MOD, required_capabilities=["kick", "chat"])
    def kick(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        return discipline(bot, user, cmd, "kick", message)

    @command_set.command("ban", min_rank=ranks.MOD, required_capabilities=["ban", "chat"])
    def ban(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        return discipline(bot, user, cmd, "ipban", message)

    @command_set.command("mute", min_rank=ranks.MOD, user_cooldown=1000, cmd_cooldown=1000)
    def mute(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """Stop the bot from chatting and sending PMs."""
        if bot.muted:
            return CommandOutcome.NOT_HANDLED
        MOD_LOGGER.info(f"{user.name} muted the bot.")
        bot.set_muted(True)
        return CommandOutcome.HANDLED

    @command_set.command("unmute", min_rank=ranks.MOD, cmd_cooldown=1000)
    def unmute(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        if not bot.muted:
            return CommandOutcome.NOT_HANDLED
        MOD_LOGGER.info(f"{user.name} unmuted the bot.")
        bot.set_muted(False)
        return CommandOutcome.HANDLED

    command_set.alias("ipban", "ban")
    return command_set
