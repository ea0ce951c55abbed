"""Owner and admin commands: command administration and bot control."""

from __future__ import annotations

from typing import TYPE_CHECKING

from roombot.core.registry import ChatUser, CommandOptions, CommandOutcome, CommandSet

if TYPE_CHECKING:
    from roombot.core.bot import Bot


def _outcome(success: bool) -> CommandOutcome:
    return CommandOutcome.HANDLED if success else CommandOutcome.NOT_HANDLED


def _args(message: str) -> list[str]:
    return message.split()


def get_commands(bot: Bot) -> CommandSet:
    command_set = CommandSet("owner_cmds")
    ranks = bot.ranks

    @command_set.command("enable", min_rank=ranks.ADMIN)
    def enable(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        args = _args(message)
        return _outcome(bool(args) and bot.admin.enable(args[0], user.name))

    @command_set.command("disable", min_rank=ranks.ADMIN)
    def disable(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        args = _args(message)
        return _outcome(bool(args) and bot.admin.disable(args[0], user.name))

    @command_set.command("setrank", min_rank=ranks.ADMIN, allow_rank_change=False)
    def setrank(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """Usage: setrank <command> <rank or rank name>"""
        args = _args(message)
        if len(args) < 2:
            bot.send_pm(user.name, f"{bot.trigger}{cmd} <command> <rank>")
            return CommandOutcome.NOT_HANDLED
        return _outcome(bot.admin.set_rank(args[0], args[1], user.name))

    @command_set.command("setrankmatch", min_rank=ranks.ADMIN, allow_rank_change=False)
    def setrankmatch(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """Usage: setrankmatch <command> <=|==|>="""
        args = _args(message)
        if len(args) < 2:
            bot.send_pm(user.name, f"{bot.trigger}{cmd} <command> <=|==|>=")
            return CommandOutcome.NOT_HANDLED
        return _outcome(bot.admin.set_rank_match(args[0], args[1], user.name))

    @command_set.command("clearrankoverrides", min_rank=ranks.ADMIN, allow_rank_change=False)
    def clearrankoverrides(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        args = _args(message)
        if not args:
            bot.send_pm(user.name, "You must provide a command name.")
            return CommandOutcome.NOT_HANDLED
        return _outcome(bot.admin.reset_rank(args[0], user.name))

    @command_set.command("cooldown", min_rank=ranks.ADMIN, cmd_cooldown=2000)
    def cooldown(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """Usage: cooldown <command> global|cmd|user <milliseconds>"""
        args = _args(message)
        if len(args) < 3:
            bot.send_pm(
                user.name,
                f"{bot.trigger}{cmd} commandname (global,cmd)|user duration: "
                "Sets the cooldown duration for a given command.",
            )
            return CommandOutcome.NOT_HANDLED
        return _outcome(bot.admin.set_cooldown(args[0], args[1], args[2], user.name))

    @command_set.command("clearcooldownoverrides", min_rank=ranks.ADMIN, allow_rank_change=False)
    def clearcooldownoverrides(
        cmd: str, user: ChatUser, message: str, opts: CommandOptions
    ) -> CommandOutcome:
        args = _args(message)
        if not args:
            bot.send_pm(user.name, "You must provide a command name.")
            return CommandOutcome.NOT_HANDLED
        return _outcome(bot.admin.reset_cooldowns(args[0], user.name))

    @command_set.command("allow", min_rank=ranks.MOD, cmd_cooldown=500, allow_rank_change=False)
    def allow(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """Let a disallowed user use commands again."""
        args = _args(message)
        if args and bot.outranks(user, args[0]) and bot.allow_user(args[0]):
            bot.send_pm(user.name, f"{args[0]} allowed.")
        # never stamps cooldowns
        return CommandOutcome.NOT_HANDLED

    @command_set.command("disallow", min_rank=ranks.MOD, cmd_cooldown=500)
    def disallow(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """Stop a user from using any command."""
        args = _args(message)
        if args and bot.outranks(user, args[0]) and bot.disallow_user(args[0]):
            bot.send_pm(user.name, f"{args[0]} disallowed.")
        return CommandOutcome.NOT_HANDLED

    @command_set.command("modmsg", min_rank=ranks.ADMIN, cmd_cooldown=8000, allow_rank_change=False)
    def modmsg(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> CommandOutcome:
        """PM a message to every online moderator."""
        if not message.strip():
            return CommandOutcome.NOT_HANDLED
        bot.broadcast_mod_pm(message.strip())
        return CommandOutcome.HANDLED

    @command_set.command("exit", min_rank=ranks.ADMIN, allow_rank_change=False)
    def exit_(cmd: str, user: ChatUser, message: str, opts: CommandOptions) -> None:
        bot.kill(f"exit issued via chat by {user.name}")

    command_set.alias("kill", "exit")
    return command_set
