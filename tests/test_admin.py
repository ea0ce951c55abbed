"""
Tests for runtime command administration.

Tests:
- enable / disable and the protected commands
- Rank and rank-match changes, locks and resets
- Cooldown changes and resets
- Override bookkeeping and persistence callbacks
"""

import logging
from unittest.mock import Mock

import pytest

from roombot.core.admin import CommandAdmin
from roombot.core.ranks import RankMatch


@pytest.fixture
def admin_setup(ranks, make_registry):
    """Return a factory building an admin facade with Mock reply/persist sinks."""

    def factory(*commands, aliases=None):
        registry = make_registry(*commands, aliases=aliases)
        admin = CommandAdmin(registry, ranks, reply=Mock(), persist=Mock())
        return registry, admin

    return factory


def replies(admin):
    return [call.args for call in admin._reply.call_args_list]


class TestEnableDisable:
    """Active state changes."""

    def test_disable_records_override_and_persists(self, admin_setup, make_command):
        command = make_command("roll")
        registry, admin = admin_setup(command)

        assert admin.disable("roll", "boss")

        assert not command.active
        assert registry.overrides.active == {"roll": False}
        admin._persist.assert_called_once()
        assert replies(admin) == [("boss", 'Chat command "roll" disabled.')]

    def test_enable_removes_override(self, admin_setup, make_command):
        command = make_command("roll")
        registry, admin = admin_setup(command)
        admin.disable("roll")

        assert admin.enable("roll")

        assert command.active
        assert registry.overrides.active == {}

    def test_disable_already_inactive_fails(self, admin_setup, make_command):
        command = make_command("quiet", active=False)
        registry, admin = admin_setup(command)

        assert not admin.disable("quiet", "boss")
        assert registry.overrides.is_empty()
        admin._persist.assert_not_called()
        assert "already disabled" in replies(admin)[0][1]

    def test_enable_default_inactive_records_override(self, admin_setup, make_command):
        registry, admin = admin_setup(make_command("quiet", active=False))

        assert admin.enable("quiet")
        assert registry.overrides.active == {"quiet": True}

    def test_enable_already_active_fails(self, admin_setup, make_command):
        _, admin = admin_setup(make_command("roll"))
        assert not admin.enable("roll", "boss")
        assert "already enabled" in replies(admin)[0][1]

    def test_enable_broken_command_refused(self, admin_setup, make_command, caplog):
        command = make_command("bad", rank_match="=>")
        _, admin = admin_setup(command)

        assert not admin.enable("bad", "boss")
        assert not command.active
        assert 'Tried to enable chat command "bad" but it is broken' in caplog.text

    @pytest.mark.parametrize("name", ["enable", "disable"])
    def test_protected_commands_cannot_be_disabled(self, admin_setup, make_command, name):
        command = make_command(name)
        _, admin = admin_setup(command)

        assert not admin.disable(name, "boss")
        assert command.active
        assert replies(admin) == [("boss", f'Chat command "{name}" cannot be disabled.')]

    def test_unknown_command(self, admin_setup):
        _, admin = admin_setup()
        assert not admin.disable("ghost", "boss")
        assert replies(admin) == [("boss", "That command does not exist.")]

    def test_alias_resolves_to_command(self, admin_setup, make_command):
        command = make_command("urbandictionary")
        registry, admin = admin_setup(command, aliases={"ud": "urbandictionary"})

        assert admin.disable("UD")
        assert registry.overrides.active == {"urbandictionary": False}

    def test_console_caller_gets_no_reply(self, admin_setup, make_command, caplog):
        caplog.set_level(logging.INFO, logger="Bot.Mod")
        _, admin = admin_setup(make_command("roll"))

        assert admin.disable("roll")
        admin._reply.assert_not_called()
        assert "(console)" in caplog.text


class TestRankChanges:
    """min_rank and rank_match."""

    def test_set_rank_by_number_and_name(self, admin_setup, make_command, caplog):
        caplog.set_level(logging.INFO, logger="Bot.Mod")
        command = make_command("roll", min_rank=1)
        registry, admin = admin_setup(command)

        assert admin.set_rank("roll", "mod", "boss")
        assert command.min_rank == 2
        assert registry.overrides.min_rank == {"roll": 2}
        assert "Rank for chat command roll changed from 1=>2 by boss." in caplog.text
        assert replies(admin)[-1] == ("boss", "Required rank for roll is now >=2 (Moderator).")

        assert admin.set_rank("roll", "1.5")
        assert command.min_rank == 1.5

    def test_set_rank_back_to_default_removes_override(self, admin_setup, make_command):
        registry, admin = admin_setup(make_command("roll", min_rank=1))
        admin.set_rank("roll", 3)
        admin.set_rank("roll", 1)
        assert registry.overrides.min_rank == {}

    def test_invalid_rank(self, admin_setup, make_command):
        command = make_command("roll", min_rank=1)
        _, admin = admin_setup(command)

        assert not admin.set_rank("roll", "captain", "boss")
        assert command.min_rank == 1
        assert replies(admin) == [("boss", "Invalid rank: captain")]

    def test_locked_rank_rejected(self, admin_setup, make_command):
        command = make_command("setrank", min_rank=3, allow_rank_change=False)
        registry, admin = admin_setup(command)

        assert not admin.set_rank("setrank", 0, "boss")
        assert not admin.set_rank_match("setrank", "<=", "boss")
        assert command.min_rank == 3
        assert registry.overrides.is_empty()
        assert replies(admin)[0] == ("boss", "That command cannot have its rank changed.")

    def test_broken_rank_rejected(self, admin_setup, make_command):
        _, admin = admin_setup(make_command("bad", user_cooldown=-3))
        assert not admin.set_rank("bad", 2, "boss")
        assert replies(admin) == [("boss", "That command is broken. Tell the bot maintainer.")]

    def test_set_rank_match(self, admin_setup, make_command):
        command = make_command("roll", min_rank=2)
        registry, admin = admin_setup(command)

        assert admin.set_rank_match("roll", "==", "boss")
        assert command.rank_match is RankMatch.EXACTLY
        assert registry.overrides.rank_match == {"roll": "=="}

    def test_invalid_rank_match(self, admin_setup, make_command):
        command = make_command("roll")
        _, admin = admin_setup(command)

        assert not admin.set_rank_match("roll", "=>", "boss")
        assert command.rank_match is RankMatch.AT_LEAST
        assert replies(admin) == [
            ("boss", "Invalid input. Comparison operator can either be <=, ==, or >=.")
        ]

    def test_reset_rank_restores_defaults(self, admin_setup, make_command):
        command = make_command("roll", min_rank=1)
        registry, admin = admin_setup(command)
        admin.set_rank("roll", 3)
        admin.set_rank_match("roll", "<=")

        assert admin.reset_rank("roll")

        assert command.min_rank == 1
        assert command.rank_match is RankMatch.AT_LEAST
        assert registry.overrides.is_empty()

    def test_reset_rank_works_on_locked_commands(self, admin_setup, make_command):
        command = make_command("setrank", min_rank=3, allow_rank_change=False)
        _, admin = admin_setup(command)
        command.min_rank = 0

        assert admin.reset_rank("setrank")
        assert command.min_rank == 3


class TestCooldownChanges:
    """user_cooldown and cmd_cooldown."""

    @pytest.mark.parametrize(
        "kind, attr, label",
        [("global", "cmd_cooldown", "global"), ("cmd", "cmd_cooldown", "global"), ("USER", "user_cooldown", "user")],
    )
    def test_set_cooldown(self, admin_setup, make_command, kind, attr, label):
        command = make_command("roll")
        registry, admin = admin_setup(command)

        assert admin.set_cooldown("roll", kind, "1500", "boss")

        assert getattr(command, attr) == 1500
        assert registry.overrides.category(attr) == {"roll": 1500}
        assert replies(admin) == [("boss", f"Set the {label} cooldown for roll to 1.5 seconds.")]

    @pytest.mark.parametrize("duration", [-1, "soon", None, True])
    def test_invalid_duration(self, admin_setup, make_command, duration):
        command = make_command("roll", cmd_cooldown=500)
        _, admin = admin_setup(command)

        assert not admin.set_cooldown("roll", "global", duration, "boss")
        assert command.cmd_cooldown == 500
        assert replies(admin) == [("boss", "Invalid duration. Must be 0 or higher.")]

    def test_unknown_kind(self, admin_setup, make_command):
        _, admin = admin_setup(make_command("roll"))
        assert not admin.set_cooldown("roll", "weekly", 10, "boss")
        admin._persist.assert_not_called()

    def test_reset_cooldowns(self, admin_setup, make_command):
        command = make_command("roll", user_cooldown=1000)
        registry, admin = admin_setup(command)
        admin.set_cooldown("roll", "user", 9000)
        admin.set_cooldown("roll", "global", 9000)

        assert admin.reset_cooldowns("roll", "boss")

        assert command.user_cooldown == 1000
        assert command.cmd_cooldown == 0
        assert registry.overrides.is_empty()
        assert replies(admin)[-1] == ("boss", "Cooldowns have been reset for roll.")


def test_without_sinks(ranks, make_command, make_registry):
    command = make_command("roll")
    admin = CommandAdmin(make_registry(command), ranks)

    assert admin.disable("roll", "boss")
    assert not command.active
