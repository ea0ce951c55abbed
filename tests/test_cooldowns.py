"""
Tests for cooldown tracking and the rank guard helpers.
"""

from roombot.core.guards import (
    CooldownKind,
    CooldownTracker,
    can_bypass_cooldown,
    has_rank,
)


class TestGuards:
    """Rank gate and cooldown bypass."""

    def test_has_rank_uses_rank_match(self, make_command):
        command = make_command(min_rank=2, rank_match="<=")
        assert has_rank(1, command)
        assert not has_rank(3, command)

    def test_bypass_threshold(self):
        assert can_bypass_cooldown(3, 3)
        assert not can_bypass_cooldown(2, 3)
        assert can_bypass_cooldown(0, 0)

    def test_negative_threshold_disables_bypass(self):
        assert not can_bypass_cooldown(255, -1)


class TestCooldownTracker:
    """Independent command-wide and per-user clocks."""

    def test_first_use_is_never_throttled(self, make_command):
        command = make_command(cmd_cooldown=5000, user_cooldown=5000)
        tracker = CooldownTracker()
        tracker.reset(command.name)

        assert command.last_use is None
        assert tracker.check(command, "alice", 0) is None

    def test_record_stamps_both_clocks(self, make_command):
        command = make_command()
        tracker = CooldownTracker()
        tracker.record(command, "Alice", 1234)

        assert command.last_use == 1234
        assert tracker.last_use(command.name, "alice") == 1234
        assert tracker.tracked_users(command.name) == 1

    def test_command_cooldown_checked_before_user_cooldown(self, make_command):
        command = make_command(cmd_cooldown=5000, user_cooldown=10000)
        tracker = CooldownTracker()
        tracker.record(command, "alice", 0)

        hit = tracker.check(command, "alice", 2000)
        assert hit.kind is CooldownKind.COMMAND
        assert hit.remaining_ms == 3000
        assert hit.remaining_seconds == 3

    def test_user_cooldown_only_for_same_user(self, make_command):
        command = make_command(cmd_cooldown=1000, user_cooldown=10000)
        tracker = CooldownTracker()
        tracker.record(command, "alice", 0)

        hit = tracker.check(command, "ALICE", 2000)
        assert hit.kind is CooldownKind.USER
        assert hit.remaining_ms == 8000
        assert tracker.check(command, "bob", 2000) is None

    def test_reset_forgets_users(self, make_command):
        command = make_command(user_cooldown=10000)
        tracker = CooldownTracker()
        tracker.record(command, "alice", 0)
        tracker.reset(command.name)

        assert tracker.last_use(command.name, "alice") is None
        assert tracker.tracked_users(command.name) == 0
