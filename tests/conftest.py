"""
Pytest configuration and shared fixtures for roombot tests.
"""

from unittest.mock import Mock

import pytest

from roombot.core.config import DEFAULT_RANK_NAMES, DEFAULT_RANKS, RoomBotSettings
from roombot.core.ranks import RankTable
from roombot.core.registry import ChatUser, Command, CommandRegistry
from roombot.shared.models import CommandOverrides


class FakeHost:
    """Minimal session facts and reply sink for the dispatcher."""

    def __init__(self):
        self.username = "roombot"
        self.ranks = RankTable(DEFAULT_RANKS, DEFAULT_RANK_NAMES)
        self.killed = False
        self.commands_disabled = False
        self.min_rank_to_bypass_cooldown = 3
        self.disallowed = set()
        self.capabilities = {"chat"}
        self.pms = []

    def is_disallowed(self, username):
        return username.lower() in self.disallowed

    def has_capability(self, name):
        return name in self.capabilities

    def send_pm(self, username, message):
        self.pms.append((username, message))


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def ranks():
    return RankTable(DEFAULT_RANKS, DEFAULT_RANK_NAMES)


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_command():
    """Build a command with permissive defaults and a Mock handler."""

    def factory(name="test", handler=None, **meta):
        meta.setdefault("min_rank", 0)
        return Command(name, handler or Mock(return_value=None), **meta)

    return factory


@pytest.fixture
def make_registry():
    """Build and finalize a registry from commands (keyed by their names)."""

    def factory(*commands, aliases=None, overrides=None):
        registry = CommandRegistry({c.name: c for c in commands}, aliases or {})
        registry.finalize(overrides or CommandOverrides())
        return registry

    return factory


@pytest.fixture
def user():
    return ChatUser("alice", 1)


@pytest.fixture
def mod():
    return ChatUser("modbob", 2)


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from any .env file, with instant queues."""
    return RoomBotSettings(
        _env_file=None,
        room="lobby",
        username="roombot",
        queue_interval=0,
        broadcast_pm_queue_interval=0,
        large_data_queue_interval=0,
        data_dir=tmp_path,
    )
