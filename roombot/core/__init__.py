"""Core modules for the room bot."""

from .admin import CommandAdmin
from .bot import Bot, ConsoleConnection, RoomConnection
from .config import (
    BUILTIN_COMPONENTS,
    DATA_DIR,
    RoomBotSettings,
    get_settings,
)
from .dispatcher import Dispatcher, DispatchResult, DispatchStatus
from .guards import CooldownTracker, can_bypass_cooldown, has_rank
from .health_server import HealthCheckServer
from .logging import MOD_LOGGER_NAME, setup_logging
from .queue import ActionQueue, QueueItem
from .ranks import Rank, RankMatch, RankTable
from .registry import (
    ChatUser,
    Command,
    CommandOptions,
    CommandOutcome,
    CommandRegistry,
    CommandSet,
    OverlaySource,
    merge_command_sets,
)

__all__ = [
    # Settings
    "get_settings",
    "RoomBotSettings",
    # Path Constants
    "DATA_DIR",
    "BUILTIN_COMPONENTS",
    # Setup functions
    "setup_logging",
    "MOD_LOGGER_NAME",
    # Services
    "Bot",
    "ConsoleConnection",
    "RoomConnection",
    "HealthCheckServer",
    # Commands
    "ActionQueue",
    "QueueItem",
    "ChatUser",
    "Command",
    "CommandAdmin",
    "CommandOptions",
    "CommandOutcome",
    "CommandRegistry",
    "CommandSet",
    "OverlaySource",
    "merge_command_sets",
    "Dispatcher",
    "DispatchResult",
    "DispatchStatus",
    # Guards
    "CooldownTracker",
    "can_bypass_cooldown",
    "has_rank",
    # Ranks
    "Rank",
    "RankMatch",
    "RankTable",
]
