"""Room bot configuration"""

import logging
import re
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# === Path Configuration ===
CORE_DIR = Path(__file__).parent
PACKAGE_DIR = CORE_DIR.parent
DATA_DIR = PACKAGE_DIR.parent / "data"
LOG_DIR = PACKAGE_DIR.parent / "logs"

# Components loaded into every registry, in merge order
BUILTIN_COMPONENTS = [
    "roombot.components.cmds",
    "roombot.components.moderation",
    "roombot.components.owner_cmds",
]

VALID_TRIGGERS = "!#$%^&*()_+-=`~.,?"

# Ranks are floats: LEADER sits between USER and MOD
DEFAULT_RANKS: dict[str, float] = {
    "GUEST": 0,
    "USER": 1,
    "LEADER": 1.5,
    "MOD": 2,
    "ADMIN": 3,
    "OWNER": 4,
    "FOUNDER": 5,
    "SITEOWNER": 10,
    "SUPERADMIN": 255,
    "SITEADMIN": 255,
}

DEFAULT_RANK_NAMES: dict[float, str] = {
    1: "User",
    1.5: "Leader",
    2: "Moderator",
    3: "Room Admin",
    4: "Room Owner",
    5: "Room Founder",
    10: "Site Owner",
    255: "Superadmin",
}


def _module_suffix(name: str) -> str:
    """Turn a room or set name into a valid module name suffix."""
    return re.sub(r"\W", "_", name.strip().lower())


class RoomBotSettings(BaseSettings):
    """Room bot settings"""

    model_config = SettingsConfigDict(
        env_file=PACKAGE_DIR.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Session
    room: str = Field(..., description="Room (channel) to join")
    username: str = Field(default="", description="Bot account name")

    # Chat
    trigger: str = Field(default="!", description="Command trigger character")
    allow_inline_cmd: bool = Field(default=True, description="Accept ::!cmd inside a line")
    min_rank_to_bypass_cooldown: float = Field(
        default=3, description="Minimum rank that skips cooldowns (-1 disables bypass)"
    )
    disable_all_commands: bool = Field(default=False, description="Ignore every chat command")

    # Ranks
    ranks: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_RANKS))
    rank_names: dict[float, str] = Field(default_factory=lambda: dict(DEFAULT_RANK_NAMES))

    # Action queues (seconds between actions)
    queue_interval: float = Field(default=0.2, ge=0, description="Generic socket event")
    broadcast_pm_queue_interval: float = Field(
        default=0.25, ge=0, description="Broadcasts of private messages"
    )
    large_data_queue_interval: float = Field(
        default=2.0, ge=0, description="Large data requests, like ban list or channel log"
    )

    # Custom command sets
    use_channel_custom_commands: bool = Field(
        default=True, description="Load custom_<room> instead of custom"
    )
    custom_commands_to_load: list[str] = Field(
        default_factory=list, description="Additional custom_<name> sets"
    )
    custom_commands_package: str = Field(
        default="roombot.components", description="Package searched for custom command sets"
    )

    # Persistence
    database_url: str = Field(default="", description="PostgreSQL URL (empty: JSON files)")
    data_dir: Path = Field(default=DATA_DIR, description="Directory for JSON settings files")
    use_channel_settings_file: bool = Field(
        default=True, description="Use settings-<room>.json instead of settings.json"
    )

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Path = Field(default=LOG_DIR, description="Directory for per-room moderation logs")
    write_mod_log: bool = Field(default=True, description="Mirror moderation events to <log_dir>/<room>/mod.log")
    health_port: int = Field(default=0, ge=0, description="Health server port (0 disables)")

    @field_validator("room")
    @classmethod
    def validate_room(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ROOM must not be empty")
        return v

    @field_validator("trigger")
    @classmethod
    def validate_trigger(cls, v: str) -> str:
        """Trigger must be a single character from VALID_TRIGGERS"""
        if len(v) != 1 or v not in VALID_TRIGGERS:
            logger.warning(f"Invalid trigger '{v}', defaulting to '!'")
            return "!"
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL starts with postgresql:// when set"""
        if v and not v.startswith("postgresql://"):
            raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def mod_log_file(self) -> Path | None:
        """Moderation log for this room, or None when disabled."""
        if not self.write_mod_log:
            return None
        return self.log_dir / _module_suffix(self.room) / "mod.log"

    def custom_command_modules(self) -> list[tuple[str, bool]]:
        """Custom command modules to load, in merge order.

        Each entry is ``(module_name, required)``; a missing module that is not
        required is skipped silently.
        """
        package = self.custom_commands_package
        room = _module_suffix(self.room)
        primary = f"custom_{room}" if self.use_channel_custom_commands else "custom"
        modules = [(f"{package}.{primary}", False)]
        for name in self.custom_commands_to_load:
            if self.use_channel_custom_commands and _module_suffix(name) == room:
                continue
            modules.append((f"{package}.custom_{_module_suffix(name)}", True))
        return modules


@lru_cache
def get_settings() -> RoomBotSettings:
    """Get cached settings instance"""
    return RoomBotSettings()  # type: ignore[call-arg]
