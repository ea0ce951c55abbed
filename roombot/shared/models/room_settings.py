"""Data models for persisted per-room settings."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, Field, field_validator


class CommandOverrides(BaseModel):
    """Command values changed at runtime, keyed by command name.

    An entry exists only while the live value differs from the command's
    compiled-in default. Values are validated against the command when the
    registry reconciles them, not here.
    """

    CATEGORIES: ClassVar[tuple[str, ...]] = (
        "active",
        "min_rank",
        "rank_match",
        "user_cooldown",
        "cmd_cooldown",
    )

    active: dict[str, bool] = Field(default_factory=dict)
    min_rank: dict[str, float] = Field(default_factory=dict)
    rank_match: dict[str, str] = Field(default_factory=dict)
    user_cooldown: dict[str, int] = Field(default_factory=dict)
    cmd_cooldown: dict[str, int] = Field(default_factory=dict)

    def category(self, name: str) -> dict[str, Any]:
        if name not in self.CATEGORIES:
            raise KeyError(name)
        return getattr(self, name)

    def for_command(self, command_name: str) -> dict[str, Any]:
        """All overrides stored for one command, by category."""
        found = {}
        for name in self.CATEGORIES:
            values = self.category(name)
            if command_name in values:
                found[name] = values[command_name]
        return found

    def is_empty(self) -> bool:
        return not any(self.category(name) for name in self.CATEGORIES)


class RoomSettings(BaseModel):
    """Everything the bot persists for one room."""

    overrides: CommandOverrides = Field(default_factory=CommandOverrides)
    disallow: list[str] = Field(default_factory=list)
    muted: bool = False

    @field_validator("disallow")
    @classmethod
    def normalize_disallow(cls, v: list[str]) -> list[str]:
        """Lowercase, strip and de-duplicate usernames, keeping order."""
        seen: dict[str, None] = {}
        for name in v:
            name = name.strip().lower()
            if name:
                seen[name] = None
        return list(seen)
