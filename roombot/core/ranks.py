"""Room ranks and rank comparison operators."""

from __future__ import annotations

import math
from collections.abc import Mapping
from enum import Enum
from typing import NewType

# Ranks are totally ordered floats; LEADER (1.5) sits between USER and MOD
Rank = NewType("Rank", float)


class RankMatch(str, Enum):
    """How an invoker's rank is compared with a command's minimum rank."""

    AT_MOST = "<="
    EXACTLY = "=="
    AT_LEAST = ">="

    def allows(self, user_rank: float, min_rank: float) -> bool:
        match self:
            case RankMatch.AT_MOST:
                return user_rank <= min_rank
            case RankMatch.EXACTLY:
                return user_rank == min_rank
            case RankMatch.AT_LEAST:
                return user_rank >= min_rank

    @classmethod
    def parse(cls, value: object) -> RankMatch | None:
        """Return the operator for ``value``, or None if it is not one."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip())
            except ValueError:
                return None
        return None

    def __str__(self) -> str:
        return self.value


class RankTable:
    """Named ranks plus their human labels.

    Names are matched case-insensitively; ``table.MOD`` and ``table["mod"]``
    return the same rank.
    """

    def __init__(self, ranks: Mapping[str, float], names: Mapping[float, str] | None = None):
        self._ranks = {key.upper(): Rank(float(value)) for key, value in ranks.items()}
        self._names = {float(key): label for key, label in (names or {}).items()}

    def __getattr__(self, name: str) -> Rank:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._ranks[name.upper()]
        except KeyError:
            raise AttributeError(f"Unknown rank: {name}") from None

    def __getitem__(self, name: str) -> Rank:
        return self._ranks[name.upper()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.upper() in self._ranks

    def get(self, name: str, default: Rank | None = None) -> Rank | None:
        return self._ranks.get(name.upper(), default)

    def parse(self, value: object) -> Rank | None:
        """Parse a numeric rank or a rank name ("mod", "2", 1.5)."""
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return None if math.isnan(value) else Rank(float(value))
        if isinstance(value, str):
            text = value.strip()
            try:
                number = float(text)
            except ValueError:
                return self.get(text)
            return None if math.isnan(number) else Rank(number)
        return None

    def label(self, rank: float) -> str:
        """Render a rank with its human label when one is known: ``2 (Moderator)``."""
        text = f"{rank:g}"
        name = self._names.get(float(rank))
        return f"{text} ({name})" if name else text
