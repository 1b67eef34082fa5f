"""
Data models for the Speed Math trainer.

This module defines the rank ladder, game modes, game results,
the local user profile and the game settings, together with the
dictionary conversion used for persistence.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from speedmath import data


class Rank(Enum):
    """Difficulty tiers, ordered from lowest to highest."""

    NOVICE = "Novice"
    LEARNER = "Learner"
    ADEPT = "Adept"
    SKILLED = "Skilled"
    EXPERT = "Expert"
    MASTER = "Master"
    GRANDMASTER = "Grandmaster"
    LEGEND = "Legend"
    MYTHIC = "Mythic"
    IMMORTAL = "Immortal"

    @property
    def index(self) -> int:
        """Position of this rank on the ladder (0-based)."""
        return list(Rank).index(self)

    @property
    def icon(self) -> str:
        return RANK_ICONS[self]

    @classmethod
    def for_level(cls, level: int) -> "Rank":
        """
        Derive the rank for a player level.

        Every LEVELS_PER_RANK levels climb one tier; the last tier
        absorbs all higher levels.
        """
        ranks = list(cls)
        index = min(max(level - 1, 0) // data.LEVELS_PER_RANK, len(ranks) - 1)
        return ranks[index]


RANK_ICONS: dict[Rank, str] = {
    Rank.NOVICE: "🥉",
    Rank.LEARNER: "🥈",
    Rank.ADEPT: "🥇",
    Rank.SKILLED: "🏅",
    Rank.EXPERT: "🎖",
    Rank.MASTER: "🏆",
    Rank.GRANDMASTER: "👑",
    Rank.LEGEND: "🔥",
    Rank.MYTHIC: "🌟",
    Rank.IMMORTAL: "💎",
}


class GameMode(Enum):
    """Supported game modes."""

    TIME_ATTACK = "Time Attack"
    COUNT_CHALLENGE = "Count Challenge"
    DAILY_STREAK = "Daily Streak"

    @property
    def description(self) -> str:
        return data.MODE_DESCRIPTIONS[self.value]

    @property
    def is_timed(self) -> bool:
        """Whether the mode runs against a countdown."""
        return self is not GameMode.COUNT_CHALLENGE


@dataclass(frozen=True)
class GameResult:
    """
    Summary of one completed game.

    Results are appended to the history and never changed afterwards.
    """

    mode: GameMode
    score: int
    time: float  # Elapsed seconds
    date: datetime
    level: int
    problems_solved: int
    accuracy: float
    result_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        """Convert to dictionary for persistence."""
        return {
            "result_id": self.result_id,
            "mode": self.mode.value,
            "score": self.score,
            "time": self.time,
            "date": self.date.isoformat(),
            "level": self.level,
            "problems_solved": self.problems_solved,
            "accuracy": self.accuracy,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GameResult":
        """Create from dictionary (from persistence)."""
        return cls(
            result_id=str(data["result_id"]),
            mode=GameMode(data["mode"]),
            score=int(data["score"]),
            time=float(data.get("time", 0.0)),
            date=datetime.fromisoformat(data["date"]),
            level=int(data.get("level", 1)),
            problems_solved=int(data.get("problems_solved", 0)),
            accuracy=float(data.get("accuracy", 0.0)),
        )


@dataclass
class UserProfile:
    """
    Local player profile.

    The rank is always derived from the current level and is never
    stored on its own.
    """

    name: str = data.DEFAULT_PLAYER_NAME
    avatar: str = data.DEFAULT_AVATAR
    current_level: int = 1
    total_xp: int = 0
    current_streak: int = 0  # Consecutive games with a positive score
    best_streak: int = 0
    games_played: int = 0

    @property
    def current_rank(self) -> Rank:
        return Rank.for_level(self.current_level)

    @property
    def level_progress(self) -> int:
        """XP collected toward the next progress bar."""
        return self.total_xp % data.XP_PER_BAR

    def to_dict(self) -> dict:
        """Convert to dictionary for persistence."""
        return {
            "name": self.name,
            "avatar": self.avatar,
            "current_level": self.current_level,
            "total_xp": self.total_xp,
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "games_played": self.games_played,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserProfile":
        """
        Create from dictionary (from persistence).

        Raises:
            TypeError: If a field has the wrong type.
            ValueError: If the level is below 1.
        """
        defaults = cls()
        level = _int_field(data, "current_level", defaults.current_level)
        if level < 1:
            raise ValueError(f"Invalid level in stored profile: {level}")

        return cls(
            name=_str_field(data, "name", defaults.name),
            avatar=_str_field(data, "avatar", defaults.avatar),
            current_level=level,
            total_xp=_int_field(data, "total_xp", 0),
            current_streak=_int_field(data, "current_streak", 0),
            best_streak=_int_field(data, "best_streak", 0),
            games_played=_int_field(data, "games_played", 0),
        )


@dataclass
class GameSettings:
    """Player preferences."""

    sound_enabled: bool = True
    haptic_enabled: bool = True
    dark_mode_enabled: bool = False

    def to_dict(self) -> dict:
        return {
            "sound_enabled": self.sound_enabled,
            "haptic_enabled": self.haptic_enabled,
            "dark_mode_enabled": self.dark_mode_enabled,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GameSettings":
        return cls(
            sound_enabled=_bool_field(data, "sound_enabled", True),
            haptic_enabled=_bool_field(data, "haptic_enabled", True),
            dark_mode_enabled=_bool_field(data, "dark_mode_enabled", False),
        )


# ============================================================================
# Field Validation
# ============================================================================


def _int_field(data: dict, key: str, default: int) -> int:
    value = data.get(key, default)
    # bool is a subclass of int but never a valid counter
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Field '{key}' must be an integer, got {value!r}")
    return value


def _str_field(data: dict, key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise TypeError(f"Field '{key}' must be a string, got {value!r}")
    return value


def _bool_field(data: dict, key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise TypeError(f"Field '{key}' must be a boolean, got {value!r}")
    return value
