"""
Game constants for the Speed Math trainer.

This module holds the tunable numbers of the game: mode parameters,
scoring rules, timer granularity and profile defaults.
"""

# ============================================================================
# Timing
# ============================================================================

# Countdown tick interval in seconds (100 ms granularity)
TICK_INTERVAL = 0.1

# Delay before advancing to the next problem after an answer, in seconds
FEEDBACK_DELAY = 0.8

# ============================================================================
# Mode Parameters
# ============================================================================

TIME_ATTACK_SECONDS = 30

DAILY_STREAK_SECONDS = 60

COUNT_CHALLENGE_TARGET = 10

# ============================================================================
# Scoring
# ============================================================================

BASE_POINTS = 10

# Bonus awarded while the in-game streak is at least STREAK_BONUS_THRESHOLD
STREAK_BONUS = 2
STREAK_BONUS_THRESHOLD = 5

# Points per level added to every correct answer
LEVEL_BONUS_PER_LEVEL = 2

# Every LEVEL_UP_INTERVAL solved problems, level up if streak >= LEVEL_UP_MIN_STREAK
LEVEL_UP_INTERVAL = 3
LEVEL_UP_MIN_STREAK = 3
LEVEL_UP_XP = 100

# XP needed to fill one progress bar on the profile
XP_PER_BAR = 100

# ============================================================================
# History
# ============================================================================

# Best results kept per game mode
HISTORY_LIMIT_PER_MODE = 10

# ============================================================================
# Problem Generation
# ============================================================================

LEVELS_PER_RANK = 5

DISTRACTOR_COUNT = 3

# Upper bound on random draws for one distractor before stepping outward
MAX_DISTRACTOR_ATTEMPTS = 100

# Range for fully unrelated distractors at high ranks
WILD_DISTRACTOR_RANGE = (-100, 100)

# Rank index above which distractors may be fully unrelated values
WILD_DISTRACTOR_MIN_RANK = 4

# Below this level negative distractors are mirrored to positive values
NEGATIVE_DISTRACTOR_LEVEL = 21

# ============================================================================
# Profile Defaults
# ============================================================================

DEFAULT_PLAYER_NAME = "Player"

DEFAULT_AVATAR = "person.circle.fill"

# ============================================================================
# Mode Descriptions
# ============================================================================

MODE_DESCRIPTIONS = {
    "Time Attack": "Solve as many problems as possible in the time limit",
    "Count Challenge": "Solve a set number of problems as fast as you can",
    "Daily Streak": "Daily challenge with increasing difficulty",
}
