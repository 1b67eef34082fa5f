"""
Game session engine for the Speed Math trainer.

GameSession owns the lifecycle of one game at a time:

    IDLE -> ACTIVE -> (FEEDBACK <-> ACTIVE) -> ENDED -> IDLE

It asks the problem generator for problems, scores answers, levels the
player up, runs the countdown for timed modes and writes results and
the profile through a PersistenceManager when a game ends.

All entry points and scheduled callbacks must run on the scheduler's
single context. Timers are scheduler handles tied to a session id: a
callback belonging to an older session does nothing.

The UI subscribes to immutable SessionSnapshot objects, or polls
``snapshot()``.
"""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from speedmath import data
from speedmath.math_problems import Problem, generate_problem
from speedmath.models import GameMode, GameResult, GameSettings, Rank, UserProfile
from speedmath.persistence import PersistenceManager
from speedmath.scheduler import Handle, Scheduler

logger = logging.getLogger(__name__)

_TICK_MS = round(data.TICK_INTERVAL * 1000)


class SessionState(Enum):
    """Lifecycle states of a game session."""

    IDLE = "idle"
    ACTIVE = "active"
    FEEDBACK = "feedback"
    ENDED = "ended"


@dataclass(frozen=True)
class ModeConfig:
    """Parameters for one game mode."""

    mode: GameMode
    time_limit: float | None = None  # Countdown in seconds, None when untimed
    target_problems: int | None = None  # Problems to solve, None when open-ended


MODE_CONFIGS: dict[GameMode, ModeConfig] = {
    GameMode.TIME_ATTACK: ModeConfig(GameMode.TIME_ATTACK, time_limit=data.TIME_ATTACK_SECONDS),
    GameMode.COUNT_CHALLENGE: ModeConfig(
        GameMode.COUNT_CHALLENGE,
        target_problems=data.COUNT_CHALLENGE_TARGET,
    ),
    GameMode.DAILY_STREAK: ModeConfig(GameMode.DAILY_STREAK, time_limit=data.DAILY_STREAK_SECONDS),
}


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything the UI needs to render the current game."""

    state: SessionState
    mode: GameMode | None
    current_problem: Problem | None
    score: int
    time_remaining: float
    problems_solved: int
    target_problems: int | None
    streak: int
    level: int
    rank: Rank
    selected_answer: int | None
    is_correct: bool | None
    game_result: GameResult | None

    @property
    def show_feedback(self) -> bool:
        return self.state is SessionState.FEEDBACK

    @property
    def show_game_over(self) -> bool:
        return self.state is SessionState.ENDED


def points_for_correct_answer(streak: int, level: int) -> int:
    """Points for a correct answer, given the streak before it."""
    streak_bonus = data.STREAK_BONUS if streak >= data.STREAK_BONUS_THRESHOLD else 0
    return data.BASE_POINTS + streak_bonus + level * data.LEVEL_BONUS_PER_LEVEL


def session_accuracy(problems_solved: int, streak: int) -> float:
    """
    Accuracy estimate for a finished game.

    Wrong answers are not counted during a game, so ``solved - streak``
    stands in for the misses. This undercounts misses that happened
    before the final streak began, and is kept as-is for compatibility
    with existing histories.
    """
    if problems_solved <= 0:
        return 0.0
    return problems_solved / (problems_solved + max(0, problems_solved - streak))


def record_result(
    history: list[GameResult],
    result: GameResult,
    limit: int = data.HISTORY_LIMIT_PER_MODE,
) -> list[GameResult]:
    """
    Return a new history with the result added.

    Only the ``limit`` highest scores of the result's mode are kept.
    Ties keep their insertion order; results of other modes are untouched.
    """
    updated = [*history, result]
    same_mode = [r for r in updated if r.mode is result.mode]
    if len(same_mode) <= limit:
        return updated

    best = sorted(same_mode, key=lambda r: r.score, reverse=True)[:limit]
    return [r for r in updated if r.mode is not result.mode] + best


class GameSession:
    """
    Stateful controller for games, the profile, history and settings.

    Invalid calls (answering with no game running, starting a game while
    one is running) are ignored rather than raised.
    """

    def __init__(
        self,
        persistence: PersistenceManager,
        scheduler: Scheduler,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the session and load stored data.

        Args:
            persistence: Access to the profile, history and settings.
            scheduler: Context that runs the countdown and auto-advance.
            rng: Optional random source for problem generation.
            clock: Source of result timestamps.
        """
        self._persistence = persistence
        self._scheduler = scheduler
        self._rng = rng
        self._clock = clock
        self._observers: list[Callable[[SessionSnapshot], None]] = []

        self.profile: UserProfile = persistence.get_user_profile()
        self.history: list[GameResult] = persistence.get_game_history()
        self.settings: GameSettings = persistence.get_settings()

        self._state = SessionState.IDLE
        self._session_id = 0
        self._mode: GameMode | None = None
        self._config: ModeConfig | None = None
        self._problem: Problem | None = None
        self._score = 0
        self._solved = 0
        self._streak = 0
        self._level = self.profile.current_level
        self._remaining_ms = 0
        self._started_at = 0.0
        self._selected_answer: int | None = None
        self._is_correct: bool | None = None
        self._result: GameResult | None = None
        self._tick_handle: Handle | None = None
        self._advance_handle: Handle | None = None

    # ========================================================================
    # Observation
    # ========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def level(self) -> int:
        return self._level

    def snapshot(self) -> SessionSnapshot:
        """Current state for polling callers."""
        return SessionSnapshot(
            state=self._state,
            mode=self._mode,
            current_problem=self._problem,
            score=self._score,
            time_remaining=self._remaining_ms / 1000,
            problems_solved=self._solved,
            target_problems=self._config.target_problems if self._config else None,
            streak=self._streak,
            level=self._level,
            rank=Rank.for_level(self._level),
            selected_answer=self._selected_answer,
            is_correct=self._is_correct,
            game_result=self._result,
        )

    def subscribe(self, callback: Callable[[SessionSnapshot], None]) -> Callable[[], None]:
        """
        Register a callback for state changes.

        Returns:
            A function that removes the subscription.
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for callback in list(self._observers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Session observer failed")

    # ========================================================================
    # Game Control
    # ========================================================================

    def start_game(self, mode: GameMode) -> None:
        """Start a new game in the given mode, unless one is running."""
        if self._state in (SessionState.ACTIVE, SessionState.FEEDBACK):
            logger.debug(f"start_game({mode.value}) ignored: game already running")
            return

        config = MODE_CONFIGS[mode]
        self._session_id += 1
        self._mode = mode
        self._config = config
        self._score = 0
        self._solved = 0
        self._streak = 0
        self._selected_answer = None
        self._is_correct = None
        self._result = None
        self._remaining_ms = round(config.time_limit * 1000) if mode.is_timed else 0
        self._started_at = self._scheduler.time()

        logger.info(f"Starting game #{self._session_id}: mode={mode.value}, level={self._level}")

        self._state = SessionState.ACTIVE
        self._next_problem()
        if mode.is_timed:
            self._schedule_tick(self._session_id)
        self._publish()

    def submit_answer(self, answer: int) -> None:
        """Score an answer to the current problem."""
        if self._state is not SessionState.ACTIVE or self._problem is None:
            logger.debug(f"submit_answer({answer}) ignored in state {self._state.value}")
            return

        correct = self._problem.check_answer(answer)
        self._selected_answer = answer
        self._is_correct = correct

        if correct:
            self._handle_correct_answer()
        else:
            self._streak = 0

        self._state = SessionState.FEEDBACK
        session_id = self._session_id
        self._advance_handle = self._scheduler.call_later(
            data.FEEDBACK_DELAY,
            lambda: self._advance(session_id),
        )
        self._publish()

    def end_game(self) -> None:
        """Finish the running game and record its result."""
        if self._state not in (SessionState.ACTIVE, SessionState.FEEDBACK):
            logger.debug(f"end_game ignored in state {self._state.value}")
            return

        self._cancel_timers()

        result = GameResult(
            mode=self._mode,
            score=self._score,
            time=self._elapsed_seconds(),
            date=self._clock(),
            level=self._level,
            problems_solved=self._solved,
            accuracy=session_accuracy(self._solved, self._streak),
        )
        logger.info(
            f"Game #{self._session_id} ended: mode={result.mode.value}, score={result.score}, "
            f"solved={result.problems_solved}, level={result.level}"
        )

        self._result = result
        self._problem = None
        self._selected_answer = None
        self._is_correct = None
        self._state = SessionState.ENDED

        self.history = record_result(self.history, result)
        self._persistence.save_game_history(self.history)
        self._update_profile(result)
        self._publish()

    def done(self) -> None:
        """Dismiss the game-over summary."""
        if self._state is not SessionState.ENDED:
            return
        self._state = SessionState.IDLE
        self._result = None
        self._publish()

    # ========================================================================
    # Scoring
    # ========================================================================

    def _handle_correct_answer(self) -> None:
        self._score += points_for_correct_answer(self._streak, self._level)
        self._solved += 1
        self._streak += 1

        if self._solved % data.LEVEL_UP_INTERVAL == 0 and self._streak >= data.LEVEL_UP_MIN_STREAK:
            self._level_up()

    def _level_up(self) -> None:
        self._level += 1
        self.profile.current_level = self._level
        self.profile.total_xp += data.LEVEL_UP_XP
        logger.info(f"Level up: level={self._level}, rank={self.profile.current_rank.value}")
        self._persistence.save_user_profile(self.profile)

    def _update_profile(self, result: GameResult) -> None:
        self.profile.games_played += 1
        self.profile.total_xp += result.score
        self.profile.current_level = self._level

        if result.score > 0:
            self.profile.current_streak += 1
            self.profile.best_streak = max(self.profile.best_streak, self.profile.current_streak)
        else:
            self.profile.current_streak = 0

        self._persistence.save_user_profile(self.profile)

    # ========================================================================
    # Timers
    # ========================================================================

    def _next_problem(self) -> None:
        self._problem = generate_problem(self._level, Rank.for_level(self._level), self._rng)

    def _advance(self, session_id: int) -> None:
        if session_id != self._session_id or self._state is not SessionState.FEEDBACK:
            return

        self._advance_handle = None
        self._selected_answer = None
        self._is_correct = None

        target = self._config.target_problems
        if target is not None and self._solved >= target:
            self.end_game()
            return

        self._state = SessionState.ACTIVE
        self._next_problem()
        self._publish()

    def _schedule_tick(self, session_id: int) -> None:
        self._tick_handle = self._scheduler.call_later(data.TICK_INTERVAL, lambda: self._tick(session_id))

    def _tick(self, session_id: int) -> None:
        if session_id != self._session_id or self._state not in (SessionState.ACTIVE, SessionState.FEEDBACK):
            return

        self._tick_handle = None
        self._remaining_ms = max(0, self._remaining_ms - _TICK_MS)
        if self._remaining_ms == 0:
            self.end_game()
            return

        self._schedule_tick(session_id)
        self._publish()

    def _cancel_timers(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        if self._advance_handle is not None:
            self._advance_handle.cancel()
            self._advance_handle = None

    def _elapsed_seconds(self) -> float:
        if self._mode.is_timed:
            return self._config.time_limit - self._remaining_ms / 1000
        return max(0.0, self._scheduler.time() - self._started_at)

    # ========================================================================
    # Profile, Settings and Stats
    # ========================================================================

    def update_settings(self, settings: GameSettings) -> None:
        """Replace and persist the settings."""
        self.settings = settings
        self._persistence.save_settings(settings)
        self._publish()

    def update_profile(self, name: str | None = None, avatar: str | None = None) -> None:
        """Edit the profile's display fields and persist them."""
        if name is not None:
            self.profile.name = name
        if avatar is not None:
            self.profile.avatar = avatar
        self._persistence.save_user_profile(self.profile)
        self._publish()

    def reset_data(self) -> None:
        """
        Restore the default profile and clear the history.

        A running game is abandoned without being recorded.
        """
        self._cancel_timers()
        self._session_id += 1
        self._state = SessionState.IDLE
        self._mode = None
        self._config = None
        self._problem = None
        self._score = 0
        self._solved = 0
        self._streak = 0
        self._remaining_ms = 0
        self._selected_answer = None
        self._is_correct = None
        self._result = None

        self.profile = self._persistence.reset()
        self.history = []
        self._level = self.profile.current_level
        logger.info("Player data reset")
        self._publish()

    def history_for(self, mode: GameMode | None = None) -> list[GameResult]:
        """Results for one mode, or all results, newest first."""
        results = [r for r in self.history if mode is None or r.mode is mode]
        return sorted(results, key=lambda r: r.date, reverse=True)

    def best_score(self, mode: GameMode) -> int:
        return max((r.score for r in self.history if r.mode is mode), default=0)

    def average_score(self, mode: GameMode) -> float:
        scores = [r.score for r in self.history if r.mode is mode]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)

    def is_new_record(self, result: GameResult) -> bool:
        """Whether a result matches the best score of its mode."""
        best = self.best_score(result.mode)
        return result.score >= best and best > 0
