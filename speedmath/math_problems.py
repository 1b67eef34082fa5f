"""
Core Math Problem Engine for the Speed Math trainer.

This module generates multiple-choice arithmetic problems. The player's
rank selects a problem family, from basic addition and subtraction up to
equations and long mixed expressions, and the level widens the spread
of the wrong answers offered next to the correct one.

Every function takes an optional ``random.Random`` so that generation is
reproducible with a seeded source.
"""

import random
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from speedmath import data
from speedmath.models import Rank

_default_rng = random.Random()


class ProblemKind(Enum):
    """Shapes of problem the generator can produce."""

    ADDITION = "add"
    SUBTRACTION = "sub"
    MULTIPLICATION = "mul"
    DIVISION = "div"
    SUM = "sum3"
    DIFFERENCE = "diff3"
    FRACTION = "fraction"
    EQUATION = "equation"
    SEQUENCE = "sequence"
    EXPRESSION = "expression"


class ProblemFamily(Enum):
    """Problem families, each unlocked by a pair of ranks."""

    BASIC = "basic"
    MULTIPLICATION_DIVISION = "mul_div"
    MIXED = "mixed"
    ADVANCED = "advanced"
    HARDCORE = "hardcore"


RANK_FAMILIES: dict[Rank, ProblemFamily] = {
    Rank.NOVICE: ProblemFamily.BASIC,
    Rank.LEARNER: ProblemFamily.BASIC,
    Rank.ADEPT: ProblemFamily.MULTIPLICATION_DIVISION,
    Rank.SKILLED: ProblemFamily.MULTIPLICATION_DIVISION,
    Rank.EXPERT: ProblemFamily.MIXED,
    Rank.MASTER: ProblemFamily.MIXED,
    Rank.GRANDMASTER: ProblemFamily.ADVANCED,
    Rank.LEGEND: ProblemFamily.ADVANCED,
    Rank.MYTHIC: ProblemFamily.HARDCORE,
    Rank.IMMORTAL: ProblemFamily.HARDCORE,
}


@dataclass(frozen=True)
class Problem:
    """A single multiple-choice problem."""

    problem_id: str
    question: str
    correct_answer: int
    options: tuple[int, ...]
    level: int
    rank: Rank
    kind: ProblemKind
    operands: tuple[int, ...]

    def check_answer(self, answer: int) -> bool:
        """Check if the provided answer is correct."""
        return answer == self.correct_answer


@dataclass(frozen=True)
class _Draft:
    """Question and answer before the options are attached."""

    kind: ProblemKind
    operands: tuple[int, ...]
    question: str
    answer: int


def _truncating_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b > 0) else -quotient


# ============================================================================
# Problem Builders
# ============================================================================


def _addition(a: int, b: int) -> _Draft:
    return _Draft(ProblemKind.ADDITION, (a, b), f"{a} + {b} = ?", a + b)


def _subtraction(a: int, b: int) -> _Draft:
    """Subtract the smaller operand from the larger so the result is never negative."""
    larger, smaller = max(a, b), min(a, b)
    return _Draft(ProblemKind.SUBTRACTION, (larger, smaller), f"{larger} - {smaller} = ?", larger - smaller)


def _multiplication(a: int, b: int) -> _Draft:
    return _Draft(ProblemKind.MULTIPLICATION, (a, b), f"{a} × {b} = ?", a * b)


def _division(divisor: int, quotient: int) -> _Draft:
    """Build the dividend from divisor and quotient so the division is exact."""
    dividend = divisor * quotient
    return _Draft(ProblemKind.DIVISION, (dividend, divisor), f"{dividend} ÷ {divisor} = ?", quotient)


def _fraction(numerator: int, denominator: int, multiplier: int) -> _Draft:
    answer = _truncating_div(numerator * multiplier, denominator)
    return _Draft(
        ProblemKind.FRACTION,
        (numerator, denominator, multiplier),
        f"({numerator}/{denominator}) × {multiplier} = ?",
        answer,
    )


def _equation(a: int, x: int, b: int) -> _Draft:
    """Linear equation ``a x + b = rhs``; the answer is the chosen x."""
    rhs = a * x + b
    return _Draft(ProblemKind.EQUATION, (a, b, rhs), f"{a}x + {b} = {rhs}, x = ?", x)


def _sequence(start: int, difference: int, position: int) -> _Draft:
    answer = start + difference * (position - 1)
    question = (
        f"Sequence: {start}, {start + difference}, {start + 2 * difference}, ..., "
        f"position {position} = ?"
    )
    return _Draft(ProblemKind.SEQUENCE, (start, difference, position), question, answer)


# ============================================================================
# Families
# ============================================================================


def _generate_basic(rng: random.Random) -> _Draft:
    """Addition or subtraction over 1..12."""
    a = rng.randint(1, 12)
    b = rng.randint(1, 12)
    if rng.random() < 0.5:
        return _addition(a, b)
    return _subtraction(a, b)


def _generate_multiplication_division(rng: random.Random) -> _Draft:
    """Multiplication or exact division over 2..15."""
    if rng.random() < 0.5:
        return _multiplication(rng.randint(2, 15), rng.randint(2, 15))
    divisor = rng.randint(2, 15)
    quotient = rng.randint(2, 15)
    return _division(divisor, quotient)


def _generate_mixed(rng: random.Random) -> _Draft:
    """Three-operand sums and differences, or a product, over -20..30."""
    low, high = -20, 30
    operation = rng.choice(["+", "-", "*"])

    if operation == "+":
        a, b, c = (rng.randint(low, high) for _ in range(3))
        return _Draft(ProblemKind.SUM, (a, b, c), f"{a} + {b} + {c} = ?", a + b + c)
    if operation == "-":
        a, b, c = (rng.randint(low, high) for _ in range(3))
        return _Draft(ProblemKind.DIFFERENCE, (a, b, c), f"{a} - {b} - {c} = ?", a - b - c)
    return _multiplication(rng.randint(low, high), rng.randint(low, high))


def _generate_advanced(rng: random.Random) -> _Draft:
    """Fraction of a number, linear equation, or arithmetic sequence."""
    problem_type = rng.choice(["fraction", "equation", "sequence"])

    if problem_type == "fraction":
        return _fraction(rng.randint(1, 30), rng.randint(2, 12), rng.randint(2, 8))
    if problem_type == "equation":
        x = rng.randint(1, 20)
        a = rng.randint(2, 10)
        b = rng.randint(1, 20)
        return _equation(a, x, b)
    return _sequence(rng.randint(1, 20), rng.randint(2, 10), rng.randint(3, 8))


def _generate_hardcore(rng: random.Random) -> _Draft:
    """Four-term expression, larger fractions, or larger equations."""
    problem_type = rng.randint(0, 2)

    if problem_type == 0:
        a, b, c, d = (rng.randint(-50, 100) for _ in range(4))
        return _Draft(
            ProblemKind.EXPRESSION,
            (a, b, c, d),
            f"{a} + {b} × {c} - {d} = ?",
            a + b * c - d,
        )
    if problem_type == 1:
        return _fraction(rng.randint(10, 100), rng.randint(2, 20), rng.randint(2, 12))
    x = rng.randint(1, 30)
    a = rng.randint(2, 15)
    b = rng.randint(1, 30)
    return _equation(a, x, b)


# Map problem families to their generator functions
_FAMILY_GENERATORS: dict[ProblemFamily, Callable[[random.Random], _Draft]] = {
    ProblemFamily.BASIC: _generate_basic,
    ProblemFamily.MULTIPLICATION_DIVISION: _generate_multiplication_division,
    ProblemFamily.MIXED: _generate_mixed,
    ProblemFamily.ADVANCED: _generate_advanced,
    ProblemFamily.HARDCORE: _generate_hardcore,
}


# ============================================================================
# Answer Options
# ============================================================================


def distractor_range(level: int, rank: Rank) -> int:
    """Spread of the offsets used to build near-miss distractors."""
    return max(2, level * 2 + rank.index)


def _draw_distractor(correct_answer: int, level: int, rank: Rank, spread: int, rng: random.Random) -> int:
    distractor = correct_answer + rng.randint(-spread, spread)

    if distractor < 0 and level < data.NEGATIVE_DISTRACTOR_LEVEL:
        distractor = abs(distractor)

    if rank.index > data.WILD_DISTRACTOR_MIN_RANK and rng.random() < 0.5:
        distractor = rng.randint(*data.WILD_DISTRACTOR_RANGE)

    return distractor


def _nearest_unused(correct_answer: int, level: int, taken: set[int]) -> int:
    """
    Step outward from the correct answer to the closest free value.

    Used when random draws keep colliding, e.g. a correct answer of 0 at
    level 1 where mirrored offsets only reach {1, 2}.
    """
    allow_negative = level >= data.NEGATIVE_DISTRACTOR_LEVEL or correct_answer < 0
    step = 1
    while True:
        for candidate in (correct_answer + step, correct_answer - step):
            if candidate in taken:
                continue
            if candidate < 0 and not allow_negative:
                continue
            return candidate
        step += 1


def generate_options(
    correct_answer: int,
    level: int,
    rank: Rank,
    rng: random.Random | None = None,
) -> tuple[int, ...]:
    """
    Build the shuffled answer options for a problem.

    Args:
        correct_answer: The answer that must appear exactly once.
        level: Player level; widens the distractor spread.
        rank: Player rank; high ranks mix in unrelated values.
        rng: Optional random source.

    Returns:
        A tuple of DISTRACTOR_COUNT + 1 distinct integers in random order.
    """
    rng = rng or _default_rng
    spread = distractor_range(level, rank)
    options = [correct_answer]

    for _ in range(data.DISTRACTOR_COUNT):
        for _ in range(data.MAX_DISTRACTOR_ATTEMPTS):
            distractor = _draw_distractor(correct_answer, level, rank, spread, rng)
            if distractor not in options:
                break
        else:
            distractor = _nearest_unused(correct_answer, level, set(options))
        options.append(distractor)

    rng.shuffle(options)
    return tuple(options)


# ============================================================================
# Public API
# ============================================================================


def generate_problem(level: int, rank: Rank, rng: random.Random | None = None) -> Problem:
    """
    Generate a random problem for the given level and rank.

    Args:
        level: The player level (1 or higher).
        rank: The rank tier that selects the problem family.
        rng: Optional random source, for reproducible generation.

    Returns:
        A Problem instance.

    Raises:
        ValueError: If level is below 1.
    """
    if level < 1:
        raise ValueError(f"Unsupported level: {level}. Levels start at 1.")

    rng = rng or _default_rng
    draft = _FAMILY_GENERATORS[RANK_FAMILIES[rank]](rng)

    return Problem(
        problem_id=str(uuid.uuid4()),
        question=draft.question,
        correct_answer=draft.answer,
        options=generate_options(draft.answer, level, rank, rng),
        level=level,
        rank=rank,
        kind=draft.kind,
        operands=draft.operands,
    )


def generate_problem_set(
    count: int = 10,
    level: int = 1,
    rank: Rank | None = None,
    rng: random.Random | None = None,
) -> list[Problem]:
    """
    Generate a set of problems.

    Args:
        count: Number of problems to generate.
        level: The player level.
        rank: Rank tier; derived from the level when omitted.
        rng: Optional random source.

    Returns:
        A list of Problem instances.
    """
    rank = rank or Rank.for_level(level)
    return [generate_problem(level, rank, rng) for _ in range(count)]


def get_family(rank: Rank) -> ProblemFamily:
    """Get the problem family unlocked by a rank."""
    return RANK_FAMILIES[rank]
