"""
Skill tiers for human-like play.

An abstract skill level (1-30) maps onto one of five fixed tiers. A tier
bounds the search depth, sets the engine's own Skill Level option, and
drives two random behaviours: how long the "player" thinks and how often
it picks a weaker candidate line instead of the best move.

All sampling takes an explicit random.Random so callers control seeding.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass

import chess

from .protocol import AnalysisLine

logger = logging.getLogger(__name__)

MIN_SKILL_LEVEL = 1
MAX_SKILL_LEVEL = 30

DEFAULT_COMPLEXITY = 0.5


@dataclass(frozen=True)
class SkillProfile:
    """Engine tuning and error behaviour of one skill tier."""

    name: str
    depth_range: tuple[int, int]
    engine_skill_level: int  # Stockfish "Skill Level" option, 0-20
    error_rate: float  # Probability of playing a non-best line
    thinking_time_range: tuple[int, int]  # Milliseconds


BEGINNER = SkillProfile("beginner", (1, 6), 2, 0.30, (800, 2500))
INTERMEDIATE = SkillProfile("intermediate", (6, 12), 7, 0.15, (1200, 3500))
ADVANCED = SkillProfile("advanced", (10, 16), 12, 0.08, (1500, 4500))
EXPERT = SkillProfile("expert", (14, 22), 17, 0.03, (2000, 6000))
MASTER = SkillProfile("master", (18, 30), 20, 0.01, (2500, 8000))

# Inclusive upper skill bound of each tier; anything above is MASTER.
TIER_BOUNDS: tuple[tuple[int, SkillProfile], ...] = (
    (8, BEGINNER),
    (15, INTERMEDIATE),
    (22, ADVANCED),
    (28, EXPERT),
)


def clamp_skill_level(skill_level: int) -> int:
    return max(MIN_SKILL_LEVEL, min(skill_level, MAX_SKILL_LEVEL))


def get_profile(skill_level: int) -> SkillProfile:
    """Tier for a skill level."""
    for upper, profile in TIER_BOUNDS:
        if skill_level <= upper:
            return profile
    return MASTER


def estimate_complexity(fen: str) -> float:
    """Rough 0-1 busyness of a position from its piece placement.

    Occupied squares out of 64 weigh 0.7, distinct piece symbols out of 12
    weigh 0.3. Malformed input yields DEFAULT_COMPLEXITY.
    """
    if not fen or not fen.strip():
        return DEFAULT_COMPLEXITY
    try:
        board = chess.BaseBoard(fen.split()[0])
    except ValueError:
        return DEFAULT_COMPLEXITY

    pieces = board.piece_map()
    occupancy = len(pieces) / 64
    variety = len({piece.symbol() for piece in pieces.values()}) / 12
    return 0.7 * occupancy + 0.3 * variety


def compute_thinking_time(skill_level: int, complexity: float, rng: random.Random) -> int:
    """Sample a thinking time in milliseconds.

    Uniform within the tier's range, then scaled linearly from 0.7x for the
    simplest position to 1.3x for the most complex.
    """
    low, high = get_profile(skill_level).thinking_time_range
    base = rng.uniform(low, high)
    factor = 0.7 + 0.6 * max(0.0, min(complexity, 1.0))
    return int(round(base * factor))


def should_degrade(skill_level: int, rng: random.Random) -> bool:
    """Bernoulli draw with the tier's error rate."""
    return rng.random() < get_profile(skill_level).error_rate


def select_degraded_move(
    lines: Sequence[AnalysisLine],
    skill_level: int,
    best_move: str,
    rng: random.Random,
) -> str:
    """Pick a plausible weaker move.

    Chooses uniformly among the top max(2, 20 // skill_level) non-best
    lines and returns the first move of its principal variation. Without
    any alternative line the best move is returned unchanged.
    """
    alternatives = sorted(
        (line for line in lines if line.multipv > 1 and line.pv and line.pv[0] != best_move),
        key=lambda line: line.multipv,
    )
    candidates = alternatives[: max(2, 20 // max(skill_level, MIN_SKILL_LEVEL))]
    if not candidates:
        return best_move

    choice = rng.choice(candidates)
    logger.debug(f"Degraded {best_move} to {choice.pv[0]} (multipv {choice.multipv})")
    return choice.pv[0]
