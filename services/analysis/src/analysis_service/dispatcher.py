"""
Analysis request dispatcher.

Turns one AnalysisRequest into one engine exchange: validate and clamp the
parameters, apply the skill tier, run the search on a pooled engine with a
time limit, then optionally replace the best move with a human-like error.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, replace

import chess

from common import EngineError, EngineTimeoutError, InvalidFenError

from .config import AnalysisConfig, EngineConfig
from .engine import EngineExited, EngineInstance
from .pool import EnginePool
from .protocol import (
    FULL_STRENGTH_SKILL,
    STOP,
    AnalysisCollector,
    AnalysisResult,
    BestMove,
    InfoLine,
    encode_analysis_request,
    encode_skill,
)
from .skill import (
    SkillProfile,
    clamp_skill_level,
    compute_thinking_time,
    estimate_complexity,
    get_profile,
    select_degraded_move,
    should_degrade,
)

logger = logging.getLogger(__name__)


@dataclass
class AnalysisRequest:
    """A caller's analysis request; unset fields fall back to defaults."""

    fen: str
    depth: int | None = None
    multipv: int | None = None
    time_limit_ms: int | None = None  # None or 0 means no explicit limit
    skill_level: int | None = None


@dataclass(frozen=True)
class SearchPlan:
    """Clamped parameters for one engine search."""

    fen: str
    depth: int
    multipv: int
    time_limit_ms: int | None
    skill_level: int | None = None
    profile: SkillProfile | None = None
    complexity: float | None = None


@dataclass
class HumanSimulation:
    """Parameters that shaped a skill-limited answer."""

    skill_level: int
    thinking_time_ms: int | None
    position_complexity: float
    error_rate: float


@dataclass
class DispatchResult:
    """Analysis result plus the human-simulation outcome, if one was requested."""

    result: AnalysisResult
    is_human_error: bool | None = None
    human_simulation: HumanSimulation | None = None


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


class RequestDispatcher:
    """
    Runs analysis requests against an EnginePool.

    Thread-safe: each call owns the engine it acquired for the whole
    exchange. The random source is only used for skill sampling.

    Usage:
        dispatcher = RequestDispatcher(pool, AnalysisConfig())
        outcome = dispatcher.handle_analysis_request(AnalysisRequest(fen=fen, depth=12))
        print(outcome.result.best_move)
    """

    def __init__(
        self,
        pool: EnginePool,
        config: AnalysisConfig | None = None,
        engine_config: EngineConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._pool = pool
        self._config = config or AnalysisConfig()
        self._engine_config = engine_config or EngineConfig()
        self._rng = rng or random.Random()

    def plan(self, request: AnalysisRequest) -> SearchPlan:
        """Validate the request and resolve every search parameter.

        Raises:
            InvalidFenError: If the FEN is missing or malformed.
        """
        fen = (request.fen or "").strip()
        if not fen:
            raise InvalidFenError("FEN position is required")
        try:
            chess.Board(fen)
        except ValueError as e:
            raise InvalidFenError(f"Invalid FEN: {fen}") from e

        depth = request.depth if request.depth is not None else self._config.default_depth
        depth = _clamp(depth, 1, self._config.max_depth)
        multipv = request.multipv if request.multipv is not None else self._config.default_multipv
        multipv = _clamp(multipv, 1, self._config.max_multipv)

        time_limit_ms: int | None = None
        if request.time_limit_ms:
            time_limit_ms = _clamp(request.time_limit_ms, 0, self._config.max_time_limit_ms) or None

        if request.skill_level is None:
            return SearchPlan(fen, depth, multipv, time_limit_ms)

        skill_level = clamp_skill_level(request.skill_level)
        profile = get_profile(skill_level)
        depth = _clamp(depth, *profile.depth_range)
        complexity = estimate_complexity(fen)
        if time_limit_ms is None:
            time_limit_ms = min(
                compute_thinking_time(skill_level, complexity, self._rng),
                self._config.max_time_limit_ms,
            )

        return SearchPlan(
            fen, depth, multipv, time_limit_ms, skill_level, profile, complexity
        )

    def handle_analysis_request(self, request: AnalysisRequest) -> DispatchResult:
        """Analyze a position.

        Raises:
            InvalidFenError: If the FEN is missing or malformed (no engine is used).
            EngineUnavailableError: If the pool has no engine to offer.
            EngineTimeoutError: If the engine ignored stop; it has been replaced.
            EngineError: If the engine died mid-request; it has been replaced.
        """
        plan = self.plan(request)
        logger.debug(
            f"Dispatching fen={plan.fen} depth={plan.depth} multipv={plan.multipv} "
            f"time_limit_ms={plan.time_limit_ms} skill={plan.skill_level}"
        )

        with self._pool.engine() as instance:
            try:
                result = self._search(instance, plan)
            except EngineError:
                self._pool.replace(instance)
                raise

        return self._humanize(result, plan)

    def _search(self, instance: EngineInstance, plan: SearchPlan) -> AnalysisResult:
        instance.wait_ready(self._engine_config.startup_timeout)
        stale = instance.drain_events()
        if stale:
            logger.debug(f"Dropped {stale} stale events on {instance.name}")

        engine_skill = plan.profile.engine_skill_level if plan.profile else FULL_STRENGTH_SKILL
        instance.send_all(
            encode_skill(engine_skill)
            + encode_analysis_request(plan.fen, plan.depth, plan.multipv, plan.time_limit_ms)
        )
        return self._await_bestmove(instance, plan)

    def _await_bestmove(self, instance: EngineInstance, plan: SearchPlan) -> AnalysisResult:
        """Collect info lines until bestmove, sending stop when time runs out.

        Without an explicit time limit the configured maximum applies. If no
        bestmove follows stop within the grace period the engine is treated
        as hung.
        """
        collector = AnalysisCollector(plan.depth, plan.multipv)
        limit_ms = plan.time_limit_ms or self._config.max_time_limit_ms
        stop_at = time.monotonic() + limit_ms / 1000
        abandon_at: float | None = None

        while True:
            now = time.monotonic()
            if abandon_at is None and now >= stop_at:
                logger.info(f"Time limit of {limit_ms}ms reached on {instance.name}, sending stop")
                instance.send(STOP)
                abandon_at = now + self._config.stop_grace_ms / 1000
            elif abandon_at is not None and now >= abandon_at:
                raise EngineTimeoutError(
                    f"{instance.name} did not answer stop within {self._config.stop_grace_ms}ms"
                )

            deadline = stop_at if abandon_at is None else abandon_at
            event = instance.next_event(deadline - time.monotonic())
            if event is None:
                continue
            if isinstance(event, InfoLine):
                collector.add(event.line)
            elif isinstance(event, BestMove):
                return collector.finish(event)
            elif isinstance(event, EngineExited):
                raise EngineError(f"{instance.name} exited during analysis")

    def _humanize(self, result: AnalysisResult, plan: SearchPlan) -> DispatchResult:
        if plan.skill_level is None or plan.profile is None:
            return DispatchResult(result=result)

        is_human_error = False
        if should_degrade(plan.skill_level, self._rng):
            move = select_degraded_move(
                result.lines, plan.skill_level, result.best_move, self._rng
            )
            if move != result.best_move:
                logger.info(
                    f"Skill {plan.skill_level}: playing {move} instead of {result.best_move}"
                )
                result = replace(result, best_move=move, ponder_move=None)
                is_human_error = True

        return DispatchResult(
            result=result,
            is_human_error=is_human_error,
            human_simulation=HumanSimulation(
                skill_level=plan.skill_level,
                thinking_time_ms=plan.time_limit_ms,
                position_complexity=plan.complexity if plan.complexity is not None else 0.5,
                error_rate=plan.profile.error_rate,
            ),
        )
