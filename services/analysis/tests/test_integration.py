"""
Integration tests for the analysis service.

These tests require a real Stockfish binary. They are skipped by default
and can be run with: pytest --integration
"""

import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from analysis_service import (
    AnalysisConfig,
    AnalysisRequest,
    EngineConfig,
    EnginePool,
    PoolConfig,
    RequestDispatcher,
)


@pytest.mark.integration
class TestAnalysisIntegration:
    """Integration tests for the pool and dispatcher with real Stockfish."""

    @pytest.fixture
    def real_pool(self, stockfish_available: bool) -> EnginePool:
        """Create a started pool of real engines."""
        if not stockfish_available:
            pytest.skip("Stockfish binary not available")
        pool = EnginePool(PoolConfig(size=2), EngineConfig(threads=1, hash_mb=16))
        pool.start()
        yield pool
        pool.shutdown()

    @pytest.fixture
    def real_dispatcher(self, real_pool: EnginePool) -> RequestDispatcher:
        return RequestDispatcher(real_pool, AnalysisConfig(stop_grace_ms=2000))

    def test_starting_position(
        self, real_dispatcher: RequestDispatcher, starting_fen: str
    ) -> None:
        """Starting position evaluates to roughly equal."""
        outcome = real_dispatcher.handle_analysis_request(
            AnalysisRequest(fen=starting_fen, depth=10)
        )

        result = outcome.result
        assert result.reported_depth >= 10
        assert len(result.lines) == 1
        assert result.lines[0].score_kind == "cp"
        assert -100 <= result.lines[0].score_value <= 100
        assert result.best_move == result.lines[0].pv[0]

    def test_mate_position(self, real_dispatcher: RequestDispatcher, mate_in_1_fen: str) -> None:
        """Mate in one is found."""
        outcome = real_dispatcher.handle_analysis_request(
            AnalysisRequest(fen=mate_in_1_fen, depth=10)
        )

        assert outcome.result.best_move == "e1e8"  # Re1-e8#
        assert outcome.result.lines[0].score_kind == "mate"
        assert outcome.result.lines[0].score_value == 1

    def test_multipv(self, real_dispatcher: RequestDispatcher, complex_fen: str) -> None:
        outcome = real_dispatcher.handle_analysis_request(
            AnalysisRequest(fen=complex_fen, depth=8, multipv=3)
        )

        assert [line.multipv for line in outcome.result.lines] == [1, 2, 3]

    def test_time_limit(self, real_dispatcher: RequestDispatcher, complex_fen: str) -> None:
        """A deep search with a short time limit returns promptly."""
        start = time.monotonic()
        outcome = real_dispatcher.handle_analysis_request(
            AnalysisRequest(fen=complex_fen, depth=30, time_limit_ms=300)
        )
        elapsed = time.monotonic() - start

        assert elapsed < 3.0
        assert outcome.result.best_move

    def test_skill_level(self, real_dispatcher: RequestDispatcher, starting_fen: str) -> None:
        outcome = real_dispatcher.handle_analysis_request(
            AnalysisRequest(fen=starting_fen, multipv=3, time_limit_ms=300, skill_level=3)
        )

        assert outcome.human_simulation is not None
        assert outcome.human_simulation.skill_level == 3
        assert outcome.result.reported_depth <= 6

    def test_concurrent_requests(
        self, real_dispatcher: RequestDispatcher, starting_fen: str, complex_fen: str
    ) -> None:
        """More requests than engines all complete."""
        fens = [starting_fen, complex_fen] * 3

        with ThreadPoolExecutor(max_workers=6) as executor:
            outcomes = list(
                executor.map(
                    lambda fen: real_dispatcher.handle_analysis_request(
                        AnalysisRequest(fen=fen, depth=8)
                    ),
                    fens,
                )
            )

        assert all(outcome.result.best_move for outcome in outcomes)

    def test_health(self, real_pool: EnginePool) -> None:
        for instance in real_pool.instances:
            instance.wait_ready(timeout=10.0)

        health = real_pool.health_check()

        assert health["alive"] == 2
        assert not health["degraded"]
        assert health["version"].startswith("Stockfish")
