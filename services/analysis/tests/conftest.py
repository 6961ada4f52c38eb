"""Pytest configuration for analysis service tests."""

import os
import random
import shutil
from collections.abc import Iterator

import pytest

from analysis_service.config import AnalysisConfig, EngineConfig, PoolConfig
from analysis_service.dispatcher import RequestDispatcher
from analysis_service.pool import EnginePool
from fake_engine import FakeEngineSession

# Sample FEN positions for testing
STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
MATE_IN_1_FEN = "6k1/5ppp/8/8/8/8/8/4R2K w - - 0 1"  # Re1-e8#
COMPLEX_FEN = "r1bqkb1r/pppp1ppp/2n2n2/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R w KQkq - 4 4"


@pytest.fixture
def starting_fen() -> str:
    """Starting position FEN."""
    return STARTING_FEN


@pytest.fixture
def mate_in_1_fen() -> str:
    """Mate in one position FEN."""
    return MATE_IN_1_FEN


@pytest.fixture
def complex_fen() -> str:
    """Complex middlegame position FEN."""
    return COMPLEX_FEN


@pytest.fixture
def stockfish_available() -> bool:
    """Check if Stockfish binary is available."""
    stockfish_path = os.environ.get("STOCKFISH_PATH", "stockfish")
    return shutil.which(stockfish_path) is not None


@pytest.fixture
def engine_config() -> EngineConfig:
    """Create a test engine configuration."""
    return EngineConfig(threads=1, hash_mb=16, multipv=1, startup_timeout=2.0, quit_timeout=1.0)


@pytest.fixture
def pool_config() -> PoolConfig:
    """Create a test pool configuration."""
    return PoolConfig(size=2)


@pytest.fixture
def analysis_config() -> AnalysisConfig:
    """Create a test analysis configuration with short timeouts."""
    return AnalysisConfig(
        default_depth=25,
        default_multipv=1,
        max_time_limit_ms=30000,
        stop_grace_ms=300,
    )


@pytest.fixture
def fake_sessions() -> list[FakeEngineSession]:
    """Every fake session handed out by the session factory, in spawn order."""
    return []


@pytest.fixture
def session_options() -> dict:
    """Keyword arguments for FakeEngineSession; override per test."""
    return {}


@pytest.fixture
def session_factory(fake_sessions: list[FakeEngineSession], session_options: dict):
    """Factory building fake sessions and recording them."""

    def factory() -> FakeEngineSession:
        session = FakeEngineSession(**session_options)
        fake_sessions.append(session)
        return session

    return factory


@pytest.fixture
def pool(
    pool_config: PoolConfig, engine_config: EngineConfig, session_factory
) -> Iterator[EnginePool]:
    """A started pool of fake engines."""
    engine_pool = EnginePool(pool_config, engine_config, session_factory=session_factory)
    engine_pool.start()
    yield engine_pool
    engine_pool.shutdown()


@pytest.fixture
def dispatcher(
    pool: EnginePool, analysis_config: AnalysisConfig, engine_config: EngineConfig
) -> RequestDispatcher:
    """Dispatcher over the fake pool with a seeded random source."""
    return RequestDispatcher(pool, analysis_config, engine_config, rng=random.Random(1234))
