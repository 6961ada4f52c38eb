"""
Configuration for the analysis gRPC service.

All configuration can be set via environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class EngineConfig:
    """Configuration for a single Stockfish engine instance."""

    stockfish_path: Path = field(
        default_factory=lambda: Path(os.environ.get("STOCKFISH_PATH", "stockfish"))
    )
    threads: int = field(default_factory=lambda: int(os.environ.get("STOCKFISH_THREADS", "4")))
    hash_mb: int = field(default_factory=lambda: int(os.environ.get("STOCKFISH_HASH", "512")))
    multipv: int = field(default_factory=lambda: int(os.environ.get("DEFAULT_MULTI_PV", "1")))
    startup_timeout: float = 10.0  # seconds to wait for readyok
    quit_timeout: float = 2.0  # seconds to wait for exit after quit


@dataclass
class PoolConfig:
    """Configuration for the engine process pool."""

    size: int = field(default_factory=lambda: int(os.environ.get("MAX_ENGINES", "4")))


@dataclass
class AnalysisConfig:
    """Request limits and defaults applied by the dispatcher."""

    default_depth: int = field(default_factory=lambda: int(os.environ.get("DEFAULT_DEPTH", "25")))
    default_multipv: int = field(
        default_factory=lambda: int(os.environ.get("DEFAULT_MULTI_PV", "1"))
    )
    max_time_limit_ms: int = field(
        default_factory=lambda: int(os.environ.get("MAX_TIME_LIMIT", "30000"))
    )
    max_depth: int = 30
    max_multipv: int = 5
    stop_grace_ms: int = 5000  # wait for bestmove after stop before abandoning


@dataclass
class ServerConfig:
    """Configuration for the gRPC server."""

    port: int = field(default_factory=lambda: int(os.environ.get("GRPC_PORT", "50051")))
    max_workers: int = 10
    max_concurrent_rpcs: int = 100
