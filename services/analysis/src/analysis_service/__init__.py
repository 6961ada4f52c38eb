"""
Analysis gRPC Service for ChessRelay

Runs a fixed pool of Stockfish processes and serves concurrent position
analysis requests over gRPC, with optional human-like skill simulation.
"""

from common import (
    EngineError,
    EngineStartupError,
    EngineTimeoutError,
    EngineUnavailableError,
    InvalidFenError,
    InvalidRequestError,
)

from .config import AnalysisConfig, EngineConfig, PoolConfig, ServerConfig
from .dispatcher import AnalysisRequest, DispatchResult, HumanSimulation, RequestDispatcher
from .engine import EngineInstance
from .pool import EnginePool
from .protocol import AnalysisLine, AnalysisResult, UciDecoder, encode_analysis_request
from .rpc import AnalysisServiceStub, add_AnalysisServiceServicer_to_server
from .server import AnalysisServiceImpl, create_server, serve
from .session import EngineSession, ProcessSession
from .skill import SkillProfile, get_profile

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Config
    "AnalysisConfig",
    "EngineConfig",
    "PoolConfig",
    "ServerConfig",
    # Errors
    "EngineError",
    "EngineStartupError",
    "EngineTimeoutError",
    "EngineUnavailableError",
    "InvalidFenError",
    "InvalidRequestError",
    # Protocol
    "AnalysisLine",
    "AnalysisResult",
    "UciDecoder",
    "encode_analysis_request",
    # Engines
    "EngineSession",
    "ProcessSession",
    "EngineInstance",
    "EnginePool",
    # Skill
    "SkillProfile",
    "get_profile",
    # Dispatch
    "AnalysisRequest",
    "DispatchResult",
    "HumanSimulation",
    "RequestDispatcher",
    # Server
    "AnalysisServiceImpl",
    "AnalysisServiceStub",
    "add_AnalysisServiceServicer_to_server",
    "create_server",
    "serve",
]
