"""
Analysis gRPC Server

Implements the AnalysisService interface: position analysis on a pool of
Stockfish processes, with optional human-like skill simulation.
"""

from __future__ import annotations

import logging
from concurrent import futures
from typing import Any

import grpc

from common import (
    EngineUnavailableError,
    GracefulServer,
    InvalidFenError,
    InvalidRequestError,
    decode_json,
    grpc_error_handler,
)

from .config import AnalysisConfig, EngineConfig, PoolConfig, ServerConfig
from .dispatcher import AnalysisRequest, DispatchResult, RequestDispatcher
from .pool import EnginePool
from .protocol import AnalysisLine
from .rpc import add_AnalysisServiceServicer_to_server

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _optional_int(payload: dict[str, Any], key: str) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRequestError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (ValueError, OverflowError) as e:
            # NaN and Infinity are accepted by the JSON decoder
            raise InvalidRequestError(f"{key} must be an integer") from e
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as e:
            raise InvalidRequestError(f"{key} must be an integer") from e
    raise InvalidRequestError(f"{key} must be an integer")


def parse_analysis_request(payload: dict[str, Any]) -> AnalysisRequest:
    """Build an AnalysisRequest from a request document.

    Raises:
        InvalidFenError: If the FEN is missing.
        InvalidRequestError: If a numeric field is not an integer.
    """
    fen = payload.get("fen")
    if not isinstance(fen, str) or not fen.strip():
        raise InvalidFenError("FEN position is required")

    return AnalysisRequest(
        fen=fen,
        depth=_optional_int(payload, "depth"),
        multipv=_optional_int(payload, "multiPv"),
        time_limit_ms=_optional_int(payload, "timeLimit"),
        skill_level=_optional_int(payload, "skillLevel"),
    )


def _line_to_dict(line: AnalysisLine) -> dict[str, Any]:
    return {
        "depth": line.depth,
        "multipv": line.multipv,
        "score": {
            "type": line.score_kind,
            "value": line.score_value,
            "readable": line.readable,
        },
        "pv": list(line.pv),
    }


def build_analysis_response(outcome: DispatchResult) -> dict[str, Any]:
    """Render a dispatch result as the response document."""
    result = outcome.result
    response: dict[str, Any] = {
        "bestMove": {"move": result.best_move, "ponder": result.ponder_move},
        "analysis": [_line_to_dict(line) for line in result.lines],
        "depth": result.reported_depth,
    }

    if outcome.is_human_error is not None:
        response["isHumanError"] = outcome.is_human_error

    simulation = outcome.human_simulation
    if simulation is not None:
        response["humanSimulation"] = {
            "skillLevel": simulation.skill_level,
            "thinkingTime": simulation.thinking_time_ms,
            "positionComplexity": simulation.position_complexity,
            "errorRate": simulation.error_rate,
        }

    return response


class AnalysisServiceImpl:
    """gRPC service implementation for position analysis."""

    def __init__(self, dispatcher: RequestDispatcher, pool: EnginePool) -> None:
        """Initialize the service.

        Args:
            dispatcher: Dispatcher running analysis requests.
            pool: Engine pool, queried for health.
        """
        self._dispatcher = dispatcher
        self._pool = pool

    @grpc_error_handler(default_response=dict)
    def Analyze(
        self,
        request: bytes,
        context: grpc.ServicerContext,
    ) -> dict[str, Any]:
        """Analyze a position.

        Args:
            request: JSON request document.
            context: gRPC service context.

        Returns:
            Response document with best move, candidate lines and depth.
        """
        analysis_request = parse_analysis_request(decode_json(request))
        logger.debug(
            f"Analyze request: fen={analysis_request.fen}, depth={analysis_request.depth}"
        )

        outcome = self._dispatcher.handle_analysis_request(analysis_request)
        return build_analysis_response(outcome)

    @grpc_error_handler(default_response=dict)
    def HealthCheck(
        self,
        request: bytes,
        context: grpc.ServicerContext,
    ) -> dict[str, Any]:
        """Report pool size and degradation.

        Raises:
            EngineUnavailableError: If no engine is alive.
        """
        health = self._pool.health_check()
        if health["alive"] == 0:
            raise EngineUnavailableError(f"No live engines (0/{health['size']})")

        return {
            "status": "degraded" if health["degraded"] else "ok",
            "engines": health["alive"],
            "size": health["size"],
            "busy": health["busy"],
            "degraded": health["degraded"],
            "version": health["version"],
        }


def create_server(
    server_config: ServerConfig | None = None,
    pool_config: PoolConfig | None = None,
    engine_config: EngineConfig | None = None,
    analysis_config: AnalysisConfig | None = None,
) -> tuple[grpc.Server, EnginePool]:
    """Create and configure the gRPC server with its engine pool.

    Returns:
        Tuple of (server, pool). Caller should start pool, then server.
    """
    server_config = server_config or ServerConfig()
    engine_config = engine_config or EngineConfig()

    pool = EnginePool(pool_config, engine_config)
    dispatcher = RequestDispatcher(pool, analysis_config, engine_config)

    server = grpc.server(
        futures.ThreadPoolExecutor(max_workers=server_config.max_workers),
        maximum_concurrent_rpcs=server_config.max_concurrent_rpcs,
    )

    servicer = AnalysisServiceImpl(dispatcher, pool)
    add_AnalysisServiceServicer_to_server(servicer, server)

    server.add_insecure_port(f"[::]:{server_config.port}")

    return server, pool


def serve(
    server_config: ServerConfig | None = None,
    pool_config: PoolConfig | None = None,
    engine_config: EngineConfig | None = None,
    analysis_config: AnalysisConfig | None = None,
) -> None:
    """Start the analysis gRPC server (blocking)."""
    server_config = server_config or ServerConfig()

    server, pool = create_server(server_config, pool_config, engine_config, analysis_config)

    pool.start()

    graceful = GracefulServer(server, on_shutdown=pool.shutdown)
    graceful.start()

    logger.info(
        f"Analysis gRPC server started on port {server_config.port} "
        f"with {pool.health_check()['total']} engines"
    )

    graceful.wait()


if __name__ == "__main__":
    serve()
