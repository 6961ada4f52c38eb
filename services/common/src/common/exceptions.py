"""
Unified exception hierarchy for ChessRelay services.

Every error raised by the engine pool, the dispatcher and the RPC layer
derives from ChessRelayError so the gRPC error mapping can classify it.
"""

from __future__ import annotations


class ChessRelayError(Exception):
    """Base exception for all ChessRelay service errors."""


# =============================================================================
# Engine Exceptions
# =============================================================================


class EngineError(ChessRelayError):
    """Base exception for engine-related errors."""


class EngineStartupError(EngineError):
    """Engine failed to start or initialize."""


class EngineTimeoutError(EngineError):
    """Engine did not answer within its deadline."""


class EngineUnavailableError(EngineError):
    """No engine instance is available to serve the request."""


# =============================================================================
# Request Exceptions
# =============================================================================


class InvalidFenError(ChessRelayError):
    """Invalid FEN position provided."""


class InvalidRequestError(ChessRelayError):
    """Request payload is malformed or has a parameter of the wrong type."""
