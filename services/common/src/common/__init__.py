"""ChessRelay common utilities for Python services."""

from .exceptions import (
    ChessRelayError,
    EngineError,
    EngineStartupError,
    EngineTimeoutError,
    EngineUnavailableError,
    InvalidFenError,
    InvalidRequestError,
)
from .grpc_errors import grpc_error_handler, map_exception_to_grpc_status
from .json_codec import decode_json, encode_json, json_method_handler
from .server import GracefulServer

__all__ = [
    # Exceptions
    "ChessRelayError",
    "EngineError",
    "EngineStartupError",
    "EngineTimeoutError",
    "EngineUnavailableError",
    "InvalidFenError",
    "InvalidRequestError",
    # gRPC utilities
    "grpc_error_handler",
    "map_exception_to_grpc_status",
    "decode_json",
    "encode_json",
    "json_method_handler",
    # Server utilities
    "GracefulServer",
]
