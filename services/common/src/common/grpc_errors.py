"""
Mapping of ChessRelay exceptions onto gRPC status codes.

Servicer methods raise domain exceptions; grpc_error_handler turns them into
context.abort() calls so every RPC reports failures the same way.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar

import grpc

from .exceptions import (
    EngineError,
    EngineStartupError,
    EngineTimeoutError,
    EngineUnavailableError,
    InvalidFenError,
    InvalidRequestError,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

GENERIC_INTERNAL_MESSAGE = "Internal server error"

# First match wins, so subclasses precede EngineError.
EXCEPTION_STATUS_MAP: list[tuple[type[Exception], grpc.StatusCode, str]] = [
    (InvalidFenError, grpc.StatusCode.INVALID_ARGUMENT, "Invalid FEN"),
    (InvalidRequestError, grpc.StatusCode.INVALID_ARGUMENT, "Invalid request"),
    (EngineUnavailableError, grpc.StatusCode.UNAVAILABLE, "Engine unavailable"),
    (EngineStartupError, grpc.StatusCode.UNAVAILABLE, "Engine startup failed"),
    (EngineTimeoutError, grpc.StatusCode.DEADLINE_EXCEEDED, "Engine timeout"),
    (EngineError, grpc.StatusCode.INTERNAL, "Engine error"),
]


def map_exception_to_grpc_status(exc: Exception) -> tuple[grpc.StatusCode, str]:
    """Status code and log prefix for an exception; INTERNAL if unknown."""
    for exc_type, status, prefix in EXCEPTION_STATUS_MAP:
        if isinstance(exc, exc_type):
            return status, prefix
    return grpc.StatusCode.INTERNAL, "Internal error"


def grpc_error_handler(
    default_response: Callable[[], Any] | None = None,
) -> Callable[[F], F]:
    """Decorate a servicer method so raised exceptions abort the RPC.

    Client errors are logged as warnings and their message is sent as the
    status details. INTERNAL failures are logged with a traceback and the
    caller only sees GENERIC_INTERNAL_MESSAGE.

    Args:
        default_response: Factory for the value returned after abort, for
            contexts whose abort() does not raise.

    Example:
        @grpc_error_handler(default_response=dict)
        def Analyze(self, request, context):
            ...
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(
            self: Any,
            request: Any,
            context: grpc.ServicerContext,
            *args: Any,
            **kwargs: Any,
        ) -> Any:
            try:
                return func(self, request, context, *args, **kwargs)
            except Exception as e:
                status, prefix = map_exception_to_grpc_status(e)

                if status == grpc.StatusCode.INTERNAL:
                    logger.exception(f"{prefix}: {e}")
                    details = GENERIC_INTERNAL_MESSAGE
                else:
                    logger.warning(f"{prefix}: {e}")
                    details = str(e)

                context.abort(status, details)
                return default_response() if default_response is not None else None

        return wrapper  # type: ignore[return-value]

    return decorator
