"""
JSON message codec for gRPC generic handlers.

Services register their methods with these (de)serializers instead of
generated protobuf stubs, so request and response bodies are plain JSON
objects on the wire.
"""

from __future__ import annotations

import json
from typing import Any

import grpc

from .exceptions import InvalidRequestError


def encode_json(message: dict[str, Any]) -> bytes:
    """Serialize a response document."""
    return json.dumps(message, separators=(",", ":")).encode("utf-8")


def decode_json(payload: bytes) -> dict[str, Any]:
    """Deserialize a request document.

    An empty payload decodes to an empty object.

    Raises:
        InvalidRequestError: If the payload is not a JSON object.
    """
    if not payload:
        return {}
    try:
        message = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidRequestError(f"Request body is not valid JSON: {e}") from e
    if not isinstance(message, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return message


def json_method_handler(behavior: Any) -> grpc.RpcMethodHandler:
    """Wrap a unary-unary servicer method with the JSON response codec.

    Requests reach the servicer as raw bytes and are decoded there with
    decode_json, so a malformed body is reported as INVALID_ARGUMENT by the
    service's error handler instead of failing inside grpc.
    """
    return grpc.unary_unary_rpc_method_handler(
        behavior,
        response_serializer=encode_json,
    )
