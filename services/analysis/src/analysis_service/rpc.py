"""
gRPC wiring for the analysis service.

Messages are JSON documents (see common.json_codec), so the service is
registered through a generic handler rather than generated stubs.
"""

from __future__ import annotations

from typing import Any

import grpc

from common import decode_json, encode_json, json_method_handler

SERVICE_NAME = "analysis.AnalysisService"

ANALYZE_METHOD = f"/{SERVICE_NAME}/Analyze"
HEALTH_CHECK_METHOD = f"/{SERVICE_NAME}/HealthCheck"


def add_AnalysisServiceServicer_to_server(servicer: Any, server: grpc.Server) -> None:
    """Register a servicer exposing Analyze and HealthCheck."""
    handler = grpc.method_handlers_generic_handler(
        SERVICE_NAME,
        {
            "Analyze": json_method_handler(servicer.Analyze),
            "HealthCheck": json_method_handler(servicer.HealthCheck),
        },
    )
    server.add_generic_rpc_handlers((handler,))


class AnalysisServiceStub:
    """Client for the analysis service.

    Example:
        with grpc.insecure_channel("localhost:50051") as channel:
            stub = AnalysisServiceStub(channel)
            response = stub.Analyze({"fen": fen, "depth": 12})
    """

    def __init__(self, channel: grpc.Channel) -> None:
        self.Analyze = channel.unary_unary(
            ANALYZE_METHOD,
            request_serializer=encode_json,
            response_deserializer=decode_json,
        )
        self.HealthCheck = channel.unary_unary(
            HEALTH_CHECK_METHOD,
            request_serializer=encode_json,
            response_deserializer=decode_json,
        )
