"""
Server lifecycle for the ChessRelay gRPC services.

GracefulServer runs a grpc.Server until SIGTERM or SIGINT. On shutdown it
stops accepting RPCs, lets in-flight ones finish within the grace period,
and only then releases the service's resources (the engine pool), so no
request loses its engine halfway through a search.
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    import grpc

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class GracefulServer:
    """Signal-driven start/stop around a gRPC server.

    Usage:
        server, pool = create_server(config)
        pool.start()

        graceful = GracefulServer(server, on_shutdown=pool.shutdown)
        graceful.start()
        graceful.wait()  # Returns once shutdown has completed
    """

    def __init__(
        self,
        server: grpc.Server,
        grace_period: float = 5.0,
        on_shutdown: Callable[[], None] | None = None,
    ) -> None:
        """
        Args:
            server: The gRPC server to run.
            grace_period: Seconds in-flight RPCs get to complete.
            on_shutdown: Resource cleanup, run after the server has stopped.
        """
        self._server = server
        self._grace_period = grace_period
        self._on_shutdown = on_shutdown
        self._stop_requested = threading.Event()
        self._previous_handlers: dict[int, Any] = {}

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def _handle_signal(self, signum: int, frame: object) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        self._stop_requested.set()

    def start(self) -> None:
        """Install the signal handlers and start serving."""
        for signum in HANDLED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)
        self._server.start()

    def wait(self) -> None:
        """Serve until a stop is requested, then shut down."""
        try:
            self._stop_requested.wait()
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")
        self.shutdown()

    def shutdown(self) -> None:
        """Drain RPCs, run the cleanup callback and restore signal handlers."""
        logger.info(f"Stopping server, waiting up to {self._grace_period}s for in-flight RPCs")
        self._server.stop(grace=self._grace_period).wait()

        if self._on_shutdown is not None:
            try:
                self._on_shutdown()
            except Exception as e:
                logger.exception(f"Error in shutdown callback: {e}")

        for signum, handler in self._previous_handlers.items():
            if handler is not None:
                signal.signal(signum, handler)
        self._previous_handlers.clear()

        logger.info("Shutdown complete")

    def stop(self) -> None:
        """Request shutdown without a signal."""
        self._stop_requested.set()
