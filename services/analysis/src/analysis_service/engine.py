"""
One pooled analysis engine: a session plus its UCI readiness state.

A daemon reader thread feeds every output chunk through UciDecoder.
Readiness answers are consumed here; analysis events are queued for the
request that currently owns the instance.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Union

from common import EngineError, EngineTimeoutError

from .config import EngineConfig
from .protocol import ISREADY, BestMove, EngineId, InfoLine, ReadyOk, UciDecoder, encode_handshake
from .session import EngineSession

logger = logging.getLogger(__name__)

__all__ = ["EngineExited", "EngineInstance", "SearchEvent"]


@dataclass(frozen=True)
class EngineExited:
    """The engine's output stream ended."""


SearchEvent = Union[InfoLine, BestMove, EngineExited]


class EngineInstance:
    """
    A long-lived engine process managed by EnginePool.

    `ready` turns true on the first readyok after the handshake and never
    goes back. `busy` is true while at least one request holds the instance;
    the hold count is only changed by the pool under its lock. The stream
    itself is owned by whoever holds `exclusive()`.

    Usage:
        instance = EngineInstance(ProcessSession(config), config)
        instance.start()
        with instance.exclusive():
            instance.wait_ready(timeout=10.0)
            instance.send_all(commands)
            event = instance.next_event(timeout=1.0)
    """

    def __init__(
        self,
        session: EngineSession,
        config: EngineConfig | None = None,
        name: str = "engine",
    ) -> None:
        self.name = name
        self.holders = 0
        self._session = session
        self._config = config or EngineConfig()
        self._decoder = UciDecoder()
        self._events: queue.Queue[SearchEvent] = queue.Queue()
        self._state = threading.Condition()
        self._ready = False
        self._pending_probes = 0
        self._exited = False
        self._closed = False
        self._version: str | None = None
        self._exclusive = threading.Lock()
        self._write_lock = threading.Lock()
        self._reader: threading.Thread | None = None

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def busy(self) -> bool:
        return self.holders > 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def version(self) -> str:
        return self._version or "unknown"

    def is_alive(self) -> bool:
        """Check if the engine process is running."""
        return not self._exited and not self._closed and self._session.is_alive()

    def start(self) -> None:
        """Launch the session and send the UCI handshake.

        Readiness is not awaited here; callers block in wait_ready().

        Raises:
            EngineStartupError: If the session cannot be launched.
            EngineError: If the handshake cannot be written.
        """
        self._session.start()
        self._reader = threading.Thread(
            target=self._read_loop, name=f"{self.name}-reader", daemon=True
        )
        self._reader.start()
        self.send_all(
            encode_handshake(self._config.threads, self._config.hash_mb, self._config.multipv)
        )

    def send(self, command: str) -> None:
        """Write one command, counting outstanding isready probes."""
        with self._write_lock:
            if command == ISREADY:
                with self._state:
                    self._pending_probes += 1
            self._session.send(command)

    def send_all(self, commands: list[str]) -> None:
        for command in commands:
            self.send(command)

    def wait_ready(self, timeout: float) -> None:
        """Block until the handshake completed and every probe was answered.

        Raises:
            EngineError: If the engine exited.
            EngineTimeoutError: If readiness did not arrive in time.
        """
        with self._state:
            ok = self._state.wait_for(
                lambda: self._exited or (self._ready and self._pending_probes == 0),
                timeout,
            )
            if self._exited:
                raise EngineError(f"{self.name} exited before becoming ready")
            if not ok:
                raise EngineTimeoutError(f"{self.name} not ready within {timeout}s")

    def next_event(self, timeout: float) -> SearchEvent | None:
        """Next analysis event, or None if none arrived within the timeout."""
        try:
            return self._events.get(timeout=max(timeout, 0.0))
        except queue.Empty:
            return None

    def drain_events(self) -> int:
        """Discard queued events left over from an earlier exchange."""
        drained = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return drained
            if isinstance(event, EngineExited):
                # Keep the exit visible to the next reader.
                self._events.put(event)
                return drained
            drained += 1

    @contextmanager
    def exclusive(self) -> Iterator[EngineInstance]:
        """Hold the instance's stream for one request."""
        with self._exclusive:
            yield self

    def close(self, timeout: float | None = None) -> None:
        """Ask the engine to quit; kills it if it does not exit in time."""
        self._closed = True
        self._session.terminate(self._config.quit_timeout if timeout is None else timeout)
        self._join_reader()

    def kill(self) -> None:
        """Terminate the engine without waiting for a cooperative exit."""
        self._closed = True
        self._session.kill()
        self._join_reader()

    def _join_reader(self) -> None:
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=self._config.quit_timeout)

    def _read_loop(self) -> None:
        while True:
            chunk = self._session.read()
            if not chunk:
                break
            for event in self._decoder.feed(chunk):
                self._dispatch(event)

        if self._closed:
            logger.debug(f"{self.name} output closed")
        else:
            logger.warning(f"{self.name} exited unexpectedly")
        with self._state:
            self._exited = True
            self._state.notify_all()
        self._events.put(EngineExited())

    def _dispatch(self, event: object) -> None:
        if isinstance(event, ReadyOk):
            with self._state:
                self._pending_probes = max(0, self._pending_probes - 1)
                if not self._ready:
                    self._ready = True
                    logger.info(f"{self.name} initialized and ready ({self.version})")
                self._state.notify_all()
        elif isinstance(event, EngineId):
            self._version = event.name
        elif isinstance(event, (InfoLine, BestMove)):
            self._events.put(event)
