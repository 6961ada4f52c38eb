"""
Engine session abstraction.

A session is the raw byte pipe to one analysis engine: start it, write
command lines, read output chunks, terminate it. EngineInstance layers the
UCI state tracking on top, so tests can swap the subprocess for a scripted
fake implementing the same interface.
"""

from __future__ import annotations

import contextlib
import logging
import subprocess
from abc import ABC, abstractmethod

from common import EngineError, EngineStartupError

from .config import EngineConfig

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class EngineSession(ABC):
    """Byte-level connection to an analysis engine."""

    @abstractmethod
    def start(self) -> None:
        """Launch the engine.

        Raises:
            EngineStartupError: If the engine cannot be launched.
        """

    @abstractmethod
    def send(self, command: str) -> None:
        """Write one command line.

        Raises:
            EngineError: If the engine is gone or the pipe is closed.
        """

    @abstractmethod
    def read(self) -> bytes:
        """Block until output is available; b"" means end of stream."""

    @abstractmethod
    def is_alive(self) -> bool:
        """Check if the engine is still running."""

    @abstractmethod
    def terminate(self, timeout: float) -> None:
        """Ask the engine to quit, killing it if it outlives the timeout."""

    @abstractmethod
    def kill(self) -> None:
        """Terminate the engine immediately."""


class ProcessSession(EngineSession):
    """Session backed by a Stockfish subprocess speaking over stdin/stdout."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()
        self._process: subprocess.Popen[bytes] | None = None

    @property
    def returncode(self) -> int | None:
        if self._process is None:
            return None
        return self._process.poll()

    def start(self) -> None:
        if self._process is not None:
            logger.warning("Session already started, killing the old process first")
            self.kill()

        try:
            logger.info(f"Starting Stockfish from {self._config.stockfish_path}")
            self._process = subprocess.Popen(
                [str(self._config.stockfish_path)],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                bufsize=0,
            )
        except FileNotFoundError as e:
            raise EngineStartupError(
                f"Stockfish binary not found at {self._config.stockfish_path}"
            ) from e
        except OSError as e:
            raise EngineStartupError(f"Failed to start engine: {e}") from e

    def send(self, command: str) -> None:
        if self._process is None or self._process.stdin is None:
            raise EngineError("Engine not started")
        try:
            self._process.stdin.write((command + "\n").encode("utf-8"))
            self._process.stdin.flush()
        except (BrokenPipeError, OSError, ValueError) as e:
            raise EngineError(f"Failed to write to engine: {e}") from e
        logger.debug(f"Sent: {command}")

    def read(self) -> bytes:
        if self._process is None or self._process.stdout is None:
            return b""
        try:
            return self._process.stdout.read(READ_CHUNK_SIZE) or b""
        except (OSError, ValueError):
            return b""

    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def terminate(self, timeout: float) -> None:
        if self._process is None:
            return
        with contextlib.suppress(EngineError):
            self.send("quit")
        try:
            self._process.wait(timeout=timeout)
            logger.info("Engine stopped")
        except subprocess.TimeoutExpired:
            logger.warning("Engine ignored quit, killing it")
            self.kill()

    def kill(self) -> None:
        if self._process is None:
            return
        try:
            self._process.kill()
            self._process.wait(timeout=self._config.quit_timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Error killing engine: {e}")
        finally:
            if self._process.stdin is not None:
                with contextlib.suppress(OSError):
                    self._process.stdin.close()
