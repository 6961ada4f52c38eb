"""
Fixed-size pool of Stockfish engine processes.

Requests are spread over the pool with a rotating cursor. Acquisition never
blocks: when every engine is busy the request is queued on the engine under
the cursor and waits for its turn on that engine's stream.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Callable, TypedDict

from common import EngineError, EngineUnavailableError

from .config import EngineConfig, PoolConfig
from .engine import EngineInstance
from .protocol import encode_reset
from .session import EngineSession, ProcessSession


class HealthStatus(TypedDict):
    """Health check result type."""

    size: int
    total: int
    alive: int
    busy: int
    degraded: bool
    version: str


logger = logging.getLogger(__name__)

__all__ = ["EnginePool", "EngineUnavailableError", "HealthStatus"]


class EnginePool:
    """
    Thread-safe pool of engine instances.

    acquire, release, replace and shutdown are the only operations that
    change pool state, and all of them do so under one lock. Engines that
    fail to spawn at startup are dropped and the pool runs below its
    configured size.

    Usage:
        pool = EnginePool(pool_config, engine_config)
        pool.start()

        with pool.engine() as instance:
            instance.send_all(commands)

        pool.shutdown()
    """

    def __init__(
        self,
        pool_config: PoolConfig | None = None,
        engine_config: EngineConfig | None = None,
        session_factory: Callable[[], EngineSession] | None = None,
    ) -> None:
        """Initialize the engine pool.

        Args:
            pool_config: Pool configuration (size).
            engine_config: Engine configuration for each instance.
            session_factory: Builds the session for a new instance. Defaults
                to a subprocess of the configured Stockfish binary.
        """
        self._pool_config = pool_config or PoolConfig()
        self._engine_config = engine_config or EngineConfig()
        self._session_factory = session_factory or (lambda: ProcessSession(self._engine_config))

        self._instances: list[EngineInstance] = []
        self._cursor = 0
        self._spawned = 0
        self._lock = threading.Lock()
        self._shutdown = False
        self._started = False

    @property
    def size(self) -> int:
        """Get the configured pool size."""
        return self._pool_config.size

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    @property
    def instances(self) -> tuple[EngineInstance, ...]:
        """Snapshot of the current pool members."""
        with self._lock:
            return tuple(self._instances)

    def start(self) -> None:
        """Spawn the configured number of engines.

        Each engine gets its handshake immediately; readiness is awaited per
        request. A spawn failure is logged and the slot is dropped.
        """
        if self._started:
            logger.warning("Pool already started")
            return

        if self._shutdown:
            raise EngineUnavailableError("Pool has been shut down")

        logger.info(f"Starting engine pool with {self._pool_config.size} engines")

        with self._lock:
            for i in range(self._pool_config.size):
                try:
                    self._instances.append(self._create_instance())
                    logger.debug(f"Engine {i + 1}/{self._pool_config.size} spawned")
                except EngineError as e:
                    logger.error(f"Failed to start engine {i + 1}: {e}")

            self._started = True
            started = len(self._instances)

        if started < self._pool_config.size:
            logger.warning(
                f"Engine pool degraded: {started}/{self._pool_config.size} engines running"
            )
        else:
            logger.info(f"Engine pool started: {started} engines")

    def shutdown(self, timeout: float | None = None) -> None:
        """Quit every engine and wait for it to exit. Idempotent.

        Args:
            timeout: Seconds to wait for each engine before killing it.
        """
        with self._lock:
            if self._shutdown:
                return
            logger.info("Shutting down engine pool")
            self._shutdown = True
            instances = list(self._instances)
            self._instances.clear()

        for instance in instances:
            try:
                instance.close(timeout)
            except Exception as e:
                logger.warning(f"Error stopping {instance.name}: {e}")

        self._started = False
        logger.info("Engine pool shutdown complete")

    def _create_instance(self) -> EngineInstance:
        """Create and start a new engine instance."""
        self._spawned += 1
        instance = EngineInstance(
            self._session_factory(), self._engine_config, name=f"engine-{self._spawned}"
        )
        try:
            instance.start()
        except EngineError:
            instance.kill()
            raise
        return instance

    def acquire(self) -> EngineInstance:
        """Take the next free engine, or the engine under the cursor if none is free.

        Marking the engine busy happens in the same critical section as the
        scan, so two callers can never both see it free.

        Raises:
            EngineUnavailableError: If the pool is not running or has no engines.
        """
        dead: list[EngineInstance] = []
        try:
            with self._lock:
                if self._shutdown:
                    raise EngineUnavailableError("Pool is shutting down")
                if not self._started:
                    raise EngineUnavailableError("Pool not started")

                while self._instances:
                    index = self._next_index_locked()
                    instance = self._instances[index]
                    if not instance.busy and not instance.is_alive():
                        logger.warning(f"Acquired {instance.name} is dead, restarting")
                        dead.append(instance)
                        try:
                            instance = self._respawn_locked(index)
                        except EngineUnavailableError:
                            # Slot dropped; scan what is left.
                            continue

                    instance.holders += 1
                    self._cursor = (index + 1) % len(self._instances)
                    return instance

                raise EngineUnavailableError("No engine instances available")
        finally:
            for instance in dead:
                instance.kill()

    def _next_index_locked(self) -> int:
        """First free slot from the cursor, or the cursor slot if all are busy."""
        count = len(self._instances)
        for offset in range(count):
            index = (self._cursor + offset) % count
            if not self._instances[index].busy:
                return index

        index = self._cursor % count
        logger.warning(f"All {count} engines busy, queueing on {self._instances[index].name}")
        return index

    def _is_member(self, instance: EngineInstance) -> bool:
        with self._lock:
            return any(existing is instance for existing in self._instances)

    def release(self, instance: EngineInstance) -> None:
        """Drop a hold on an engine and reset its position state.

        Must be called while still holding the instance's exclusive lock so
        that the reset lands before the next request's commands.
        """
        with self._lock:
            instance.holders = max(0, instance.holders - 1)
            member = any(existing is instance for existing in self._instances)

        if self._shutdown or not member or instance.closed:
            return

        try:
            instance.send_all(encode_reset())
        except EngineError as e:
            logger.warning(f"Error resetting {instance.name}: {e}")
            self.replace(instance)

    @contextmanager
    def engine(self) -> Iterator[EngineInstance]:
        """Acquire an engine and own its stream for the duration of the block.

        A caller queued behind a request whose engine was replaced meanwhile
        drops its hold on the old engine and acquires again.

        Example:
            with pool.engine() as instance:
                instance.wait_ready(timeout=10.0)
        """
        while True:
            instance = self.acquire()
            with instance.exclusive():
                if not self._is_member(instance):
                    logger.info(f"{instance.name} was replaced while queued, acquiring again")
                    self.release(instance)
                    continue
                try:
                    yield instance
                finally:
                    self.release(instance)
                return

    def replace(self, instance: EngineInstance) -> EngineInstance | None:
        """Kill a faulted engine and spawn a fresh one into its slot.

        Returns:
            The replacement, or None if the engine was no longer a member or
            the replacement failed to spawn (the slot is then dropped).
        """
        with self._lock:
            index = next(
                (i for i, existing in enumerate(self._instances) if existing is instance),
                None,
            )
            if index is None or self._shutdown:
                replacement = None
            else:
                try:
                    replacement = self._respawn_locked(index)
                except EngineUnavailableError:
                    replacement = None

        instance.kill()
        return replacement

    def _respawn_locked(self, index: int) -> EngineInstance:
        old = self._instances[index]
        try:
            replacement = self._create_instance()
        except EngineError as e:
            logger.error(f"Failed to replace {old.name}: {e}, dropping it from the pool")
            del self._instances[index]
            if self._instances:
                self._cursor %= len(self._instances)
            else:
                self._cursor = 0
            raise EngineUnavailableError(f"Failed to replace {old.name}") from e

        self._instances[index] = replacement
        logger.info(f"Replaced {old.name} with {replacement.name}")
        return replacement

    def health_check(self) -> HealthStatus:
        """Report configured size, live and busy counts, and degradation."""
        with self._lock:
            total = len(self._instances)
            alive = [instance for instance in self._instances if instance.is_alive()]
            busy = sum(1 for instance in self._instances if instance.busy)

        return {
            "size": self._pool_config.size,
            "total": total,
            "alive": len(alive),
            "busy": busy,
            "degraded": len(alive) < self._pool_config.size,
            "version": alive[0].version if alive else "unknown",
        }
